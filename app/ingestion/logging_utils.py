"""
Structured logging helpers for ingestion workflows.
"""

from __future__ import annotations

import json
import logging
from typing import Any

_MAX_FIELD_LENGTH = 500


def _clip(value: Any) -> Any:
    if isinstance(value, str) and len(value) > _MAX_FIELD_LENGTH:
        return value[:_MAX_FIELD_LENGTH] + "..."
    return value


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Emit one structured log line as compact JSON.

    Long string fields (driver stack traces, page snippets) are clipped.
    """

    if not logger.isEnabledFor(level):
        return
    payload = {"event": event, **{key: _clip(value) for key, value in fields.items()}}
    logger.log(level, json.dumps(payload, default=str, sort_keys=True))
