"""
Environment + JSON config loader for portal ingestion.
"""

from __future__ import annotations

import json
import os
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path

from db.config import load_env_files

from app.ingestion.config.models import (
    IngestionSettings,
    MarkupConfig,
    PortalConfig,
    PortalSelectors,
    SubTargetConfig,
)

_SELECTOR_GROUPS = ("entry", "text", "fallback", "containers")


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    stripped = raw.strip()
    return stripped if stripped else default


def _get_decimal_env(name: str, default: str) -> Decimal:
    raw = _get_str_env(name, default)
    try:
        return Decimal(raw)
    except InvalidOperation:
        return Decimal(default)


def _browser_binary() -> str | None:
    for name in ("CHROME_BINARY", "PUPPETEER_EXECUTABLE_PATH", "CHROMIUM_PATH"):
        value = os.getenv(name, "").strip()
        if value:
            return value
    return None


def _project_root() -> Path:
    return Path(__file__).resolve().parents[3]


def _resolve_config_path(raw_path: str) -> Path:
    candidate = Path(raw_path)
    if candidate.is_absolute():
        return candidate
    return (_project_root() / candidate).resolve()


@lru_cache(maxsize=1)
def get_ingestion_settings() -> IngestionSettings:
    """
    Return cached ingestion settings from environment variables.
    """

    load_env_files()
    config_path = _get_str_env(
        "INGESTION_PORTALS_CONFIG_PATH",
        "app/ingestion/config/portals.json",
    )
    extra_args = _get_str_env("INGESTION_BROWSER_EXTRA_ARGS", "")
    return IngestionSettings(
        config_path=str(_resolve_config_path(config_path)),
        max_sessions=max(1, _get_int_env("INGESTION_POOL_MAX_SESSIONS", 4)),
        acquire_timeout_seconds=max(
            0.1,
            _get_float_env("INGESTION_ACQUIRE_TIMEOUT_SECONDS", 30.0),
        ),
        navigation_timeout_seconds=max(
            1.0,
            _get_float_env("INGESTION_NAVIGATION_TIMEOUT_SECONDS", 60.0),
        ),
        content_wait_timeout_seconds=max(
            0.1,
            _get_float_env("INGESTION_CONTENT_WAIT_TIMEOUT_SECONDS", 10.0),
        ),
        wait_poll_seconds=max(
            0.05,
            _get_float_env("INGESTION_WAIT_POLL_SECONDS", 0.25),
        ),
        probe_timeout_seconds=max(
            0.5,
            _get_float_env("INGESTION_PROBE_TIMEOUT_SECONDS", 5.0),
        ),
        max_session_age_seconds=max(
            1.0,
            _get_float_env("INGESTION_MAX_SESSION_AGE_SECONDS", 300.0),
        ),
        max_session_uses=max(1, _get_int_env("INGESTION_MAX_SESSION_USES", 50)),
        headless=_get_bool_env("INGESTION_HEADLESS", True),
        browser_binary=_browser_binary(),
        default_markup=MarkupConfig(
            retail=_get_decimal_env("INGESTION_RETAIL_MARKUP", "1.4"),
            reseller=_get_decimal_env("INGESTION_RESELLER_MARKUP", "1.2"),
        ),
        storage_batch_size=max(1, _get_int_env("INGESTION_STORAGE_BATCH_SIZE", 500)),
        max_parallel_sub_targets=max(1, _get_int_env("INGESTION_MAX_PARALLEL_SUB_TARGETS", 1)),
        scheduler_enabled=_get_bool_env("INGESTION_SCHEDULER_ENABLED", True),
        extra_browser_args=tuple(arg for arg in extra_args.split() if arg),
    )


def load_portal_configs(*, config_path: str) -> list[PortalConfig]:
    """
    Load portal configurations from a JSON file.

    Entries missing a name, catalog or entry URL are skipped. Invalid markup
    multipliers raise ValueError.
    """

    path = _resolve_config_path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Portal config file not found: {path}")

    raw_data = json.loads(path.read_text(encoding="utf-8"))
    portals = raw_data.get("portals", [])
    if not isinstance(portals, list):
        raise ValueError("Invalid portal config: 'portals' must be a list.")

    parsed: list[PortalConfig] = []
    for entry in portals:
        if not isinstance(entry, dict):
            continue

        name = str(entry.get("name", "")).strip().lower()
        catalog = str(entry.get("catalog", "")).strip().lower()
        entry_url = str(entry.get("entry_url", "")).strip()
        if not name or not catalog or not entry_url:
            continue

        placeholders = _normalize_str_list(entry.get("placeholder_tokens"))
        parsed.append(
            PortalConfig(
                name=name,
                catalog=catalog,
                task_type=str(entry.get("task_type", "data_bundles")).strip().lower(),
                entry_url=entry_url,
                sub_targets=_normalize_sub_targets(entry.get("sub_targets", [])),
                selectors=_normalize_selectors(entry.get("selectors", {})),
                ready_selector=_optional_str(entry.get("ready_selector")),
                markup=_normalize_markup(entry.get("markup")),
                requires_amount=_optional_bool(entry.get("requires_amount"), True),
                enabled=_optional_bool(entry.get("enabled"), True),
                schedule_cron=_optional_str(entry.get("schedule_cron")),
                task_class=_optional_str(entry.get("task_class")),
                placeholder_tokens=tuple(token.lower() for token in placeholders)
                or ("select", "choose"),
            )
        )

    return parsed


def _normalize_sub_targets(value: object) -> tuple[SubTargetConfig, ...]:
    if not isinstance(value, list):
        return ()

    seen: set[str] = set()
    normalized: list[SubTargetConfig] = []
    for item in value:
        if isinstance(item, str):
            name, aliases = item.strip(), ()
        elif isinstance(item, dict):
            name = str(item.get("name", "")).strip()
            aliases = tuple(_normalize_str_list(item.get("aliases")))
        else:
            continue
        if not name or name.lower() in seen:
            continue
        seen.add(name.lower())
        normalized.append(SubTargetConfig(name=name, aliases=aliases))
    return tuple(normalized)


def _normalize_selectors(selectors: object) -> PortalSelectors:
    if not isinstance(selectors, dict):
        return PortalSelectors()

    groups: dict[str, tuple[str, ...]] = {}
    for group in _SELECTOR_GROUPS:
        groups[group] = tuple(_normalize_str_list(selectors.get(group)))
    return PortalSelectors(**groups)


def _normalize_markup(value: object) -> MarkupConfig | None:
    if not isinstance(value, dict):
        return None
    try:
        retail = Decimal(str(value["retail"]))
        reseller = Decimal(str(value["reseller"]))
    except (KeyError, InvalidOperation) as exc:
        raise ValueError(f"Invalid markup config {value!r}: {exc}") from exc
    return MarkupConfig(retail=retail, reseller=reseller)


def _normalize_str_list(value: object) -> list[str]:
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, list):
        return [item.strip() for item in value if isinstance(item, str) and item.strip()]
    return []


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _optional_bool(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    return default
