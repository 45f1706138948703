"""
Run portal catalog ingestion from CLI.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys
import threading

from app.ingestion.browser import ChromeSessionFactory, SessionPool
from app.ingestion.config import get_ingestion_settings
from app.ingestion.errors import RunAborted
from app.schemas.ingestion import RunSummaryResponse
from app.services.ingestion_service import PortalIngestionService


def main() -> int:
    parser = argparse.ArgumentParser(description="Refresh portal catalogs.")
    parser.add_argument(
        "--portal",
        dest="portal",
        default=None,
        help="Portal name from config file. All enabled portals when omitted.",
    )
    parser.add_argument(
        "--sub-target",
        dest="sub_targets",
        action="append",
        default=None,
        help="Restrict the run to one sub-target (network, state). Repeatable.",
    )
    args = parser.parse_args()
    if args.sub_targets and not args.portal:
        parser.error("--sub-target requires --portal")

    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    # Ctrl-C stops the run between sub-targets instead of mid-navigation.
    cancel_event = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: cancel_event.set())

    settings = get_ingestion_settings()
    pool = SessionPool(
        driver_factory=ChromeSessionFactory(settings),
        max_sessions=settings.max_sessions,
        probe_timeout_seconds=settings.probe_timeout_seconds,
        max_session_age_seconds=settings.max_session_age_seconds,
        max_session_uses=settings.max_session_uses,
    )
    exit_code = 0
    try:
        service = PortalIngestionService(pool=pool, settings=settings)
        if args.portal:
            try:
                summaries = [
                    service.refresh(
                        args.portal,
                        sub_targets=args.sub_targets,
                        cancel_event=cancel_event,
                    )
                ]
            except RunAborted as exc:
                print(f"Run aborted: {exc}", file=sys.stderr)
                if exc.summary is None:
                    return 2
                summaries = [exc.summary]
                exit_code = 2
        else:
            summaries = service.refresh_all(cancel_event=cancel_event)
    except (LookupError, ValueError, FileNotFoundError) as exc:
        print(str(exc), file=sys.stderr)
        return 1
    finally:
        pool.shutdown()

    payload = [
        RunSummaryResponse.from_summary(summary).model_dump(mode="json")
        for summary in summaries
    ]
    print(json.dumps(payload, indent=2))
    if exit_code == 0 and any(summary.status in {"failed", "aborted"} for summary in summaries):
        exit_code = 1
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
