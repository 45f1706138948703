"""
Run Coordinator: drives one scraper task across its sub-targets.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

from app.domain.ingestion import RunSummary, SubTargetProgress, SubTargetState
from app.ingestion.base import ScraperTask
from app.ingestion.browser.pool import SessionPool
from app.ingestion.browser.session import AutomationSession
from app.ingestion.config.models import SubTargetConfig
from app.ingestion.errors import PoolError, RunAborted, SubTargetFailed, SubTargetSkipped
from app.ingestion.logging_utils import log_event
from app.ingestion.storage import CatalogStorage

logger = logging.getLogger(__name__)


class RunCoordinator:
    """
    Processes sub-targets with per-sub-target failure isolation.

    Sequentially, one session is shared across the run and the entry page
    is opened once; it is reopened only after a sub-target failed. With
    ``max_parallel > 1`` each worker borrows its own session per sub-target.
    Sessions are always released before ``run_all`` returns or raises.
    """

    def __init__(
        self,
        *,
        pool: SessionPool,
        task: ScraperTask,
        storage: CatalogStorage,
        acquire_timeout: float,
        max_parallel: int = 1,
    ) -> None:
        self._pool = pool
        self._task = task
        self._storage = storage
        self._acquire_timeout = acquire_timeout
        self._max_parallel = max(1, max_parallel)

    @property
    def portal(self) -> str:
        return self._task.portal

    def select_sub_targets(self, names: Sequence[str] | None) -> list[SubTargetConfig]:
        configured = list(self._task.config.sub_targets)
        if not names:
            return configured

        lookup: dict[str, SubTargetConfig] = {}
        for target in configured:
            for token in target.tokens:
                lookup.setdefault(token.strip().casefold(), target)

        selected: list[SubTargetConfig] = []
        unknown: list[str] = []
        for name in names:
            target = lookup.get(name.strip().casefold())
            if target is None:
                unknown.append(name)
            elif target not in selected:
                selected.append(target)
        if unknown:
            raise ValueError(
                f"Unknown sub-targets for portal='{self.portal}': {', '.join(unknown)}"
            )
        return selected

    def run_all(
        self,
        sub_targets: Sequence[str] | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> RunSummary:
        """
        Run every selected sub-target and return the run summary.

        Raises RunAborted when the pool cannot provide a session or the
        portal entry page cannot be opened; ``summary`` on the exception
        holds whatever finished before that.
        """

        targets = self.select_sub_targets(sub_targets)
        started_at = datetime.now(timezone.utc)
        if self._max_parallel > 1 and len(targets) > 1:
            progresses, cancelled = self._run_parallel(targets, started_at, cancel_event)
        else:
            progresses, cancelled = self._run_sequential(targets, started_at, cancel_event)

        summary = self._summary(started_at, progresses, cancelled=cancelled)
        log_event(
            logger,
            logging.INFO,
            "run_completed",
            portal=self.portal,
            status=summary.status,
            attempted=summary.attempted,
            succeeded=summary.succeeded,
            skipped=len(summary.skipped),
            failed=summary.failed,
            records_upserted=summary.records_upserted,
        )
        return summary

    def _run_sequential(
        self,
        targets: list[SubTargetConfig],
        started_at: datetime,
        cancel_event: threading.Event | None,
    ) -> tuple[list[SubTargetProgress], bool]:
        progresses: list[SubTargetProgress] = []
        if not targets:
            return progresses, False
        if cancel_event is not None and cancel_event.is_set():
            log_event(logger, logging.INFO, "run_cancelled", portal=self.portal)
            return progresses, True

        session: AutomationSession | None = None
        needs_reset = False
        try:
            session = self._open(started_at, progresses)
            for target in targets:
                if cancel_event is not None and cancel_event.is_set():
                    log_event(logger, logging.INFO, "run_cancelled", portal=self.portal)
                    return progresses, True

                if needs_reset:
                    if not session.is_responsive():
                        self._pool.release(session, crashed=True)
                        session = None
                        session = self._open(started_at, progresses)
                    else:
                        self._reopen(session, started_at, progresses)

                progress = SubTargetProgress(name=target.name)
                progresses.append(progress)
                progress.advance(SubTargetState.NAVIGATED)
                needs_reset = not self._process(session, target, progress)
            return progresses, False
        finally:
            if session is not None:
                self._pool.release(session, crashed=not session.is_responsive())

    def _run_parallel(
        self,
        targets: list[SubTargetConfig],
        started_at: datetime,
        cancel_event: threading.Event | None,
    ) -> tuple[list[SubTargetProgress], bool]:
        workers = min(self._max_parallel, self._pool.max_sessions, len(targets))

        def _worker(target: SubTargetConfig) -> SubTargetProgress | PoolError | None:
            if cancel_event is not None and cancel_event.is_set():
                return None
            try:
                session = self._pool.acquire(self._acquire_timeout)
            except PoolError as exc:
                return exc

            progress = SubTargetProgress(name=target.name)
            healthy = False
            try:
                try:
                    self._task.open_entry(session)
                except Exception as exc:
                    self._fail(progress, exc)
                    return progress
                progress.advance(SubTargetState.NAVIGATED)
                healthy = self._process(session, target, progress)
                return progress
            finally:
                self._pool.release(session, crashed=not healthy and not session.is_responsive())

        prefix = f"run-{self.portal}"
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=prefix) as executor:
            results = list(executor.map(_worker, targets))

        progresses = [item for item in results if isinstance(item, SubTargetProgress)]
        pool_errors = [item for item in results if isinstance(item, PoolError)]
        if pool_errors:
            raise self._aborted(pool_errors[0], started_at, progresses) from pool_errors[0]
        cancelled = any(item is None for item in results)
        if cancelled:
            log_event(logger, logging.INFO, "run_cancelled", portal=self.portal)
        return progresses, cancelled

    def _process(
        self,
        session: AutomationSession,
        target: SubTargetConfig,
        progress: SubTargetProgress,
    ) -> bool:
        """
        Locate, load, extract and persist one sub-target.

        Returns False when the sub-target failed and the page state is
        unknown.
        """

        page = session.page
        try:
            element = self._task.locate(page, target)
            if element is None:
                raise SubTargetSkipped(target.name)
            progress.advance(SubTargetState.LOCATED)

            self._task.load(page, target, element)
            records = self._task.extract(page)
            progress.records_extracted = len(records)
            progress.advance(SubTargetState.EXTRACTED)

            rows = self._task.normalize(target, records)
            progress.records_upserted = self._storage.upsert(rows) if rows else 0
            progress.advance(SubTargetState.PERSISTED)
            log_event(
                logger,
                logging.INFO,
                "sub_target_persisted",
                portal=self.portal,
                sub_target=target.name,
                records_extracted=progress.records_extracted,
                records_upserted=progress.records_upserted,
            )
            return True
        except SubTargetSkipped as exc:
            progress.advance(SubTargetState.SKIPPED)
            log_event(
                logger,
                logging.WARNING,
                "sub_target_skipped",
                portal=self.portal,
                sub_target=target.name,
                reason=exc.reason,
            )
            return True
        except Exception as exc:
            self._fail(progress, exc)
            return False

    def _fail(self, progress: SubTargetProgress, exc: Exception) -> None:
        failure = SubTargetFailed(progress.name, exc)
        stage = progress.state.value
        progress.error = str(exc) or type(exc).__name__
        progress.advance(SubTargetState.FAILED)
        log_event(
            logger,
            logging.ERROR,
            "sub_target_failed",
            portal=self.portal,
            sub_target=progress.name,
            stage=stage,
            error_type=type(exc).__name__,
            error=str(failure),
        )

    def _open(self, started_at: datetime, progresses: list[SubTargetProgress]) -> AutomationSession:
        try:
            session = self._pool.acquire(self._acquire_timeout)
        except PoolError as exc:
            raise self._aborted(exc, started_at, progresses) from exc
        try:
            self._reopen(session, started_at, progresses)
        except RunAborted:
            self._pool.release(session, crashed=not session.is_responsive())
            raise
        return session

    def _reopen(
        self,
        session: AutomationSession,
        started_at: datetime,
        progresses: list[SubTargetProgress],
    ) -> None:
        try:
            self._task.open_entry(session)
        except Exception as exc:
            raise self._aborted(exc, started_at, progresses) from exc

    def _aborted(
        self,
        cause: Exception,
        started_at: datetime,
        progresses: list[SubTargetProgress],
    ) -> RunAborted:
        summary = self._summary(started_at, progresses, cancelled=False, error=str(cause))
        log_event(
            logger,
            logging.ERROR,
            "run_aborted",
            portal=self.portal,
            error_type=type(cause).__name__,
            error=str(cause),
            attempted=summary.attempted,
        )
        return RunAborted(self.portal, cause, summary=summary)

    def _summary(
        self,
        started_at: datetime,
        progresses: list[SubTargetProgress],
        *,
        cancelled: bool,
        error: str | None = None,
    ) -> RunSummary:
        return RunSummary(
            portal=self.portal,
            catalog=self._task.config.catalog,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            outcomes=[progress.outcome() for progress in progresses],
            cancelled=cancelled,
            error=error,
        )
