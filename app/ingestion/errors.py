"""
Exception taxonomy for portal ingestion.

Pool errors and run aborts cross the Run Coordinator boundary; everything
scoped to one sub-target is caught there and recorded in the run summary.
"""

from __future__ import annotations

from app.domain.ingestion import RunSummary


class IngestionError(Exception):
    """Base exception for portal ingestion failures."""


class PoolError(IngestionError):
    """Base exception for session pool failures."""


class PoolExhausted(PoolError):
    """Raised when no session became available within the acquire timeout."""


class PoolShuttingDown(PoolError):
    """Raised to callers of a pool that is shutting down or already closed."""


class SessionLaunchFailed(PoolError):
    """Raised when a new automation session could not be started."""


class SessionCrashed(IngestionError):
    """Raised when a checked-out session's browser process stopped responding."""


class SubTargetSkipped(IngestionError):
    """Raised when a sub-target has no reachable entry point on the page."""

    def __init__(self, sub_target: str, reason: str = "entry point not found") -> None:
        super().__init__(f"sub_target={sub_target} skipped: {reason}")
        self.sub_target = sub_target
        self.reason = reason


class SubTargetFailed(IngestionError):
    """Raised for an unexpected error while processing one sub-target."""

    def __init__(self, sub_target: str, cause: BaseException) -> None:
        super().__init__(f"sub_target={sub_target} error={cause}")
        self.sub_target = sub_target
        self.cause = cause


class PersistenceFailure(IngestionError):
    """Raised when a catalog upsert failed and was rolled back."""


class RunAborted(IngestionError):
    """
    Raised when a whole run cannot proceed (pool failure, unreachable portal).

    ``summary`` carries the outcomes of sub-targets finished before the abort.
    """

    def __init__(
        self,
        portal: str,
        cause: BaseException,
        summary: RunSummary | None = None,
    ) -> None:
        super().__init__(f"portal={portal} run aborted: {cause}")
        self.portal = portal
        self.cause = cause
        self.summary = summary

    @property
    def pool_related(self) -> bool:
        return isinstance(self.cause, PoolError)
