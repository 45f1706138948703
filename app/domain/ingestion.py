"""
app/domain/ingestion.py

Domain models for portal ingestion runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class SubTargetState(str, Enum):
    """
    Per-sub-target progress. Transitions only move forward.
    """

    PENDING = "pending"
    NAVIGATED = "navigated"
    LOCATED = "located"
    EXTRACTED = "extracted"
    PERSISTED = "persisted"
    SKIPPED = "skipped"
    FAILED = "failed"


_FORWARD_ORDER = (
    SubTargetState.PENDING,
    SubTargetState.NAVIGATED,
    SubTargetState.LOCATED,
    SubTargetState.EXTRACTED,
    SubTargetState.PERSISTED,
)
TERMINAL_STATES = frozenset(
    {SubTargetState.PERSISTED, SubTargetState.SKIPPED, SubTargetState.FAILED}
)


@dataclass
class SubTargetProgress:
    """
    Mutable state tracker for one sub-target within a run.
    """

    name: str
    state: SubTargetState = SubTargetState.PENDING
    records_extracted: int = 0
    records_upserted: int = 0
    error: str | None = None

    def advance(self, target: SubTargetState) -> None:
        if self.state in TERMINAL_STATES:
            raise ValueError(f"sub-target {self.name!r} already finished as {self.state.value}")
        if target in (SubTargetState.SKIPPED, SubTargetState.FAILED):
            self.state = target
            return
        if _FORWARD_ORDER.index(target) <= _FORWARD_ORDER.index(self.state):
            raise ValueError(
                f"illegal transition {self.state.value} -> {target.value} for {self.name!r}"
            )
        self.state = target

    def outcome(self) -> SubTargetOutcome:
        return SubTargetOutcome(
            name=self.name,
            state=self.state,
            records_extracted=self.records_extracted,
            records_upserted=self.records_upserted,
            error=self.error,
        )


@dataclass(frozen=True)
class SubTargetOutcome:
    """
    Final result for one sub-target.
    """

    name: str
    state: SubTargetState
    records_extracted: int = 0
    records_upserted: int = 0
    error: str | None = None


@dataclass(frozen=True)
class SubTargetError:
    sub_target: str
    error: str


@dataclass(frozen=True)
class RunSummary:
    """
    Aggregate result for one Run Coordinator invocation. Never persisted here.
    """

    portal: str
    catalog: str
    started_at: datetime
    finished_at: datetime
    outcomes: list[SubTargetOutcome] = field(default_factory=list)
    cancelled: bool = False
    error: str | None = None

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.outcomes if item.state is SubTargetState.PERSISTED)

    @property
    def skipped(self) -> list[str]:
        return [item.name for item in self.outcomes if item.state is SubTargetState.SKIPPED]

    @property
    def failed(self) -> int:
        return sum(1 for item in self.outcomes if item.state is SubTargetState.FAILED)

    @property
    def errors(self) -> list[SubTargetError]:
        return [
            SubTargetError(sub_target=item.name, error=item.error or "unknown error")
            for item in self.outcomes
            if item.state is SubTargetState.FAILED
        ]

    @property
    def records_extracted(self) -> int:
        return sum(item.records_extracted for item in self.outcomes)

    @property
    def records_upserted(self) -> int:
        return sum(item.records_upserted for item in self.outcomes)

    @property
    def status(self) -> str:
        if self.error is not None:
            return "aborted"
        if self.cancelled:
            return "cancelled"
        if self.attempted and self.succeeded == self.attempted:
            return "success"
        if self.succeeded > 0:
            return "partial_success"
        if self.attempted and self.failed == 0:
            return "skipped"
        return "failed"
