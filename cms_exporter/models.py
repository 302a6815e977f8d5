from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pandas as pd

LIST = "list"
OBJECT = "object"
KINDS = (LIST, OBJECT)

FULFILLED = "fulfilled"
EMPTY = "empty"
REJECTED = "rejected"

DELIVERED = "delivered"
FAILED = "failed"

Record = Dict[str, Any]


@dataclass(frozen=True)
class Collection:
    name: str
    kind: str = LIST


@dataclass
class Outcome:
    """Result of processing one collection: fulfilled, empty or rejected."""

    name: str
    status: str
    table: Optional[str] = None
    reason: Optional[str] = None
    rows: int = 0

    @classmethod
    def fulfilled(cls, name: str, table: str, rows: int) -> "Outcome":
        return cls(name=name, status=FULFILLED, table=table, rows=rows)

    @classmethod
    def empty(cls, name: str) -> "Outcome":
        return cls(name=name, status=EMPTY)

    @classmethod
    def rejected(cls, name: str, reason: str) -> "Outcome":
        return cls(name=name, status=REJECTED, reason=reason)


@dataclass
class FailureGroup:
    reason: str
    endpoints: List[str] = field(default_factory=list)


@dataclass
class PipelineResult:
    status: str
    outcomes: List[Outcome]
    archive: Optional[bytes] = None
    filename: Optional[str] = None
    delivered: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failures: List[FailureGroup] = field(default_factory=list)
    started_at: Optional[pd.Timestamp] = None
    ended_at: Optional[pd.Timestamp] = None

    @property
    def duration_s(self) -> float:
        if self.started_at is None or self.ended_at is None:
            return 0.0
        return float((self.ended_at - self.started_at).total_seconds())

    @property
    def message(self) -> str:
        """Notification text for whoever renders the result."""
        if self.status == DELIVERED:
            msg = f"Export finished ({', '.join(self.delivered)})."
            if self.skipped:
                msg += (
                    f"\n{', '.join(self.skipped)} had 0 records and "
                    "were skipped."
                )
            return msg
        if self.status == EMPTY:
            return "Every requested endpoint had 0 records; nothing to export."
        return "\n".join(
            f"{g.reason} ({', '.join(g.endpoints)})" for g in self.failures
        )
