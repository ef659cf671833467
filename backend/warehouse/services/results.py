# Overview: Per-item outcome lists for operations that continue past failures.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ItemOutcome:
    item: Any
    ok: bool
    detail: dict | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "item": self.item,
            "ok": self.ok,
            "detail": self.detail,
            "error": self.error,
        }


@dataclass
class BulkResult:
    """
    Outcome of a multi-item operation.

    Items are attempted independently; one failure never aborts the rest.
    """
    outcomes: list[ItemOutcome] = field(default_factory=list)

    def record_success(self, item: Any, detail: dict | None = None) -> ItemOutcome:
        outcome = ItemOutcome(item=item, ok=True, detail=detail)
        self.outcomes.append(outcome)
        return outcome

    def record_failure(self, item: Any, error: str) -> ItemOutcome:
        outcome = ItemOutcome(item=item, ok=False, error=error)
        self.outcomes.append(outcome)
        return outcome

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    def to_dict(self) -> dict:
        return {
            "succeeded": self.succeeded,
            "failed": self.failed,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
