"""
Batch outcomes for sequential one-call-per-item operations.

A batch of N calls stops at the first failure, so a failure at call K
yields K-1 successful outcomes followed by one failed outcome. Items
after the failure are never attempted and do not appear in `outcomes`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from cfsflow.exceptions import CfsError


@dataclass(frozen=True)
class ItemOutcome:
    """Result of one attempted call within a batch."""

    key: Any
    ok: bool
    error: CfsError | None = None


@dataclass
class BatchResult:
    """Ordered per-item outcomes of a sequential batch."""

    requested: int
    outcomes: list[ItemOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> ItemOutcome | None:
        """The outcome that stopped the batch, if any."""
        return next((o for o in self.outcomes if not o.ok), None)

    @property
    def skipped(self) -> int:
        """Items never attempted because the batch stopped early."""
        return self.requested - len(self.outcomes)

    @property
    def ok(self) -> bool:
        return self.failed is None and self.succeeded == self.requested

    def record(self, key: Any, error: CfsError | None = None) -> ItemOutcome:
        outcome = ItemOutcome(key=key, ok=error is None, error=error)
        self.outcomes.append(outcome)
        return outcome
