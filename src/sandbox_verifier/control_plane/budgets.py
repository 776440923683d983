"""
Repair-budget tracking and deterministic retry decisions.

Retry semantics:
- no retry once ``iteration_count >= max_budget``
- SECURITY failures get half the budget (``iteration_count < max_budget // 2``) so they
  escalate to human/planner review sooner than routine failures
- a passing verification never recommends a retry

Decisions are logged through ``structlog`` as machine-parseable events.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from sandbox_verifier.constants import DEFAULT_MAX_REPAIR_BUDGET
from sandbox_verifier.domain.models import FailureCategory


def should_retry(iteration_count: int, max_budget: int, category: FailureCategory | str) -> bool:
    if iteration_count >= max_budget:
        return False
    if FailureCategory(category) is FailureCategory.SECURITY:
        return iteration_count < max_budget // 2
    return True


def budget_remaining(iteration_count: int, max_budget: int) -> int:
    return max(0, max_budget - iteration_count)


@dataclass(frozen=True, slots=True)
class RetryDecision:
    """Deterministic retry decision for one verification outcome."""

    retry_recommended: bool
    reason_codes: tuple[str, ...]
    category: FailureCategory
    iteration_count: int
    max_budget: int

    @property
    def budget_remaining(self) -> int:
        return budget_remaining(self.iteration_count, self.max_budget)

    @property
    def should_escalate(self) -> bool:
        return self.category is not FailureCategory.NONE and not self.retry_recommended

    def to_dict(self) -> dict[str, object]:
        return {
            "retry_recommended": self.retry_recommended,
            "reason_codes": list(self.reason_codes),
            "category": self.category.value,
            "iteration_count": self.iteration_count,
            "max_budget": self.max_budget,
            "budget_remaining": self.budget_remaining,
        }


class RepairBudget:
    """Evaluate retry decisions against a bounded repair budget."""

    def __init__(
        self,
        *,
        max_budget: int = DEFAULT_MAX_REPAIR_BUDGET,
        logger: Any | None = None,
    ) -> None:
        if isinstance(max_budget, bool) or max_budget < 0:
            raise ValueError("max_budget must be >= 0")
        self._max_budget = max_budget
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def max_budget(self) -> int:
        return self._max_budget

    def decide(
        self,
        category: FailureCategory,
        *,
        iteration_count: int,
        task_id: str | None = None,
    ) -> RetryDecision:
        if iteration_count < 0:
            raise ValueError("iteration_count must be >= 0")

        reason_codes: list[str] = []
        if category is FailureCategory.NONE:
            reason_codes.append("verification_passed")
            retry = False
        else:
            retry = should_retry(iteration_count, self._max_budget, category)
            if iteration_count >= self._max_budget:
                reason_codes.append("budget_exhausted")
            elif category is FailureCategory.SECURITY and not retry:
                reason_codes.append("security_budget_exhausted")
            else:
                reason_codes.append("retry_within_budget")

        decision = RetryDecision(
            retry_recommended=retry,
            reason_codes=tuple(reason_codes),
            category=category,
            iteration_count=iteration_count,
            max_budget=self._max_budget,
        )
        self._log_decision(decision, task_id=task_id)
        return decision

    def _log_decision(self, decision: RetryDecision, *, task_id: str | None) -> None:
        self._logger.info(
            "control_plane_retry_decision",
            task_id=task_id,
            retry_recommended=decision.retry_recommended,
            reason_codes=list(decision.reason_codes),
            category=decision.category.value,
            iteration_count=decision.iteration_count,
            max_budget=decision.max_budget,
            budget_remaining=decision.budget_remaining,
        )


__all__ = [
    "RepairBudget",
    "RetryDecision",
    "budget_remaining",
    "should_retry",
]
