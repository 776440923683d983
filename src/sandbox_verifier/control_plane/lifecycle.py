"""Task lifecycle state machine and progress accounting."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from enum import StrEnum
from typing import Final

from sandbox_verifier.domain.models import TaskStatus


class SubtaskStatus(StrEnum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    BLOCKED = "BLOCKED"


# current status -> (next on success, next on failure)
TRANSITIONS: Final[Mapping[TaskStatus, tuple[TaskStatus, TaskStatus]]] = {
    TaskStatus.PLANNING: (TaskStatus.CONTRACT_NEGOTIATION, TaskStatus.PLANNING),
    TaskStatus.CONTRACT_NEGOTIATION: (TaskStatus.IMPLEMENTING, TaskStatus.PLANNING),
    TaskStatus.IMPLEMENTING: (TaskStatus.VERIFYING, TaskStatus.REPAIRING),
    TaskStatus.VERIFYING: (TaskStatus.COMPLETED, TaskStatus.REPAIRING),
    TaskStatus.REPAIRING: (TaskStatus.VERIFYING, TaskStatus.FAILED),
    TaskStatus.COMPLETED: (TaskStatus.COMPLETED, TaskStatus.COMPLETED),
    TaskStatus.FAILED: (TaskStatus.PLANNING, TaskStatus.FAILED),
}

TERMINAL_STATUSES: Final[frozenset[TaskStatus]] = frozenset(
    {TaskStatus.COMPLETED, TaskStatus.FAILED}
)


def next_status(current: TaskStatus | str, success: bool) -> TaskStatus:
    """Return the lifecycle status that follows ``current`` for a success/failure outcome.

    Raises ``ValueError`` for unknown status names.
    """

    status = TaskStatus(current)
    on_success, on_failure = TRANSITIONS[status]
    return on_success if success else on_failure


def task_progress(statuses: Sequence[SubtaskStatus | str]) -> int:
    """Percent complete: completed subtasks count fully, in-progress ones count half."""

    if not statuses:
        return 0
    normalized = [SubtaskStatus(item) for item in statuses]
    completed = sum(1 for item in normalized if item is SubtaskStatus.COMPLETED)
    in_progress = sum(1 for item in normalized if item is SubtaskStatus.IN_PROGRESS)
    ratio = (completed + 0.5 * in_progress) / len(normalized)
    return math.floor(ratio * 100 + 0.5)


__all__ = [
    "TERMINAL_STATUSES",
    "TRANSITIONS",
    "SubtaskStatus",
    "next_status",
    "task_progress",
]
