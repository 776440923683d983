"""Control-plane public API."""

from sandbox_verifier.control_plane.budgets import (
    RepairBudget,
    RetryDecision,
    budget_remaining,
    should_retry,
)
from sandbox_verifier.control_plane.controller import (
    VerificationContext,
    VerificationService,
    build_verification_report,
    build_verification_service,
    phase_signals,
)
from sandbox_verifier.control_plane.feedback import FeedbackPackage, synthesize_feedback
from sandbox_verifier.control_plane.lifecycle import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    SubtaskStatus,
    next_status,
    task_progress,
)
from sandbox_verifier.control_plane.routing import (
    LANGUAGE_AGENTS,
    PhaseSignals,
    classify_failure,
    originating_agent,
    target_agent_for,
)

__all__ = [
    "LANGUAGE_AGENTS",
    "TERMINAL_STATUSES",
    "TRANSITIONS",
    "FeedbackPackage",
    "PhaseSignals",
    "RepairBudget",
    "RetryDecision",
    "SubtaskStatus",
    "VerificationContext",
    "VerificationService",
    "budget_remaining",
    "build_verification_report",
    "build_verification_service",
    "classify_failure",
    "next_status",
    "originating_agent",
    "phase_signals",
    "should_retry",
    "synthesize_feedback",
    "target_agent_for",
    "task_progress",
]
