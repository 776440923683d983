"""Verification plane: phase pipeline, contract validation and the phase-keyed report."""

from sandbox_verifier.verification_plane.contract import (
    ContractEndpoint,
    ContractValidationResult,
    ContractViolation,
    SharedContract,
    validate_contract,
)
from sandbox_verifier.verification_plane.pipeline import (
    PHASES_IN_ORDER,
    PhaseRecord,
    PipelineResult,
    VerificationPipeline,
    execute_in_sandbox,
)
from sandbox_verifier.verification_plane.report import (
    Done,
    Errored,
    NotStarted,
    Phase,
    Running,
    VerificationPhases,
    VerificationReport,
    VerifierOutput,
    project_phases,
)

__all__ = [
    "PHASES_IN_ORDER",
    "ContractEndpoint",
    "ContractValidationResult",
    "ContractViolation",
    "Done",
    "Errored",
    "NotStarted",
    "Phase",
    "PhaseRecord",
    "PipelineResult",
    "Running",
    "SharedContract",
    "VerificationPhases",
    "VerificationPipeline",
    "VerificationReport",
    "VerifierOutput",
    "execute_in_sandbox",
    "project_phases",
    "validate_contract",
]
