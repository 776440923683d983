"""Shared-contract validation: every declared endpoint must be referenced by source artifacts."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Final, NoReturn

from sandbox_verifier.domain.models import ArtifactType, CodeArtifact, FindingSeverity

CONTRACT_VALIDATOR: Final[str] = "static-endpoint-reference"
HTTP_METHODS: Final[frozenset[str]] = frozenset({"GET", "POST", "PUT", "DELETE", "PATCH"})


@dataclass(frozen=True, slots=True)
class ContractEndpoint:
    path: str
    method: str
    description: str = ""


@dataclass(frozen=True, slots=True)
class SharedContract:
    endpoints: tuple[ContractEndpoint, ...] = ()
    format: str = "OpenAPI 3.1"
    version: str = "1.0.0"
    spec_url: str = ""

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> SharedContract:
        raw_endpoints = payload.get("endpoints", [])
        if not isinstance(raw_endpoints, Sequence) or isinstance(raw_endpoints, str):
            _fail("contract.endpoints", "must be an array")

        endpoints: list[ContractEndpoint] = []
        for index, item in enumerate(raw_endpoints):
            path = f"contract.endpoints[{index}]"
            if not isinstance(item, Mapping):
                _fail(path, "must be an object")
            endpoint_path = item.get("path")
            if not isinstance(endpoint_path, str) or not endpoint_path.strip():
                _fail(f"{path}.path", "must be a non-empty string")
            method = item.get("method")
            if not isinstance(method, str) or method.upper() not in HTTP_METHODS:
                _fail(f"{path}.method", f"must be one of: {', '.join(sorted(HTTP_METHODS))}")
            description = item.get("description", "")
            endpoints.append(
                ContractEndpoint(
                    path=endpoint_path.strip(),
                    method=method.upper(),
                    description=description if isinstance(description, str) else "",
                )
            )

        return cls(
            endpoints=tuple(endpoints),
            format=_optional_text(payload.get("format"), "OpenAPI 3.1"),
            version=_optional_text(payload.get("version"), "1.0.0"),
            spec_url=_optional_text(payload.get("spec_url"), ""),
        )


@dataclass(frozen=True, slots=True)
class ContractViolation:
    endpoint: str
    method: str
    violation_type: str
    expected: str
    actual: str
    severity: FindingSeverity

    def to_dict(self) -> dict[str, object]:
        return {
            "endpoint": self.endpoint,
            "method": self.method,
            "violation_type": self.violation_type,
            "expected": self.expected,
            "actual": self.actual,
            "severity": self.severity.value.upper(),
        }


@dataclass(frozen=True, slots=True)
class ContractValidationResult:
    validator: str
    spec_url: str
    total_endpoints: int
    validated: int
    violations: tuple[ContractViolation, ...]

    @property
    def passed(self) -> bool:
        return not self.violations

    def to_dict(self) -> dict[str, object]:
        return {
            "validator": self.validator,
            "spec_url": self.spec_url,
            "total_endpoints": self.total_endpoints,
            "validated": self.validated,
            "violations": [item.to_dict() for item in self.violations],
            "passed": self.passed,
        }


def validate_contract(
    contract: SharedContract,
    artifacts: Sequence[CodeArtifact],
) -> ContractValidationResult:
    sources = [item.content for item in artifacts if item.type is ArtifactType.SOURCE]
    violations: list[ContractViolation] = []
    for endpoint in contract.endpoints:
        if any(endpoint.path in content for content in sources):
            continue
        violations.append(
            ContractViolation(
                endpoint=endpoint.path,
                method=endpoint.method,
                violation_type="missing_endpoint",
                expected=f"{endpoint.method} {endpoint.path} implemented",
                actual="no source artifact references this path",
                severity=FindingSeverity.HIGH,
            )
        )
    return ContractValidationResult(
        validator=CONTRACT_VALIDATOR,
        spec_url=contract.spec_url,
        total_endpoints=len(contract.endpoints),
        validated=len(contract.endpoints) - len(violations),
        violations=tuple(violations),
    )


def _optional_text(value: object, default: str) -> str:
    return value if isinstance(value, str) else default


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


__all__ = [
    "ContractEndpoint",
    "ContractValidationResult",
    "ContractViolation",
    "SharedContract",
    "validate_contract",
]
