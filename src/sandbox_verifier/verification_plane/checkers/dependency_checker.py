"""
Dependency Checker — dependency vetting stage.

Functional requirements:
- Flags manifests that contain unpinned version markers (one low finding per manifest).
- Parses manifests into per-dependency vetting records for the phase report.
- Marks configured banned packages.

Non-functional requirements:
- Must be deterministic; manifests are read in artifact order.
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from pathlib import PurePosixPath
from typing import Final

from sandbox_verifier.constants import DEPENDENCY_MANIFEST_NAMES, UNPINNED_VERSION_MARKERS
from sandbox_verifier.domain.models import (
    ArtifactType,
    CodeArtifact,
    FindingSeverity,
    FindingType,
    SecurityFinding,
)
from sandbox_verifier.verification_plane.checkers.base import (
    CheckerContext,
    CheckOutcome,
    LogLine,
)

UNPINNED_MESSAGE: Final[str] = (
    "Found unpinned dependency versions. Consider pinning for reproducibility."
)

_REQUIREMENT_RE: Final[re.Pattern[str]] = re.compile(
    r"^(?P<name>[A-Za-z0-9][A-Za-z0-9._-]*)(?:\[[^\]]*\])?\s*(?P<spec>.*)$"
)
_NPM_FLOATING_MARKERS: Final[tuple[str, ...]] = ("^", "~", "*", ">", "<", "x", "latest")


class DependencyStatus(StrEnum):
    APPROVED = "APPROVED"
    UNPINNED = "UNPINNED"
    BANNED = "BANNED"


@dataclass(frozen=True, slots=True)
class DependencyVet:
    name: str
    version: str
    status: DependencyStatus
    source_file: str
    reason: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "name": self.name,
            "version": self.version,
            "status": self.status.value,
            "sourceFile": self.source_file,
        }
        if self.reason is not None:
            payload["reason"] = self.reason
        return payload


class DependencyChecker:
    """Manifest hygiene checker for ``requirements.txt`` / ``package.json`` style artifacts."""

    checker_id = "dependency_checker"
    stage = "dependency_vetting"

    def check(self, context: CheckerContext) -> CheckOutcome:
        log_lines = [LogLine.out("[vetting] Scanning dependencies for vulnerabilities...")]
        dependencies: list[DependencyVet] = []
        banned = frozenset(name.lower() for name in context.banned_dependencies)

        manifests = dependency_manifests(context.request.artifacts)
        if not manifests:
            log_lines.append(LogLine.out("[vetting] No dependency manifest found"))

        for manifest in manifests:
            log_lines.append(
                LogLine.out(f"[vetting] Found {manifest.filename}, checking versions...")
            )
            parsed, parse_error = parse_manifest(manifest, banned=banned)
            if parse_error is not None:
                log_lines.append(LogLine.err(f"[vetting] {parse_error}"))
            for item in parsed:
                if item.status is DependencyStatus.BANNED:
                    log_lines.append(LogLine.err(f"[vetting] Banned dependency: {item.name}"))
            dependencies.extend(parsed)

        banned_found = sum(1 for item in dependencies if item.status is DependencyStatus.BANNED)
        unpinned_found = sum(
            1 for item in dependencies if item.status is DependencyStatus.UNPINNED
        )
        return CheckOutcome(
            checker_id=self.checker_id,
            findings=scan_dependencies(manifests),
            log_lines=tuple(log_lines),
            details={
                "dependencies": tuple(dependencies),
                "banned_found": banned_found,
                "unpinned_found": unpinned_found,
            },
        )


def scan_dependencies(artifacts: Sequence[CodeArtifact]) -> tuple[SecurityFinding, ...]:
    """One low ``UNPINNED_DEPENDENCY`` finding per manifest with any unpinned version marker."""

    return tuple(
        SecurityFinding(
            severity=FindingSeverity.LOW,
            type=FindingType.UNPINNED_DEPENDENCY.value,
            file=manifest.filename,
            message=UNPINNED_MESSAGE,
        )
        for manifest in dependency_manifests(tuple(artifacts))
        if has_unpinned_marker(manifest.content)
    )


def dependency_manifests(artifacts: tuple[CodeArtifact, ...]) -> tuple[CodeArtifact, ...]:
    """Requirements-typed artifacts plus any artifact named like a known manifest."""

    return tuple(
        item
        for item in artifacts
        if item.type is ArtifactType.REQUIREMENTS
        or PurePosixPath(item.filename).name in DEPENDENCY_MANIFEST_NAMES
    )


def has_unpinned_marker(content: str) -> bool:
    return any(marker in content for marker in UNPINNED_VERSION_MARKERS)


def parse_manifest(
    manifest: CodeArtifact,
    *,
    banned: frozenset[str],
) -> tuple[tuple[DependencyVet, ...], str | None]:
    """Parse one manifest; returns the records and an optional parse error message."""

    if PurePosixPath(manifest.filename).name == "package.json":
        return _parse_package_json(manifest, banned=banned)
    return _parse_requirements(manifest, banned=banned), None


def _parse_requirements(
    manifest: CodeArtifact,
    *,
    banned: frozenset[str],
) -> tuple[DependencyVet, ...]:
    records: list[DependencyVet] = []
    for raw_line in manifest.content.splitlines():
        line = raw_line.split("#", 1)[0].strip()
        if not line or line.startswith("-"):
            continue
        match = _REQUIREMENT_RE.match(line)
        if match is None:
            continue
        name = match.group("name")
        spec = match.group("spec").split(";", 1)[0].strip()
        pinned = spec.startswith("==") and "*" not in spec
        version = spec[2:].strip() if pinned else (spec or "any")
        records.append(_vet(name, version, pinned, manifest.filename, banned))
    return tuple(records)


def _parse_package_json(
    manifest: CodeArtifact,
    *,
    banned: frozenset[str],
) -> tuple[tuple[DependencyVet, ...], str | None]:
    try:
        payload = json.loads(manifest.content)
    except json.JSONDecodeError as exc:
        return (), f"Could not parse {manifest.filename}: {exc.msg}"
    if not isinstance(payload, dict):
        return (), f"Could not parse {manifest.filename}: root must be an object"

    records: list[DependencyVet] = []
    for section in ("dependencies", "devDependencies"):
        entries = payload.get(section)
        if not isinstance(entries, dict):
            continue
        for name in entries:
            version = entries[name] if isinstance(entries[name], str) else str(entries[name])
            pinned = not any(marker in version for marker in _NPM_FLOATING_MARKERS)
            records.append(_vet(name, version, pinned, manifest.filename, banned))
    return tuple(records), None


def _vet(
    name: str,
    version: str,
    pinned: bool,
    source_file: str,
    banned: frozenset[str],
) -> DependencyVet:
    if name.lower() in banned:
        return DependencyVet(
            name=name,
            version=version,
            status=DependencyStatus.BANNED,
            source_file=source_file,
            reason="Banned package",
        )
    if not pinned:
        return DependencyVet(
            name=name,
            version=version,
            status=DependencyStatus.UNPINNED,
            source_file=source_file,
            reason="Version not pinned",
        )
    return DependencyVet(
        name=name,
        version=version,
        status=DependencyStatus.APPROVED,
        source_file=source_file,
    )


__all__ = [
    "DependencyChecker",
    "DependencyStatus",
    "DependencyVet",
    "UNPINNED_MESSAGE",
    "dependency_manifests",
    "has_unpinned_marker",
    "parse_manifest",
    "scan_dependencies",
]
