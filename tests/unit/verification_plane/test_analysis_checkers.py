"""
sandbox-verifier — unit tests for analysis checkers

Purpose
- Validate the dependency, security, lint and simulated test checkers in isolation.

What this test file should cover
- Finding order, severities and line numbers.
- Manifest parsing into vetting records (banned / unpinned / approved).
- Deterministic test-name extraction and placeholder behavior.
- Secret values never reach messages or log lines.
"""

from __future__ import annotations

from sandbox_verifier.domain.defaults import create_execution_request
from sandbox_verifier.domain.models import (
    ArtifactType,
    CodeArtifact,
    ExecutionRequest,
    FindingSeverity,
    LintSeverity,
    Runner,
    TestStatus,
)
from sandbox_verifier.verification_plane.checkers import (
    BaseChecker,
    CheckerContext,
    DependencyChecker,
    DependencyStatus,
    LintChecker,
    SecurityChecker,
    TestChecker,
    lint_source,
    run_tests,
    scan_dependencies,
    scan_source,
)
from sandbox_verifier.verification_plane.checkers.test_checker import (
    extract_test_names,
    simulate_test,
)

try:
    from hypothesis import given
    from hypothesis import strategies as st

    HYPOTHESIS_AVAILABLE = True
except ModuleNotFoundError:  # pragma: no cover - fallback path
    HYPOTHESIS_AVAILABLE = False


def _request(*artifacts: CodeArtifact, runner: Runner = Runner.PYTHON) -> ExecutionRequest:
    return create_execution_request(
        task_id="task-1",
        subtask_id="sub-1",
        agent_role="Python Agent",
        artifacts=artifacts,
        runner=runner,
    )


def _source(content: str, filename: str = "app.py") -> CodeArtifact:
    return CodeArtifact(filename=filename, content=content, type=ArtifactType.SOURCE)


def _context(*artifacts: CodeArtifact, **kwargs: object) -> CheckerContext:
    return CheckerContext(request=_request(*artifacts), **kwargs)  # type: ignore[arg-type]


def test_every_builtin_checker_satisfies_protocol() -> None:
    for checker in (DependencyChecker(), SecurityChecker(), LintChecker(), TestChecker()):
        assert isinstance(checker, BaseChecker)


def test_security_scan_reports_eval_then_secret_in_rule_order() -> None:
    content = 'api_key = "sk-live-0123456789abcdef"\nresult = eval(user_input)\n'

    outcome = SecurityChecker().check(_context(_source(content)))

    assert [(item.type, item.severity, item.line) for item in outcome.findings] == [
        ("DANGEROUS_FUNCTION", FindingSeverity.HIGH, 2),
        ("HARDCODED_SECRET", FindingSeverity.CRITICAL, 1),
    ]
    rendered = " ".join(item.message for item in outcome.findings)
    rendered += " ".join(line.content for line in outcome.log_lines)
    assert "sk-live-0123456789abcdef" not in rendered


def test_shell_execution_is_medium_without_line() -> None:
    outcome = SecurityChecker().check(_context(_source("import os\nos.system('ls')\n")))

    assert len(outcome.findings) == 1
    finding = outcome.findings[0]
    assert finding.type == "SHELL_INJECTION"
    assert finding.severity is FindingSeverity.MEDIUM
    assert finding.line is None
    assert not finding.is_blocking


def test_first_matching_secret_pattern_is_the_only_secret_finding() -> None:
    content = "password = 'a'\napi_key = 'sk-1'\nsecret = 'c'\n"

    outcome = SecurityChecker().check(_context(_source(content)))

    assert [(item.type, item.line) for item in outcome.findings] == [("HARDCODED_SECRET", 2)]
    assert len(scan_source([_source(content), _source(content, "b.py")])) == 2


def test_security_scan_ignores_test_artifacts_and_names_runner_scanner() -> None:
    test_file = CodeArtifact(filename="test_x.py", content="eval('1')", type=ArtifactType.TEST)

    outcome = SecurityChecker().check(CheckerContext(request=_request(test_file)))
    node_outcome = SecurityChecker().check(
        CheckerContext(request=_request(test_file, runner=Runner.NODE))
    )

    assert outcome.findings == ()
    assert outcome.log_lines[0].content == "[security] Running bandit scan..."
    assert node_outcome.log_lines[0].content == "[security] Running snyk scan..."
    assert outcome.log_lines[-1].content == "[security] No issues found"


def test_lint_flags_each_long_line_as_warning() -> None:
    content = "\n".join(["short", "x" * 121, "y" * 120, "z" * 200])

    outcome = LintChecker().check(_context(_source(content)))

    assert [item.line for item in outcome.violations] == [2, 4]
    first = outcome.violations[0]
    assert first.rule == "max-line-length"
    assert first.severity is LintSeverity.WARNING
    assert first.column == 121
    assert first.message == "Line exceeds maximum length of 120 characters"


def test_lint_respects_configured_line_length() -> None:
    outcome = LintChecker().check(_context(_source("abcdef"), max_line_length=5))

    assert [item.column for item in outcome.violations] == [6]


def test_package_json_caret_yields_one_low_unpinned_finding() -> None:
    manifest = CodeArtifact(
        filename="package.json",
        content='{"dependencies": {"express": "^4.0.0", "lodash": "4.17.21"}}',
        type=ArtifactType.CONFIG,
    )

    outcome = DependencyChecker().check(_context(manifest))

    assert len(outcome.findings) == 1
    finding = outcome.findings[0]
    assert finding.type == "UNPINNED_DEPENDENCY"
    assert finding.severity is FindingSeverity.LOW
    assert finding.file == "package.json"
    statuses = {item.name: item.status for item in outcome.details["dependencies"]}
    assert statuses == {
        "express": DependencyStatus.UNPINNED,
        "lodash": DependencyStatus.APPROVED,
    }
    assert outcome.details["unpinned_found"] == 1


def test_requirements_manifest_marks_banned_packages() -> None:
    manifest = CodeArtifact(
        filename="requirements.txt",
        content="# pinned\nrequests==2.31.0\nPickle>=1.0\n-r other.txt\n",
        type=ArtifactType.REQUIREMENTS,
    )

    outcome = DependencyChecker().check(_context(manifest))

    records = outcome.details["dependencies"]
    assert [(item.name, item.status) for item in records] == [
        ("requests", DependencyStatus.APPROVED),
        ("Pickle", DependencyStatus.BANNED),
    ]
    assert records[0].version == "2.31.0"
    assert outcome.details["banned_found"] == 1
    assert any("Banned dependency: Pickle" in line.content for line in outcome.log_lines)


def test_dependency_vetting_without_manifest_logs_and_finds_nothing() -> None:
    outcome = DependencyChecker().check(_context(_source("x = 1")))

    assert outcome.findings == ()
    assert outcome.details["dependencies"] == ()
    assert outcome.log_lines[-1].content == "[vetting] No dependency manifest found"


def test_malformed_package_json_is_logged_not_raised() -> None:
    manifest = CodeArtifact(filename="package.json", content="{nope", type=ArtifactType.CONFIG)

    outcome = DependencyChecker().check(_context(manifest))

    assert outcome.details["dependencies"] == ()
    assert any(line.content.startswith("[vetting] Could not parse") for line in outcome.log_lines)


def test_extract_test_names_across_idioms_in_first_match_order() -> None:
    content = (
        "def test_addition():\n"
        "    pass\n"
        "it('renders header', () => {})\n"
        'test("handles error path", () => {})\n'
    )

    assert extract_test_names(content) == ("addition", "renders header", "handles error path")


def test_simulated_outcome_depends_only_on_name() -> None:
    passed = simulate_test("addition")
    failed = simulate_test("handles_Failure")

    assert passed.status is TestStatus.PASSED
    assert passed.duration == 50 + len("addition") * 5
    assert passed.error_message is None
    assert failed.status is TestStatus.FAILED
    assert failed.error_message == "Assertion failed: expected values do not match"


def test_test_file_without_declarations_yields_placeholder() -> None:
    test_file = CodeArtifact(filename="test_empty.py", content="# nothing", type=ArtifactType.TEST)

    outcome = TestChecker().check(CheckerContext(request=_request(test_file)))

    assert [(item.name, item.status, item.duration) for item in outcome.test_results] == [
        ("placeholder_test", TestStatus.PASSED, 10)
    ]


def test_missing_test_files_logs_warning_on_stderr() -> None:
    outcome = TestChecker().check(_context(_source("x = 1")))

    assert outcome.test_results == ()
    assert outcome.log_lines[-1].stream.value == "stderr"
    assert outcome.log_lines[-1].content == "[test] Warning: No test files provided"


def test_module_level_scans_only_read_their_artifact_type() -> None:
    long_line = "x = 1" + " " * 120
    test_file = CodeArtifact(
        filename="test_app.py",
        content=f"def test_fails():\n    eval(\"1\")\n{long_line}\n",
        type=ArtifactType.TEST,
    )
    manifest = CodeArtifact(
        filename="requirements.txt", content="requests>=2.0\n", type=ArtifactType.REQUIREMENTS
    )
    artifacts = (_source("eval(a)", "a.py"), test_file, manifest, _source(long_line, "b.py"))

    assert [item.file for item in scan_source(artifacts)] == ["a.py"]
    assert [item.file for item in lint_source(artifacts)] == ["b.py"]
    assert [item.name for item in run_tests(artifacts)] == ["fails"]
    assert [item.file for item in scan_dependencies(artifacts)] == ["requirements.txt"]


if HYPOTHESIS_AVAILABLE:

    @given(st.text(alphabet=st.characters(blacklist_categories=("Cs",)), max_size=200))
    def test_checkers_are_deterministic_for_arbitrary_source(content: str) -> None:
        context = _context(_source(content or "x"))
        for checker in (SecurityChecker(), LintChecker()):
            assert checker.check(context) == checker.check(context)
