"""Tests for reconciliation of diff changes with function descriptors."""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from testgen.analysis.parsers.go import parse_go_source
from testgen.analysis.reconciler import (
    ChangedFileAnalysis,
    Reason,
    SelectionPolicy,
    analyze_changes,
    analyze_revision_range,
    analyze_specific_functions,
    build_project_context,
    build_targets,
    evaluate,
    is_test_function,
    join_functions,
)
from testgen.analysis.types import ComplexityProfile, FunctionDescriptor, ParameterInfo, ReturnInfo
from testgen.core.config.models import FilteringConfig
from testgen.core.exceptions import InputError
from testgen.git.diff import get_git_context, parse_diff

SCENARIO_B = """package main

func main() {}

func init() {}

func TestFoo(t *T) {}

func ValidateUser(u *User) error {
	if u == nil {
		return ErrNil
	}
	return nil
}
"""

THREE_FUNCS = """package calc

import "math"

const Scale = 10

func Add(a, b int) int {
	return a + b
}

func Reset() {
	counter = 0
}

func Sqrt(x float64) float64 {
	return math.Sqrt(x)
}
"""


def _fn(
    name: str = "Do",
    params: int = 1,
    returns: int = 1,
    control_flow: int = 0,
) -> FunctionDescriptor:
    return FunctionDescriptor(
        name=name,
        package="p",
        file="p.go",
        start_line=1,
        end_line=2,
        signature=f"func {name}()",
        parameters=tuple(ParameterInfo(f"a{i}", "int") for i in range(params)),
        returns=tuple(ReturnInfo("", "int") for _ in range(returns)),
        complexity=ComplexityProfile(control_flow_count=control_flow),
    )


@pytest.fixture
def go_project(tmp_path: Path) -> Path:
    """Project with a go.mod and two source files."""
    (tmp_path / "go.mod").write_text("module github.com/acme/widgets\n\ngo 1.22\n")
    pkg = tmp_path / "pkg"
    pkg.mkdir()
    (pkg / "user.go").write_text(SCENARIO_B)
    (pkg / "calc.go").write_text(THREE_FUNCS)
    return tmp_path


def _diff_for(path: str, function: str) -> str:
    return "\n".join(
        [
            f"diff --git a/{path} b/{path}",
            f"--- a/{path}",
            f"+++ b/{path}",
            f"@@ -1,2 +1,3 @@ func {function}() {{",
            " \tx := 1",
            "+\ty := 2",
        ]
    )


class TestEvaluate:
    """Tests for selection predicates and their order."""

    def test_scenario_b_default_policy(self) -> None:
        analysis = parse_go_source(SCENARIO_B, "main.go")
        decisions = [evaluate(fn, SelectionPolicy()) for fn in analysis.functions]

        assert [(d.function.name, d.reason) for d in decisions] == [
            ("main", Reason.ENTRY_POINT),
            ("init", Reason.ENTRY_POINT),
            ("TestFoo", Reason.TEST_FUNCTION),
            ("ValidateUser", Reason.SELECTED),
        ]
        selected = decisions[-1].function
        assert selected.complexity.cyclomatic_complexity == 2
        assert selected.complexity.has_errors
        assert selected.complexity.has_pointers

    def test_scenario_c_empty_signature(self) -> None:
        decision = evaluate(_fn("Reset", params=0, returns=0), SelectionPolicy())

        assert not decision.selected
        assert decision.reason is Reason.NO_SIGNATURE

    def test_empty_signature_allowed_when_disabled(self) -> None:
        policy = SelectionPolicy(skip_empty_signatures=False)
        assert evaluate(_fn("Reset", params=0, returns=0), policy).selected

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("TestFoo", True),
            ("BenchmarkParse", True),
            ("ExampleUser", True),
            ("FuzzDecode", True),
            ("Test", False),
            ("Testing", True),
            ("Tester", True),
            ("Validate", False),
        ],
    )
    def test_test_prefixes(self, name: str, expected: bool) -> None:
        assert is_test_function(name) is expected

    def test_bare_prefix_is_not_a_test(self) -> None:
        assert evaluate(_fn("Example"), SelectionPolicy()).selected

    def test_skip_patterns_are_globs(self) -> None:
        policy = SelectionPolicy(skip_patterns=("Must*", "*Deprecated"))

        assert evaluate(_fn("MustParse"), policy).reason is Reason.SKIP_PATTERN
        assert evaluate(_fn("ParseDeprecated"), policy).reason is Reason.SKIP_PATTERN
        assert evaluate(_fn("Parse"), policy).selected

    def test_unexported(self) -> None:
        assert evaluate(_fn("helper"), SelectionPolicy()).reason is Reason.UNEXPORTED
        assert evaluate(_fn("helper"), SelectionPolicy(include_unexported=True)).selected

    def test_complexity_bounds(self) -> None:
        policy = SelectionPolicy(max_complexity=3, min_complexity=2)

        assert evaluate(_fn(control_flow=3), policy).reason is Reason.TOO_COMPLEX
        assert evaluate(_fn(control_flow=0), policy).reason is Reason.TOO_SIMPLE
        assert evaluate(_fn(control_flow=2), policy).selected

    def test_required_params_and_returns(self) -> None:
        policy = SelectionPolicy(require_params=True, require_returns=True)

        assert evaluate(_fn(params=0), policy).reason is Reason.NO_PARAMS
        assert evaluate(_fn(returns=0), policy).reason is Reason.NO_RETURNS

    def test_first_failing_predicate_wins(self) -> None:
        """An unexported, too-complex test name reports the earliest predicate."""
        policy = SelectionPolicy(max_complexity=1, skip_patterns=("main",))

        assert evaluate(_fn("main", control_flow=5), policy).reason is Reason.ENTRY_POINT
        assert evaluate(_fn("TestX", control_flow=5), policy).reason is Reason.TEST_FUNCTION
        assert evaluate(_fn("hidden", control_flow=5), policy).reason is Reason.UNEXPORTED

    def test_policy_from_config(self) -> None:
        filtering = FilteringConfig(
            include_unexported=True, max_complexity=8, skip_patterns=["Old*"]
        )
        policy = SelectionPolicy.from_config(filtering)

        assert policy.include_unexported
        assert policy.max_complexity == 8
        assert policy.skip_patterns == ("Old*",)
        assert policy.skip_empty_signatures


class TestJoin:
    def test_join_preserves_declaration_order(self) -> None:
        analysis = parse_go_source(THREE_FUNCS, "calc.go")

        matched, missing = join_functions(analysis, {"Sqrt", "Add", "Gone"})

        assert [fn.name for fn in matched] == ["Add", "Sqrt"]
        assert missing == ["Gone"]

    def test_join_matches_file_filter(self) -> None:
        analysis = parse_go_source(THREE_FUNCS, "calc.go")

        matched, _ = join_functions(analysis, ["Sqrt", "Reset"])

        assert matched == analysis.filter_functions(["Reset", "Sqrt"])

    def test_build_targets_returns_selected_and_all_decisions(self) -> None:
        analysis = parse_go_source(THREE_FUNCS, "calc.go")
        changed = ChangedFileAnalysis(
            file_path="calc.go",
            modified_functions=["Add", "Reset", "Sqrt"],
            analysis=analysis,
            matched=list(analysis.functions),
        )

        targets, decisions = build_targets([changed], SelectionPolicy())

        assert [fn.name for fn in targets] == ["Add", "Sqrt"]
        assert [d.reason for d in decisions] == [
            Reason.SELECTED,
            Reason.NO_SIGNATURE,
            Reason.SELECTED,
        ]


class TestAnalyzeChanges:
    """Tests for diff-mode reconciliation."""

    def test_modified_functions_become_targets(self, go_project: Path) -> None:
        diff = parse_diff(_diff_for("pkg/user.go", "ValidateUser"))

        result = analyze_changes(diff, go_project)

        assert [fn.name for fn in result.generation_targets] == ["ValidateUser"]
        assert result.files[0].file_path == "pkg/user.go"
        assert result.files[0].modified_functions == ["ValidateUser"]
        assert result.modified_function_count == 1
        assert result.total_functions == 4
        assert result.failures == {}

    def test_removed_function_reported_missing(self, go_project: Path) -> None:
        diff = parse_diff(_diff_for("pkg/calc.go", "Multiply"))

        result = analyze_changes(diff, go_project)

        assert result.generation_targets == []
        assert result.missing_functions == {"pkg/calc.go": ["Multiply"]}

    def test_skips_tests_deleted_and_unchanged_files(self, go_project: Path) -> None:
        text = "\n".join(
            [
                _diff_for("pkg/user_test.go", "TestValidate"),
                "diff --git a/pkg/gone.go b/pkg/gone.go",
                "deleted file mode 100644",
                "--- a/pkg/gone.go",
                "+++ /dev/null",
                "@@ -1,1 +0,0 @@",
                "-func Gone() {}",
                "diff --git a/pkg/calc.go b/pkg/calc.go",
                "--- a/pkg/calc.go",
                "+++ b/pkg/calc.go",
                "@@ -1,1 +1,1 @@",
                "-package calc",
                "+package calc // v2",
            ]
        )

        result = analyze_changes(parse_diff(text), go_project)

        assert result.files == []
        assert result.failures == {}

    def test_failure_does_not_stop_batch(self, go_project: Path) -> None:
        (go_project / "pkg" / "broken.go").write_text("package pkg\n\nfunc Broken( {\n")
        text = "\n".join(
            [
                _diff_for("pkg/broken.go", "Broken"),
                _diff_for("pkg/missing.go", "Nowhere"),
                _diff_for("pkg/calc.go", "Sqrt"),
            ]
        )

        result = analyze_changes(parse_diff(text), go_project)

        assert set(result.failures) == {"pkg/broken.go", "pkg/missing.go"}
        assert "syntax error" in result.failures["pkg/broken.go"]
        assert [fn.name for fn in result.generation_targets] == ["Sqrt"]

    def test_file_filter(self, go_project: Path) -> None:
        diff = parse_diff(_diff_for("pkg/user.go", "ValidateUser"))

        result = analyze_changes(diff, go_project, file_filter=lambda path: False)

        assert result.files == []

    def test_workers_preserve_diff_order(self, go_project: Path) -> None:
        text = "\n".join(
            [
                _diff_for("pkg/user.go", "ValidateUser"),
                _diff_for("pkg/calc.go", "Add"),
            ]
        )

        sequential = analyze_changes(parse_diff(text), go_project, max_workers=1)
        parallel = analyze_changes(parse_diff(text), go_project, max_workers=4)

        assert [f.file_path for f in parallel.files] == ["pkg/user.go", "pkg/calc.go"]
        assert parallel.generation_targets == sequential.generation_targets

    def test_revision_range_uses_git_diff(self, go_project: Path) -> None:
        diff = parse_diff(_diff_for("pkg/calc.go", "Add"))
        with patch("testgen.analysis.reconciler.get_diff", return_value=diff) as mock_diff:
            result = analyze_revision_range("main", "HEAD", go_project)

        mock_diff.assert_called_once_with("main", "HEAD", go_project)
        assert [fn.name for fn in result.generation_targets] == ["Add"]

    def test_revision_range_propagates_git_errors(self, go_project: Path) -> None:
        with patch(
            "testgen.analysis.reconciler.get_diff", side_effect=InputError("git diff failed")
        ):
            with pytest.raises(InputError):
                analyze_revision_range("main", "HEAD", go_project)


class TestAnalyzeSpecificFunctions:
    """Tests for explicit-function mode."""

    def test_scenario_e_empty_filter_selects_all(self, go_project: Path) -> None:
        result = analyze_specific_functions(["pkg/calc.go"], [], project_root=go_project)

        changed = result.files[0]
        assert changed.modified_functions == ["Add", "Reset", "Sqrt"]
        assert [fn.name for fn in changed.matched] == ["Add", "Reset", "Sqrt"]
        assert len(result.decisions) == 3
        assert [fn.name for fn in result.generation_targets] == ["Add", "Sqrt"]

    def test_named_functions_and_missing(self, go_project: Path) -> None:
        result = analyze_specific_functions(
            [go_project / "pkg" / "calc.go"], ["Sqrt", "Cube"]
        )

        assert [fn.name for fn in result.generation_targets] == ["Sqrt"]
        assert result.files[0].missing_functions == ["Cube"]

    def test_non_go_and_test_files_skipped(self, go_project: Path) -> None:
        (go_project / "pkg" / "calc_test.go").write_text("package calc\n")

        result = analyze_specific_functions(
            ["README.md", "pkg/calc_test.go"], project_root=go_project
        )

        assert result.files == []
        assert result.failures == {}


class TestProjectContext:
    def test_context_from_go_mod(self, go_project: Path) -> None:
        result = analyze_specific_functions(
            ["pkg/calc.go", "pkg/user.go"], project_root=go_project
        )

        context = build_project_context(result, go_project)

        assert context.project_name == "widgets"
        assert context.package_name == "calc"
        assert context.imports == ("math",)
        assert context.constants == {"Scale": "10"}

    def test_context_without_go_mod(self, tmp_path: Path) -> None:
        project = tmp_path / "plain"
        project.mkdir()
        (project / "a.go").write_text('package a\n\nimport (\n\t"os"\n\t"fmt"\n)\n')

        result = analyze_specific_functions(["a.go"], project_root=project)
        context = build_project_context(result, project)

        assert context.project_name == "plain"
        assert context.imports == ("fmt", "os")
        assert context.to_dict()["package_name"] == "a"


def _commit(repo: Path, message: str) -> None:
    subprocess.run(["git", "add", "."], cwd=repo, capture_output=True, check=True)
    subprocess.run(["git", "commit", "-m", message], cwd=repo, capture_output=True, check=True)


@pytest.fixture
def nested_module_repo(tmp_path: Path) -> Path:
    """Real git repo whose Go module lives in backend/, two commits deep."""
    repo = tmp_path / "repo"
    backend = repo / "backend"
    tools = repo / "tools"
    backend.mkdir(parents=True)
    tools.mkdir()

    subprocess.run(["git", "init"], cwd=repo, capture_output=True, check=True)
    subprocess.run(
        ["git", "config", "user.email", "test@test.com"],
        cwd=repo,
        capture_output=True,
        check=True,
    )
    subprocess.run(
        ["git", "config", "user.name", "Test"],
        cwd=repo,
        capture_output=True,
        check=True,
    )

    (backend / "go.mod").write_text("module example.com/backend\n")
    (backend / "user.go").write_text(
        "package backend\n\nfunc ValidateUser(u *User) error {\n\treturn nil\n}\n"
    )
    (tools / "gen.go").write_text("package tools\n\nfunc Gen(n int) int {\n\treturn n\n}\n")
    _commit(repo, "initial")

    (backend / "user.go").write_text(
        "package backend\n\nfunc ValidateUser(u *User) error {\n"
        "\tif u == nil {\n\t\treturn ErrNil\n\t}\n\treturn nil\n}\n"
    )
    (tools / "gen.go").write_text("package tools\n\nfunc Gen(n int) int {\n\treturn n + 1\n}\n")
    _commit(repo, "tighten validation")
    return backend


class TestNestedModule:
    """A module below the repository top level, analyzed with real git."""

    def test_paths_resolve_inside_module(self, nested_module_repo: Path) -> None:
        result = analyze_revision_range("HEAD~1", "HEAD", nested_module_repo)

        assert result.failures == {}
        assert [f.file_path for f in result.files] == ["user.go"]
        assert [fn.name for fn in result.generation_targets] == ["ValidateUser"]

    def test_git_context(self, nested_module_repo: Path) -> None:
        context = get_git_context(nested_module_repo)

        assert context.branch
        assert context.commit_message == "tighten validation"
        assert context.author == "Test"

    def test_project_context_carries_git_state(self, nested_module_repo: Path) -> None:
        result = analyze_revision_range("HEAD~1", "HEAD", nested_module_repo)

        context = build_project_context(
            result, nested_module_repo, get_git_context(nested_module_repo)
        )
        data = context.to_dict()

        assert data["project_name"] == "backend"
        assert data["git_context"]["commit_message"] == "tighten validation"
