"""Tests for the testgen command line interface."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner

from testgen.cli import app
from testgen.cli_utils import EXIT_CONFIG_ERROR, EXIT_ERROR, EXIT_PARSE_ERROR
from testgen.core.exceptions import InputError
from testgen.git.diff import GitContext, parse_diff

runner = CliRunner()

USER_GO = """package users

// ValidateUser checks a user.
func ValidateUser(u *User) error {
	if u == nil {
		return ErrNil
	}
	return nil
}

func Reset() {}

func helper(n int) int {
	return n
}
"""

USER_DIFF = "\n".join(
    [
        "diff --git a/users/user.go b/users/user.go",
        "--- a/users/user.go",
        "+++ b/users/user.go",
        "@@ -4,4 +4,5 @@ func ValidateUser(u *User) error {",
        " \tif u == nil {",
        "+\t\treturn ErrNil",
        " \t}",
        "@@ -12,3 +13,3 @@ func helper(n int) int {",
        "-\treturn 0",
        "+\treturn n",
    ]
)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "svc"
    (root / "users").mkdir(parents=True)
    (root / "go.mod").write_text("module example.com/svc\n")
    (root / "users" / "user.go").write_text(USER_GO)
    return root


class TestAnalyzeCommand:
    """Tests for `testgen analyze`."""

    def test_table_output(self, project: Path) -> None:
        with patch("testgen.analysis.reconciler.get_diff", return_value=parse_diff(USER_DIFF)):
            result = runner.invoke(app, ["analyze", "main..HEAD", "--project", str(project)])

        assert result.exit_code == 0, result.output
        assert "main..HEAD" in result.output
        assert "ValidateUser" in result.output
        assert "users/user.go" in result.output

    def test_json_output(self, project: Path) -> None:
        with patch(
            "testgen.analysis.reconciler.get_diff", return_value=parse_diff(USER_DIFF)
        ) as mock_diff:
            result = runner.invoke(app, ["analyze", "--project", str(project), "--json"])

        assert result.exit_code == 0, result.output
        mock_diff.assert_called_once_with("HEAD~1", "HEAD", project.resolve())
        data = json.loads(result.output)
        assert [t["name"] for t in data["targets"]] == ["ValidateUser"]
        assert data["skipped"][0]["reason"] == "unexported"
        assert data["context"]["project_name"] == "svc"
        assert data["context"]["package_name"] == "users"

    def test_json_includes_git_context(self, project: Path) -> None:
        git_state = GitContext(branch="main", commit_message="Tighten checks", author="Dana")
        with (
            patch("testgen.analysis.reconciler.get_diff", return_value=parse_diff(USER_DIFF)),
            patch("testgen.cli.get_git_context", return_value=git_state) as mock_git,
        ):
            result = runner.invoke(app, ["analyze", "--project", str(project), "--json"])

        assert result.exit_code == 0, result.output
        mock_git.assert_called_once_with(project.resolve())
        data = json.loads(result.output)
        assert data["context"]["git_context"] == {
            "branch": "main",
            "commit_message": "Tighten checks",
            "author": "Dana",
        }

    def test_include_unexported_override(self, project: Path) -> None:
        with patch("testgen.analysis.reconciler.get_diff", return_value=parse_diff(USER_DIFF)):
            result = runner.invoke(
                app, ["analyze", "--project", str(project), "--json", "--include-unexported"]
            )

        data = json.loads(result.output)
        assert [t["name"] for t in data["targets"]] == ["ValidateUser", "helper"]

    def test_default_range_from_config(self, project: Path) -> None:
        (project / ".testgen.yml").write_text("triggers:\n  manual:\n    default_range: v1..v2\n")

        with patch(
            "testgen.analysis.reconciler.get_diff", return_value=parse_diff("")
        ) as mock_diff:
            result = runner.invoke(app, ["analyze", "--project", str(project)])

        assert result.exit_code == 0, result.output
        mock_diff.assert_called_once_with("v1", "v2", project.resolve())
        assert "No functions found" in result.output

    def test_summary_output(self, project: Path) -> None:
        with patch("testgen.analysis.reconciler.get_diff", return_value=parse_diff(USER_DIFF)):
            result = runner.invoke(app, ["analyze", "--project", str(project), "--summary"])

        assert result.exit_code == 0, result.output
        assert "Analysis Summary:" in result.output
        assert "Modified functions: ValidateUser, helper" in result.output

    def test_git_failure(self, project: Path) -> None:
        with patch(
            "testgen.analysis.reconciler.get_diff",
            side_effect=InputError("git diff failed: bad revision"),
        ):
            result = runner.invoke(app, ["analyze", "--project", str(project)])

        assert result.exit_code == EXIT_ERROR
        assert "bad revision" in result.output

    def test_parse_failure_exit_code(self, project: Path) -> None:
        (project / "users" / "user.go").write_text("package users\n\nfunc ValidateUser( {\n")

        with patch("testgen.analysis.reconciler.get_diff", return_value=parse_diff(USER_DIFF)):
            result = runner.invoke(app, ["analyze", "--project", str(project), "-q"])

        assert result.exit_code == EXIT_PARSE_ERROR
        assert "users/user.go" in result.output

    def test_invalid_config(self, project: Path) -> None:
        (project / ".testgen.yml").write_text("filtering:\n  max_complexity: 0\n")

        result = runner.invoke(app, ["analyze", "--project", str(project)])

        assert result.exit_code == EXIT_CONFIG_ERROR
        assert "filtering.max_complexity" in result.output

    def test_missing_project(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["analyze", "--project", str(tmp_path / "nope")])

        assert result.exit_code == EXIT_ERROR
        assert "not found" in result.output


class TestFunctionsCommand:
    """Tests for `testgen functions`."""

    def test_named_function(self, project: Path) -> None:
        result = runner.invoke(
            app,
            ["functions", "users/user.go", "-f", "ValidateUser", "-p", str(project), "--json"],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [t["name"] for t in data["targets"]] == ["ValidateUser"]
        assert data["targets"][0]["comments"] == [" ValidateUser checks a user."]

    def test_all_functions_when_none_named(self, project: Path) -> None:
        result = runner.invoke(app, ["functions", "users/user.go", "-p", str(project), "--json"])

        data = json.loads(result.output)
        assert data["summary"]["modified_functions"] == 3
        assert {s["name"]: s["reason"] for s in data["skipped"]} == {
            "Reset": "no_signature",
            "helper": "unexported",
        }

    def test_missing_function_warns(self, project: Path) -> None:
        result = runner.invoke(
            app, ["functions", "users/user.go", "-f", "Nope", "-p", str(project)]
        )

        assert result.exit_code == 0, result.output
        assert "Functions not found" in result.output
        assert "Nope" in result.output


class TestConfigCommands:
    """Tests for `testgen config`."""

    def test_init_creates_file(self, project: Path) -> None:
        result = runner.invoke(app, ["config", "init", "-p", str(project), "--auto"])

        assert result.exit_code == 0, result.output
        data = yaml.safe_load((project / ".testgen.yml").read_text())
        assert data["mode"] == "auto"
        assert data["filtering"]["max_complexity"] == 15

    def test_init_refuses_overwrite(self, project: Path) -> None:
        (project / ".testgen.yml").write_text("mode: manual\n")

        result = runner.invoke(app, ["config", "init", "-p", str(project)])

        assert result.exit_code == EXIT_ERROR
        assert "already exists" in result.output

    def test_init_force(self, project: Path) -> None:
        (project / ".testgen.yml").write_text("mode: auto\n")

        result = runner.invoke(app, ["config", "init", "-p", str(project), "--force"])

        assert result.exit_code == 0, result.output
        assert yaml.safe_load((project / ".testgen.yml").read_text())["mode"] == "manual"

    def test_show_defaults(self, project: Path) -> None:
        result = runner.invoke(app, ["config", "show", "-p", str(project)])

        assert result.exit_code == 0, result.output
        assert "built-in defaults" in result.output
        assert "mode: manual" in result.output

    def test_show_file(self, project: Path) -> None:
        (project / ".testgen.yml").write_text("mode: auto\n")

        result = runner.invoke(app, ["config", "show", "-p", str(project)])

        assert "mode: auto" in result.output


def test_version() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert "testgen" in result.output
