"""Command line interface for testgen.

Commands:
- analyze: diff a revision range and list functions that need tests
- functions: analyze explicitly named files and functions
- config show / config init: inspect or create .testgen.yml
"""

import dataclasses
import logging
from pathlib import Path

import typer
import yaml
from rich.table import Table

from testgen import __version__
from testgen.analysis import (
    AnalysisResult,
    SelectionPolicy,
    analyze_revision_range,
    analyze_specific_functions,
    build_project_context,
    format_summary,
    targets_to_json,
)
from testgen.cli_utils import (
    EXIT_CONFIG_ERROR,
    EXIT_ERROR,
    EXIT_PARSE_ERROR,
    EXIT_SUCCESS,
    _error,
    _info,
    _setup_logging,
    _success,
    _validate_project_path,
    _warning,
    console,
)
from testgen.core.config import (
    DEFAULT_CONFIG_FILE,
    Config,
    find_config_file,
    load_config,
    save_config,
)
from testgen.core.exceptions import ConfigError, ConfigValidationError, InputError
from testgen.git import get_git_context, parse_git_range

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="testgen",
    help="Find changed Go functions that need unit tests",
    no_args_is_help=True,
)

config_app = typer.Typer(
    name="config",
    help="Configuration commands",
    no_args_is_help=True,
)
app.add_typer(config_app)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"testgen {__version__}")
        raise typer.Exit(code=EXIT_SUCCESS)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Find changed Go functions that need unit tests."""


def _load_config_or_exit(config_path: str | None, project_path: Path) -> Config:
    """Load configuration, exiting with EXIT_CONFIG_ERROR on failure."""
    try:
        if config_path is not None:
            return load_config(Path(config_path))
        return load_config(start=project_path)
    except ConfigValidationError as e:
        _error(str(e))
        for err in e.errors:
            loc = ".".join(str(part) for part in err["loc"])
            console.print(f"  [dim]{loc}:[/dim] {err['msg']}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from None
    except ConfigError as e:
        _error(str(e))
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from None


def _build_policy(
    config: Config,
    include_unexported: bool | None,
    max_complexity: int | None,
) -> SelectionPolicy:
    """Selection policy from config with command line overrides applied."""
    policy = SelectionPolicy.from_config(config.filtering)
    overrides: dict[str, object] = {}
    if include_unexported is not None:
        overrides["include_unexported"] = include_unexported
    if max_complexity is not None:
        if max_complexity < policy.min_complexity:
            _error(
                f"--max-complexity ({max_complexity}) cannot be lower than "
                f"min_complexity ({policy.min_complexity})"
            )
            raise typer.Exit(code=EXIT_CONFIG_ERROR)
        overrides["max_complexity"] = max_complexity
    return dataclasses.replace(policy, **overrides) if overrides else policy


def _display_path(file_path: str, project_path: Path) -> str:
    path = Path(file_path)
    if path.is_absolute() and path.is_relative_to(project_path):
        return str(path.relative_to(project_path))
    return file_path


def _print_table(result: AnalysisResult, project_path: Path, verbose: bool) -> None:
    targets = result.generation_targets
    if not targets:
        console.print("[dim]No functions found that need test generation[/dim]")
    else:
        table = Table(title="Test Generation Targets")
        table.add_column("Function", style="cyan")
        table.add_column("File", style="dim")
        table.add_column("Lines", justify="right")
        table.add_column("Complexity", justify="right")
        table.add_column("Params", justify="right")
        table.add_column("Returns", justify="right")

        for fn in targets:
            table.add_row(
                fn.qualified_name,
                _display_path(fn.file, project_path),
                f"{fn.start_line}-{fn.end_line}",
                str(fn.complexity.cyclomatic_complexity),
                str(len(fn.parameters)),
                str(len(fn.returns)),
            )
        console.print(table)

    if verbose:
        for decision in result.decisions:
            if not decision.selected:
                console.print(
                    f"[dim]skipped {decision.function.name}: {decision.reason.value}[/dim]"
                )

    for file_path, names in result.missing_functions.items():
        _warning(f"Functions not found in {file_path}: {', '.join(names)}")


def _report(
    result: AnalysisResult,
    project_path: Path,
    json_output: bool,
    summary: bool,
    verbose: bool,
) -> None:
    """Print the result in the requested format; exit non-zero if any file failed."""
    if json_output:
        context = build_project_context(result, project_path, get_git_context(project_path))
        typer.echo(targets_to_json(result, context))
    elif summary:
        typer.echo(format_summary(result))
    else:
        _print_table(result, project_path, verbose)

    if result.failures:
        if not json_output:
            for file_path, message in result.failures.items():
                _error(f"{file_path}: {message}")
        raise typer.Exit(code=EXIT_PARSE_ERROR)


@app.command("analyze")
def analyze(
    revision_range: str | None = typer.Argument(
        None,
        metavar="RANGE",
        help="Revision range as FROM..TO (defaults to config, then HEAD~1..HEAD)",
    ),
    project: str = typer.Option(
        ".",
        "--project",
        "-p",
        help="Path to the Go project (git repository)",
    ),
    config_path: str | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print targets as JSON",
    ),
    summary: bool = typer.Option(
        False,
        "--summary",
        help="Print a plain-text analysis summary",
    ),
    include_unexported: bool | None = typer.Option(
        None,
        "--include-unexported/--exported-only",
        help="Override filtering.include_unexported",
    ),
    max_complexity: int | None = typer.Option(
        None,
        "--max-complexity",
        min=1,
        help="Override filtering.max_complexity",
    ),
    workers: int | None = typer.Option(
        None,
        "--workers",
        "-w",
        min=1,
        max=64,
        help="Files parsed concurrently (overrides analysis.max_workers)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show errors"),
) -> None:
    """Analyze functions changed in a git revision range.

    Examples:
        testgen analyze
        testgen analyze main..feature --json

    """
    _setup_logging(verbose=verbose, quiet=quiet)
    project_path = _validate_project_path(project)
    config = _load_config_or_exit(config_path, project_path)
    policy = _build_policy(config, include_unexported, max_complexity)

    from_ref, to_ref = parse_git_range(revision_range, config.triggers.manual.default_range)
    file_filter = config.should_trigger_on_file if config.is_auto_mode else None
    if not json_output:
        _info(f"Analyzing git range: {from_ref}..{to_ref}")

    try:
        result = analyze_revision_range(
            from_ref,
            to_ref,
            project_path,
            policy=policy,
            max_workers=workers or config.analysis.max_workers,
            file_filter=file_filter,
        )
    except InputError as e:
        _error(str(e))
        raise typer.Exit(code=EXIT_ERROR) from None

    _report(result, project_path, json_output, summary, verbose)


@app.command("functions")
def functions(
    files: list[Path] = typer.Argument(
        ...,
        help="Go source files to analyze",
    ),
    function: list[str] | None = typer.Option(
        None,
        "--function",
        "-f",
        help="Function name to analyze (repeatable, default: all)",
    ),
    project: str = typer.Option(
        ".",
        "--project",
        "-p",
        help="Path to the Go project",
    ),
    config_path: str | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
    ),
    json_output: bool = typer.Option(False, "--json", help="Print targets as JSON"),
    summary: bool = typer.Option(
        False,
        "--summary",
        help="Print a plain-text analysis summary",
    ),
    include_unexported: bool | None = typer.Option(
        None,
        "--include-unexported/--exported-only",
        help="Override filtering.include_unexported",
    ),
    max_complexity: int | None = typer.Option(
        None,
        "--max-complexity",
        min=1,
        help="Override filtering.max_complexity",
    ),
    workers: int | None = typer.Option(
        None,
        "--workers",
        "-w",
        min=1,
        max=64,
        help="Files parsed concurrently (overrides analysis.max_workers)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show errors"),
) -> None:
    """Analyze specific functions in specific files.

    Examples:
        testgen functions pkg/user.go
        testgen functions pkg/user.go -f ValidateUser -f GetName

    """
    _setup_logging(verbose=verbose, quiet=quiet)
    project_path = _validate_project_path(project)
    config = _load_config_or_exit(config_path, project_path)
    policy = _build_policy(config, include_unexported, max_complexity)

    if not json_output:
        _info(f"Analyzing {len(files)} specific files")

    result = analyze_specific_functions(
        files,
        function_names=function or [],
        policy=policy,
        max_workers=workers or config.analysis.max_workers,
        project_root=project_path,
    )
    _report(result, project_path, json_output, summary, verbose)


@config_app.command("show")
def config_show(
    project: str = typer.Option(
        ".",
        "--project",
        "-p",
        help="Path to the Go project",
    ),
    config_path: str | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
    ),
) -> None:
    """Show the effective configuration as YAML."""
    project_path = _validate_project_path(project)
    config = _load_config_or_exit(config_path, project_path)

    source = Path(config_path) if config_path else find_config_file(project_path)
    _info(f"Configuration source: {source if source else 'built-in defaults'}")
    typer.echo(yaml.safe_dump(config.model_dump(mode="json"), sort_keys=False).rstrip())


@config_app.command("init")
def config_init(
    project: str = typer.Option(
        ".",
        "--project",
        "-p",
        help="Path to the Go project",
    ),
    auto: bool = typer.Option(
        False,
        "--auto",
        help="Create the configuration in auto mode",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Overwrite an existing configuration file",
    ),
) -> None:
    """Create a default .testgen.yml in the project directory."""
    project_path = _validate_project_path(project)
    target = project_path / DEFAULT_CONFIG_FILE

    if target.exists() and not force:
        _error(f"Configuration file {target} already exists (use --force to overwrite)")
        raise typer.Exit(code=EXIT_ERROR)

    config = Config(mode="auto" if auto else "manual")
    try:
        save_config(config, target)
    except ConfigError as e:
        _error(str(e))
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from None

    _success(f"Created configuration file: {target}")
    console.print(f"[dim]Edit {DEFAULT_CONFIG_FILE} to customize settings[/dim]")
