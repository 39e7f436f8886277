"""Reconciliation of diff-reported changes with analyzed function descriptors.

Pipeline: modified-name sets (diff mode) or requested names (explicit mode)
→ parse each file → join by function name → selection policy
→ ordered generation targets.

Provides two entry modes that converge on the same join and policy:
- analyze_changes(): names come from DiffFile.modified_functions()
- analyze_specific_functions(): names come from the caller, or every
  function in the file when no names are given
"""

from __future__ import annotations

import fnmatch
import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from testgen.analysis.parsers.go import parse_go_file
from testgen.analysis.types import FileAnalysis, FunctionDescriptor
from testgen.core.config.models import FilteringConfig
from testgen.core.exceptions import InputError, ParseError
from testgen.git.diff import DiffResult, GitContext, get_diff, is_go_source

logger = logging.getLogger(__name__)

ENTRY_POINT_NAMES = frozenset({"main", "init"})

# Go test tooling conventions: TestXxx, BenchmarkXxx, ExampleXxx, FuzzXxx
TEST_PREFIXES: tuple[str, ...] = ("Test", "Benchmark", "Example", "Fuzz")


class Reason(str, Enum):
    """Why a function was or was not selected."""

    SELECTED = "selected"
    ENTRY_POINT = "entry_point"
    TEST_FUNCTION = "test_function"
    SKIP_PATTERN = "skip_pattern"
    UNEXPORTED = "unexported"
    TOO_COMPLEX = "too_complex"
    TOO_SIMPLE = "too_simple"
    NO_PARAMS = "no_params"
    NO_RETURNS = "no_returns"
    NO_SIGNATURE = "no_signature"


@dataclass(frozen=True)
class SelectionPolicy:
    """Function selection rules. Defaults mirror FilteringConfig."""

    include_unexported: bool = False
    max_complexity: int = 15
    min_complexity: int = 1
    skip_patterns: tuple[str, ...] = ()
    require_params: bool = False
    require_returns: bool = False
    skip_empty_signatures: bool = True

    @classmethod
    def from_config(cls, filtering: FilteringConfig) -> SelectionPolicy:
        return cls(
            include_unexported=filtering.include_unexported,
            max_complexity=filtering.max_complexity,
            min_complexity=filtering.min_complexity,
            skip_patterns=tuple(filtering.skip_patterns),
            require_params=filtering.require_params,
            require_returns=filtering.require_returns,
            skip_empty_signatures=filtering.skip_empty_signatures,
        )


@dataclass(frozen=True, slots=True)
class Decision:
    """Selection outcome for one function."""

    function: FunctionDescriptor
    reason: Reason

    @property
    def selected(self) -> bool:
        return self.reason is Reason.SELECTED


@dataclass
class ChangedFileAnalysis:
    """Analysis of a single file taking part in reconciliation.

    Attributes:
        file_path: Path as reported by the diff or given by the caller.
        modified_functions: Names considered modified, sorted.
        analysis: Full syntax analysis of the file.
        matched: Descriptors whose name is in modified_functions, declaration order.
        missing_functions: Requested names with no declaration in the file.

    """

    file_path: str
    modified_functions: list[str]
    analysis: FileAnalysis
    matched: list[FunctionDescriptor] = field(default_factory=list)
    missing_functions: list[str] = field(default_factory=list)


@dataclass
class AnalysisResult:
    """Result of one reconciliation run.

    Attributes:
        files: Files that were parsed and joined, in processing order.
        decisions: One decision per matched function, in processing order.
        failures: File path → error message for files that could not be analyzed.

    """

    files: list[ChangedFileAnalysis] = field(default_factory=list)
    decisions: list[Decision] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def generation_targets(self) -> list[FunctionDescriptor]:
        """Functions that survived the selection policy."""
        return [d.function for d in self.decisions if d.selected]

    @property
    def total_functions(self) -> int:
        return sum(len(f.analysis.functions) for f in self.files)

    @property
    def modified_function_count(self) -> int:
        return sum(len(f.modified_functions) for f in self.files)

    @property
    def missing_functions(self) -> dict[str, list[str]]:
        return {f.file_path: f.missing_functions for f in self.files if f.missing_functions}


def is_test_function(name: str) -> bool:
    """True for TestXxx/BenchmarkXxx/ExampleXxx/FuzzXxx style names."""
    return any(name.startswith(prefix) and len(name) > len(prefix) for prefix in TEST_PREFIXES)


def is_exported(name: str) -> bool:
    """True when name starts with an uppercase ASCII letter."""
    return bool(name) and "A" <= name[0] <= "Z"


def evaluate(fn: FunctionDescriptor, policy: SelectionPolicy) -> Decision:
    """Apply the selection policy to one function.

    Predicates are checked in order and the first failing one decides:
    entry points, test functions, skip patterns, visibility, complexity
    ceiling, complexity floor, required parameters/returns, empty signature.
    """
    name = fn.name
    complexity = fn.complexity.cyclomatic_complexity

    if name in ENTRY_POINT_NAMES:
        reason = Reason.ENTRY_POINT
    elif is_test_function(name):
        reason = Reason.TEST_FUNCTION
    elif any(fnmatch.fnmatchcase(name, pattern) for pattern in policy.skip_patterns):
        reason = Reason.SKIP_PATTERN
    elif not policy.include_unexported and not is_exported(name):
        reason = Reason.UNEXPORTED
    elif complexity > policy.max_complexity:
        reason = Reason.TOO_COMPLEX
    elif complexity < policy.min_complexity:
        reason = Reason.TOO_SIMPLE
    elif policy.require_params and not fn.parameters:
        reason = Reason.NO_PARAMS
    elif policy.require_returns and not fn.returns:
        reason = Reason.NO_RETURNS
    elif policy.skip_empty_signatures and not fn.parameters and not fn.returns:
        reason = Reason.NO_SIGNATURE
    else:
        reason = Reason.SELECTED

    return Decision(function=fn, reason=reason)


def join_functions(
    analysis: FileAnalysis, names: Iterable[str]
) -> tuple[list[FunctionDescriptor], list[str]]:
    """Join descriptors with a set of names by exact name match.

    Returns:
        Tuple of (matched descriptors in declaration order, sorted names
        with no matching declaration).

    """
    wanted = set(names)
    matched = analysis.filter_functions(wanted)
    found = {fn.name for fn in matched}
    return matched, sorted(wanted - found)


def build_targets(
    files: Iterable[ChangedFileAnalysis], policy: SelectionPolicy
) -> tuple[list[FunctionDescriptor], list[Decision]]:
    """Evaluate every matched function, preserving file then declaration order.

    Returns:
        Tuple of (selected descriptors, one decision per evaluated function).

    """
    decisions: list[Decision] = []
    for changed in files:
        for fn in changed.matched:
            decision = evaluate(fn, policy)
            logger.debug("%s:%s → %s", changed.file_path, fn.name, decision.reason.value)
            decisions.append(decision)
    return [d.function for d in decisions if d.selected], decisions


def _load(path: Path) -> tuple[FileAnalysis | None, str | None]:
    try:
        return parse_go_file(path), None
    except (ParseError, InputError) as e:
        logger.warning("Failed to analyze %s: %s", path, e)
        return None, str(e)


def _parse_many(
    paths: list[Path], max_workers: int
) -> list[tuple[FileAnalysis | None, str | None]]:
    """Parse files, concurrently when max_workers > 1. Output follows input order."""
    if max_workers > 1 and len(paths) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(_load, paths))
    return [_load(path) for path in paths]


def _resolve(file_path: str, project_root: Path | None) -> Path:
    path = Path(file_path)
    if project_root is not None and not path.is_absolute():
        return project_root / path
    return path


def _reconcile(
    candidates: list[tuple[str, set[str] | None]],
    project_root: Path | None,
    policy: SelectionPolicy,
    max_workers: int,
) -> AnalysisResult:
    """Parse candidate files, join with their name sets and apply the policy.

    A name set of None selects every function in the file.
    """
    result = AnalysisResult()
    outcomes = _parse_many([_resolve(path, project_root) for path, _ in candidates], max_workers)

    for (file_path, names), (analysis, error) in zip(candidates, outcomes, strict=True):
        if analysis is None:
            result.failures[file_path] = error or "unknown error"
            continue

        requested = set(analysis.function_names()) if names is None else names
        matched, missing = join_functions(analysis, requested)
        if missing:
            logger.info("Functions not found in %s: %s", file_path, ", ".join(missing))

        result.files.append(
            ChangedFileAnalysis(
                file_path=file_path,
                modified_functions=sorted(requested),
                analysis=analysis,
                matched=matched,
                missing_functions=missing,
            )
        )

    _, result.decisions = build_targets(result.files, policy)
    logger.info(
        "Analyzed %d files (%d failed): %d targets",
        len(result.files),
        len(result.failures),
        len(result.generation_targets),
    )
    return result


def analyze_changes(
    diff_result: DiffResult,
    project_root: Path | None = None,
    policy: SelectionPolicy | None = None,
    max_workers: int = 1,
    file_filter: Callable[[str], bool] | None = None,
) -> AnalysisResult:
    """Analyze every function touched by a parsed diff.

    Args:
        diff_result: Parsed diff.
        project_root: Directory diff paths are relative to.
        policy: Selection policy (defaults apply when None).
        max_workers: Files parsed concurrently.
        file_filter: Optional predicate on the new path (e.g. auto-mode triggers).

    Returns:
        AnalysisResult. Files that fail to parse are recorded in failures.

    """
    policy = policy or SelectionPolicy()
    candidates: list[tuple[str, set[str] | None]] = []

    for file_diff in diff_result.go_files():
        if file_diff.is_deleted:
            continue
        if file_filter is not None and not file_filter(file_diff.new_path):
            logger.debug("Skipping %s: not matched by trigger patterns", file_diff.new_path)
            continue
        modified = file_diff.modified_functions()
        if not modified:
            logger.debug("Skipping %s: no modified functions", file_diff.new_path)
            continue
        candidates.append((file_diff.new_path, modified))

    return _reconcile(candidates, project_root, policy, max_workers)


def analyze_revision_range(
    from_ref: str,
    to_ref: str,
    project_root: Path,
    policy: SelectionPolicy | None = None,
    max_workers: int = 1,
    file_filter: Callable[[str], bool] | None = None,
) -> AnalysisResult:
    """Diff two revisions with git and analyze the touched functions.

    Raises:
        InputError: If the diff cannot be obtained.

    """
    diff_result = get_diff(from_ref, to_ref, project_root)
    return analyze_changes(
        diff_result,
        project_root=project_root,
        policy=policy,
        max_workers=max_workers,
        file_filter=file_filter,
    )


def analyze_specific_functions(
    file_paths: Iterable[str | Path],
    function_names: Iterable[str] | None = None,
    policy: SelectionPolicy | None = None,
    max_workers: int = 1,
    project_root: Path | None = None,
) -> AnalysisResult:
    """Analyze explicitly named functions in explicitly named files.

    Args:
        file_paths: Go files to analyze; non-Go and ``_test.go`` paths are skipped.
        function_names: Names to select. Empty or None selects all functions.
        policy: Selection policy (defaults apply when None).
        max_workers: Files parsed concurrently.
        project_root: Base directory for relative paths.

    Returns:
        AnalysisResult. Requested names missing from a file are reported in
        missing_functions, not raised.

    """
    policy = policy or SelectionPolicy()
    names = {name for name in (function_names or ()) if name}
    candidates: list[tuple[str, set[str] | None]] = []

    for file_path in file_paths:
        path = str(file_path)
        if not is_go_source(path):
            logger.debug("Skipping %s: not a Go source file", path)
            continue
        candidates.append((path, names or None))

    return _reconcile(candidates, project_root, policy, max_workers)


@dataclass(frozen=True)
class ProjectContext:
    """Project-wide context shared by all generation targets of one run."""

    project_name: str
    package_name: str = ""
    imports: tuple[str, ...] = ()
    constants: dict[str, str] = field(default_factory=dict)
    git: GitContext | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "project_name": self.project_name,
            "package_name": self.package_name,
            "imports": list(self.imports),
            "constants": dict(self.constants),
        }
        if self.git is not None:
            data["git_context"] = self.git.to_dict()
        return data


def _module_name(project_root: Path) -> str:
    """Last element of the go.mod module path, or "" when unavailable."""
    go_mod = project_root / "go.mod"
    try:
        content = go_mod.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return ""
    for line in content.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] == "module":
            return parts[1].strip('"').rstrip("/").rsplit("/", 1)[-1]
    return ""


def build_project_context(
    result: AnalysisResult,
    project_root: Path,
    git: GitContext | None = None,
) -> ProjectContext:
    """Aggregate package, imports and constants across all analyzed files.

    The package name comes from the first analyzed file; constants from
    later files win on name clashes. Repository state is attached as given.
    """
    package_name = ""
    imports: set[str] = set()
    constants: dict[str, str] = {}

    for changed in result.files:
        analysis = changed.analysis
        if not package_name:
            package_name = analysis.package_name
        imports.update(imp.path for imp in analysis.imports)
        constants.update(analysis.constants)

    project_name = _module_name(project_root) or project_root.resolve().name
    return ProjectContext(
        project_name=project_name,
        package_name=package_name,
        imports=tuple(sorted(imports)),
        constants=constants,
        git=git,
    )
