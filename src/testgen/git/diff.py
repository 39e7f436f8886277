"""Unified diff parsing with per-line function attribution.

Turns ``git diff`` output into a tree of files → lines, tagging every line
with the Go function it belongs to. Function attribution comes from two
sources:
- The function context git appends to each ``@@`` hunk header
- Declaration lines seen inline in the hunk body, which override the
  header context because one hunk can span several declarations

The parser is best-effort by design: malformed or unexpected lines lose
their function attribution, they never raise.
"""

from __future__ import annotations

import logging
import re
import subprocess
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from testgen.core.exceptions import InputError

logger = logging.getLogger(__name__)

# Default timeout for git commands
_GIT_TIMEOUT = 30

# Paths with special characters are C-quoted by git (core.quotepath)
_FILE_HEADER_RE = re.compile(
    r'^diff --git (?P<old>"a/(?:[^"\\]|\\.)*"|a/.*) (?P<new>"b/(?:[^"\\]|\\.)*"|b/.*)$'
)
_FILE_HEADER_PREFIX = "diff --git "
_HUNK_HEADER_RE = re.compile(r"^@@ -(\d+),?(\d*) \+(\d+),?(\d*) @@ ?(.*)$")

_FUNC_KEYWORD = "func "
_DEV_NULL = "/dev/null"

_C_ESCAPES: dict[str, int] = {
    "a": 0x07,
    "b": 0x08,
    "t": 0x09,
    "n": 0x0A,
    "v": 0x0B,
    "f": 0x0C,
    "r": 0x0D,
    '"': 0x22,
    "\\": 0x5C,
}
_OCTAL_DIGITS = frozenset("01234567")


class ChangeType(str, Enum):
    """Kind of a diff body line."""

    ADDED = "added"
    REMOVED = "removed"
    CONTEXT = "context"


_MARKERS: dict[str, ChangeType] = {
    "+": ChangeType.ADDED,
    "-": ChangeType.REMOVED,
    " ": ChangeType.CONTEXT,
}


@dataclass(frozen=True, slots=True)
class DiffLine:
    """A single line from a hunk body.

    Attributes:
        change_type: Added, removed or context.
        text: Line content with the change marker stripped.
        line_num: 0-based position inside the hunk.
        function: Enclosing function when the line was read ("" if unknown).
        new_line: 1-based line number in the new file, None for removed lines.

    """

    change_type: ChangeType
    text: str
    line_num: int
    function: str = ""
    new_line: int | None = None

    @property
    def is_change(self) -> bool:
        """True for added and removed lines."""
        return self.change_type is not ChangeType.CONTEXT


@dataclass(frozen=True, slots=True)
class DiffFile:
    """All lines of one file entry in a diff.

    Attributes:
        old_path: Path before the change ("" when the file was added).
        new_path: Path after the change ("" when the file was deleted).
        lines: Hunk body lines in diff order.
        functions: Function names seen in the file, deduplicated, first-seen order.
            Seen does not mean changed, see modified_functions().

    """

    old_path: str
    new_path: str
    lines: tuple[DiffLine, ...] = ()
    functions: tuple[str, ...] = ()

    @property
    def is_deleted(self) -> bool:
        """True when the file no longer exists after the change."""
        return not self.new_path

    @property
    def path(self) -> str:
        """New path, or the old path for deleted files."""
        return self.new_path or self.old_path

    def modified_functions(self) -> set[str]:
        """Return names of functions with at least one added or removed line.

        Functions only ever seen as unchanged context are excluded.
        """
        return {line.function for line in self.lines if line.is_change and line.function}

    def context_only_functions(self) -> set[str]:
        """Return names seen in the file but never touched by a change."""
        return set(self.functions) - self.modified_functions()

    def changed_lines(self) -> list[int]:
        """Return new-file line numbers of added lines."""
        return [
            line.new_line
            for line in self.lines
            if line.change_type is ChangeType.ADDED and line.new_line is not None
        ]


@dataclass(frozen=True, slots=True)
class DiffResult:
    """Parsed diff: one DiffFile per ``diff --git`` section, in order."""

    files: tuple[DiffFile, ...] = ()

    def __iter__(self) -> Iterator[DiffFile]:
        return iter(self.files)

    def __len__(self) -> int:
        return len(self.files)

    def go_files(self) -> DiffResult:
        """Keep Go source files, dropping tests and deleted files."""
        return DiffResult(
            files=tuple(f for f in self.files if is_go_source(f.new_path))
        )


def is_go_source(path: str) -> bool:
    """True for `.go` files that are not `_test.go` files."""
    return path.endswith(".go") and not path.endswith("_test.go")


def unquote_path(token: str) -> str:
    """Decode a path as git prints it in diff headers.

    Unquoted tokens are returned unchanged. Quoted tokens have their
    C-style escapes decoded; octal escapes are UTF-8 bytes.

    Examples:
        >>> unquote_path('"a/\\\\303\\\\244.go"')
        'a/ä.go'
        >>> unquote_path("a/user.go")
        'a/user.go'

    """
    if len(token) < 2 or not (token.startswith('"') and token.endswith('"')):
        return token

    body = token[1:-1]
    out = bytearray()
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\" or i + 1 == len(body):
            out += ch.encode("utf-8")
            i += 1
            continue
        octal = body[i + 1:i + 4]
        if len(octal) == 3 and set(octal) <= _OCTAL_DIGITS:
            out.append(int(octal, 8) & 0xFF)
            i += 4
        elif body[i + 1] in _C_ESCAPES:
            out.append(_C_ESCAPES[body[i + 1]])
            i += 2
        else:
            out += body[i:i + 2].encode("utf-8")
            i += 2
    return out.decode("utf-8", errors="replace")


def _header_path(token: str, prefix: str) -> str:
    path = unquote_path(token.split("\t", 1)[0].strip())
    return path.removeprefix(prefix)


@dataclass
class _FileBuilder:
    """Mutable accumulator for the file currently being scanned."""

    old_path: str
    new_path: str
    lines: list[DiffLine] = field(default_factory=list)
    functions: list[str] = field(default_factory=list)
    in_hunk: bool = False

    def see(self, name: str) -> None:
        if name and name not in self.functions:
            self.functions.append(name)

    def apply_header_line(self, line: str) -> None:
        """Interpret file metadata between ``diff --git`` and the first hunk."""
        if line.startswith("--- "):
            path = _header_path(line[4:], "a/")
            self.old_path = "" if path == _DEV_NULL else path
        elif line.startswith("+++ "):
            path = _header_path(line[4:], "b/")
            self.new_path = "" if path == _DEV_NULL else path
        elif line.startswith("deleted file mode"):
            self.new_path = ""

    def build(self) -> DiffFile:
        return DiffFile(
            old_path=self.old_path,
            new_path=self.new_path,
            lines=tuple(self.lines),
            functions=tuple(self.functions),
        )


@dataclass
class _ScanState:
    """State threaded through the line scan."""

    files: list[DiffFile] = field(default_factory=list)
    current: _FileBuilder | None = None
    function: str = ""
    line_num: int = 0
    new_line: int | None = None

    def open_file(self, old_path: str, new_path: str) -> None:
        self.close_file()
        self.current = _FileBuilder(old_path=old_path, new_path=new_path)
        self.function = ""
        self.line_num = 0
        self.new_line = None

    def close_file(self) -> None:
        if self.current is not None:
            self.files.append(self.current.build())
            self.current = None


def extract_function_name(line: str) -> str:
    """Extract a Go function name from a declaration or hunk context line.

    Examples:
        >>> extract_function_name("func ValidateUser(u *User) error {")
        'ValidateUser'
        >>> extract_function_name("+func (s *Server) Handle(req Request) {")
        'Handle'
        >>> extract_function_name("return nil")
        ''

    Args:
        line: Raw line, optionally starting with a diff change marker.

    Returns:
        Function name, or "" when the line is not a function declaration.

    """
    text = line.strip()
    if text[:1] in _MARKERS:
        text = text[1:].strip()

    if not text.startswith(_FUNC_KEYWORD):
        return ""
    text = text[len(_FUNC_KEYWORD):].strip()

    # Method receiver: "(s *Server) Handle(..."
    if text.startswith("("):
        close = text.find(") ")
        if close != -1:
            text = text[close + 2:].strip()

    paren = text.find("(")
    if paren == -1:
        return ""

    name = text[:paren]
    # Type parameters: "Map[T any](..."
    name = name.split("[", 1)[0]
    name = name.strip(" \t*&[]")
    return name if name.isidentifier() else ""


def _classify(line: str) -> tuple[ChangeType, str] | None:
    if not line:
        return None
    change_type = _MARKERS.get(line[0])
    if change_type is None:
        return None
    return change_type, line[1:]


def _scan_line(state: _ScanState, line: str) -> None:
    if line.startswith(_FILE_HEADER_PREFIX):
        header = _FILE_HEADER_RE.match(line)
        if header:
            state.open_file(
                _header_path(header.group("old"), "a/"),
                _header_path(header.group("new"), "b/"),
            )
        else:
            # unreadable header: its lines must not reach the previous file
            logger.debug("Skipping unrecognized file header: %s", line)
            state.close_file()
        return

    current = state.current
    if current is None:
        return

    hunk = _HUNK_HEADER_RE.match(line)
    if hunk:
        current.in_hunk = True
        state.line_num = 0
        state.new_line = int(hunk.group(3))
        name = extract_function_name(hunk.group(5))
        if name:
            state.function = name
            current.see(name)
        return

    if not current.in_hunk:
        current.apply_header_line(line)
        return

    classified = _classify(line)
    if classified is None:
        # "\ No newline at end of file", malformed hunk headers, blank lines
        state.line_num += 1
        return

    change_type, text = classified
    if change_type is not ChangeType.REMOVED and _FUNC_KEYWORD in text:
        name = extract_function_name(text)
        if name:
            state.function = name
            current.see(name)

    new_line: int | None = None
    if change_type is not ChangeType.REMOVED and state.new_line is not None:
        new_line = state.new_line
        state.new_line += 1

    current.lines.append(
        DiffLine(
            change_type=change_type,
            text=text,
            line_num=state.line_num,
            function=state.function,
            new_line=new_line,
        )
    )
    state.line_num += 1


def parse_diff(diff_text: str) -> DiffResult:
    """Parse unified diff text into a DiffResult.

    Args:
        diff_text: Output of ``git diff`` (function-context hunk headers expected).

    Returns:
        DiffResult with one DiffFile per file section. Never raises on
        malformed content.

    """
    state = _ScanState()
    for raw_line in diff_text.split("\n"):
        _scan_line(state, raw_line.removesuffix("\r"))
    state.close_file()

    logger.debug("Parsed diff: %d files", len(state.files))
    return DiffResult(files=tuple(state.files))


def _run_git(args: list[str], project_root: Path) -> str:
    """Run a git command and return stdout.

    Raises:
        InputError: If git is missing, times out, or exits non-zero.

    """
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=project_root,
            capture_output=True,
            text=True,
            timeout=_GIT_TIMEOUT,
            errors="replace",
        )
    except subprocess.TimeoutExpired as e:
        raise InputError(f"git {args[0]} timed out after {_GIT_TIMEOUT}s") from e
    except FileNotFoundError as e:
        raise InputError("git command not found") from e
    except OSError as e:
        raise InputError(f"git command failed: {e}") from e

    if result.returncode != 0:
        stderr_msg = result.stderr[:200].strip() if result.stderr else "unknown"
        raise InputError(f"git {args[0]} failed: {stderr_msg}")
    return result.stdout


def get_diff(from_ref: str, to_ref: str, project_root: Path) -> DiffResult:
    """Get the parsed diff between two git references.

    Args:
        from_ref: Base revision.
        to_ref: Target revision.
        project_root: Directory inside the git repository. Paths in the
            result are relative to it; changes outside it are left out.

    Returns:
        Parsed DiffResult.

    Raises:
        InputError: If the diff text cannot be obtained.

    """
    output = _run_git(
        ["diff", "--no-ext-diff", "--relative", "--function-context", from_ref, to_ref],
        project_root,
    )
    return parse_diff(output)


def get_changed_files(from_ref: str, to_ref: str, project_root: Path) -> list[str]:
    """List paths changed between two git references.

    Raises:
        InputError: If git fails.

    """
    output = _run_git(["diff", "--relative", "--name-only", from_ref, to_ref], project_root)
    return [line for line in output.strip().split("\n") if line]


@dataclass(frozen=True, slots=True)
class GitContext:
    """Repository state attached to project context ("" when unknown)."""

    branch: str = ""
    commit_message: str = ""
    author: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "branch": self.branch,
            "commit_message": self.commit_message,
            "author": self.author,
        }


def get_git_context(project_root: Path) -> GitContext:
    """Read the current branch and the subject and author of the last commit.

    Each field is queried separately; a failing query leaves that field
    empty instead of raising.
    """
    queries = {
        "branch": ["rev-parse", "--abbrev-ref", "HEAD"],
        "commit_message": ["log", "-1", "--pretty=format:%s"],
        "author": ["log", "-1", "--pretty=format:%an"],
    }
    values: dict[str, str] = {}
    for key, args in queries.items():
        try:
            values[key] = _run_git(args, project_root).strip()
        except InputError as e:
            logger.debug("Git context %s unavailable: %s", key, e)
            values[key] = ""
    return GitContext(**values)


def parse_git_range(range_text: str | None, default_range: str = "HEAD~1..HEAD") -> tuple[str, str]:
    """Split an ``A..B`` revision range.

    Falls back to default_range, then to ``HEAD~1..HEAD``, when the
    given range is missing or not of the ``A..B`` form.

    Examples:
        >>> parse_git_range("main..feature")
        ('main', 'feature')
        >>> parse_git_range(None)
        ('HEAD~1', 'HEAD')

    """
    for candidate in (range_text, default_range):
        if not candidate:
            continue
        parts = candidate.split("..")
        if len(parts) == 2 and all(parts):
            return parts[0], parts[1]
        logger.debug("Ignoring malformed revision range: %s", candidate)
    return "HEAD~1", "HEAD"
