"""Git integration: diff capture and unified-diff parsing."""

from testgen.git.diff import (
    ChangeType,
    DiffFile,
    DiffLine,
    DiffResult,
    GitContext,
    extract_function_name,
    get_changed_files,
    get_diff,
    get_git_context,
    is_go_source,
    parse_diff,
    parse_git_range,
    unquote_path,
)

__all__ = [
    "ChangeType",
    "DiffFile",
    "DiffLine",
    "DiffResult",
    "GitContext",
    "extract_function_name",
    "get_changed_files",
    "get_diff",
    "get_git_context",
    "is_go_source",
    "parse_diff",
    "parse_git_range",
    "unquote_path",
]
