"""Format an AnalysisResult for people and for downstream tools.

Provides two formatters:
- format_summary(): plain-text report, one block per analyzed file
- targets_to_json(): JSON document listing generation targets
"""

from __future__ import annotations

import json
import logging
from typing import Any

from testgen.analysis.reconciler import AnalysisResult, ProjectContext
from testgen.analysis.types import FunctionDescriptor

logger = logging.getLogger(__name__)


def _flags(fn: FunctionDescriptor) -> list[str]:
    flags: list[str] = []
    if fn.complexity.has_errors:
        flags.append("handles errors")
    if fn.complexity.has_goroutines:
        flags.append("uses goroutines")
    if fn.complexity.has_pointers:
        flags.append("uses pointers")
    if fn.is_method:
        flags.append("method")
    return flags


def format_summary(result: AnalysisResult) -> str:
    """Format a plain-text analysis summary.

    Output format:
        Analysis Summary:
        ================
        Files analyzed: N
        ...totals...

        File: path
          Modified functions: A, B
          Package: name
          Imports: N
            - A (complexity: C, params: P, returns: R) [flags]

    Args:
        result: Reconciliation result to summarize.

    Returns:
        Multi-line summary string.

    """
    lines = [
        "Analysis Summary:",
        "================",
        f"Files analyzed: {len(result.files)}",
        f"Total functions found: {result.total_functions}",
        f"Modified functions: {result.modified_function_count}",
        f"Test generation targets: {len(result.generation_targets)}",
    ]

    for changed in result.files:
        lines.append("")
        lines.append(f"File: {changed.file_path}")
        lines.append(f"  Modified functions: {', '.join(changed.modified_functions)}")
        lines.append(f"  Package: {changed.analysis.package_name}")
        lines.append(f"  Imports: {len(changed.analysis.imports)}")
        for fn in changed.matched:
            entry = (
                f"    - {fn.name} (complexity: {fn.complexity.cyclomatic_complexity}, "
                f"params: {len(fn.parameters)}, returns: {len(fn.returns)})"
            )
            flags = _flags(fn)
            if flags:
                entry += " " + " ".join(f"[{flag}]" for flag in flags)
            lines.append(entry)
        if changed.missing_functions:
            lines.append(f"  Not found: {', '.join(changed.missing_functions)}")

    if result.failures:
        lines.append("")
        lines.append("Failed files:")
        for file_path, message in result.failures.items():
            lines.append(f"  {file_path}: {message}")

    return "\n".join(lines)


def targets_to_json(result: AnalysisResult, context: ProjectContext | None = None) -> str:
    """Serialize generation targets and skip decisions to JSON.

    Args:
        result: Reconciliation result.
        context: Optional project context to embed.

    Returns:
        Indented JSON document.

    """
    payload: dict[str, Any] = {
        "targets": [fn.to_dict() for fn in result.generation_targets],
        "skipped": [
            {"name": d.function.name, "file": d.function.file, "reason": d.reason.value}
            for d in result.decisions
            if not d.selected
        ],
        "missing": result.missing_functions,
        "failures": dict(result.failures),
        "summary": {
            "files_analyzed": len(result.files),
            "total_functions": result.total_functions,
            "modified_functions": result.modified_function_count,
            "targets": len(result.generation_targets),
        },
    }
    if context is not None:
        payload["context"] = context.to_dict()

    logger.debug("Serialized %d targets", len(payload["targets"]))
    return json.dumps(payload, indent=2)
