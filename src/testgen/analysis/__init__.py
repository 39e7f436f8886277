"""Go function analysis and generation-target selection.

Pipeline: parse_go_file() → join_functions() → evaluate() → format_summary()
"""

from testgen.analysis.formatter import format_summary, targets_to_json
from testgen.analysis.parsers import parse_go_file, parse_go_source
from testgen.analysis.reconciler import (
    AnalysisResult,
    ChangedFileAnalysis,
    Decision,
    ProjectContext,
    Reason,
    SelectionPolicy,
    analyze_changes,
    analyze_revision_range,
    analyze_specific_functions,
    build_project_context,
    build_targets,
    evaluate,
    join_functions,
)
from testgen.analysis.types import (
    ComplexityProfile,
    FileAnalysis,
    FunctionDescriptor,
    ImportInfo,
    ParameterInfo,
    ReceiverInfo,
    ReturnInfo,
    TypeInfo,
)

__all__ = [
    "AnalysisResult",
    "ChangedFileAnalysis",
    "ComplexityProfile",
    "Decision",
    "FileAnalysis",
    "FunctionDescriptor",
    "ImportInfo",
    "ParameterInfo",
    "ProjectContext",
    "Reason",
    "ReceiverInfo",
    "ReturnInfo",
    "SelectionPolicy",
    "TypeInfo",
    "analyze_changes",
    "analyze_revision_range",
    "analyze_specific_functions",
    "build_project_context",
    "build_targets",
    "evaluate",
    "format_summary",
    "join_functions",
    "parse_go_file",
    "parse_go_source",
    "targets_to_json",
]
