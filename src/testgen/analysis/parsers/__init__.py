"""Language parsers for function analysis.

Each parser turns one source file into a FileAnalysis.
"""

from testgen.analysis.parsers.go import parse_go_file, parse_go_source, split_signature

__all__ = ["parse_go_file", "parse_go_source", "split_signature"]
