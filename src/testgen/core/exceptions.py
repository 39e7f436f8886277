"""Custom exception hierarchy for testgen.

All custom exceptions inherit from TestgenError to enable:
- Unified exception handling in the CLI
- Clear distinction from built-in exceptions
- Per-input failures that do not abort a batch
"""

from pathlib import Path

__all__ = [
    "TestgenError",
    "ConfigError",
    "ConfigValidationError",
    "InputError",
    "ParseError",
]


class TestgenError(Exception):
    """Base exception for all testgen errors.

    All custom exceptions in testgen should inherit from this class
    to enable unified exception handling and clear error boundaries.
    """

    # Keep pytest from collecting this class when imported into test modules.
    __test__ = False


class ConfigError(TestgenError):
    """Configuration loading or validation error.

    Raised when:
    - Configuration file cannot be read
    - Configuration file is not valid YAML or not a mapping
    - Configuration validation fails
    """

    pass


class ConfigValidationError(ConfigError):
    """Validation error with structured Pydantic details.

    Attributes:
        errors: List of error dicts with 'loc', 'msg', and 'type' fields.

    """

    def __init__(self, message: str, errors: list[dict]) -> None:
        """Initialize ConfigValidationError with message and structured errors.

        Args:
            message: Human-readable error message.
            errors: List of error dicts from Pydantic ValidationError.

        """
        super().__init__(message)
        self.errors = errors


class InputError(TestgenError):
    """An input could not be obtained.

    Raised when:
    - git is not installed, times out, or exits non-zero
    - A source file cannot be read (missing, permissions, too large)

    Fatal for that single input, non-fatal for a batch of files.
    """

    pass


class ParseError(TestgenError):
    """A Go source file is not syntactically valid.

    The analyzer does not attempt partial recovery: a partial syntax tree
    cannot be trusted for complexity counts. Callers iterating over many
    files record the failure and continue.

    Attributes:
        file_path: Path of the file that failed to parse.

    Example:
        >>> try:
        ...     analysis = parse_go_file(path)
        ... except ParseError as e:
        ...     print(f"skipping {e.file_path}: {e}")

    """

    def __init__(self, message: str, file_path: "str | Path" = "") -> None:
        """Initialize ParseError with message and the offending file.

        Args:
            message: Human-readable error message.
            file_path: Path of the file that failed to parse.

        """
        super().__init__(message)
        self.file_path = str(file_path)
