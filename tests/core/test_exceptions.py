"""Tests for the exception hierarchy."""

from testgen.core.exceptions import (
    ConfigError,
    ConfigValidationError,
    InputError,
    ParseError,
    TestgenError,
)


class TestHierarchy:
    def test_all_inherit_from_base(self) -> None:
        for exc_type in (ConfigError, ConfigValidationError, InputError, ParseError):
            assert issubclass(exc_type, TestgenError)

    def test_validation_error_is_config_error(self) -> None:
        error = ConfigValidationError("bad", [{"loc": ("mode",), "msg": "x", "type": "y"}])

        assert isinstance(error, ConfigError)
        assert error.errors[0]["loc"] == ("mode",)

    def test_parse_error_carries_path(self) -> None:
        error = ParseError("failed to parse file a.go: syntax error", "a.go")

        assert error.file_path == "a.go"
        assert str(error) == "failed to parse file a.go: syntax error"
