"""testgen - change-aware Go function extraction for test generation."""

__version__ = "0.1.0"
