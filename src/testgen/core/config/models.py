"""Configuration models (Triggers, Filtering, Analysis).

All models are frozen Pydantic models so a loaded configuration can be
shared freely between the CLI and the analysis pipeline.
"""

from __future__ import annotations

import fnmatch
from pathlib import PurePosixPath
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AutoTriggerConfig(BaseModel):
    """Auto mode trigger settings.

    Attributes:
        file_patterns: Glob patterns of files that trigger analysis.
        exclude_files: Glob patterns of files that never trigger analysis.
            Checked before file_patterns.
        on_commit: Reserved for git hook integrations. Kept so existing
            configuration files load; file triggering does not read it.
        on_push: Reserved like on_commit.

    """

    model_config = ConfigDict(frozen=True)

    file_patterns: list[str] = Field(default_factory=lambda: ["*.go"])
    exclude_files: list[str] = Field(
        default_factory=lambda: ["*_test.go", "vendor/*", ".git/*"]
    )
    on_commit: bool = True
    on_push: bool = False


class ManualTriggerConfig(BaseModel):
    """Manual mode settings."""

    model_config = ConfigDict(frozen=True)

    default_range: str = Field(
        default="HEAD~1..HEAD",
        min_length=1,
        description="Revision range analyzed when none is given on the command line",
    )


class TriggersConfig(BaseModel):
    """When analysis should trigger."""

    model_config = ConfigDict(frozen=True)

    auto: AutoTriggerConfig = Field(default_factory=AutoTriggerConfig)
    manual: ManualTriggerConfig = Field(default_factory=ManualTriggerConfig)


class FilteringConfig(BaseModel):
    """Function selection rules applied by the reconciler.

    Attributes:
        include_unexported: Keep functions whose name starts with a lowercase letter.
        max_complexity: Highest cyclomatic estimate still selected.
        min_complexity: Lowest cyclomatic estimate still selected.
        skip_patterns: fnmatch globs; matching function names are skipped.
        require_params: Skip functions without parameters.
        require_returns: Skip functions without return values.
        skip_empty_signatures: Skip functions with neither parameters nor returns.

    Example:
        >>> FilteringConfig(max_complexity=10).min_complexity
        1

    """

    model_config = ConfigDict(frozen=True)

    include_unexported: bool = False
    max_complexity: int = Field(default=15, ge=1)
    min_complexity: int = Field(default=1, ge=1)
    skip_patterns: list[str] = Field(default_factory=list)
    require_params: bool = False
    require_returns: bool = False
    skip_empty_signatures: bool = True

    @model_validator(mode="after")
    def validate_complexity_bounds(self) -> FilteringConfig:
        """Ensure min_complexity does not exceed max_complexity."""
        if self.min_complexity > self.max_complexity:
            raise ValueError(
                f"min_complexity ({self.min_complexity}) cannot be greater than "
                f"max_complexity ({self.max_complexity})"
            )
        return self


class AnalysisConfig(BaseModel):
    """Analysis pipeline settings."""

    model_config = ConfigDict(frozen=True)

    max_workers: int = Field(
        default=1,
        ge=1,
        le=64,
        description="Number of files parsed concurrently",
    )


class Config(BaseModel):
    """Complete testgen configuration.

    Attributes:
        mode: "manual" (on demand) or "auto" (hook driven, file patterns apply).
        triggers: Trigger settings for both modes.
        filtering: Function selection rules.
        analysis: Pipeline settings.

    """

    model_config = ConfigDict(frozen=True)

    mode: Literal["auto", "manual"] = "manual"
    triggers: TriggersConfig = Field(default_factory=TriggersConfig)
    filtering: FilteringConfig = Field(default_factory=FilteringConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)

    @property
    def is_auto_mode(self) -> bool:
        """Return True if running in auto mode."""
        return self.mode == "auto"

    def should_trigger_on_file(self, file_path: str) -> bool:
        """Check whether a changed file should trigger analysis in auto mode.

        Exclude patterns win over include patterns. Each pattern is matched
        against the full path and the base name; ``dir/*`` patterns also
        exclude everything below ``dir``.

        Args:
            file_path: Repository-relative path of the changed file.

        Returns:
            False outside auto mode, otherwise whether the file matches.

        """
        if not self.is_auto_mode:
            return False

        path = file_path.replace("\\", "/")
        base = PurePosixPath(path).name

        for pattern in self.triggers.auto.exclude_files:
            pattern = pattern.replace("\\", "/")
            if fnmatch.fnmatchcase(path, pattern) or fnmatch.fnmatchcase(base, pattern):
                return False
            if pattern.endswith("/*") and path.startswith(pattern[:-1]):
                return False
            if path.startswith(pattern + "/"):
                return False

        for pattern in self.triggers.auto.file_patterns:
            pattern = pattern.replace("\\", "/")
            if fnmatch.fnmatchcase(base, pattern) or fnmatch.fnmatchcase(path, pattern):
                return True
            if "**" in pattern and pattern.endswith("*.go") and path.endswith(".go"):
                prefix = pattern.removesuffix("**/*.go")
                if not prefix or path.startswith(prefix):
                    return True

        return False
