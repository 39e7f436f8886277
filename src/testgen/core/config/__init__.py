"""Configuration models and loading for testgen."""

from testgen.core.config.loader import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_FILE,
    GLOBAL_CONFIG_FILE,
    find_config_file,
    load_config,
    load_config_from_file,
    save_config,
)
from testgen.core.config.models import (
    AnalysisConfig,
    AutoTriggerConfig,
    Config,
    FilteringConfig,
    ManualTriggerConfig,
    TriggersConfig,
)

__all__ = [
    "AnalysisConfig",
    "AutoTriggerConfig",
    "CONFIG_ENV_VAR",
    "Config",
    "DEFAULT_CONFIG_FILE",
    "FilteringConfig",
    "GLOBAL_CONFIG_FILE",
    "ManualTriggerConfig",
    "TriggersConfig",
    "find_config_file",
    "load_config",
    "load_config_from_file",
    "save_config",
]
