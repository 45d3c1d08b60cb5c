from delayline.config.settings import (
    ConfigError,
    LoggingConfig,
    SchedulerConfig,
    Settings,
    get_settings,
    load_settings,
)

__all__ = [
    "ConfigError",
    "LoggingConfig",
    "SchedulerConfig",
    "Settings",
    "get_settings",
    "load_settings",
]
