from pulsekit.config.settings import (
    ConfigError,
    LoggingConfig,
    MemoryConfig,
    QueueConfig,
    RateLimitConfig,
    Settings,
    StateConfig,
    get_settings,
    load_settings,
    reset_settings,
)

__all__ = [
    "ConfigError",
    "LoggingConfig",
    "MemoryConfig",
    "QueueConfig",
    "RateLimitConfig",
    "Settings",
    "StateConfig",
    "get_settings",
    "load_settings",
    "reset_settings",
]
