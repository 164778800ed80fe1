"""Config module exports."""

from rizz.config.loader import RizzSettings, load_config
from rizz.config.models import (
    DatabaseConfig,
    LoggingConfig,
    LogOutputConfig,
    RizzConfig,
)

__all__ = [
    "load_config",
    "RizzConfig",
    "RizzSettings",
    "DatabaseConfig",
    "LoggingConfig",
    "LogOutputConfig",
]
