"""Core."""

from .config import (
    PipehubConfig,
    clear_config,
    flatten_config,
    get_config,
    load_config_from_file,
)
from .logging import configure_logging

__all__ = [
    "PipehubConfig",
    "clear_config",
    "configure_logging",
    "flatten_config",
    "get_config",
    "load_config_from_file",
]
