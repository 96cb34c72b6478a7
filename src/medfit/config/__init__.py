"""Convenience exports for the configuration package."""

from .constants import *  # noqa: F401,F403
from .loader import ConfigurationError, load_config, save_config
from .logging_conf import JSONFormatter, configure_logging, run_context
from .schemas import BootstrapConfig, BootstrapMethod, coerce_config
from .settings import ENV_PREFIX, Settings, get_settings, reset_settings_cache

__all__ = [
    "JSONFormatter",
    "configure_logging",
    "run_context",
    "ENV_PREFIX",
    "Settings",
    "get_settings",
    "reset_settings_cache",
    # Schema classes
    "BootstrapConfig",
    "BootstrapMethod",
    "coerce_config",
    # Loader functions
    "load_config",
    "save_config",
    "ConfigurationError",
]
