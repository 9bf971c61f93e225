"""Configuration module for icreactor."""

from icreactor.config.loader import load_config, get_config_path, save_config
from icreactor.config.schema import PollingConfig, ReactorConfig
from icreactor.config.access import get_config, clear_config_cache

__all__ = [
    "PollingConfig",
    "ReactorConfig",
    "load_config",
    "save_config",
    "get_config_path",
    "get_config",
    "clear_config_cache",
]
