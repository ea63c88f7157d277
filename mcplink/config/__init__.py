"""Configuration module for mcplink."""

from mcplink.config.access import clear_config_cache, get_config
from mcplink.config.loader import get_config_path, load_config, save_config
from mcplink.config.schema import TransportConfig

__all__ = [
    "TransportConfig",
    "clear_config_cache",
    "get_config",
    "get_config_path",
    "load_config",
    "save_config",
]
