"""Configuration loading for nodestrap."""

from nodestrap.config.loader import ConfigError, load_config
from nodestrap.config.models import NodestrapConfig

__all__ = ["ConfigError", "load_config", "NodestrapConfig"]
