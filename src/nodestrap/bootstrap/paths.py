"""Path management for the nodestrap home directory.

Handles the ~/.nodestrap directory structure and path resolution.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

# Default directory name under user home
DEFAULT_HOME_DIR_NAME = ".nodestrap"

# Environment variable to override home directory
NODESTRAP_HOME_ENV = "NODESTRAP_HOME"


def get_nodestrap_home() -> Path:
    """Get the nodestrap home directory path.

    Resolution order:
    1. NODESTRAP_HOME environment variable (if set)
    2. ~/.nodestrap (default)

    Returns:
        Path to the nodestrap home directory.
    """
    env_home = os.environ.get(NODESTRAP_HOME_ENV)
    if env_home:
        return Path(env_home)
    return Path.home() / DEFAULT_HOME_DIR_NAME


@dataclass
class NodestrapPaths:
    """Manages paths within the nodestrap home directory.

    Directory structure:
        ~/.nodestrap/
            config/
                config.yml      - Global configuration
            logs/
                nodestrap.log   - Optional log file
    """

    home: Path

    _CONFIG_DIR: ClassVar[str] = "config"
    _LOGS_DIR: ClassVar[str] = "logs"
    _CONFIG_FILE: ClassVar[str] = "config.yml"
    _LOG_FILE: ClassVar[str] = "nodestrap.log"

    @classmethod
    def default(cls) -> "NodestrapPaths":
        """Create paths from the default nodestrap home."""
        return cls(get_nodestrap_home())

    @property
    def config_dir(self) -> Path:
        """Directory for configuration files."""
        return self.home / self._CONFIG_DIR

    @property
    def logs_dir(self) -> Path:
        """Directory for log files."""
        return self.home / self._LOGS_DIR

    @property
    def config_file(self) -> Path:
        return self.config_dir / self._CONFIG_FILE

    @property
    def log_file(self) -> Path:
        return self.logs_dir / self._LOG_FILE

    def ensure_directories(self) -> None:
        """Create all required directories if they don't exist."""
        for directory in (self.home, self.config_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)
