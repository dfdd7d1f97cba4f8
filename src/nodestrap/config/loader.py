"""Configuration file loading and merging.

Handles loading configuration from YAML files with:
- Global config (~/.nodestrap/config/config.yml)
- Custom config file (--config)
- Environment variable expansion (${VAR})
- Config merging with proper precedence
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from nodestrap.bootstrap.paths import NodestrapPaths
from nodestrap.config.models import (
    DependencyConfig,
    LoggingConfig,
    NodestrapConfig,
    PackageManagerConfig,
    RuntimeConfig,
    ServiceConfig,
    TimingConfig,
)
from nodestrap.config.validation import has_errors, validate_config
from nodestrap.core.logging import get_logger

LOGGER = get_logger(__name__)

# Environment variable pattern: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


class ConfigError(Exception):
    """Configuration loading or parsing error."""

    pass


def load_config(
    cli_config_path: Optional[Path] = None,
    cli_overrides: Optional[Dict[str, Any]] = None,
    paths: Optional[NodestrapPaths] = None,
) -> NodestrapConfig:
    """Load configuration with proper precedence.

    Precedence (highest to lowest):
    1. CLI flags (cli_overrides)
    2. Custom config file (cli_config_path)
    3. Global config (~/.nodestrap/config/config.yml)
    4. Built-in defaults

    Args:
        cli_config_path: Optional path to custom config file (--config flag).
        cli_overrides: Dict of CLI flag overrides.
        paths: Home directory layout (default: NodestrapPaths.default()).

    Returns:
        Merged NodestrapConfig instance.

    Raises:
        ConfigError: If a config file is missing, unparsable or invalid.
    """
    paths = paths or NodestrapPaths.default()
    sources: List[str] = []
    merged: Dict[str, Any] = {}

    # Layer 1: Global config
    global_path = paths.config_file
    if global_path.exists():
        merged = merge_configs(merged, _load_layer(global_path))
        sources.append(f"global:{global_path}")
        LOGGER.debug(f"Loaded global config from {global_path}")

    # Layer 2: Custom config
    if cli_config_path:
        if not cli_config_path.exists():
            raise ConfigError(f"Config file not found: {cli_config_path}")
        merged = merge_configs(merged, _load_layer(cli_config_path))
        sources.append(f"custom:{cli_config_path}")
        LOGGER.debug(f"Loaded custom config from {cli_config_path}")

    # Layer 3: CLI overrides
    if cli_overrides:
        merged = merge_configs(merged, cli_overrides)
        sources.append("cli")
        LOGGER.debug("Applied CLI overrides")

    config = dict_to_config(merged)
    config._config_sources = sources

    LOGGER.debug(f"Config loaded from sources: {sources}")
    return config


def _load_layer(path: Path) -> Dict[str, Any]:
    try:
        data = load_yaml_file(path)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    issues = validate_config(data, source=str(path))
    if has_errors(issues):
        details = "; ".join(issue.message for issue in issues)
        raise ConfigError(f"Invalid configuration in {path}: {details}")
    return data


def load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load and parse a YAML config file.

    Performs environment variable expansion on string values.

    Args:
        path: Path to YAML file.

    Returns:
        Parsed dictionary.

    Raises:
        yaml.YAMLError: If YAML parsing fails.
        ConfigError: If the document is not a mapping.
    """
    with open(path, "r", encoding="utf-8") as f:
        content = f.read()

    data = yaml.safe_load(content)

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a YAML mapping, got {type(data).__name__}")

    return expand_env_vars(data)


def expand_env_vars(data: Any) -> Any:
    """Recursively expand environment variables in config values.

    Supports ${VAR} and ${VAR:-default} syntax.
    """
    if isinstance(data, dict):
        return {k: expand_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        return ENV_VAR_PATTERN.sub(_env_var_replacer, data)
    else:
        return data


def _env_var_replacer(match: re.Match[str]) -> str:
    """Replace environment variable reference with its value."""
    var_name = match.group(1)
    default_value = match.group(2)

    value = os.environ.get(var_name)
    if value is not None:
        return value
    if default_value is not None:
        return default_value

    LOGGER.warning(f"Environment variable ${var_name} is not set and has no default")
    return ""


def merge_configs(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two config dicts, with overlay taking precedence.

    Rules:
    - Scalar values: overlay replaces base
    - Lists: overlay replaces base (no merging)
    - Dicts: recursive merge
    """
    result = base.copy()

    for key, overlay_value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(overlay_value, dict):
            result[key] = merge_configs(result[key], overlay_value)
        else:
            result[key] = overlay_value

    return result


def dict_to_config(data: Dict[str, Any]) -> NodestrapConfig:
    """Convert a validated dict to a typed NodestrapConfig.

    Missing keys fall back to the dataclass defaults.
    """
    defaults = NodestrapConfig()

    runtime_data = data.get("runtime", {})
    runtime = RuntimeConfig(
        binary=runtime_data.get("binary", defaults.runtime.binary),
        version_flag=runtime_data.get("version_flag", defaults.runtime.version_flag),
    )

    pm_data = data.get("package_manager", {})
    package_manager = PackageManagerConfig(
        binary=pm_data.get("binary", defaults.package_manager.binary),
        install_args=[str(a) for a in pm_data.get("install_args", defaults.package_manager.install_args)],
        update_args=[str(a) for a in pm_data.get("update_args", defaults.package_manager.update_args)],
    )

    dep_data = data.get("dependencies", {})
    dependencies = DependencyConfig(
        strip_suffixes=[str(s) for s in dep_data.get("strip_suffixes", defaults.dependencies.strip_suffixes)],
        binaries={str(k): str(v) for k, v in dep_data.get("binaries", {}).items()},
        version_flag=dep_data.get("version_flag", defaults.dependencies.version_flag),
    )

    service_data = data.get("service", {})
    service = ServiceConfig(
        launcher=service_data.get("launcher", defaults.service.launcher),
        launcher_args=[str(a) for a in service_data.get("launcher_args", defaults.service.launcher_args)],
        server_binary=service_data.get("server_binary", defaults.service.server_binary),
        url_template=service_data.get("url_template", defaults.service.url_template),
    )

    timing_data = data.get("timing", {})
    timing = TimingConfig(
        reload_delay=float(timing_data.get("reload_delay", defaults.timing.reload_delay)),
        settle_delay=float(timing_data.get("settle_delay", defaults.timing.settle_delay)),
    )

    logging_data = data.get("logging", {})
    logging_config = LoggingConfig(
        to_file=logging_data.get("to_file", defaults.logging.to_file),
        file=logging_data.get("file", defaults.logging.file),
    )

    # The service launcher holds one worker for its whole lifetime
    max_workers = int(data.get("max_workers", defaults.max_workers))
    if max_workers < 2:
        raise ConfigError(f"'max_workers' must be at least 2, got {max_workers}")

    return NodestrapConfig(
        manifest_url=data.get("manifest_url", defaults.manifest_url),
        manifest_timeout=float(data.get("manifest_timeout", defaults.manifest_timeout)),
        max_workers=max_workers,
        runtime=runtime,
        package_manager=package_manager,
        dependencies=dependencies,
        service=service,
        timing=timing,
        logging=logging_config,
    )
