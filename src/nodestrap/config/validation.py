"""Configuration validation for nodestrap.

Warns on unknown keys (with typo suggestions) and reports known keys
whose values have the wrong type.
"""

from __future__ import annotations

from dataclasses import dataclass
from difflib import get_close_matches
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from nodestrap.core.logging import get_logger

LOGGER = get_logger(__name__)


class ValidationSeverity(Enum):
    """Severity level for validation issues."""

    ERROR = "error"  # Config will fail at runtime
    WARNING = "warning"  # Likely mistake but config usable


@dataclass
class ConfigValidationIssue:
    """A validation issue for configuration with severity."""

    message: str
    source: str
    severity: ValidationSeverity
    key: Optional[str] = None
    suggestion: Optional[str] = None


_STR = (str,)
_NUMBER = (int, float)
_BOOL = (bool,)
_LIST = (list,)
_DICT = (dict,)

# Expected type per key, nested by section
SCHEMA: Dict[str, Any] = {
    "manifest_url": _STR,
    "manifest_timeout": _NUMBER,
    "max_workers": (int,),
    "runtime": {
        "binary": _STR,
        "version_flag": _STR,
    },
    "package_manager": {
        "binary": _STR,
        "install_args": _LIST,
        "update_args": _LIST,
    },
    "dependencies": {
        "strip_suffixes": _LIST,
        "binaries": _DICT,
        "version_flag": _STR,
    },
    "service": {
        "launcher": _STR,
        "launcher_args": _LIST,
        "server_binary": _STR,
        "url_template": _STR,
    },
    "timing": {
        "reload_delay": _NUMBER,
        "settle_delay": _NUMBER,
    },
    "logging": {
        "to_file": _BOOL,
        "file": _STR,
    },
}


def validate_config(data: Dict[str, Any], source: str) -> List[ConfigValidationIssue]:
    """Validate a configuration dictionary.

    Does not raise - returns the issues found. Warnings are logged.

    Args:
        data: Config dictionary to validate.
        source: Source file path for messages.

    Returns:
        List of validation issues.
    """
    issues: List[ConfigValidationIssue] = []

    if not isinstance(data, dict):
        issues.append(ConfigValidationIssue(
            message=f"Config must be a mapping, got {type(data).__name__}",
            source=source,
            severity=ValidationSeverity.ERROR,
        ))
        return issues

    _validate_section(data, SCHEMA, source, prefix="", issues=issues)
    return issues


def _validate_section(
    data: Dict[str, Any],
    schema: Dict[str, Any],
    source: str,
    prefix: str,
    issues: List[ConfigValidationIssue],
) -> None:
    valid_keys = set(schema.keys())

    for key, value in data.items():
        dotted = f"{prefix}{key}"

        if key not in schema:
            issue = ConfigValidationIssue(
                message=f"Unknown key '{dotted}'",
                source=source,
                severity=ValidationSeverity.WARNING,
                key=dotted,
                suggestion=_suggest_key(key, valid_keys),
            )
            issues.append(issue)
            _log_warning(issue)
            continue

        expected = schema[key]
        if isinstance(expected, dict):
            if not isinstance(value, dict):
                issues.append(ConfigValidationIssue(
                    message=f"'{dotted}' must be a mapping, got {type(value).__name__}",
                    source=source,
                    severity=ValidationSeverity.ERROR,
                    key=dotted,
                ))
                continue
            _validate_section(value, expected, source, prefix=f"{dotted}.", issues=issues)
        elif not _matches(value, expected):
            issues.append(ConfigValidationIssue(
                message=f"'{dotted}' must be {_describe(expected)}, got {type(value).__name__}",
                source=source,
                severity=ValidationSeverity.ERROR,
                key=dotted,
            ))


def _matches(value: Any, expected: Tuple[type, ...]) -> bool:
    # bool is an int subclass; only accept it where a bool is expected
    if isinstance(value, bool) and bool not in expected:
        return False
    return isinstance(value, expected)


def _describe(expected: Tuple[type, ...]) -> str:
    if expected == _NUMBER:
        return "a number"
    names = {str: "a string", int: "an integer", bool: "a boolean", list: "a list", dict: "a mapping"}
    return " or ".join(names.get(t, t.__name__) for t in expected)


def has_errors(issues: List[ConfigValidationIssue]) -> bool:
    return any(issue.severity == ValidationSeverity.ERROR for issue in issues)


def _suggest_key(invalid_key: str, valid_keys: Set[str]) -> Optional[str]:
    """Suggest a valid key for a potential typo.

    Args:
        invalid_key: The invalid key entered.
        valid_keys: Set of valid keys.

    Returns:
        Closest matching valid key, or None if no good match.
    """
    matches = get_close_matches(invalid_key, list(valid_keys), n=1, cutoff=0.6)
    return matches[0] if matches else None


def _log_warning(issue: ConfigValidationIssue) -> None:
    """Log a validation warning."""
    msg = f"{issue.message} in {issue.source}"
    if issue.suggestion:
        msg += f" (did you mean '{issue.suggestion}'?)"
    LOGGER.warning(msg)
