"""Tests for nodestrap.config.validation."""

from __future__ import annotations

from nodestrap.config.validation import (
    ValidationSeverity,
    _suggest_key,
    has_errors,
    validate_config,
)


class TestSuggestKey:
    """Tests for _suggest_key function."""

    def test_suggests_typo_fix(self) -> None:
        result = _suggest_key("manifest_ulr", {"manifest_url", "max_workers", "runtime"})
        assert result == "manifest_url"

    def test_returns_none_for_no_match(self) -> None:
        assert _suggest_key("xyz", {"runtime", "service"}) is None

    def test_handles_empty_valid_keys(self) -> None:
        assert _suggest_key("test", set()) is None


class TestValidateConfig:
    """Tests for validate_config function."""

    def test_valid_config_returns_no_issues(self) -> None:
        data = {
            "manifest_url": "https://registry.example/marker/latest",
            "manifest_timeout": 10,
            "max_workers": 4,
            "runtime": {"binary": "node"},
            "package_manager": {"install_args": ["install", "-g"]},
            "dependencies": {"binaries": {"@guijs/server-core": "guijs-server"}},
            "service": {"url_template": "http://127.0.0.1:{port}"},
            "timing": {"settle_delay": 0.5},
            "logging": {"to_file": True},
        }
        assert validate_config(data, source="test.yml") == []

    def test_warns_on_unknown_top_level_key(self) -> None:
        issues = validate_config({"unknown_key": "value"}, source="test.yml")

        assert len(issues) == 1
        assert issues[0].severity == ValidationSeverity.WARNING
        assert issues[0].key == "unknown_key"
        assert not has_errors(issues)

    def test_unknown_nested_key_with_suggestion(self) -> None:
        issues = validate_config({"service": {"launchr": "x"}}, source="test.yml")

        assert len(issues) == 1
        assert issues[0].key == "service.launchr"
        assert issues[0].suggestion == "launcher"

    def test_wrong_type_is_error(self) -> None:
        issues = validate_config({"timing": {"reload_delay": "fast"}}, source="test.yml")

        assert has_errors(issues)
        assert issues[0].key == "timing.reload_delay"
        assert "a number" in issues[0].message

    def test_bool_is_not_a_number(self) -> None:
        issues = validate_config({"max_workers": True}, source="test.yml")
        assert has_errors(issues)

    def test_section_must_be_mapping(self) -> None:
        issues = validate_config({"runtime": "node"}, source="test.yml")

        assert has_errors(issues)
        assert "must be a mapping" in issues[0].message

    def test_non_mapping_document(self) -> None:
        issues = validate_config(["a"], source="test.yml")  # type: ignore[arg-type]
        assert has_errors(issues)
        assert issues[0].source == "test.yml"
