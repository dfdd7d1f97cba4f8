"""Tests for core models."""

from __future__ import annotations

import json

import pytest

from nodestrap.core.models import (
    BootstrapState,
    Classification,
    DependencyStatus,
    Notification,
    RemoteManifest,
    StateEvent,
)


def test_manifest_from_registry_document() -> None:
    manifest = RemoteManifest.from_dict({
        "name": "guijs-version-marker",
        "custom": {"minNodeVersion": " 14.0.0 "},
        "devDependencies": {"@guijs/server-core": "^1.4.0"},
    })

    assert manifest.min_runtime_version == "14.0.0"
    assert manifest.required_dependencies == {"@guijs/server-core": "^1.4.0"}


@pytest.mark.parametrize(
    "document",
    [
        [],
        {},
        {"custom": "14"},
        {"custom": {"minNodeVersion": ""}},
        {"custom": {"minNodeVersion": 14}},
        {"custom": {"minNodeVersion": "14"}, "devDependencies": ["a"]},
        {"custom": {"minNodeVersion": "14"}, "devDependencies": {"a": 1}},
    ],
)
def test_manifest_rejects_bad_shapes(document) -> None:
    with pytest.raises(ValueError):
        RemoteManifest.from_dict(document)


def test_dependency_status_to_dict() -> None:
    status = DependencyStatus("a", "^1.0.0", None, Classification.NEEDS_INSTALL)

    assert status.to_dict() == {
        "name": "a",
        "requiredSpec": "^1.0.0",
        "installedVersion": None,
        "classification": "NeedsInstall",
    }


def test_state_event_json() -> None:
    event = StateEvent(Notification.NODE_WRONG_VERSION.value, "12.0.0|14.0.0")

    assert json.loads(event.to_json()) == {"name": "node-wrong-version", "payload": "12.0.0|14.0.0"}
    assert StateEvent.from_json(event.to_json()) == event
    assert StateEvent.from_json('{"name": "splashscreen"}') == StateEvent("splashscreen")


def test_state_values_are_stable_names() -> None:
    assert BootstrapState.AWAITING_UPDATE_DECISION.value == "AwaitingUpdateDecision"
    assert {n.value for n in Notification} >= {
        "splashscreen",
        "first-download",
        "update-available",
        "downloading-update",
        "node-not-found",
        "node-wrong-version",
    }
