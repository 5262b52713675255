from unittest.mock import Mock

import pytest

from vault_identity.models.account import UserProfile
from vault_identity.services.settings_store import SettingsStore, compile_key_pattern


@pytest.fixture
def profile() -> UserProfile:
    return UserProfile()


@pytest.fixture
def settings(profile: UserProfile) -> SettingsStore:
    return SettingsStore(profile)


def test_set_and_get(settings: SettingsStore) -> None:
    settings.set("editor.font", "mono")

    assert settings.get("editor.font") == "mono"
    assert settings.get("missing") is None
    assert settings.get("missing", "fallback") == "fallback"
    assert "editor.font" in settings
    assert len(settings) == 1


def test_set_replaces_mapping(profile: UserProfile, settings: SettingsStore) -> None:
    settings.set("a", {"nested": [1]})
    before = profile.settings

    settings.set("b", 2)

    assert profile.settings is not before
    assert before == {"a": {"nested": [1]}}
    assert profile.settings == {"a": {"nested": [1]}, "b": 2}


def test_returned_mapping_is_a_copy(settings: SettingsStore) -> None:
    settings.set("a", {"nested": [1]})

    snapshot = settings.all()
    snapshot["a"]["nested"].append(2)

    assert settings.get("a") == {"nested": [1]}


def test_set_emits_settings_change(profile: UserProfile, settings: SettingsStore) -> None:
    handler = Mock()
    profile.events.on("change:settings", handler)

    settings.set("a", 1)
    settings.set("a", 1)

    handler.assert_called_once_with(profile)


def test_delete_star_removes_everything(settings: SettingsStore) -> None:
    settings.set("a.b", 1)
    settings.set("x", 2)

    removed = settings.delete("*")

    assert sorted(removed) == ["a.b", "x"]
    assert len(settings) == 0


def test_delete_prefix_pattern(settings: SettingsStore) -> None:
    for key in ("a.b", "a.c", "x"):
        settings.set(key, key)

    removed = settings.delete("a.*")

    assert sorted(removed) == ["a.b", "a.c"]
    assert settings.all() == {"x": "x"}


def test_delete_treats_dot_literally(settings: SettingsStore) -> None:
    settings.set("a.b", 1)
    settings.set("axb", 2)

    assert settings.delete("a.b") == ["a.b"]
    assert settings.all() == {"axb": 2}


def test_delete_exact_key_is_anchored(settings: SettingsStore) -> None:
    settings.set("theme", 1)
    settings.set("theme.dark", 2)
    settings.set("old.theme", 3)

    assert settings.delete("theme") == ["theme"]
    assert sorted(settings.all()) == ["old.theme", "theme.dark"]


@pytest.mark.parametrize("pattern", ["", None])
def test_delete_empty_pattern_is_noop(
    profile: UserProfile, settings: SettingsStore, pattern: str | None
) -> None:
    settings.set("a", 1)
    handler = Mock()
    profile.events.on("change", handler)

    assert settings.delete(pattern) == []
    assert settings.all() == {"a": 1}
    handler.assert_not_called()


def test_delete_without_match_does_not_emit(profile: UserProfile, settings: SettingsStore) -> None:
    settings.set("a", 1)
    handler = Mock()
    profile.events.on("change:settings", handler)

    assert settings.delete("zz*") == []
    handler.assert_not_called()


@pytest.mark.parametrize(
    ("pattern", "key", "matches"),
    [
        ("*", "", True),
        ("*.font", "editor.font", True),
        ("*.font", "editor.fonts", False),
        ("a*c", "abbbc", True),
        ("a*c", "abbbcd", False),
        ("a+b", "a+b", True),
        ("a+b", "aab", False),
        ("line*", "line\nbreak", True),
    ],
)
def test_compile_key_pattern(pattern: str, key: str, matches: bool) -> None:
    assert bool(compile_key_pattern(pattern).match(key)) is matches
