"""Tests for environment-driven settings.

These tests verify that load_settings() validates ACTIVITY_FILE_FILTER and the
numeric limits once, and that get_error_policy() falls back to "skip".
"""

from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest

from services.errors import ConfigurationError
from services.settings import DEFAULT_FILE_FILTER, get_error_policy, load_settings

ENV_VARS = [
    "REPOSITORY_DIRECTORY",
    "ACTIVITY_FILE_FILTER",
    "ACTIVITY_WINDOW",
    "ACTIVITY_COMMITS_PER_REPOSITORY",
    "ACTIVITY_ERROR_POLICY",
    "LOG_LEVEL",
    "CONTEXT_PATH",
    "PORT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = load_settings()

    assert settings.repository_directory == Path("repositories")
    assert settings.file_filter.pattern == DEFAULT_FILE_FILTER
    assert settings.activity_window == 20
    assert settings.commits_per_repository == 20
    assert settings.error_policy == "skip"
    assert settings.log_level == "INFO"
    assert settings.context_path == ""
    assert settings.port == 3000


@pytest.mark.parametrize(
    "path, matches",
    [
        ("src/a.ts", True),
        ("app/component.tsx", True),
        ("pkg/module.py", True),
        ("README.md", False),
        ("package.json", False),
        ("src/a.ts.orig", False),
    ],
)
def test_default_file_filter(path, matches):
    assert bool(load_settings().file_filter.search(path)) is matches


def test_overrides(monkeypatch):
    monkeypatch.setenv("REPOSITORY_DIRECTORY", "/srv/repos")
    monkeypatch.setenv("ACTIVITY_FILE_FILTER", r"\.md$")
    monkeypatch.setenv("ACTIVITY_WINDOW", "5")
    monkeypatch.setenv("ACTIVITY_COMMITS_PER_REPOSITORY", "7")
    monkeypatch.setenv("ACTIVITY_ERROR_POLICY", "FAIL")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("CONTEXT_PATH", "api/")
    monkeypatch.setenv("PORT", "8080")

    settings = load_settings()

    assert settings.repository_directory == Path("/srv/repos")
    assert settings.file_filter.search("README.md")
    assert settings.activity_window == 5
    assert settings.commits_per_repository == 7
    assert settings.error_policy == "fail"
    assert settings.log_level == "DEBUG"
    assert settings.context_path == "/api"
    assert settings.port == 8080


def test_invalid_file_filter_fails_fast(monkeypatch):
    monkeypatch.setenv("ACTIVITY_FILE_FILTER", "([unclosed")

    with pytest.raises(ConfigurationError, match="Invalid ACTIVITY_FILE_FILTER"):
        load_settings()


@pytest.mark.parametrize("value", ["abc", "0", "-3", "1.5"])
def test_invalid_window_fails_fast(monkeypatch, value):
    monkeypatch.setenv("ACTIVITY_WINDOW", value)

    with pytest.raises(ConfigurationError, match="ACTIVITY_WINDOW"):
        load_settings()


def test_invalid_error_policy_returns_skip(monkeypatch):
    """Test that invalid value (e.g., 'abc') returns 'skip' without raising exception."""
    monkeypatch.setenv("ACTIVITY_ERROR_POLICY", "abc")
    assert get_error_policy() == "skip"


def test_whitespace_error_policy_returns_skip(monkeypatch):
    """Test that whitespace-only value returns 'skip'."""
    monkeypatch.setenv("ACTIVITY_ERROR_POLICY", "   ")
    assert get_error_policy() == "skip"


def test_settings_are_immutable():
    settings = load_settings()

    with pytest.raises(FrozenInstanceError):
        settings.activity_window = 1
