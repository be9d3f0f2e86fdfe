"""Tests for settings loading and fallbacks."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from kms_sshca.config import SSHCASettings, env_file_path, load_settings
from kms_sshca.errors import ConfigurationError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path: Path):
    for name in (
        "SSHCA_USER", "USER", "SSHCA_KEY_ID", "SSHCA_KEY_PATH",
        "SSHCA_AWS_REGION", "SSHCA_AWS_PROFILE", "SSHCA_KMS_ENDPOINT_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))


def test_sshca_user_wins_over_user(monkeypatch):
    monkeypatch.setenv("USER", "login")
    monkeypatch.setenv("SSHCA_USER", "alice")
    assert SSHCASettings().resolve_user() == "alice"


def test_user_fallback(monkeypatch):
    monkeypatch.setenv("USER", "login")
    assert SSHCASettings().resolve_user() == "login"


def test_no_user_raises():
    with pytest.raises(ConfigurationError, match="USER"):
        SSHCASettings().resolve_user()


def test_key_id_required(monkeypatch):
    with pytest.raises(ConfigurationError, match="SSHCA_KEY_ID"):
        SSHCASettings().require_key_id()
    monkeypatch.setenv("SSHCA_KEY_ID", "alias/sshca")
    assert SSHCASettings().require_key_id() == "alias/sshca"


def test_default_key_path(tmp_path: Path):
    assert SSHCASettings().resolve_key_path() == tmp_path / ".ssh" / "id_ed25519.pub"


def test_explicit_key_path(monkeypatch):
    monkeypatch.setenv("SSHCA_KEY_PATH", "/keys/id_rsa.pub")
    assert SSHCASettings().resolve_key_path() == Path("/keys/id_rsa.pub")


def test_no_home_no_key_path(monkeypatch):
    monkeypatch.delenv("HOME")
    with pytest.raises(ConfigurationError, match="HOME"):
        SSHCASettings().resolve_key_path()
    assert env_file_path() is None


def test_env_file_loaded(monkeypatch, tmp_path: Path):
    env_file = tmp_path / ".config" / "sshca" / "env"
    env_file.parent.mkdir(parents=True)
    env_file.write_text("SSHCA_KEY_ID=from-file\nSSHCA_USER=file-user\n")
    monkeypatch.setenv("SSHCA_USER", "env-user")

    try:
        settings = load_settings()
    finally:
        os.environ.pop("SSHCA_KEY_ID", None)
    assert settings.key_id == "from-file"
    # Existing environment wins over the file
    assert settings.resolve_user() == "env-user"


def test_missing_env_file_is_fine(monkeypatch):
    monkeypatch.setenv("SSHCA_KEY_ID", "ca-1")
    assert load_settings().key_id == "ca-1"
