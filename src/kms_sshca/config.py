"""Settings for the KMS-backed SSH CA, read from the environment and ~/.config/sshca/env."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

from kms_sshca.errors import ConfigurationError


class SSHCASettings(BaseSettings):
    """All env vars for the KMS-backed SSH CA."""

    # Principal and key id written into issued certificates ($USER fallback)
    user: str = Field(default="", validation_alias=AliasChoices("SSHCA_USER", "USER"))

    # KMS key id, alias or ARN of the CA key
    key_id: str = ""

    # Public key to certify; defaults to ~/.ssh/id_ed25519.pub
    key_path: str = ""

    # KMS client overrides; empty means botocore's own resolution
    aws_region: str = ""
    aws_profile: str = ""
    kms_endpoint_url: str = ""

    model_config = {"env_prefix": "SSHCA_", "extra": "ignore"}

    def resolve_user(self) -> str:
        if not self.user:
            raise ConfigurationError("$SSHCA_USER and $USER not set")
        return self.user

    def require_key_id(self) -> str:
        if not self.key_id:
            raise ConfigurationError("$SSHCA_KEY_ID not set")
        return self.key_id

    def resolve_key_path(self) -> Path:
        """Explicit ``SSHCA_KEY_PATH`` or ``$HOME/.ssh/id_ed25519.pub``."""
        if self.key_path:
            return Path(self.key_path)
        home = os.environ.get("HOME")
        if not home:
            raise ConfigurationError("$SSHCA_KEY_PATH and $HOME not set")
        return Path(home) / ".ssh" / "id_ed25519.pub"


def env_file_path() -> Path | None:
    """``$HOME/.config/sshca/env``, or None without a home directory."""
    home = os.environ.get("HOME")
    if not home:
        return None
    return Path(home) / ".config" / "sshca" / "env"


def load_settings() -> SSHCASettings:
    """Load the env file (if any) into the process environment, then read settings.

    Variables already set in the environment win over the file, so AWS
    credentials in the file also reach botocore.
    """
    path = env_file_path()
    if path is not None and path.is_file():
        load_dotenv(path, override=False)
    return SSHCASettings()
