"""Error taxonomy for certificate issuance. Every error is terminal for a run."""

from __future__ import annotations


class SSHCAError(Exception):
    """Base class for all issuance failures."""


class ConfigurationError(SSHCAError):
    """Raised when a required identifying input cannot be resolved."""


class RemoteServiceError(SSHCAError):
    """Raised on KMS transport failures or malformed KMS responses."""


class UnsupportedAlgorithm(SSHCAError):
    """Raised when a key uses an algorithm that is not modeled."""


class EncodingError(SSHCAError):
    """Raised on malformed DER or SSH wire data."""


class ClockError(SSHCAError):
    """Raised when the current time is not a representable timestamp."""


class SigningFailure(SSHCAError):
    """Raised when the remote sign call fails or returns no signature."""
