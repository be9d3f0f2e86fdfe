"""OpenSSH certificate construction (PROTOCOL.certkeys) with a remote signer."""

from __future__ import annotations

import base64
import enum
import logging
import secrets
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from cryptography.exceptions import UnsupportedAlgorithm as CryptoUnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from kms_sshca.errors import ClockError, EncodingError, UnsupportedAlgorithm
from kms_sshca.resolver import CAKey
from kms_sshca.wire import (
    pack_name_list,
    pack_string,
    pack_uint32,
    pack_uint64,
    read_string,
)

logger = logging.getLogger(__name__)

CERT_VALIDITY_SECONDS = 86400

STANDARD_EXTENSIONS: tuple[str, ...] = (
    "permit-X11-forwarding",
    "permit-agent-forwarding",
    "permit-port-forwarding",
    "permit-pty",
    "permit-user-rc",
)

SUBJECT_KEY_TYPES = frozenset({
    "ssh-ed25519",
    "ssh-rsa",
    "ecdsa-sha2-nistp256",
    "ecdsa-sha2-nistp384",
    "ecdsa-sha2-nistp521",
})

_UINT64_MAX = 2**64 - 1


class CertType(enum.IntEnum):
    USER = 1
    HOST = 2


@dataclass(frozen=True)
class SubjectKey:
    """The public key being certified, as read from an OpenSSH ``.pub`` line."""

    key_type: str
    blob: bytes
    comment: str = ""

    @classmethod
    def from_openssh(cls, text: str) -> SubjectKey:
        """Parse ``<keytype> <base64> [comment]``.

        Raises ``UnsupportedAlgorithm`` for key types that cannot be certified
        and ``EncodingError`` for anything malformed.
        """
        parts = text.strip().split(None, 2)
        if len(parts) < 2:
            raise EncodingError("public key line needs a key type and base64 data")
        key_type, encoded = parts[0], parts[1]
        comment = parts[2] if len(parts) > 2 else ""

        if key_type not in SUBJECT_KEY_TYPES:
            raise UnsupportedAlgorithm(f"cannot certify key type {key_type!r}")
        try:
            blob = base64.b64decode(encoded, validate=True)
        except ValueError as e:
            raise EncodingError(f"public key is not valid base64: {e}") from e

        inner_type, _ = read_string(blob)
        if inner_type != key_type.encode("ascii"):
            raise EncodingError(
                f"key type mismatch: line says {key_type}, blob says {inner_type!r}"
            )
        try:
            serialization.load_ssh_public_key(f"{key_type} {encoded}".encode("ascii"))
        except (ValueError, CryptoUnsupportedAlgorithm) as e:
            raise EncodingError(f"malformed {key_type} public key: {e}") from e

        return cls(key_type=key_type, blob=blob, comment=comment)

    @classmethod
    def from_path(cls, path: str | Path) -> SubjectKey:
        data = Path(path).read_bytes()
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EncodingError(f"public key file {path} is not UTF-8: {e}") from e
        return cls.from_openssh(text)

    @property
    def cert_key_type(self) -> str:
        return f"{self.key_type}-cert-v01@openssh.com"

    @property
    def key_fields(self) -> bytes:
        """Key-specific fields: the blob without its leading key type string."""
        _, offset = read_string(self.blob)
        return self.blob[offset:]


def _pack_extensions(names: tuple[str, ...]) -> bytes:
    return pack_string(
        b"".join(pack_string(name) + pack_string(b"") for name in sorted(names))
    )


@dataclass(frozen=True)
class CertificateDraft:
    """Every certificate field except the signature."""

    cert_type: CertType
    key_id: str
    principals: tuple[str, ...]
    valid_after: int
    valid_before: int
    extensions: tuple[str, ...]
    subject_key: SubjectKey
    signature_key: bytes
    nonce: bytes
    serial: int

    def to_be_signed(self) -> bytes:
        """Certificate bytes from the key type up to and including the signature key."""
        return b"".join((
            pack_string(self.subject_key.cert_key_type),
            pack_string(self.nonce),
            self.subject_key.key_fields,
            pack_uint64(self.serial),
            pack_uint32(int(self.cert_type)),
            pack_string(self.key_id),
            pack_name_list(self.principals),
            pack_uint64(self.valid_after),
            pack_uint64(self.valid_before),
            pack_string(b""),  # critical options
            _pack_extensions(self.extensions),
            pack_string(b""),  # reserved
            pack_string(self.signature_key),
        ))


@dataclass(frozen=True)
class SSHCertificate(CertificateDraft):
    """A signed certificate. Never mutated after construction."""

    signature: bytes

    @property
    def key_type(self) -> str:
        return self.subject_key.cert_key_type

    def serialize(self) -> bytes:
        return self.to_be_signed() + pack_string(self.signature)

    def __str__(self) -> str:
        encoded = base64.b64encode(self.serialize()).decode("ascii")
        return f"{self.key_type} {encoded} {self.key_id}"


def now_timestamp() -> int:
    """Current wall-clock time as a non-negative unix timestamp."""
    now = int(datetime.now(timezone.utc).timestamp())
    if now < 0:
        raise ClockError("it is not yet 1970")
    return now


def build_and_sign(
    subject_key: SubjectKey,
    cert_type: CertType,
    ca_key: CAKey,
    principal: str,
    now: int,
    signer: Callable[[bytes], bytes],
) -> SSHCertificate:
    """Build a certificate for *principal* valid for 24 hours from *now* and sign it.

    *signer* is called exactly once with the to-be-signed bytes and must return
    an SSH signature envelope. Any exception it raises propagates and no
    certificate is produced.
    """
    if isinstance(now, bool) or not isinstance(now, int) or now < 0:
        raise ClockError(f"not a representable timestamp: {now!r}")
    if now + CERT_VALIDITY_SECONDS > _UINT64_MAX:
        raise ClockError(f"timestamp out of range: {now}")

    draft = CertificateDraft(
        cert_type=cert_type,
        key_id=principal,
        principals=(principal,),
        valid_after=now,
        valid_before=now + CERT_VALIDITY_SECONDS,
        extensions=STANDARD_EXTENSIONS,
        subject_key=subject_key,
        signature_key=ca_key.public_blob,
        nonce=secrets.token_bytes(32),
        serial=secrets.randbits(64),
    )
    signature = signer(draft.to_be_signed())

    logger.info(
        "Issued %s certificate for %s (valid %d..%d)",
        cert_type.name.lower(), principal, draft.valid_after, draft.valid_before,
    )
    values = {f.name: getattr(draft, f.name) for f in fields(draft)}
    return SSHCertificate(**values, signature=signature)
