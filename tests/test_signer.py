"""Tests for the KMS-backed signing callback."""

from __future__ import annotations

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from kms_sshca.errors import RemoteServiceError, SigningFailure
from kms_sshca.resolver import resolve
from kms_sshca.signer import RemoteSigner
from kms_sshca.wire import decode_signature

from conftest import CA_KEY_ARN, FakeKMS


def test_sign_returns_envelope(fake_kms: FakeKMS):
    ca_key = resolve(fake_kms, "ca-1")
    envelope = RemoteSigner(fake_kms, ca_key).sign(b"certificate body")

    name, raw = decode_signature(envelope)
    assert name == "rsa-sha2-512"
    fake_kms.private_key.public_key().verify(
        raw, b"certificate body", padding.PKCS1v15(), hashes.SHA512()
    )


def test_sign_uses_resolved_key_id_and_algorithm(fake_kms: FakeKMS):
    ca_key = resolve(fake_kms, "alias/sshca")
    RemoteSigner(fake_kms, ca_key).sign(b"data")
    assert fake_kms.sign_calls == [(CA_KEY_ARN, b"data", "RSASSA_PKCS1_V1_5_SHA_512")]


def test_remote_error_becomes_signing_failure(failing_kms: FakeKMS):
    ca_key = resolve(failing_kms, "ca-1")
    with pytest.raises(SigningFailure, match="AccessDenied") as exc_info:
        RemoteSigner(failing_kms, ca_key).sign(b"data")
    assert isinstance(exc_info.value.__cause__, RemoteServiceError)
    assert len(failing_kms.sign_calls) == 1


def test_missing_signature_is_failure(fake_kms: FakeKMS):
    ca_key = resolve(fake_kms, "ca-1")
    fake_kms.sign_response = {"KeyId": CA_KEY_ARN}
    with pytest.raises(SigningFailure, match="Signature"):
        RemoteSigner(fake_kms, ca_key).sign(b"data")
