"""Shared fakes: an in-memory stand-in for the KMS handle."""

from __future__ import annotations

from typing import Any

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from kms_sshca.errors import RemoteServiceError

CA_KEY_ARN = "arn:aws:kms:us-east-1:111122223333:key/ca-1"


class FakeKMS:
    """Holds an RSA private key and answers GetPublicKey / Sign like KMS."""

    def __init__(self, key_id: str = CA_KEY_ARN, private_key: Any = None) -> None:
        self.key_id = key_id
        self.private_key = private_key or rsa.generate_private_key(
            public_exponent=65537, key_size=2048
        )
        self.get_public_key_calls: list[str] = []
        self.sign_calls: list[tuple[str, bytes, str]] = []
        self.public_key_response: dict[str, Any] | None = None
        self.sign_error: Exception | None = None
        self.sign_response: dict[str, Any] | None = None
        self.closed = False

    def der(self) -> bytes:
        return self.private_key.public_key().public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    def get_public_key(self, key_id: str) -> dict[str, Any]:
        self.get_public_key_calls.append(key_id)
        if self.public_key_response is not None:
            return self.public_key_response
        return {
            "KeyId": self.key_id,
            "PublicKey": self.der(),
            "KeySpec": "RSA_2048",
            "SigningAlgorithms": ["RSASSA_PKCS1_V1_5_SHA_512"],
        }

    def sign(self, key_id: str, message: bytes, signing_algorithm: str) -> dict[str, Any]:
        self.sign_calls.append((key_id, message, signing_algorithm))
        if self.sign_error is not None:
            raise self.sign_error
        if self.sign_response is not None:
            return self.sign_response
        signature = self.private_key.sign(message, padding.PKCS1v15(), hashes.SHA512())
        return {
            "KeyId": key_id,
            "Signature": signature,
            "SigningAlgorithm": signing_algorithm,
        }

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> FakeKMS:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


@pytest.fixture
def fake_kms() -> FakeKMS:
    return FakeKMS()


@pytest.fixture
def failing_kms() -> FakeKMS:
    kms = FakeKMS()
    kms.sign_error = RemoteServiceError("KMS sign failed: AccessDeniedException")
    return kms
