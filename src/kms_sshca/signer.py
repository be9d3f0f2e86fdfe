"""Synchronous signing callback backed by KMS ``Sign``."""

from __future__ import annotations

import logging
from typing import Any

from kms_sshca.errors import RemoteServiceError, SigningFailure
from kms_sshca.resolver import CAKey
from kms_sshca.wire import encode_signature

logger = logging.getLogger(__name__)


class RemoteSigner:
    """Signs certificate bodies with the CA key held in KMS.

    Each ``sign`` call issues exactly one KMS request. Failures are not
    retried.
    """

    def __init__(self, client: Any, ca_key: CAKey) -> None:
        self._client = client
        self._ca_key = ca_key

    def sign(self, data: bytes) -> bytes:
        """Sign *data* and return the SSH signature envelope.

        Raises ``SigningFailure`` on any transport error, service rejection or
        response without a signature.
        """
        algorithm = self._ca_key.algorithm
        try:
            response = self._client.sign(
                self._ca_key.key_id, data, algorithm.signing_algorithm
            )
        except RemoteServiceError as e:
            raise SigningFailure(f"KMS sign request failed: {e}") from e

        signature = response.get("Signature")
        if not signature:
            raise SigningFailure("Sign response missing `Signature` field")

        logger.info("Signed %d bytes with %s", len(data), self._ca_key.key_id)
        return encode_signature(algorithm.signature_name, bytes(signature))
