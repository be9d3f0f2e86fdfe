"""CA public key resolution from KMS and conversion to SSH form."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, Callable

from cryptography.exceptions import UnsupportedAlgorithm as CryptoUnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from kms_sshca.errors import EncodingError, RemoteServiceError, UnsupportedAlgorithm
from kms_sshca.wire import pack_mpint, pack_string

logger = logging.getLogger(__name__)


def _rsa_blob(key: rsa.RSAPublicKey) -> bytes:
    numbers = key.public_numbers()
    return pack_string("ssh-rsa") + pack_mpint(numbers.e) + pack_mpint(numbers.n)


@dataclass(frozen=True)
class KeyAlgorithm:
    """One supported CA key algorithm.

    Binds the SSH key type, the encoder for the SSH public key blob, the KMS
    signing algorithm and the SSH signature name that goes in the envelope.
    """

    key_class: type
    ssh_key_type: str
    encode_blob: Callable[[Any], bytes]
    signing_algorithm: str
    signature_name: str


RSA = KeyAlgorithm(
    key_class=rsa.RSAPublicKey,
    ssh_key_type="ssh-rsa",
    encode_blob=_rsa_blob,
    signing_algorithm="RSASSA_PKCS1_V1_5_SHA_512",
    signature_name="rsa-sha2-512",
)

SUPPORTED_ALGORITHMS: tuple[KeyAlgorithm, ...] = (RSA,)


@dataclass(frozen=True)
class CAKey:
    """The certificate authority's public identity, as resolved from KMS."""

    key_id: str
    public_key: Any
    algorithm: KeyAlgorithm

    @property
    def key_type(self) -> str:
        return self.algorithm.ssh_key_type

    @property
    def public_blob(self) -> bytes:
        """SSH wire encoding of the CA public key (the certificate signature key)."""
        return self.algorithm.encode_blob(self.public_key)

    def openssh_line(self) -> str:
        """``<keytype> <base64> <key_id>``, with the KMS key id as comment."""
        encoded = base64.b64encode(self.public_blob).decode("ascii")
        return f"{self.key_type} {encoded} {self.key_id}"

    def trust_line(self, user: str) -> str:
        """``authorized_keys`` line trusting this CA for *user*."""
        return f'cert-authority,principals="{user}" {self.openssh_line()}'


def algorithm_for(public_key: Any) -> KeyAlgorithm:
    """Return the variant for a decoded public key or raise ``UnsupportedAlgorithm``."""
    for algorithm in SUPPORTED_ALGORITHMS:
        if isinstance(public_key, algorithm.key_class):
            return algorithm
    raise UnsupportedAlgorithm(
        f"unsupported CA key algorithm: {type(public_key).__name__}"
    )


def resolve(client: Any, key_id: str) -> CAKey:
    """Fetch the CA public key for *key_id* from KMS and decode it.

    The returned ``CAKey.key_id`` is the identifier KMS reports back (usually
    the full key ARN). It becomes the SSH comment and the signing handle.

    Raises ``RemoteServiceError`` if the response lacks ``KeyId`` or
    ``PublicKey``, ``EncodingError`` on malformed DER and
    ``UnsupportedAlgorithm`` for key types that are not modeled.
    """
    response = client.get_public_key(key_id)

    resolved_id = response.get("KeyId")
    if not resolved_id:
        raise RemoteServiceError("GetPublicKey response missing `KeyId` field")
    der = response.get("PublicKey")
    if not der:
        raise RemoteServiceError("GetPublicKey response missing `PublicKey` field")

    try:
        public_key = serialization.load_der_public_key(bytes(der))
    except CryptoUnsupportedAlgorithm as e:
        raise UnsupportedAlgorithm(f"unsupported CA key algorithm: {e}") from e
    except ValueError as e:
        raise EncodingError(f"malformed SubjectPublicKeyInfo: {e}") from e

    algorithm = algorithm_for(public_key)
    logger.info("Resolved CA key %s (%s)", resolved_id, algorithm.ssh_key_type)
    return CAKey(key_id=resolved_id, public_key=public_key, algorithm=algorithm)
