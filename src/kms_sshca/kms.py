"""Blocking AWS KMS handle for the synchronous certificate pipeline.

aioboto3 is asyncio-only while certificate construction is synchronous, so
the client owns a single event loop for its whole lifetime and drives each
remote call to completion on it before returning.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from kms_sshca.errors import ConfigurationError, RemoteServiceError

logger = logging.getLogger(__name__)


class KMSClient:
    """Long-lived KMS handle shared by the resolver and the signer.

    At most one call is in flight at any time. Timeouts and cancellation are
    left to botocore's transport configuration.
    """

    def __init__(
        self,
        region_name: str | None = None,
        endpoint_url: str | None = None,
        profile_name: str | None = None,
    ) -> None:
        try:
            self._session = (
                aioboto3.Session(profile_name=profile_name)
                if profile_name
                else aioboto3.Session()
            )
        except BotoCoreError as e:
            raise ConfigurationError(f"cannot create AWS session: {e}") from e
        self._region_name = region_name
        self._endpoint_url = endpoint_url
        self._loop = asyncio.new_event_loop()
        self._client_ctx: Any = None
        self._client: Any = None

    def get_public_key(self, key_id: str) -> dict[str, Any]:
        """KMS ``GetPublicKey``. Returns the raw response dict."""
        logger.debug("GetPublicKey key_id=%s", key_id)
        return self._run(self._call("get_public_key", KeyId=key_id))

    def sign(self, key_id: str, message: bytes, signing_algorithm: str) -> dict[str, Any]:
        """KMS ``Sign`` over the raw *message*. Returns the raw response dict."""
        logger.debug(
            "Sign key_id=%s algorithm=%s message_len=%d",
            key_id, signing_algorithm, len(message),
        )
        return self._run(
            self._call(
                "sign",
                KeyId=key_id,
                Message=message,
                MessageType="RAW",
                SigningAlgorithm=signing_algorithm,
            )
        )

    def close(self) -> None:
        """Close the KMS client and the event loop."""
        if self._loop.is_closed():
            return
        try:
            if self._client_ctx is not None:
                self._loop.run_until_complete(self._client_ctx.__aexit__(None, None, None))
        finally:
            self._client_ctx = None
            self._client = None
            self._loop.close()

    def __enter__(self) -> KMSClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _run(self, coro: Coroutine[Any, Any, dict[str, Any]]) -> dict[str, Any]:
        if self._loop.is_closed():
            coro.close()
            raise RemoteServiceError("KMS client is closed")
        return self._loop.run_until_complete(coro)

    async def _ensure_client(self) -> Any:
        if self._client is None:
            ctx = self._session.client(
                "kms",
                region_name=self._region_name,
                endpoint_url=self._endpoint_url,
            )
            self._client = await ctx.__aenter__()
            self._client_ctx = ctx
        return self._client

    async def _call(self, operation: str, **params: Any) -> dict[str, Any]:
        try:
            client = await self._ensure_client()
            return await getattr(client, operation)(**params)
        except (BotoCoreError, ClientError) as e:
            raise RemoteServiceError(f"KMS {operation} failed: {e}") from e
