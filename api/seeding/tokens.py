"""
Session token handling.

Open Trivia DB uses a session token to avoid serving the same question twice
to one caller. Once the token has seen every question for a query the API
answers with TOKEN_EMPTY and a fresh token is needed.
"""

from __future__ import annotations

import logging

from core.opentdb import OpenTDBClient, OpenTDBError

from .errors import TokenAcquisitionError

logger = logging.getLogger(__name__)


class SessionTokenManager:
    def __init__(self, client: OpenTDBClient) -> None:
        self._client = client
        self._token: str | None = None
        self.resets = 0

    @property
    def token(self) -> str:
        if self._token is None:
            raise TokenAcquisitionError("No session token acquired. Call acquire() first.")
        return self._token

    async def acquire(self) -> str:
        try:
            token = await self._client.request_token()
        except OpenTDBError as exc:
            raise TokenAcquisitionError(f"Could not acquire a session token: {exc}") from exc
        self._token = token
        logger.info("token_acquired token=%s", token)
        return token

    async def reset(self) -> str:
        """
        Replace the current token with a fresh one.
        """
        self.resets += 1
        logger.warning("token_reset resets=%d", self.resets)
        return await self.acquire()
