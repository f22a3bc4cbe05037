"""
Open Trivia DB HTTP client.

Used endpoints:
- GET /api_category.php                       -> {"trivia_categories": [{"id": 9, "name": "..."}]}
- GET /api_count.php?category=ID              -> {"category_question_count": {"total_question_count": N, ...}}
- GET /api_token.php?command=request          -> {"response_code": 0, "token": "..."}
- GET /api.php?amount=N&category=ID&token=T   -> {"response_code": 0, "results": [...]}

Every /api.php and /api_token.php payload carries a `response_code`; see
RESPONSE_CODES. The public API allows one question request per IP every few
seconds, so question fetches go through the client's rate limiter.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx

from . import config

logger = logging.getLogger(__name__)

SUCCESS = 0
NO_RESULTS = 1
INVALID_PARAMETER = 2
TOKEN_NOT_FOUND = 3
TOKEN_EMPTY = 4
RATE_LIMIT = 5

RESPONSE_CODES: dict[int, str] = {
    SUCCESS: "Success - Returned results successfully.",
    NO_RESULTS: (
        "No Results - Could not return results. The API doesn't have enough questions for your query. "
        "(Ex. Asking for 50 Questions in a Category that only has 20.)"
    ),
    INVALID_PARAMETER: (
        "Invalid Parameter - Contains an invalid parameter. Arguments passed in aren't valid. (Ex. Amount = Five)"
    ),
    TOKEN_NOT_FOUND: "Token Not Found - Session Token does not exist.",
    TOKEN_EMPTY: (
        "Token Empty - Session Token has returned all possible questions for the specified query. "
        "Resetting the Token is necessary."
    ),
    RATE_LIMIT: "Rate Limit - Too many requests have occurred. Each IP can only access the API once every 5 seconds.",
}

# Open Trivia DB publishes these sets but has no endpoint listing them.
QUESTION_TYPES = ("multiple", "boolean")
DIFFICULTIES = ("easy", "medium", "hard")


# Remote failures are explicit and separable from local pipeline errors.
class OpenTDBError(RuntimeError):
    pass


class RemoteProtocolError(OpenTDBError):
    """
    The API answered, but with a non-zero `response_code`.
    """

    def __init__(self, code: int) -> None:
        self.code = code
        self.description = describe_response_code(code)
        super().__init__(f"Error from API: {code} - {self.description}")

    @property
    def is_token_empty(self) -> bool:
        return self.code == TOKEN_EMPTY


def describe_response_code(code: int) -> str:
    return RESPONSE_CODES.get(code, f"Unknown response code {code}.")


@dataclass(frozen=True)
class RemoteCategory:
    id: int
    name: str


class OpenTDBClient:
    """
    Thin async client with per-instance rate limiting.

    Only calls made with `use_rate_limit=True` wait for the spacing window or
    move it forward. Plain lookups (categories, counts, tokens) go straight
    through, so they can interleave with paced question fetches.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        min_spacing_ms: int | None = None,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.base_url = (base_url or config.opentdb_base_url()).rstrip("/")
        self.min_spacing_ms = config.api_hug_ms() if min_spacing_ms is None else min_spacing_ms
        self.timeout_s = timeout_s or config.opentdb_timeout_s()
        self._transport = transport
        self._clock = clock
        self._sleep = sleep
        # Pretend the last call was long enough ago that the first one is free.
        self._last_rate_limited_at = clock() - self.min_spacing_ms / 1000.0

    async def call(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        validate: bool = False,
        use_rate_limit: bool = False,
    ) -> dict[str, Any]:
        """
        GET `path` and return the decoded JSON object.

        Raises RemoteProtocolError when `validate` is set and the payload's
        `response_code` is not SUCCESS.
        """
        if use_rate_limit:
            await self._respect_rate_limit()

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout_s,
                transport=self._transport,
            ) as client:
                resp = await client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise OpenTDBError(f"Open Trivia DB request to {path} failed: {exc}") from exc
        finally:
            if use_rate_limit:
                self._last_rate_limited_at = self._clock()

        if resp.status_code != 200:
            body = resp.text[:300]
            raise OpenTDBError(f"Open Trivia DB request to {path} failed: {resp.status_code} {body}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise OpenTDBError(f"Open Trivia DB returned non-JSON body for {path}.") from exc
        if not isinstance(data, dict):
            raise OpenTDBError(f"Open Trivia DB returned an unexpected payload for {path}.")

        if validate:
            self._validate(data)
        return data

    async def _respect_rate_limit(self) -> None:
        elapsed_ms = (self._clock() - self._last_rate_limited_at) * 1000.0
        wait_ms = self.min_spacing_ms - elapsed_ms
        if wait_ms > 0:
            logger.info("rate_limit_wait worked_ms=%d wait_ms=%d", elapsed_ms, wait_ms)
            await self._sleep(wait_ms / 1000.0)

    @staticmethod
    def _validate(data: dict[str, Any]) -> None:
        code = data.get("response_code")
        if code != SUCCESS:
            raise RemoteProtocolError(int(code) if isinstance(code, int) else -1)

    async def get_categories(self) -> list[RemoteCategory]:
        data = await self.call("/api_category.php")
        items = data.get("trivia_categories")
        if not isinstance(items, list):
            raise OpenTDBError("Open Trivia DB returned no category list.")
        return [RemoteCategory(id=int(item["id"]), name=str(item["name"])) for item in items]

    async def questions_in_category(self, category_id: int) -> int:
        data = await self.call("/api_count.php", params={"category": category_id})
        counts = data.get("category_question_count")
        if not isinstance(counts, dict) or "total_question_count" not in counts:
            raise OpenTDBError(f"Open Trivia DB returned no question count for category {category_id}.")
        return int(counts["total_question_count"])

    async def request_token(self) -> str:
        data = await self.call("/api_token.php", params={"command": "request"}, validate=True)
        token = data.get("token")
        if not isinstance(token, str) or not token:
            raise OpenTDBError("Open Trivia DB returned an empty session token.")
        return token

    async def get_questions(self, amount: int, category_id: int, token: str) -> dict[str, Any]:
        return await self.call(
            "/api.php",
            params={"amount": amount, "category": category_id, "token": token},
            validate=True,
            use_rate_limit=True,
        )

    async def get_types(self) -> list[str]:
        return list(QUESTION_TYPES)

    async def get_difficulties(self) -> list[str]:
        return list(DIFFICULTIES)
