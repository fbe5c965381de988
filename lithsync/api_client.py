"""HTTP client for the Lithuaningo REST API.

JSON in, JSON out. Non-2xx responses become ApiError (NotFoundError for 404)
and transport failures become NetworkError, so callers only ever see the
shared error taxonomy.
"""

from __future__ import annotations

import asyncio
import json as jsonlib
import logging
import secrets
import time
from typing import Any, Awaitable, Callable, Optional

import aiohttp

from lithsync.config import API_TIMEOUT_SECONDS, API_URL, APP_VERSION, PLATFORM
from lithsync.errors import ApiError, NetworkError, NotFoundError
from lithsync.models import (
    Announcement,
    AppInfo,
    ChallengeStats,
    FlashcardStatsSummary,
    LeaderboardEntry,
    Report,
    Sentence,
    UpdateChallengeStatsRequest,
    UserStats,
)

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[Optional[str]]]
UnauthorizedHook = Callable[[], Awaitable[None]]


def _request_id() -> str:
    return f"req_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def _query(params: dict[str, Any] | None) -> dict[str, str] | None:
    if not params:
        return None
    out: dict[str, str] = {}
    for k, v in params.items():
        if v is None:
            continue
        out[k] = ("true" if v else "false") if isinstance(v, bool) else str(v)
    return out


class ApiClient:
    def __init__(
        self,
        base_url: str = API_URL,
        *,
        timeout: float = API_TIMEOUT_SECONDS,
        app_version: str = APP_VERSION,
        platform: str = PLATFORM,
        token_provider: TokenProvider | None = None,
        on_unauthorized: UnauthorizedHook | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.app_version = app_version
        self.platform = platform
        self.token_provider = token_provider
        self.on_unauthorized = on_unauthorized
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={
                    "Content-Type": "application/json",
                    "X-Platform": self.platform,
                    "X-App-Version": self.app_version,
                },
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _auth_headers(self) -> dict[str, str]:
        if self.token_provider is None:
            return {}
        try:
            token = await self.token_provider()
        except Exception as e:
            logger.error("[ApiClient] Auth error while reading token: %s", e)
            return {}
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        timeout: float | None = None,
    ) -> Any:
        request_id = _request_id()
        method = method.upper()
        url = f"{self.base_url}{endpoint}"
        kwargs: dict[str, Any] = {"params": _query(params), "headers": await self._auth_headers()}
        if json is not None:
            kwargs["data"] = jsonlib.dumps(json)
        if timeout is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=timeout)

        try:
            async with self._get_session().request(method, url, **kwargs) as resp:
                body = await resp.text()
                data = self._decode(body)
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.info("[API] [%s] ERROR %s %s", request_id, method, endpoint)
            logger.error("[ApiClient] Transport error on %s %s: %s", method, endpoint, e)
            raise NetworkError("Network error: No response from server") from e

        if 200 <= status < 300:
            logger.info("[API] [%s] COMPLETE %s %s", request_id, method, endpoint)
            return data

        logger.info("[API] [%s] ERROR %s %s", request_id, method, endpoint)
        logger.error(
            "[ApiClient] Response error: status=%s method=%s url=%s data=%r",
            status,
            method,
            endpoint,
            data,
        )
        if status == 401 and self.on_unauthorized is not None:
            logger.warning("[ApiClient] Unauthorized request, signing out user")
            try:
                await self.on_unauthorized()
            except Exception as e:
                logger.error("[ApiClient] Error during sign out: %s", e)
        raise self._api_error(status, data)

    @staticmethod
    def _decode(body: str) -> Any:
        if not body:
            return None
        try:
            return jsonlib.loads(body)
        except ValueError:
            return body

    @staticmethod
    def _api_error(status: int, data: Any) -> ApiError:
        message = None
        if isinstance(data, dict):
            message = data.get("message")
        elif isinstance(data, str) and data.strip():
            message = data.strip()
        message = message or f"Error {status}: Server error occurred"
        if status == 404:
            return NotFoundError(message, status=status, data=data)
        return ApiError(message, status=status, data=data)

    async def get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", endpoint, params=params)

    async def post(self, endpoint: str, data: Any = None) -> Any:
        return await self.request("POST", endpoint, json=data)

    async def put(self, endpoint: str, data: Any = None) -> Any:
        return await self.request("PUT", endpoint, json=data)

    async def delete(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("DELETE", endpoint, params=params)

    # User challenge stats
    async def get_user_challenge_stats(self, user_id: str) -> ChallengeStats:
        data = await self.get(f"/api/v1/UserChallengeStats/{user_id}/stats")
        return ChallengeStats.from_api(data or {})

    async def update_user_challenge_stats(
        self, user_id: str, request: UpdateChallengeStatsRequest
    ) -> ChallengeStats:
        data = await self.put(f"/api/v1/UserChallengeStats/{user_id}/stats", request.to_api())
        return ChallengeStats.from_api(data or {})

    async def submit_challenge_answer(
        self, user_id: str, was_correct: bool, challenge_id: str | None = None
    ) -> ChallengeStats:
        data = await self.post(
            f"/api/v1/UserChallengeStats/{user_id}/submit-answer",
            {"wasCorrect": was_correct, "challengeId": challenge_id},
        )
        return ChallengeStats.from_api(data or {})

    # Server-side counters; each call is one increment, so a retry double counts
    async def bump_challenge_stat(self, user_id: str, stat: str) -> None:
        await self.post(f"/api/v1/ChallengeStats/{user_id}/stats/{stat}")

    async def add_experience_points(self, user_id: str, amount: int) -> None:
        await self.post(f"/api/v1/ChallengeStats/{user_id}/stats/experience", {"amount": amount})

    # User stats
    async def get_user_stats(self, user_id: str) -> UserStats:
        data = await self.get(f"/api/user/{user_id}/stats")
        return UserStats.from_api(data or {"userId": user_id})

    # Flashcard stats
    async def get_flashcard_stats_summary(self, user_id: str) -> FlashcardStatsSummary:
        data = await self.get(f"/api/v1/UserFlashcardStats/{user_id}/summary-stats")
        return FlashcardStatsSummary.from_api(data or {"userId": user_id})

    async def submit_flashcard_answer(self, user_id: str, flashcard_id: str, was_correct: bool) -> Any:
        return await self.post(
            "/api/v1/UserFlashcardStats/submit-answer",
            {"userId": user_id, "flashcardId": flashcard_id, "wasCorrect": was_correct},
        )

    # Leaderboard
    async def get_current_week_leaderboard(self) -> list[LeaderboardEntry]:
        data = await self.get("/api/v1/Leaderboard/current")
        return [LeaderboardEntry.from_api(e) for e in data or []]

    async def update_leaderboard_entry(self, user_id: str, score_to_add: int) -> LeaderboardEntry:
        data = await self.post(
            "/api/v1/Leaderboard/entry",
            {"userId": user_id, "scoreToAdd": score_to_add},
        )
        return LeaderboardEntry.from_api(data or {"userId": user_id})

    # Content
    async def get_daily_sentences(self) -> list[Sentence]:
        data = await self.get("/api/v1/Sentence/daily")
        return [Sentence.from_api(s) for s in data or []]

    async def get_daily_challenge_questions(self) -> list[dict[str, Any]]:
        data = await self.get("/api/v1/Challenge/daily")
        return list(data or [])

    async def get_announcements(self) -> list[Announcement]:
        data = await self.get("/api/v1/Announcement")
        return [Announcement.from_api(a) for a in data or []]

    async def get_app_info(self, platform: str | None = None) -> AppInfo:
        data = await self.get(f"/api/v1/AppInfo/{platform or self.platform}")
        return AppInfo.from_api(data or {})

    async def create_report(self, report: Report) -> Any:
        return await self.post("/api/Report", report.to_api())

    async def delete_user_profile(self, user_id: str) -> None:
        await self.delete(f"/api/v1/UserProfile/{user_id}")
