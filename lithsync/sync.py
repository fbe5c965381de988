"""Reconciliation of remote-owned counters with the local AppState.

Reads are read-through: a success replaces the cached value, a failure keeps
the last good value and records a display message. Mutations never update the
cache optimistically; each one is followed by an awaited refetch and only the
server's answer is shown.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional

from lithsync.api_client import ApiClient
from lithsync.errors import SyncError, ValidationError, display_message
from lithsync.models import (
    ChallengeStats,
    FlashcardStatsSummary,
    LeaderboardEntry,
    UpdateChallengeStatsRequest,
    UserStats,
)
from lithsync.ops_logging import log_structured
from lithsync.state import (
    CHALLENGE_STATS,
    FLASHCARD_SUMMARY,
    LEADERBOARD,
    USER_STATS,
    AppState,
    RequestScope,
)

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[Any]]


class ChallengeCounter(str, Enum):
    CURRENT_STREAK = "current_streak"
    LONGEST_STREAK = "longest_streak"
    TODAY_CORRECT_ANSWERS = "today_correct_answers"
    TODAY_INCORRECT_ANSWERS = "today_incorrect_answers"
    TOTAL_CHALLENGES_COMPLETED = "total_challenges_completed"
    TOTAL_CORRECT_ANSWERS = "total_correct_answers"
    TOTAL_INCORRECT_ANSWERS = "total_incorrect_answers"


class ServerCounter(str, Enum):
    """Counters the server increments itself, one step per request."""

    DAILY_STREAK = "streak"
    QUIZZES_COMPLETED = "quiz-completed"
    CARDS_REVIEWED = "cards-reviewed"
    CARDS_MASTERED = "cards-mastered"


class StatsSync:
    def __init__(self, api: ApiClient, state: AppState, *, single_flight: bool = False) -> None:
        self.api = api
        self.state = state
        self.single_flight = single_flight
        self._inflight: Dict[Hashable, asyncio.Future] = {}

    async def _load_shared(self, key: Hashable, loader: Loader) -> Any:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(loader())
            self._inflight[key] = task

            def _forget(done: asyncio.Future) -> None:
                if self._inflight.get(key) is done:
                    del self._inflight[key]

            task.add_done_callback(_forget)
        # A cancelled waiter must not cancel the request other waiters share
        return await asyncio.shield(task)

    async def _reconcile(
        self, concern: str, user_id: str, loader: Loader, scope: RequestScope | None
    ) -> Any:
        """Load authoritative state and store it. Errors propagate."""
        if self.single_flight:
            value = await self._load_shared((concern, user_id), loader)
        else:
            value = await loader()
        if scope is not None and scope.cancelled:
            logger.debug("Dropping %s result for %s: scope cancelled", concern, user_id)
            return None
        self.state.set(concern, value)
        self.state.set_error(concern, None)
        return value

    async def _fetch(
        self, concern: str, user_id: str, loader: Loader, scope: RequestScope | None
    ) -> Any:
        try:
            return await self._reconcile(concern, user_id, loader, scope)
        except SyncError as e:
            logger.error("Error fetching %s for userId %s: %s", concern, user_id, e)
            message = display_message(e)
        except Exception as e:
            logger.exception("Unexpected error fetching %s for userId %s", concern, user_id)
            message = display_message(e)
        if scope is None or not scope.cancelled:
            self.state.set_error(concern, message)
        return None

    async def _mutate(self, concern: str, user_id: str, action: Loader) -> Any:
        try:
            return await action()
        except SyncError as e:
            logger.error("Error updating %s for userId %s: %s", concern, user_id, e)
            self.state.set_error(concern, display_message(e))
            raise

    async def fetch_challenge_stats(
        self, user_id: str, scope: RequestScope | None = None
    ) -> Optional[ChallengeStats]:
        return await self._fetch(
            CHALLENGE_STATS, user_id, lambda: self.api.get_user_challenge_stats(user_id), scope
        )

    async def fetch_user_stats(self, user_id: str, scope: RequestScope | None = None) -> Optional[UserStats]:
        return await self._fetch(USER_STATS, user_id, lambda: self.api.get_user_stats(user_id), scope)

    async def fetch_flashcard_summary(
        self, user_id: str, scope: RequestScope | None = None
    ) -> Optional[FlashcardStatsSummary]:
        return await self._fetch(
            FLASHCARD_SUMMARY, user_id, lambda: self.api.get_flashcard_stats_summary(user_id), scope
        )

    async def fetch_leaderboard(self, scope: RequestScope | None = None) -> Optional[list[LeaderboardEntry]]:
        return await self._fetch(LEADERBOARD, "*", self.api.get_current_week_leaderboard, scope)

    async def refresh_all(self, user_id: str, scope: RequestScope | None = None) -> None:
        """Mount-time refresh of every cached concern for ``user_id``."""
        await asyncio.gather(
            self.fetch_challenge_stats(user_id, scope),
            self.fetch_user_stats(user_id, scope),
            self.fetch_flashcard_summary(user_id, scope),
            self.fetch_leaderboard(scope),
        )

    async def increment(
        self, user_id: str, counter: ChallengeCounter, amount: int = 1
    ) -> Optional[ChallengeStats]:
        """Bump one challenge counter on the server, then refetch.

        The stats endpoint takes absolute values, so the update is built from
        stats read just before the write, never from the cache.
        """
        counter = ChallengeCounter(counter)
        stats = await self._mutate(
            CHALLENGE_STATS,
            user_id,
            lambda: self._reconcile(
                CHALLENGE_STATS, user_id, lambda: self.api.get_user_challenge_stats(user_id), None
            ),
        )
        request = UpdateChallengeStatsRequest.from_stats(stats)
        field = counter.value
        setattr(request, field, max(0, getattr(request, field) + amount))
        if counter is ChallengeCounter.CURRENT_STREAK:
            request.longest_streak = max(request.longest_streak, request.current_streak)

        await self._mutate(
            CHALLENGE_STATS, user_id, lambda: self.api.update_user_challenge_stats(user_id, request)
        )
        refreshed = await self.fetch_challenge_stats(user_id)
        log_structured("stats_incremented", user_id=user_id, counter=field, amount=amount)
        return refreshed

    async def bump(self, user_id: str, counter: ServerCounter) -> Optional[ChallengeStats]:
        """Ask the server to add one to ``counter`` itself, then refetch."""
        counter = ServerCounter(counter)
        await self._mutate(
            CHALLENGE_STATS, user_id, lambda: self.api.bump_challenge_stat(user_id, counter.value)
        )
        refreshed = await self.fetch_challenge_stats(user_id)
        log_structured("stats_bumped", user_id=user_id, counter=counter.value)
        return refreshed

    async def add_experience(self, user_id: str, amount: int) -> Optional[UserStats]:
        if amount <= 0:
            raise ValidationError("Experience amount must be positive.")
        await self._mutate(USER_STATS, user_id, lambda: self.api.add_experience_points(user_id, amount))
        return await self.fetch_user_stats(user_id)

    async def complete_quiz(self, user_id: str) -> Optional[ChallengeStats]:
        """Credit a finished daily quiz: streak first, then the completion count."""
        await self._mutate(
            CHALLENGE_STATS,
            user_id,
            lambda: self.api.bump_challenge_stat(user_id, ServerCounter.DAILY_STREAK.value),
        )
        await self._mutate(
            CHALLENGE_STATS,
            user_id,
            lambda: self.api.bump_challenge_stat(user_id, ServerCounter.QUIZZES_COMPLETED.value),
        )
        refreshed, _ = await asyncio.gather(
            self.fetch_challenge_stats(user_id), self.fetch_user_stats(user_id)
        )
        log_structured("quiz_credited", user_id=user_id)
        return refreshed

    async def submit_challenge_answer(
        self, user_id: str, was_correct: bool, challenge_id: str | None = None
    ) -> Optional[ChallengeStats]:
        await self._mutate(
            CHALLENGE_STATS,
            user_id,
            lambda: self.api.submit_challenge_answer(user_id, was_correct, challenge_id),
        )
        refreshed = await self.fetch_challenge_stats(user_id)
        # The server credits the weekly leaderboard for correct answers
        if was_correct:
            await self.fetch_leaderboard()
        return refreshed

    async def submit_flashcard_answer(
        self, user_id: str, flashcard_id: str, was_correct: bool
    ) -> Optional[FlashcardStatsSummary]:
        await self._mutate(
            FLASHCARD_SUMMARY,
            user_id,
            lambda: self.api.submit_flashcard_answer(user_id, flashcard_id, was_correct),
        )
        return await self.fetch_flashcard_summary(user_id)

    async def add_leaderboard_score(self, user_id: str, score: int) -> Optional[list[LeaderboardEntry]]:
        await self._mutate(LEADERBOARD, user_id, lambda: self.api.update_leaderboard_entry(user_id, score))
        return await self.fetch_leaderboard()
