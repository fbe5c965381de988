from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from lithsync.models import (
    AppInfo,
    ChallengeStats,
    FlashcardStatsSummary,
    LeaderboardEntry,
    UserProfile,
    UserStats,
)

logger = logging.getLogger(__name__)

CHALLENGE_STATS = "challenge_stats"
USER_STATS = "user_stats"
FLASHCARD_SUMMARY = "flashcard_summary"
LEADERBOARD = "leaderboard"
APP_INFO = "app_info"
USER = "user"

Subscriber = Callable[[str, Any], None]


@dataclass
class RequestScope:
    """Lifetime of whoever issued a request; results arriving after cancel() are dropped."""

    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class _Caches:
    user: Optional[UserProfile] = None
    challenge_stats: Optional[ChallengeStats] = None
    user_stats: Optional[UserStats] = None
    flashcard_summary: Optional[FlashcardStatsSummary] = None
    leaderboard: List[LeaderboardEntry] = field(default_factory=list)
    app_info: Optional[AppInfo] = None


class AppState:
    """Application-wide cache of remote-owned data.

    Created once by the composition root and handed to the services that
    need it. Every value here is advisory and safe to refetch.
    """

    def __init__(self) -> None:
        self._data = _Caches()
        self.errors: Dict[str, Optional[str]] = {}
        self._subscribers: List[Subscriber] = []

    @property
    def user(self) -> Optional[UserProfile]:
        return self._data.user

    @property
    def challenge_stats(self) -> Optional[ChallengeStats]:
        return self._data.challenge_stats

    @property
    def user_stats(self) -> Optional[UserStats]:
        return self._data.user_stats

    @property
    def flashcard_summary(self) -> Optional[FlashcardStatsSummary]:
        return self._data.flashcard_summary

    @property
    def leaderboard(self) -> List[LeaderboardEntry]:
        return list(self._data.leaderboard)

    @property
    def app_info(self) -> Optional[AppInfo]:
        return self._data.app_info

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def set(self, concern: str, value: Any) -> None:
        if not hasattr(self._data, concern):
            raise KeyError(concern)
        setattr(self._data, concern, value)
        self._notify(concern, value)

    def set_error(self, concern: str, message: Optional[str]) -> None:
        self.errors[concern] = message

    def sign_in(self, profile: UserProfile) -> None:
        self.set(USER, profile)

    def sign_out(self) -> None:
        self._data = _Caches()
        self.errors.clear()
        self._notify(USER, None)

    def _notify(self, concern: str, value: Any) -> None:
        for cb in list(self._subscribers):
            try:
                cb(concern, value)
            except Exception:
                logger.exception("State subscriber failed for %s", concern)
