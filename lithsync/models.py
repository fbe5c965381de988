from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional

Platform = Literal["android", "ios"]


def _parse_dt(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass(frozen=True)
class Sentence:
    id: str
    text: str
    translation: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Sentence":
        return cls(
            id=str(data.get("id", "")),
            text=str(data.get("text") or data.get("sentence") or ""),
            translation=str(data.get("translation") or ""),
        )

    def to_api(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class QuizSessionState:
    question_index: int = 0
    # answers[i] is the result for question i; None when it was not recorded
    answers: list[Optional[bool]] = field(default_factory=list)
    # Transient; never persisted
    show_continue: bool = False

    def snapshot(self) -> dict[str, Any]:
        return {"questionIndex": self.question_index, "answers": list(self.answers)}

    @classmethod
    def from_snapshot(cls, data: Any) -> "QuizSessionState":
        """Restore a persisted snapshot. Anything malformed restores as a fresh quiz."""
        # Older snapshots stored only the next question index
        if isinstance(data, int) and not isinstance(data, bool):
            index, answers = data, []
        elif isinstance(data, dict):
            index, answers = data.get("questionIndex", 0), data.get("answers", [])
            if isinstance(index, bool) or not isinstance(index, int) or not isinstance(answers, list):
                return cls()
            if any(a is not None and not isinstance(a, bool) for a in answers):
                return cls()
        else:
            return cls()
        if index < 0:
            return cls()
        # Keep answers aligned with the index: at most the current question answered
        aligned = list(answers[: index + 1])
        aligned.extend([None] * (index - len(aligned)))
        return cls(question_index=index, answers=aligned)

    @property
    def correct_count(self) -> int:
        return sum(1 for a in self.answers if a)


@dataclass
class ChallengeStats:
    current_streak: int = 0
    longest_streak: int = 0
    last_challenge_date: Optional[datetime] = None
    has_completed_today_challenge: bool = False
    today_correct_answers: int = 0
    today_incorrect_answers: int = 0
    total_challenges_completed: int = 0
    total_correct_answers: int = 0
    total_incorrect_answers: int = 0
    cards_reviewed: int = 0
    cards_mastered: int = 0

    @property
    def today_total_answers(self) -> int:
        return self.today_correct_answers + self.today_incorrect_answers

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ChallengeStats":
        return cls(
            current_streak=int(data.get("currentStreak") or 0),
            longest_streak=int(data.get("longestStreak") or 0),
            last_challenge_date=_parse_dt(data.get("lastChallengeDate")),
            has_completed_today_challenge=bool(data.get("hasCompletedTodayChallenge")),
            today_correct_answers=int(data.get("todayCorrectAnswers") or 0),
            today_incorrect_answers=int(data.get("todayIncorrectAnswers") or 0),
            total_challenges_completed=int(data.get("totalChallengesCompleted") or 0),
            total_correct_answers=int(data.get("totalCorrectAnswers") or 0),
            total_incorrect_answers=int(data.get("totalIncorrectAnswers") or 0),
            cards_reviewed=int(data.get("cardsReviewed") or 0),
            cards_mastered=int(data.get("cardsMastered") or 0),
        )


@dataclass
class UpdateChallengeStatsRequest:
    current_streak: int
    longest_streak: int
    today_correct_answers: int
    today_incorrect_answers: int
    total_challenges_completed: int
    total_correct_answers: int
    total_incorrect_answers: int

    @classmethod
    def from_stats(cls, stats: ChallengeStats) -> "UpdateChallengeStatsRequest":
        return cls(
            current_streak=stats.current_streak,
            longest_streak=stats.longest_streak,
            today_correct_answers=stats.today_correct_answers,
            today_incorrect_answers=stats.today_incorrect_answers,
            total_challenges_completed=stats.total_challenges_completed,
            total_correct_answers=stats.total_correct_answers,
            total_incorrect_answers=stats.total_incorrect_answers,
        )

    def to_api(self) -> dict[str, Any]:
        return {
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "todayCorrectAnswers": self.today_correct_answers,
            "todayIncorrectAnswers": self.today_incorrect_answers,
            "totalChallengesCompleted": self.total_challenges_completed,
            "totalCorrectAnswers": self.total_correct_answers,
            "totalIncorrectAnswers": self.total_incorrect_answers,
        }


@dataclass
class UserStats:
    user_id: str
    level: int = 1
    experience_points: int = 0
    daily_streak: int = 0
    total_words_learned: int = 0
    total_quizzes_completed: int = 0
    today_answered_questions: int = 0
    today_correct_answered_questions: int = 0
    last_activity_time: Optional[datetime] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "UserStats":
        return cls(
            user_id=str(data.get("userId", "")),
            level=int(data.get("level") or 1),
            experience_points=int(data.get("experiencePoints") or 0),
            daily_streak=int(data.get("dailyStreak") or 0),
            total_words_learned=int(data.get("totalWordsLearned") or 0),
            total_quizzes_completed=int(data.get("totalQuizzesCompleted") or 0),
            today_answered_questions=int(data.get("todayAnsweredQuestions") or 0),
            today_correct_answered_questions=int(data.get("todayCorrectAnsweredQuestions") or 0),
            last_activity_time=_parse_dt(data.get("lastActivityTime")),
        )


@dataclass
class FlashcardStatsSummary:
    user_id: str
    total_flashcards: int = 0
    total_views: int = 0
    total_correct_answers: int = 0
    total_incorrect_answers: int = 0
    average_mastery_level: float = 0.0
    flashcards_viewed_today: int = 0

    @property
    def success_rate(self) -> float:
        return self.total_correct_answers / self.total_views * 100 if self.total_views else 0.0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "FlashcardStatsSummary":
        return cls(
            user_id=str(data.get("userId", "")),
            total_flashcards=int(data.get("totalFlashcards") or 0),
            total_views=int(data.get("totalViews") or 0),
            total_correct_answers=int(data.get("totalCorrectAnswers") or 0),
            total_incorrect_answers=int(data.get("totalIncorrectAnswers") or 0),
            average_mastery_level=float(data.get("averageMasteryLevel") or 0.0),
            flashcards_viewed_today=int(data.get("flashcardsViewedToday") or 0),
        )


@dataclass(frozen=True)
class LeaderboardEntry:
    user_id: str
    name: str
    score: int
    rank: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "LeaderboardEntry":
        return cls(
            user_id=str(data.get("userId", "")),
            name=str(data.get("name") or ""),
            score=int(data.get("score") or 0),
            rank=int(data.get("rank") or 0),
        )


@dataclass
class AppInfo:
    platform: str
    current_version: str
    minimum_version: str
    force_update: bool = False
    update_url: Optional[str] = None
    is_maintenance: bool = False
    maintenance_message: Optional[str] = None
    release_notes: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "AppInfo":
        return cls(
            platform=str(data.get("platform") or ""),
            current_version=str(data.get("currentVersion") or "0.0.0"),
            minimum_version=str(data.get("minimumVersion") or "0.0.0"),
            force_update=bool(data.get("forceUpdate")),
            update_url=data.get("updateUrl"),
            is_maintenance=bool(data.get("isMaintenance")),
            maintenance_message=data.get("maintenanceMessage"),
            release_notes=data.get("releaseNotes"),
        )


@dataclass(frozen=True)
class Announcement:
    id: str
    title: str
    content: str

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Announcement":
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title") or ""),
            content=str(data.get("content") or ""),
        )


@dataclass
class Report:
    content_type: str
    content_id: str
    user_id: str
    reason: str
    details: str

    def to_api(self) -> dict[str, Any]:
        return {
            "contentType": self.content_type,
            "contentId": self.content_id,
            "userId": self.user_id,
            "reason": self.reason,
            "details": self.details,
        }


@dataclass(frozen=True)
class UserProfile:
    id: str
    email: str
    name: str = ""
    email_verified: bool = False
