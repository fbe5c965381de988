from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from lithsync.dates import is_date_key

# Stripped from both ends of a word before membership tests
WORD_PUNCTUATION = ".,!?;:()[]{}'\"`~^*_+-=/\\|<> \t\r\n"


class Concern(str, Enum):
    QUIZ_QUESTIONS = "quizQuestions"
    QUIZ_PROGRESS = "quizProgress"
    INCORRECT_QUESTIONS = "incorrectQuestions"
    INCORRECT_PROGRESS = "incorrectProgress"
    SESSION_STATE = "sessionState"
    COMPLETION_STATUS = "completionStatus"
    SENTENCES = "sentences"


@dataclass(frozen=True)
class ScopedKey:
    concern: Concern
    user_id: str
    date_key: str


def build_key(concern: Concern, user_id: str, date_key: str) -> str:
    """Render ``{concern}_{userId}_{dateKey}``.

    The user id is not validated here; an empty id still yields a key, so
    callers must refuse to build keys without a signed-in user.
    """
    return f"{Concern(concern).value}_{user_id}_{date_key}"


def parse_key(key: str) -> ScopedKey | None:
    """Split a key produced by :func:`build_key`, or return None for other keys."""
    prefix, sep, rest = key.partition("_")
    if not sep:
        return None
    try:
        concern = Concern(prefix)
    except ValueError:
        return None
    # rest = "{userId}_{YYYY-MM-DD}"
    if len(rest) < 11 or rest[-11] != "_":
        return None
    user_id, date_key = rest[:-11], rest[-10:]
    if not is_date_key(date_key):
        return None
    return ScopedKey(concern=concern, user_id=user_id, date_key=date_key)


def day_keys(user_id: str, date_key: str) -> list[str]:
    return [build_key(c, user_id, date_key) for c in Concern]


def clean_word(word: str) -> str:
    return word.lower().strip(WORD_PUNCTUATION)


def sentence_words(text: str) -> list[str]:
    """Normalized words of a sentence; tokens that are pure punctuation are dropped."""
    words = (clean_word(w) for w in text.split(" "))
    return [w for w in words if w]
