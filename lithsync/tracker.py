"""Per-user, per-day learning session progress.

The tracker owns the clicked-word set, the completion flag and the quiz
snapshot for one user on the current learning day. All of it is mirrored to
the key-value store under day-scoped keys, so a restart on the same day
resumes where the user left off and the next day starts clean simply because
its keys differ.

Phases, in order::

    NOT_STARTED -> WORDS_IN_PROGRESS -> WORDS_COMPLETED
        -> SENTENCES_COMPLETED -> QUIZ_IN_PROGRESS -> QUIZ_COMPLETED

``words_completed`` is recomputed from the sentences and the clicked set on
every read. ``sentences_completed`` is an explicit, persisted decision taken
by :meth:`SessionProgressTracker.proceed_to_quiz`.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence

from lithsync.config import SENTENCES_PER_DAY
from lithsync.content import select_daily_sentences
from lithsync.dates import current_date_key, utc_now
from lithsync.errors import PersistenceError, SyncError, TransitionError, ValidationError
from lithsync.keys import Concern, build_key, clean_word, day_keys, sentence_words
from lithsync.models import QuizSessionState, Sentence
from lithsync.ops_logging import log_structured
from lithsync.storage import KeyValueStore
from lithsync.validators import validate_user_id

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
SentenceFetcher = Callable[[], Awaitable[Sequence[Sentence]]]
QuestionFetcher = Callable[[], Awaitable[Sequence[dict[str, Any]]]]
QuizCompletedHook = Callable[[str], Awaitable[Any]]


class SessionPhase(str, Enum):
    NOT_STARTED = "not_started"
    WORDS_IN_PROGRESS = "words_in_progress"
    WORDS_COMPLETED = "words_completed"
    SENTENCES_COMPLETED = "sentences_completed"
    QUIZ_IN_PROGRESS = "quiz_in_progress"
    QUIZ_COMPLETED = "quiz_completed"


class SessionProgressTracker:
    def __init__(
        self,
        store: KeyValueStore,
        user_id: str,
        *,
        clock: Clock | None = None,
        skip_word_gating: bool = False,
        on_quiz_completed: QuizCompletedHook | None = None,
    ) -> None:
        ok, err = validate_user_id(user_id)
        if not ok:
            raise ValidationError(err or "Invalid user id")
        self.store = store
        self.user_id = user_id
        self.clock = clock or utc_now
        self.skip_word_gating = skip_word_gating
        self.on_quiz_completed = on_quiz_completed
        self.date_key = current_date_key(self.clock())
        self._clear_memory()

    def _clear_memory(self) -> None:
        self.sentences: Optional[list[Sentence]] = None
        self.clicked_words: set[str] = set()
        self.sentences_completed = False
        self.quiz = QuizSessionState()
        self.quiz_questions: list[dict[str, Any]] = []
        self.incorrect_questions: list[str] = []
        self.review_index = 0
        self._loaded = False

    def key(self, concern: Concern) -> str:
        return build_key(concern, self.user_id, self.date_key)

    async def _read(self, concern: Concern, expected: type | tuple[type, ...] | None = None) -> Any:
        return await self.store.get(self.key(concern), expected)

    async def _write(self, concern: Concern, value: Any) -> bool:
        try:
            await self.store.set(self.key(concern), value)
        except PersistenceError as e:
            logger.warning("Could not persist %s for %s: %s", concern.value, self.user_id, e)
            return False
        return True

    async def _persist_session_state(self) -> None:
        await self._write(Concern.SESSION_STATE, {"clickedWords": sorted(self.clicked_words)})

    async def _persist_quiz_progress(self) -> None:
        await self._write(Concern.QUIZ_PROGRESS, self.quiz.snapshot())

    def _log_transition(self, before: SessionPhase) -> None:
        after = self.phase
        if after is not before:
            log_structured(
                "session_phase",
                user_id=self.user_id,
                date_key=self.date_key,
                from_phase=before.value,
                to_phase=after.value,
            )

    # Reconciliation

    async def check_rollover(self) -> bool:
        """Move to a new learning day if the clock has crossed the reset hour."""
        new_key = current_date_key(self.clock())
        if new_key <= self.date_key:
            return False
        old_key = self.date_key
        self.date_key = new_key
        self._clear_memory()
        await self._load()
        log_structured("day_rollover", user_id=self.user_id, from_date=old_key, to_date=new_key)
        return True

    async def load(self) -> SessionPhase:
        """Reconcile in-memory state with what is persisted for today."""
        if not await self.check_rollover():
            await self._load()
        return self.phase

    async def _load(self) -> None:
        state = await self._read(Concern.SESSION_STATE, dict)
        clicked = state.get("clickedWords") if state else None
        if isinstance(clicked, list):
            self.clicked_words |= {clean_word(w) for w in clicked if isinstance(w, str)} - {""}

        if await self._read(Concern.COMPLETION_STATUS, bool):
            self.sentences_completed = True

        stored_sentences = await self._read(Concern.SENTENCES, list)
        if stored_sentences and self.sentences is None:
            self.sentences = [Sentence.from_api(s) for s in stored_sentences if isinstance(s, dict)]

        questions = await self._read(Concern.QUIZ_QUESTIONS, list)
        if questions and not self.quiz_questions:
            self.quiz_questions = [q for q in questions if isinstance(q, dict)]

        snapshot = await self._read(Concern.QUIZ_PROGRESS, (dict, int))
        if snapshot is not None:
            stored = QuizSessionState.from_snapshot(snapshot)
            if stored.question_index >= self.quiz.question_index:
                stored.show_continue = len(stored.answers) > stored.question_index
                self.quiz = stored

        incorrect = await self._read(Concern.INCORRECT_QUESTIONS, list) or []
        for qid in incorrect:
            if str(qid) not in self.incorrect_questions:
                self.incorrect_questions.append(str(qid))
        review = await self._read(Concern.INCORRECT_PROGRESS, int)
        if isinstance(review, int) and not isinstance(review, bool):
            self.review_index = max(self.review_index, review)

        self._loaded = True
        log_structured(
            "session_loaded",
            user_id=self.user_id,
            date_key=self.date_key,
            phase=self.phase.value,
            clicked=len(self.clicked_words),
        )

    async def _prepare(self) -> None:
        if not await self.check_rollover() and not self._loaded:
            await self._load()

    # Sentences and words

    async def ensure_sentences(self, fetch: SentenceFetcher, limit: int = SENTENCES_PER_DAY) -> list[Sentence]:
        """Today's sentences: persisted ones if any, otherwise fetched and persisted."""
        await self._prepare()
        if self.sentences:
            return list(self.sentences)
        fetched = select_daily_sentences(list(await fetch()), limit, shuffle=False)
        await self.set_sentences(fetched)
        return list(fetched)

    async def set_sentences(self, sentences: Sequence[Sentence]) -> None:
        await self._prepare()
        before = self.phase
        self.sentences = list(sentences)
        await self._write(Concern.SENTENCES, [s.to_api() for s in self.sentences])
        self._log_transition(before)

    def required_words(self) -> set[str]:
        words: set[str] = set()
        for s in self.sentences or []:
            words.update(sentence_words(s.text))
        return words

    def remaining_words(self) -> set[str]:
        return self.required_words() - self.clicked_words

    @property
    def words_completed(self) -> bool:
        if self.skip_word_gating:
            return True
        if self.sentences is None:
            return False
        # An empty requirement (no sentences today) is satisfied
        return self.required_words() <= self.clicked_words

    async def click_word(self, word: str) -> bool:
        """Record a tapped word and return whether every word is now clicked."""
        await self._prepare()
        cleaned = clean_word(word)
        if cleaned and cleaned not in self.clicked_words:
            before = self.phase
            self.clicked_words.add(cleaned)
            await self._persist_session_state()
            self._log_transition(before)
        return self.words_completed

    async def proceed_to_quiz(self) -> None:
        await self._prepare()
        if self.sentences_completed:
            return
        if not self.words_completed:
            raise TransitionError("Click all words to unlock the quiz.")
        before = self.phase
        await self._write(Concern.COMPLETION_STATUS, True)
        self.sentences_completed = True
        self._log_transition(before)

    # Quiz

    @property
    def quiz_completed(self) -> bool:
        return bool(self.quiz_questions) and self.quiz.question_index >= len(self.quiz_questions)

    @property
    def current_question(self) -> Optional[dict[str, Any]]:
        if self.quiz.question_index < len(self.quiz_questions):
            return self.quiz_questions[self.quiz.question_index]
        return None

    async def start_quiz(self, questions: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        """Install today's questions, or resume the ones already persisted."""
        await self._prepare()
        if not self.sentences_completed:
            raise TransitionError("Review today's sentences before starting the quiz.")
        if self.quiz_questions:
            return list(self.quiz_questions)
        before = self.phase
        self.quiz_questions = [dict(q) for q in questions]
        self.quiz = QuizSessionState()
        await self._write(Concern.QUIZ_QUESTIONS, self.quiz_questions)
        await self._persist_quiz_progress()
        self._log_transition(before)
        return list(self.quiz_questions)

    async def ensure_quiz(self, fetch: QuestionFetcher) -> list[dict[str, Any]]:
        """Today's quiz questions: persisted ones if any, otherwise fetched and started."""
        await self._prepare()
        if self.quiz_questions:
            return list(self.quiz_questions)
        if not self.sentences_completed:
            raise TransitionError("Review today's sentences before starting the quiz.")
        return await self.start_quiz(await fetch())

    async def record_answer(self, correct: bool, question_id: str | None = None) -> QuizSessionState:
        await self._prepare()
        question = self.current_question
        if question is None:
            raise TransitionError("No quiz question is waiting for an answer.")
        if len(self.quiz.answers) > self.quiz.question_index:
            raise TransitionError("This question has already been answered.")
        before = self.phase
        self.quiz.answers.append(bool(correct))
        self.quiz.show_continue = True
        await self._persist_quiz_progress()

        qid = question_id or question.get("id")
        if not correct and qid is not None and str(qid) not in self.incorrect_questions:
            self.incorrect_questions.append(str(qid))
            await self._write(Concern.INCORRECT_QUESTIONS, self.incorrect_questions)
        self._log_transition(before)
        return self.quiz

    async def next_question(self) -> bool:
        """Advance past an answered question. Returns True once the quiz is finished."""
        await self._prepare()
        if len(self.quiz.answers) <= self.quiz.question_index:
            raise TransitionError("Answer the current question first.")
        before = self.phase
        self.quiz.question_index += 1
        self.quiz.show_continue = False
        await self._persist_quiz_progress()
        self._log_transition(before)
        if self.quiz_completed:
            log_structured(
                "quiz_completed",
                user_id=self.user_id,
                date_key=self.date_key,
                correct=self.quiz.correct_count,
                total=len(self.quiz_questions),
            )
            await self._notify_quiz_completed()
        return self.quiz_completed

    async def _notify_quiz_completed(self) -> None:
        if self.on_quiz_completed is None:
            return
        try:
            await self.on_quiz_completed(self.user_id)
        except SyncError as e:
            # Local progress is already saved
            logger.warning("Error reporting quiz completion for %s: %s", self.user_id, e)

    @property
    def pending_review(self) -> list[str]:
        return self.incorrect_questions[self.review_index :]

    async def advance_review(self) -> int:
        """Mark the next incorrectly answered question as reviewed."""
        await self._prepare()
        if self.review_index < len(self.incorrect_questions):
            self.review_index += 1
            await self._write(Concern.INCORRECT_PROGRESS, self.review_index)
        return len(self.pending_review)

    # Phase and reset

    @property
    def phase(self) -> SessionPhase:
        if self.quiz_completed:
            return SessionPhase.QUIZ_COMPLETED
        if self.sentences_completed:
            if self.quiz.answers or self.quiz.question_index > 0:
                return SessionPhase.QUIZ_IN_PROGRESS
            return SessionPhase.SENTENCES_COMPLETED
        if self.words_completed:
            return SessionPhase.WORDS_COMPLETED
        if self.clicked_words:
            return SessionPhase.WORDS_IN_PROGRESS
        return SessionPhase.NOT_STARTED

    async def reset(self) -> None:
        """Start today's session over: forget clicks and every day-scoped key."""
        await self.check_rollover()
        try:
            await self.store.delete_many(day_keys(self.user_id, self.date_key))
        except PersistenceError as e:
            logger.warning("Error resetting session keys for %s: %s", self.user_id, e)
        self._clear_memory()
        self._loaded = True
        log_structured("session_reset", user_id=self.user_id, date_key=self.date_key)
