"""
Test Session Manager.

Owns the single open test session per user:

    active <-> paused          (open, stored under session:{user})
    active/paused -> completed (archived, summary returned)
    active/paused -> abandoned (archived)

Every mutation reads the current blob immediately before its single write.
There is no locking: concurrent writers for the same user race and the last
write wins. Archival is best-effort and never blocks a terminal transition.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from loguru import logger

from mastery_engine.config import Settings
from mastery_engine.errors import (
    NoActiveSessionError,
    NoPendingQuestionError,
    QuestionNotFoundError,
    QuestionOutOfOrderError,
    SessionPausedError,
)
from mastery_engine.mastery.decay import round_half_up, to_epoch_ms, utc_now
from mastery_engine.storage import KeySpace, KeyValueStore

from .models import (
    Evaluation,
    SessionProgress,
    SessionStatus,
    TestQuestion,
    TestResult,
    TestSession,
    TestSessionConfig,
    TestSessionHistoryEntry,
    TestSessionSummary,
    calculate_score,
)
from .summary import generate_session_summary

DEFAULT_HISTORY_LIMIT = 100
DEFAULT_QUESTION_COUNT = 10


class TestSessionManager:
    """Session lifecycle, append log, scoring and history."""

    __test__ = False  # not a pytest class

    def __init__(
        self,
        store: KeyValueStore,
        keys: KeySpace | None = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        default_question_count: int = DEFAULT_QUESTION_COUNT,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.keys = keys or KeySpace()
        self.history_limit = history_limit
        self.default_question_count = default_question_count
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        store: KeyValueStore,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ) -> TestSessionManager:
        return cls(
            store,
            keys=KeySpace(settings.key_prefix),
            history_limit=settings.history_limit,
            default_question_count=settings.default_question_count,
            clock=clock,
        )

    # ========================================
    # Persistence helpers
    # ========================================

    async def _load(self, user_id: str) -> TestSession | None:
        data = await self.store.get(self.keys.session(user_id))
        if data is None:
            return None
        return TestSession.model_validate_json(data)

    async def _save(self, session: TestSession) -> None:
        await self.store.set(self.keys.session(session.user_id), session.model_dump_json())

    async def _require_open(self, user_id: str) -> TestSession:
        session = await self.get_active_test_session(user_id)
        if session is None:
            raise NoActiveSessionError(user_id)
        return session

    async def _require_active(self, user_id: str) -> TestSession:
        session = await self._require_open(user_id)
        if session.status == SessionStatus.PAUSED:
            raise SessionPausedError(session.session_id)
        return session

    # ========================================
    # Lookups
    # ========================================

    async def get_active_test_session(self, user_id: str) -> TestSession | None:
        """Return the open (active or paused) session, or None."""
        try:
            session = await self._load(user_id)
        except Exception as e:
            logger.error(f"Failed to get active test session for {user_id}: {e}")
            raise
        if session is None or not session.is_open:
            return None
        return session

    async def has_active_test_session(self, user_id: str) -> bool:
        return await self.get_active_test_session(user_id) is not None

    async def get_current_question(self, user_id: str) -> TestQuestion | None:
        session = await self.get_active_test_session(user_id)
        return session.current_question if session else None

    async def get_session_progress(self, user_id: str) -> SessionProgress | None:
        session = await self.get_active_test_session(user_id)
        if session is None:
            return None
        return self.progress_of(session)

    @staticmethod
    def progress_of(session: TestSession) -> SessionProgress:
        return SessionProgress(
            current=session.current_index + 1,
            total=session.target_question_count,
            score=session.score,
            remaining=max(0, session.target_question_count - len(session.results)),
            correct_count=session.correct_count,
            partial_count=session.partial_count,
            incorrect_count=session.incorrect_count,
        )

    async def is_session_complete(self, user_id: str) -> bool:
        session = await self.get_active_test_session(user_id)
        return session.is_complete if session else False

    # ========================================
    # Lifecycle
    # ========================================

    async def create_test_session(self, user_id: str, config: TestSessionConfig | None = None) -> TestSession:
        """Write a fresh active session, replacing whatever is stored for the user."""
        config = config or TestSessionConfig()
        now = self.clock()
        session = TestSession(
            user_id=user_id,
            started_at=now,
            updated_at=now,
            target_question_count=config.target_question_count or self.default_question_count,
            focus_concept_ids=config.focus_concept_ids,
            difficulty=config.difficulty,
        )
        try:
            await self._save(session)
        except Exception as e:
            logger.error(f"Failed to create test session for {user_id}: {e}")
            raise

        logger.info(
            f"Test session created: {session.session_id} for {user_id} "
            f"(target={session.target_question_count}, difficulty={session.difficulty.value})"
        )
        return session

    async def start_test_session(self, user_id: str, config: TestSessionConfig | None = None) -> TestSession:
        """Abandon any open session, then create a new active one."""
        existing = await self.get_active_test_session(user_id)
        if existing is not None:
            logger.info(f"Abandoning {existing.session_id} before starting a new session for {user_id}")
            await self.abandon_test_session(user_id)
        return await self.create_test_session(user_id, config)

    async def pause_test_session(self, user_id: str) -> TestSession:
        return await self._set_status(user_id, SessionStatus.PAUSED)

    async def resume_test_session(self, user_id: str) -> TestSession:
        return await self._set_status(user_id, SessionStatus.ACTIVE)

    async def _set_status(self, user_id: str, status: SessionStatus) -> TestSession:
        session = await self._require_open(user_id)
        session.status = status
        session.updated_at = self.clock()
        await self._save(session)
        logger.info(f"Test session {session.session_id} is now {status.value}")
        return session

    async def complete_test_session(self, user_id: str) -> TestSessionSummary:
        """
        Finish the open session, archive it and return its summary.

        Raises:
            NoActiveSessionError: If the user has no open session
        """
        session = await self._terminate(await self._require_open(user_id), SessionStatus.COMPLETED)
        logger.info(
            f"Test session completed: {session.session_id} "
            f"score={session.score} answered={len(session.results)}"
        )
        return generate_session_summary(session)

    async def abandon_test_session(self, user_id: str) -> None:
        """Abandon and archive the open session. No-op when none is open."""
        session = await self.get_active_test_session(user_id)
        if session is None:
            return
        await self._terminate(session, SessionStatus.ABANDONED)
        logger.info(f"Test session abandoned: {session.session_id} answered={len(session.results)}")

    async def _terminate(self, session: TestSession, status: SessionStatus) -> TestSession:
        now = self.clock()
        session.status = status
        session.completed_at = now
        session.updated_at = now
        await self._save(session)
        await self._archive(session)
        return session

    async def delete_active_session(self, user_id: str) -> None:
        """Clear the stored session without archiving it."""
        await self.store.delete(self.keys.session(user_id))
        logger.info(f"Active test session deleted for {user_id}")

    # ========================================
    # Append log
    # ========================================

    async def add_question_to_session(self, user_id: str, question: TestQuestion) -> TestSession:
        """Append a question to the active session."""
        session = await self._require_active(user_id)
        session.questions.append(question)
        session.updated_at = self.clock()
        await self._save(session)
        logger.debug(f"Question {question.question_id} ({question.concept_id}) added to {session.session_id}")
        return session

    async def record_answer_result(self, user_id: str, result: TestResult) -> TestSession:
        """
        Append a result, advance the cursor and rescore.

        Raises:
            NoActiveSessionError: If the user has no open session
            SessionPausedError: If the session is paused
            NoPendingQuestionError: If every question already has a result
            QuestionOutOfOrderError: If the result is not for the next unanswered question
        """
        session = await self._require_active(user_id)
        self._check_pending(session, result.question_id)

        session.results.append(result)
        if result.evaluation == Evaluation.CORRECT:
            session.correct_count += 1
        elif result.evaluation == Evaluation.PARTIAL:
            session.partial_count += 1
        else:
            session.incorrect_count += 1
        session.score = calculate_score(session.results)
        session.current_index += 1
        session.updated_at = self.clock()

        await self._save(session)
        logger.info(
            f"Answer recorded in {session.session_id}: {result.evaluation.value} "
            f"score={session.score} answered={len(session.results)}"
        )
        return session

    async def validate_answer(self, user_id: str, question_id: str) -> tuple[TestSession, int]:
        """
        Check that the open session can take an answer for question_id.

        Nothing is written. Returns the session and the question's index,
        which is always the session's current index.

        Raises:
            NoActiveSessionError: If the user has no open session
            SessionPausedError: If the session is paused
            QuestionNotFoundError: If question_id is not part of the session
            NoPendingQuestionError: If every question already has a result
            QuestionOutOfOrderError: If question_id is not the next unanswered question
        """
        session = await self._require_active(user_id)
        question_index = session.find_question_index(question_id)
        if question_index is None:
            raise QuestionNotFoundError(question_id)
        self._check_pending(session, question_id)
        return session, question_index

    @staticmethod
    def _check_pending(session: TestSession, question_id: str) -> None:
        if len(session.results) >= len(session.questions):
            raise NoPendingQuestionError(session.session_id)
        expected = session.questions[session.current_index]
        if question_id != expected.question_id:
            raise QuestionOutOfOrderError(question_id, expected.question_id)

    async def process_answer(
        self,
        user_id: str,
        question_id: str,
        user_answer: str,
        evaluation: Evaluation,
        feedback: str,
        previous_mastery: float,
        new_mastery: float,
        time_to_answer_ms: int | None = None,
    ) -> TestResult:
        """
        Build a result for the pending question of the open session and record it.

        Raises the same errors as validate_answer.
        """
        _, question_index = await self.validate_answer(user_id, question_id)

        result = TestResult(
            question_id=question_id,
            question_index=question_index,
            user_answer=user_answer,
            evaluation=evaluation,
            feedback=feedback,
            mastery_change=round_half_up(new_mastery - previous_mastery, 3),
            previous_mastery=previous_mastery,
            new_mastery=new_mastery,
            answered_at=self.clock(),
            time_to_answer_ms=time_to_answer_ms,
        )
        await self.record_answer_result(user_id, result)
        return result

    # ========================================
    # History
    # ========================================

    async def _archive(self, session: TestSession) -> None:
        history_key = self.keys.session_history(session.user_id)
        try:
            await self.store.set(self.keys.session_archive(session.session_id), session.model_dump_json())
            await self.store.zadd(history_key, {session.session_id: to_epoch_ms(session.started_at)})
            await self.store.zremrangebyrank(history_key, 0, -(self.history_limit + 1))
        except Exception as e:
            logger.error(f"Failed to archive test session {session.session_id} for {session.user_id}: {e}")
            return
        logger.debug(f"Test session archived: {session.session_id}")

    async def get_historical_session(self, session_id: str) -> TestSession | None:
        data = await self.store.get(self.keys.session_archive(session_id))
        if data is None:
            return None
        return TestSession.model_validate_json(data)

    async def get_test_session_history(self, user_id: str, limit: int = 20) -> list[TestSessionHistoryEntry]:
        """Most recent archived sessions first."""
        if limit <= 0:
            return []
        session_ids = await self.store.zrange(self.keys.session_history(user_id), -limit, -1)

        entries = []
        for session_id in reversed(session_ids):
            session = await self.get_historical_session(session_id)
            if session is None:
                continue
            entries.append(
                TestSessionHistoryEntry(
                    session_id=session.session_id,
                    started_at=session.started_at,
                    completed_at=session.completed_at,
                    status=session.status,
                    questions_answered=len(session.results),
                    score=session.score,
                    concepts_tested=session.asked_concept_ids,
                )
            )
        return entries
