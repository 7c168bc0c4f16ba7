"""
Testing service.

The calling layer between outward surfaces (API, CLI) and the core:
- next_question: ensure an open session, select a concept, append a question
- submit_answer: validate the pending question, turn the evaluation into a mastery
  signal, then record the result
- start / complete / abandon / snapshot: session lifecycle pass-throughs

A mastery update and a session update are independent writes. A failed
mastery update is logged and the answer is still recorded, so the learner
always sees their result. A failed session start propagates.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from loguru import logger

from mastery_engine.config import Settings, get_settings
from mastery_engine.graph import GraphSource, StoreGraphSource
from mastery_engine.mastery import (
    LearningSignal,
    MasteryPropagator,
    MasteryStore,
    MasteryUpdate,
    PrerequisiteCheck,
    PropagationResult,
    create_test_signal,
)
from mastery_engine.selection import (
    AdaptiveSelector,
    ConceptCandidate,
    ContentSearch,
    EmptyPool,
    Found,
    NotFoundAnywhere,
    NotFoundInGraph,
    determine_difficulty,
)
from mastery_engine.sessions import (
    Evaluation,
    QuestionDifficulty,
    QuestionType,
    SessionDifficulty,
    SessionProgress,
    TestQuestion,
    TestResult,
    TestSession,
    TestSessionConfig,
    TestSessionManager,
    TestSessionSummary,
    get_adaptive_difficulty,
)
from mastery_engine.storage import KeySpace, KeyValueStore, create_store

AUTO = "auto"


@dataclass
class QuestionPlan:
    """A concept chosen for testing and the placeholder question appended for it."""

    question: TestQuestion
    candidate: ConceptCandidate
    session_id: str
    from_content_search: bool = False
    weak_prerequisites: list[str] | None = None

    @property
    def rationale(self) -> str:
        return self.candidate.reason


@dataclass
class AnswerOutcome:
    result: TestResult
    progress: SessionProgress
    is_complete: bool
    mastery_update: MasteryUpdate | None = None
    propagation: PropagationResult | None = None


@dataclass
class SessionSnapshot:
    session: TestSession
    current_question: TestQuestion | None
    progress: SessionProgress
    is_complete: bool
    suggested_difficulty: QuestionDifficulty


class TestingService:
    """Wires the mastery store, selector and session manager together."""

    __test__ = False

    def __init__(
        self,
        mastery_store: MasteryStore,
        sessions: TestSessionManager,
        selector: AdaptiveSelector,
        propagator: MasteryPropagator | None = None,
        signal_weights: dict[str, float] | None = None,
    ):
        self.mastery_store = mastery_store
        self.sessions = sessions
        self.selector = selector
        self.propagator = propagator
        self.signal_weights = signal_weights

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        store: KeyValueStore | None = None,
        graph_source: GraphSource | None = None,
        content_search: ContentSearch | None = None,
    ) -> TestingService:
        """Build the full object graph from settings, creating the store if needed."""
        settings = settings or get_settings()
        store = store or create_store(settings)
        graph_source = graph_source or StoreGraphSource(store, KeySpace(settings.key_prefix))

        mastery_store = MasteryStore.from_settings(store, settings)
        return cls(
            mastery_store=mastery_store,
            sessions=TestSessionManager.from_settings(store, settings),
            selector=AdaptiveSelector(mastery_store, graph_source, content_search),
            propagator=MasteryPropagator(mastery_store, graph_source),
            signal_weights={
                Evaluation.CORRECT.value: settings.correct_delta,
                Evaluation.PARTIAL.value: settings.partial_delta,
                Evaluation.INCORRECT.value: settings.incorrect_delta,
            },
        )

    async def close(self) -> None:
        await self.sessions.store.close()

    # ========================================
    # Session lifecycle
    # ========================================

    async def start(self, user_id: str, config: TestSessionConfig | None = None) -> TestSession:
        return await self.sessions.start_test_session(user_id, config)

    async def complete(self, user_id: str) -> TestSessionSummary:
        return await self.sessions.complete_test_session(user_id)

    async def abandon(self, user_id: str) -> None:
        await self.sessions.abandon_test_session(user_id)

    async def snapshot(self, user_id: str) -> SessionSnapshot | None:
        """Progress view of the open session, or None."""
        session = await self.sessions.get_active_test_session(user_id)
        if session is None:
            return None
        return SessionSnapshot(
            session=session,
            current_question=session.current_question,
            progress=TestSessionManager.progress_of(session),
            is_complete=session.is_complete,
            suggested_difficulty=get_adaptive_difficulty(session),
        )

    # ========================================
    # Questions
    # ========================================

    async def next_question(
        self,
        user_id: str,
        topic: str | None = None,
        difficulty: QuestionDifficulty | str = AUTO,
        question_type: QuestionType | None = None,
        avoid_concept_ids: Iterable[str] = (),
    ) -> QuestionPlan | NotFoundAnywhere | EmptyPool:
        """
        Select the next concept and append a placeholder question for it.

        Args:
            user_id: Learner identifier
            topic: Optional topic the learner asked for
            difficulty: Fixed difficulty, or "auto" to derive it from mastery
            question_type: Fixed question type, or None to pick one for the difficulty
            avoid_concept_ids: Extra concepts to exclude

        Returns:
            QuestionPlan, or the selector's miss result
        """
        session = await self.sessions.get_active_test_session(user_id)
        if session is None:
            logger.info(f"No active test session for {user_id}, creating one")
            session = await self.sessions.create_test_session(
                user_id, TestSessionConfig(difficulty=SessionDifficulty.ADAPTIVE)
            )

        avoid = [*avoid_concept_ids, *session.asked_concept_ids]
        selection = await self.selector.select_concept(user_id, topic, avoid)
        if isinstance(selection, (NotFoundAnywhere, EmptyPool)):
            return selection

        candidate = selection.candidate
        weak_prerequisites = None
        if isinstance(selection, Found) and self.propagator is not None:
            check: PrerequisiteCheck = await self.propagator.check_prerequisites(user_id, candidate.concept_id)
            if check.weak_prerequisites:
                weak_prerequisites = check.weak_prerequisites
                logger.info(f"Weak prerequisites for {candidate.concept_id}: {weak_prerequisites}")

        chosen_difficulty = self._resolve_difficulty(difficulty, session, candidate)
        chosen_type = self.selector.choose_question_type(chosen_difficulty, question_type)

        question = TestQuestion(
            concept_id=candidate.concept_id,
            concept_label=candidate.concept_label,
            difficulty=chosen_difficulty,
            question_type=chosen_type,
            question=(
                f'Testing "{candidate.concept_label}" - '
                f"{chosen_difficulty.value} difficulty, {chosen_type.value} style"
            ),
            expected_answer=(
                f"The answer should demonstrate understanding of {candidate.concept_label} - "
                "its purpose, when to use it, and how it applies to the scenario."
            ),
            hints=[f"Think about how {candidate.concept_label} is used in practice."],
        )
        await self.sessions.add_question_to_session(user_id, question)

        return QuestionPlan(
            question=question,
            candidate=candidate,
            session_id=session.session_id,
            from_content_search=isinstance(selection, NotFoundInGraph),
            weak_prerequisites=weak_prerequisites,
        )

    @staticmethod
    def _resolve_difficulty(
        requested: QuestionDifficulty | str,
        session: TestSession,
        candidate: ConceptCandidate,
    ) -> QuestionDifficulty:
        if requested != AUTO:
            return QuestionDifficulty(requested)
        if session.difficulty != SessionDifficulty.ADAPTIVE:
            return QuestionDifficulty(session.difficulty.value)
        return determine_difficulty(candidate.effective_mastery)

    # ========================================
    # Answers
    # ========================================

    async def submit_answer(
        self,
        user_id: str,
        question_id: str,
        user_answer: str,
        evaluation: Evaluation,
        feedback: str = "",
        time_to_answer_ms: int | None = None,
    ) -> AnswerOutcome:
        """
        Apply an externally graded answer to mastery and record it in the session.

        The session is validated before mastery is touched, so a rejected
        answer leaves mastery unchanged.

        Raises:
            NoActiveSessionError: If the user has no open session
            SessionPausedError: If the session is paused
            QuestionNotFoundError: If question_id is not part of the session
            NoPendingQuestionError: If every question already has a result
            QuestionOutOfOrderError: If question_id is not the next unanswered question
        """
        session, question_index = await self.sessions.validate_answer(user_id, question_id)
        question = session.questions[question_index]

        signal = create_test_signal(
            question.concept_id,
            question.concept_label,
            evaluation,
            context=question.question,
            weights=self.signal_weights,
        )

        update: MasteryUpdate | None = None
        try:
            update = await self.mastery_store.update_mastery_from_signal(user_id, signal)
        except Exception as e:
            logger.error(f"Mastery update failed for {user_id}/{question.concept_id}, recording answer anyway: {e}")

        if update is not None:
            previous = update.previous_mastery
            if previous is None:
                previous = self.mastery_store.default_mastery
            new = update.new_mastery
        else:
            previous = new = self.mastery_store.default_mastery

        propagation = None
        if update is not None and self.propagator is not None and new > previous:
            propagation = await self.propagator.propagate_mastery(user_id, question.concept_id, new - previous)

        result = await self.sessions.process_answer(
            user_id,
            question_id,
            user_answer,
            evaluation,
            feedback,
            previous_mastery=previous,
            new_mastery=new,
            time_to_answer_ms=time_to_answer_ms,
        )

        session = await self.sessions.get_active_test_session(user_id)
        return AnswerOutcome(
            result=result,
            progress=TestSessionManager.progress_of(session),
            is_complete=session.is_complete,
            mastery_update=update,
            propagation=propagation,
        )

    async def record_signal(self, user_id: str, signal: LearningSignal) -> MasteryUpdate:
        """Apply a signal from outside test mode (e.g. conversation analysis)."""
        return await self.mastery_store.update_mastery_from_signal(user_id, signal)
