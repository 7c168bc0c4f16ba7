"""
Test session data models.

A TestSession is an append-only log of questions and results. Results are
matched to questions positionally: ``current_index == len(results)`` and
never exceeds ``len(questions)``.
"""

from __future__ import annotations

import string
import time
from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from mastery_engine.mastery.decay import round_half_up, utc_now

_BASE36 = string.digits + string.ascii_lowercase


def _base36(value: int) -> str:
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits)) or "0"


def generate_session_id() -> str:
    return f"test_{_base36(int(time.time() * 1000))}_{uuid4().hex[:6]}"


def generate_question_id() -> str:
    return f"q_{_base36(int(time.time() * 1000))}_{uuid4().hex[:4]}"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

    @property
    def is_open(self) -> bool:
        return self in (SessionStatus.ACTIVE, SessionStatus.PAUSED)


class Evaluation(str, Enum):
    CORRECT = "correct"
    PARTIAL = "partial"
    INCORRECT = "incorrect"


class QuestionDifficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class SessionDifficulty(str, Enum):
    """Fixed question difficulty, or adaptive to recent results."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    ADAPTIVE = "adaptive"


class QuestionType(str, Enum):
    DEFINITION = "definition"
    APPLICATION = "application"
    COMPARISON = "comparison"
    ANALYSIS = "analysis"


class TestQuestion(BaseModel):
    """A question appended to a session. Immutable once appended."""

    model_config = ConfigDict(frozen=True)

    question_id: str = Field(default_factory=generate_question_id)
    concept_id: str
    concept_label: str
    difficulty: QuestionDifficulty
    question_type: QuestionType
    question: str = ""
    expected_answer: str = ""
    hints: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)


class TestResult(BaseModel):
    """An evaluated answer. Immutable once appended."""

    model_config = ConfigDict(frozen=True)

    question_id: str
    question_index: int = Field(ge=0)
    user_answer: str
    evaluation: Evaluation
    feedback: str = ""
    mastery_change: float = 0.0
    previous_mastery: float
    new_mastery: float
    answered_at: datetime = Field(default_factory=utc_now)
    time_to_answer_ms: int | None = None


class TestSessionConfig(BaseModel):
    """Options for starting a session; unset values fall back to defaults."""

    target_question_count: int | None = Field(default=None, ge=1)
    focus_concept_ids: list[str] | None = None
    difficulty: SessionDifficulty = SessionDifficulty.ADAPTIVE


class TestSession(BaseModel):
    """One learner's test run."""

    session_id: str = Field(default_factory=generate_session_id)
    user_id: str
    status: SessionStatus = SessionStatus.ACTIVE
    started_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None

    questions: list[TestQuestion] = Field(default_factory=list)
    current_index: int = 0
    results: list[TestResult] = Field(default_factory=list)

    target_question_count: int = Field(default=10, ge=1)
    focus_concept_ids: list[str] | None = None
    difficulty: SessionDifficulty = SessionDifficulty.ADAPTIVE

    score: int = 0
    correct_count: int = 0
    partial_count: int = 0
    incorrect_count: int = 0

    @property
    def is_open(self) -> bool:
        return self.status.is_open

    @property
    def questions_answered(self) -> int:
        return len(self.results)

    @property
    def current_question(self) -> TestQuestion | None:
        if self.current_index >= len(self.questions):
            return None
        return self.questions[self.current_index]

    @property
    def is_complete(self) -> bool:
        """Answer-count driven, independent of how many questions exist."""
        return len(self.results) >= self.target_question_count

    @property
    def asked_concept_ids(self) -> list[str]:
        return [q.concept_id for q in self.questions]

    @property
    def counters_match_results(self) -> bool:
        """True when the evaluation counters agree with the result log."""
        tally = {e: 0 for e in Evaluation}
        for result in self.results:
            tally[result.evaluation] += 1
        return (
            self.correct_count == tally[Evaluation.CORRECT]
            and self.partial_count == tally[Evaluation.PARTIAL]
            and self.incorrect_count == tally[Evaluation.INCORRECT]
        )

    def find_question_index(self, question_id: str) -> int | None:
        for index, question in enumerate(self.questions):
            if question.question_id == question_id:
                return index
        return None

    def get_question(self, question_id: str) -> TestQuestion | None:
        index = self.find_question_index(question_id)
        return None if index is None else self.questions[index]


def calculate_score(results: list[TestResult]) -> int:
    """Percentage with partial answers worth half; 0 when nothing was answered."""
    if not results:
        return 0
    correct = sum(1 for r in results if r.evaluation == Evaluation.CORRECT)
    partial = sum(1 for r in results if r.evaluation == Evaluation.PARTIAL)
    return int(round_half_up(100 * (correct + 0.5 * partial) / len(results)))


def get_adaptive_difficulty(session: TestSession) -> QuestionDifficulty:
    """Pick the next difficulty from the share of correct answers among the last three."""
    if not session.results:
        return QuestionDifficulty.MEDIUM

    recent = session.results[-3:]
    ratio = sum(1 for r in recent if r.evaluation == Evaluation.CORRECT) / len(recent)
    if ratio >= 0.8:
        return QuestionDifficulty.HARD
    if ratio <= 0.3:
        return QuestionDifficulty.EASY
    return QuestionDifficulty.MEDIUM


class SessionProgress(BaseModel):
    current: int
    total: int
    score: int
    remaining: int
    correct_count: int
    partial_count: int
    incorrect_count: int


class TestSessionHistoryEntry(BaseModel):
    session_id: str
    started_at: datetime
    completed_at: datetime | None
    status: SessionStatus
    questions_answered: int
    score: int
    concepts_tested: list[str]


class SummaryEntry(BaseModel):
    concept_id: str
    concept_label: str
    mastery_before: float
    mastery_after: float
    feedback: str | None = None


class TestSessionSummary(BaseModel):
    session_id: str
    user_id: str
    status: SessionStatus
    duration: int  # minutes
    questions_answered: int
    score: int
    correct: list[SummaryEntry] = Field(default_factory=list)
    partial: list[SummaryEntry] = Field(default_factory=list)
    incorrect: list[SummaryEntry] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    concepts_to_review: list[str] = Field(default_factory=list)
