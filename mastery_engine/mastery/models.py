"""
Mastery data models.

Pydantic models for everything persisted or returned by the mastery store:
- ConceptMastery: one record per (user, concept)
- LearningSignal: ephemeral evidence about a concept
- EffectiveMastery: read view with decay applied
- MasteryUpdate: before/after of a single signal
- MasterySummary: band counts for a user
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, Field

from .decay import utc_now


class SignalType(str, Enum):
    """Kinds of evidence a learning interaction can produce."""

    ASKING_ABOUT = "asking_about"
    EXPLAINS_CORRECTLY = "explains_correctly"
    EXPLAINS_INCORRECTLY = "explains_incorrectly"
    EXPRESSES_CONFUSION = "expresses_confusion"
    ASKS_FOLLOWUP = "asks_followup"
    ASKS_AGAIN = "asks_again"
    QUIZ_CORRECT = "quiz_correct"
    QUIZ_INCORRECT = "quiz_incorrect"
    QUIZ_PARTIAL = "quiz_partial"
    MAKES_CONNECTION = "makes_connection"


class LearningSignal(BaseModel):
    """Evidence about a learner's grasp of one concept. Consumed, never stored."""

    type: SignalType
    concept_id: str
    concept_label: str
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    mastery_delta: float = Field(ge=-1.0, le=1.0)
    timestamp: datetime = Field(default_factory=utc_now)
    context: str | None = None


class ConceptMastery(BaseModel):
    """Persisted mastery state for one concept."""

    concept_id: str
    concept_label: str
    mastery_score: float = Field(default=0.2, ge=0.0, le=1.0)
    confidence: float = Field(default=0.3, ge=0.0, le=1.0)

    # SM-2 scheduling
    interval_days: int = Field(default=1, ge=0)
    ease_factor: float = Field(default=2.5, ge=1.3, le=3.0)

    # Performance tracking
    streak_correct: int = 0
    streak_wrong: int = 0
    total_attempts: int = 0
    correct_attempts: int = 0

    # Timestamps
    last_interaction: datetime = Field(default_factory=utc_now)
    next_review_date: datetime = Field(default_factory=lambda: utc_now() + timedelta(days=1))
    created_at: datetime = Field(default_factory=utc_now)

    # Evidence
    last_correct_answer: datetime | None = None
    common_mistakes: list[str] = Field(default_factory=list)
    confused_with: list[str] = Field(default_factory=list)

    @property
    def accuracy(self) -> float:
        """Share of attempts with a positive signal."""
        if self.total_attempts == 0:
            return 0.0
        return self.correct_attempts / self.total_attempts


class EffectiveMastery(ConceptMastery):
    """ConceptMastery with read-time decay applied."""

    effective_mastery: float
    days_since_interaction: float
    is_due_for_review: bool


class MasteryUpdate(BaseModel):
    """Outcome of applying one signal. Previous values are None for new records."""

    concept_id: str
    signal: LearningSignal
    previous_mastery: float | None
    new_mastery: float
    previous_confidence: float | None
    new_confidence: float

    @property
    def is_new(self) -> bool:
        return self.previous_mastery is None


class MasterySummary(BaseModel):
    """Aggregate view of a user's tracked concepts."""

    user_id: str
    total_concepts: int
    mastered_concepts: int
    learning_concepts: int
    weak_concepts: int
    average_mastery: float
    concepts_due_for_review: int
    last_updated: datetime
