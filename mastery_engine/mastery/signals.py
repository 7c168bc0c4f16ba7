"""Signals produced by evaluated test answers."""
from __future__ import annotations

from datetime import datetime

from .decay import utc_now
from .models import LearningSignal, SignalType

# Mastery deltas for explicit test evaluations
TEST_MODE_SIGNAL_WEIGHTS: dict[str, float] = {
    "correct": 0.3,
    "partial": 0.1,
    "incorrect": -0.2,
}

TEST_MODE_SIGNAL_TYPES: dict[str, SignalType] = {
    "correct": SignalType.QUIZ_CORRECT,
    "partial": SignalType.QUIZ_PARTIAL,
    "incorrect": SignalType.QUIZ_INCORRECT,
}


def create_test_signal(
    concept_id: str,
    concept_label: str,
    evaluation: str,
    context: str | None = None,
    weights: dict[str, float] | None = None,
    timestamp: datetime | None = None,
) -> LearningSignal:
    """
    Build the learning signal for one evaluated test answer.

    Test answers are explicit evidence, so the signal carries full confidence.

    Args:
        concept_id: Concept the question tested
        concept_label: Display label of the concept
        evaluation: "correct", "partial" or "incorrect"
        context: Optional free text (usually the question)
        weights: Override for TEST_MODE_SIGNAL_WEIGHTS
        timestamp: Signal time (defaults to UTC now)
    """
    weights = weights or TEST_MODE_SIGNAL_WEIGHTS
    key = str(getattr(evaluation, "value", evaluation))
    return LearningSignal(
        type=TEST_MODE_SIGNAL_TYPES[key],
        concept_id=concept_id,
        concept_label=concept_label,
        confidence=1.0,
        mastery_delta=weights[key],
        timestamp=timestamp or utc_now(),
        context=context,
    )
