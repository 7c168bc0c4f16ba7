"""
Per-concept mastery tracking.

Components:
- MasteryStore: persisted records, read-time decay, ranking queries
- SM2Scheduler: review interval scheduling
- MasteryPropagator: graph-aware propagation and prerequisite checks
- create_test_signal: signals from evaluated test answers
"""

from .decay import calculate_days_since, calculate_effective_mastery
from .models import (
    ConceptMastery,
    EffectiveMastery,
    LearningSignal,
    MasterySummary,
    MasteryUpdate,
    SignalType,
)
from .propagation import MasteryPropagator, PrerequisiteCheck, PropagationResult
from .signals import TEST_MODE_SIGNAL_WEIGHTS, create_test_signal
from .sm2 import ReviewSchedule, SM2Config, SM2Scheduler
from .store import MasteryStore

__all__ = [
    "ConceptMastery",
    "EffectiveMastery",
    "LearningSignal",
    "MasteryPropagator",
    "MasteryStore",
    "MasterySummary",
    "MasteryUpdate",
    "PrerequisiteCheck",
    "PropagationResult",
    "ReviewSchedule",
    "SM2Config",
    "SM2Scheduler",
    "SignalType",
    "TEST_MODE_SIGNAL_WEIGHTS",
    "calculate_days_since",
    "calculate_effective_mastery",
    "create_test_signal",
]
