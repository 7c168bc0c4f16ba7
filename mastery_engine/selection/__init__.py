"""Adaptive selection of the next concept to test."""

from .selector import (
    AdaptiveSelector,
    ConceptCandidate,
    ContentSearch,
    ContentSnippet,
    EmptyPool,
    Found,
    NotFoundAnywhere,
    NotFoundInGraph,
    SelectionResult,
    calculate_priority,
    choose_question_type,
    determine_difficulty,
)

__all__ = [
    "AdaptiveSelector",
    "ConceptCandidate",
    "ContentSearch",
    "ContentSnippet",
    "EmptyPool",
    "Found",
    "NotFoundAnywhere",
    "NotFoundInGraph",
    "SelectionResult",
    "calculate_priority",
    "choose_question_type",
    "determine_difficulty",
]
