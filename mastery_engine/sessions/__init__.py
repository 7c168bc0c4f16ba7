"""
Test sessions.

Components:
- TestSessionManager: lifecycle, append log, scoring, archival, history
- generate_session_summary: pure end-of-session report
"""

from .manager import TestSessionManager
from .models import (
    Evaluation,
    QuestionDifficulty,
    QuestionType,
    SessionDifficulty,
    SessionProgress,
    SessionStatus,
    SummaryEntry,
    TestQuestion,
    TestResult,
    TestSession,
    TestSessionConfig,
    TestSessionHistoryEntry,
    TestSessionSummary,
    calculate_score,
    generate_question_id,
    generate_session_id,
    get_adaptive_difficulty,
)
from .summary import generate_session_summary

__all__ = [
    "Evaluation",
    "QuestionDifficulty",
    "QuestionType",
    "SessionDifficulty",
    "SessionProgress",
    "SessionStatus",
    "SummaryEntry",
    "TestQuestion",
    "TestResult",
    "TestSession",
    "TestSessionConfig",
    "TestSessionHistoryEntry",
    "TestSessionManager",
    "TestSessionSummary",
    "calculate_score",
    "generate_question_id",
    "generate_session_id",
    "generate_session_summary",
    "get_adaptive_difficulty",
]
