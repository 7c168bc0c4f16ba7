"""
Exceptions raised by the mastery engine.

Missing records are not errors: lookups return ``None``. Exceptions are
reserved for operations invoked against state that cannot support them.
Backend failures (redis, SQLAlchemy) propagate unchanged.
"""
from __future__ import annotations


class MasteryEngineError(Exception):
    """Base class for all mastery engine errors."""


class PreconditionViolation(MasteryEngineError):
    """An operation was invoked against state that cannot accept it."""


class NoActiveSessionError(PreconditionViolation):
    """The user has no open test session."""

    def __init__(self, user_id: str):
        super().__init__(f"No active test session for user {user_id}")
        self.user_id = user_id


class SessionPausedError(PreconditionViolation):
    """The open session is paused and must be resumed before it can change."""

    def __init__(self, session_id: str):
        super().__init__(f"Test session {session_id} is paused")
        self.session_id = session_id


class QuestionNotFoundError(PreconditionViolation):
    """An answer referenced a question that is not part of the session."""

    def __init__(self, question_id: str):
        super().__init__(f"Question {question_id} not found in session")
        self.question_id = question_id


class NoPendingQuestionError(PreconditionViolation):
    """Every appended question already has a recorded result."""

    def __init__(self, session_id: str):
        super().__init__(f"Test session {session_id} has no unanswered question")
        self.session_id = session_id


class QuestionOutOfOrderError(PreconditionViolation):
    """An answer referenced a question other than the next unanswered one."""

    def __init__(self, question_id: str, expected_question_id: str):
        super().__init__(f"Question {question_id} is not the pending question (expected {expected_question_id})")
        self.question_id = question_id
        self.expected_question_id = expected_question_id
