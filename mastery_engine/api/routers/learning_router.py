"""
Learning router for test sessions and mastery.

Endpoints for:
- Test session lifecycle (start, pause, resume, complete, abandon)
- Adaptive question selection and answer submission
- Session history
- Mastery summary, weakest/due concepts and raw signals

Precondition violations map to 409; store failures map to 503 so callers
can retry.
"""
from __future__ import annotations

from typing import Literal, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from loguru import logger
from pydantic import BaseModel, Field

from mastery_engine.errors import PreconditionViolation
from mastery_engine.mastery import EffectiveMastery, LearningSignal, MasterySummary, MasteryUpdate
from mastery_engine.selection import EmptyPool, NotFoundAnywhere
from mastery_engine.service import TestingService
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
    TestSessionHistoryEntry,
    TestSessionSummary,
)

router = APIRouter()


def get_service(request: Request) -> TestingService:
    """FastAPI dependency returning the application's TestingService."""
    return request.app.state.service


def _raise_http(exc: Exception, action: str) -> NoReturn:
    if isinstance(exc, PreconditionViolation):
        raise HTTPException(status_code=409, detail=str(exc))
    logger.exception(f"Failed to {action}")
    raise HTTPException(status_code=503, detail=f"Failed to {action}: {exc}")


# ========================================
# Request/Response Models
# ========================================


class UserRequest(BaseModel):
    user_id: str = Field(..., min_length=1, description="Learner identifier")


class StartSessionRequest(UserRequest):
    """Request model for starting a test session."""

    target_question_count: int | None = Field(None, ge=1, le=100, description="Questions planned (default 10)")
    focus_concept_ids: list[str] | None = Field(None, description="Concepts to focus on")
    difficulty: SessionDifficulty = Field(SessionDifficulty.ADAPTIVE, description="easy, medium, hard or adaptive")


class NextQuestionRequest(UserRequest):
    """Request model for selecting the next question."""

    topic: str | None = Field(None, description="Topic the learner asked for; empty to auto-select")
    difficulty: Literal["easy", "medium", "hard", "auto"] = Field("auto")
    question_type: QuestionType | None = Field(None)
    avoid_concept_ids: list[str] = Field(default_factory=list)


class NextQuestionResponse(BaseModel):
    """Selection outcome. ``question`` is set only when status is found or content_only."""

    status: Literal["found", "content_only", "not_found", "empty_pool"]
    message: str
    question: TestQuestion | None = None
    selection_reason: str | None = None
    weak_prerequisites: list[str] | None = None


class AnswerRequest(UserRequest):
    """Request model for submitting an externally graded answer."""

    question_id: str
    answer: str
    evaluation: Evaluation
    feedback: str = ""
    time_to_answer_ms: int | None = Field(None, ge=0)


class AnswerResponse(BaseModel):
    result: TestResult
    progress: SessionProgress
    is_complete: bool
    concepts_propagated: int = 0


class SnapshotResponse(BaseModel):
    session: TestSession
    current_question: TestQuestion | None
    progress: SessionProgress
    is_complete: bool
    suggested_difficulty: QuestionDifficulty


class SignalRequest(UserRequest):
    signal: LearningSignal


# ========================================
# Test Sessions
# ========================================


@router.post("/test/start", response_model=TestSession, summary="Start test session")
async def start_session(
    request: StartSessionRequest,
    service: TestingService = Depends(get_service),
) -> TestSession:
    """Start a new session, abandoning any open one first."""
    config = TestSessionConfig(
        target_question_count=request.target_question_count,
        focus_concept_ids=request.focus_concept_ids,
        difficulty=request.difficulty,
    )
    try:
        return await service.start(request.user_id, config)
    except Exception as exc:
        _raise_http(exc, "start test session")


@router.get("/test/session", response_model=SnapshotResponse, summary="Get open session")
async def get_session(
    user_id: str = Query(..., min_length=1),
    service: TestingService = Depends(get_service),
) -> SnapshotResponse:
    try:
        snapshot = await service.snapshot(user_id)
    except Exception as exc:
        _raise_http(exc, "load test session")
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No active test session")
    return SnapshotResponse(
        session=snapshot.session,
        current_question=snapshot.current_question,
        progress=snapshot.progress,
        is_complete=snapshot.is_complete,
        suggested_difficulty=snapshot.suggested_difficulty,
    )


@router.post("/test/question", response_model=NextQuestionResponse, summary="Select next question")
async def next_question(
    request: NextQuestionRequest,
    service: TestingService = Depends(get_service),
) -> NextQuestionResponse:
    """
    Select the next concept and append a question for it.

    Misses are reported in ``status``:
    - not_found: the requested topic exists nowhere; offer existing topics or uploads
    - empty_pool: nothing is tracked (or everything was already asked)
    """
    try:
        outcome = await service.next_question(
            request.user_id,
            topic=request.topic,
            difficulty=request.difficulty,
            question_type=request.question_type,
            avoid_concept_ids=request.avoid_concept_ids,
        )
    except Exception as exc:
        _raise_http(exc, "select next question")

    if isinstance(outcome, NotFoundAnywhere):
        return NextQuestionResponse(
            status="not_found",
            message=(
                f'Could not find "{outcome.topic}" in your knowledge graph or uploaded materials. '
                "Upload material about it or choose a different topic."
            ),
        )
    if isinstance(outcome, EmptyPool):
        return NextQuestionResponse(
            status="empty_pool",
            message="There are no concepts to test yet. Study or upload some material first.",
        )

    return NextQuestionResponse(
        status="content_only" if outcome.from_content_search else "found",
        message=f"Next question: {outcome.candidate.concept_label}",
        question=outcome.question,
        selection_reason=outcome.rationale,
        weak_prerequisites=outcome.weak_prerequisites,
    )


@router.post("/test/answer", response_model=AnswerResponse, summary="Submit graded answer")
async def submit_answer(
    request: AnswerRequest,
    service: TestingService = Depends(get_service),
) -> AnswerResponse:
    try:
        outcome = await service.submit_answer(
            request.user_id,
            request.question_id,
            request.answer,
            request.evaluation,
            request.feedback,
            request.time_to_answer_ms,
        )
    except Exception as exc:
        _raise_http(exc, "record answer")
    return AnswerResponse(
        result=outcome.result,
        progress=outcome.progress,
        is_complete=outcome.is_complete,
        concepts_propagated=outcome.propagation.total_affected if outcome.propagation else 0,
    )


@router.post("/test/pause", response_model=TestSession, summary="Pause session")
async def pause_session(
    request: UserRequest,
    service: TestingService = Depends(get_service),
) -> TestSession:
    try:
        return await service.sessions.pause_test_session(request.user_id)
    except Exception as exc:
        _raise_http(exc, "pause test session")


@router.post("/test/resume", response_model=TestSession, summary="Resume session")
async def resume_session(
    request: UserRequest,
    service: TestingService = Depends(get_service),
) -> TestSession:
    try:
        return await service.sessions.resume_test_session(request.user_id)
    except Exception as exc:
        _raise_http(exc, "resume test session")


@router.post("/test/complete", response_model=TestSessionSummary, summary="Complete session")
async def complete_session(
    request: UserRequest,
    service: TestingService = Depends(get_service),
) -> TestSessionSummary:
    try:
        return await service.complete(request.user_id)
    except Exception as exc:
        _raise_http(exc, "complete test session")


@router.post("/test/abandon", summary="Abandon session")
async def abandon_session(
    request: UserRequest,
    service: TestingService = Depends(get_service),
) -> dict[str, str]:
    try:
        await service.abandon(request.user_id)
    except Exception as exc:
        _raise_http(exc, "abandon test session")
    return {"status": "abandoned"}


@router.get("/test/history", response_model=list[TestSessionHistoryEntry], summary="Session history")
async def session_history(
    user_id: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=100),
    service: TestingService = Depends(get_service),
) -> list[TestSessionHistoryEntry]:
    try:
        return await service.sessions.get_test_session_history(user_id, limit)
    except Exception as exc:
        _raise_http(exc, "load session history")


# ========================================
# Mastery
# ========================================


@router.get("/mastery/summary", response_model=MasterySummary, summary="Mastery summary")
async def mastery_summary(
    user_id: str = Query(..., min_length=1),
    service: TestingService = Depends(get_service),
) -> MasterySummary:
    try:
        return await service.mastery_store.get_mastery_summary(user_id)
    except Exception as exc:
        _raise_http(exc, "load mastery summary")


@router.get("/mastery/weakest", response_model=list[EffectiveMastery], summary="Weakest concepts")
async def weakest_concepts(
    user_id: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=100),
    service: TestingService = Depends(get_service),
) -> list[EffectiveMastery]:
    try:
        return await service.mastery_store.get_weakest_concepts(user_id, limit)
    except Exception as exc:
        _raise_http(exc, "load weakest concepts")


@router.get("/mastery/due", response_model=list[EffectiveMastery], summary="Concepts due for review")
async def due_concepts(
    user_id: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=100),
    service: TestingService = Depends(get_service),
) -> list[EffectiveMastery]:
    try:
        return await service.mastery_store.get_concepts_due_for_review(user_id, limit)
    except Exception as exc:
        _raise_http(exc, "load due concepts")


@router.post("/mastery/signal", response_model=MasteryUpdate, summary="Apply learning signal")
async def apply_signal(
    request: SignalRequest,
    service: TestingService = Depends(get_service),
) -> MasteryUpdate:
    try:
        return await service.record_signal(request.user_id, request.signal)
    except Exception as exc:
        _raise_http(exc, "apply learning signal")


@router.get("/mastery/{concept_id}", response_model=EffectiveMastery, summary="Concept mastery")
async def concept_mastery(
    concept_id: str,
    user_id: str = Query(..., min_length=1),
    service: TestingService = Depends(get_service),
) -> EffectiveMastery:
    try:
        mastery = await service.mastery_store.get_effective_mastery(user_id, concept_id)
    except Exception as exc:
        _raise_http(exc, "load concept mastery")
    if mastery is None:
        raise HTTPException(status_code=404, detail="Concept not tracked")
    return mastery
