"""
End-of-session report.

Pure function over a TestSession: no store access, no side effects.
"""
from __future__ import annotations

from datetime import datetime

from mastery_engine.mastery.decay import ensure_aware, round_half_up, utc_now

from .models import Evaluation, SummaryEntry, TestSession, TestSessionSummary

STRUGGLED_TEMPLATE = "Review these concepts you struggled with: {labels}"
PARTIAL_TEMPLATE = "Strengthen your understanding of: {labels}"

# (minimum score, recommendation), checked top-down
SCORE_BANDS: list[tuple[int, str]] = [
    (90, "Excellent work! Consider exploring more advanced topics."),
    (70, "Good progress! A few more review sessions will help solidify your knowledge."),
    (50, "Keep practicing! Focus on the weak areas identified above."),
]
FALLBACK_RECOMMENDATION = "Consider reviewing the fundamentals before moving on to new topics."


def score_band_recommendation(score: int) -> str:
    for minimum, text in SCORE_BANDS:
        if score >= minimum:
            return text
    return FALLBACK_RECOMMENDATION


def generate_session_summary(session: TestSession, now: datetime | None = None) -> TestSessionSummary:
    """
    Build the human-readable report for a session.

    Args:
        session: Session to summarize (normally terminal)
        now: End time used when the session has no completed_at

    Returns:
        TestSessionSummary grouped by evaluation with recommendations
    """
    end = session.completed_at or now or utc_now()
    elapsed = (ensure_aware(end) - ensure_aware(session.started_at)).total_seconds()
    duration = int(round_half_up(elapsed / 60))

    grouped: dict[Evaluation, list[SummaryEntry]] = {e: [] for e in Evaluation}
    for result in session.results:
        question = session.get_question(result.question_id)
        if question is None:
            continue
        grouped[result.evaluation].append(
            SummaryEntry(
                concept_id=question.concept_id,
                concept_label=question.concept_label,
                mastery_before=result.previous_mastery,
                mastery_after=result.new_mastery,
                feedback=None if result.evaluation == Evaluation.CORRECT else result.feedback,
            )
        )

    incorrect = grouped[Evaluation.INCORRECT]
    partial = grouped[Evaluation.PARTIAL]

    recommendations = []
    if incorrect:
        recommendations.append(STRUGGLED_TEMPLATE.format(labels=", ".join(e.concept_label for e in incorrect)))
    if partial:
        recommendations.append(PARTIAL_TEMPLATE.format(labels=", ".join(e.concept_label for e in partial)))
    recommendations.append(score_band_recommendation(session.score))

    # dict preserves first-seen order
    to_review = list(dict.fromkeys(e.concept_id for e in incorrect + partial))

    return TestSessionSummary(
        session_id=session.session_id,
        user_id=session.user_id,
        status=session.status,
        duration=duration,
        questions_answered=len(session.results),
        score=session.score,
        correct=grouped[Evaluation.CORRECT],
        partial=partial,
        incorrect=incorrect,
        recommendations=recommendations,
        concepts_to_review=to_review,
    )
