"""
Unit tests for the end-of-session report.
"""
from datetime import UTC, datetime, timedelta

from mastery_engine.sessions import generate_session_summary, models
from mastery_engine.sessions.summary import FALLBACK_RECOMMENDATION, score_band_recommendation

STARTED = datetime(2025, 2, 1, 10, 0, tzinfo=UTC)


def build_session(answers, score, completed_after=timedelta(minutes=15)):
    """answers: list of (concept_id, label, evaluation, feedback)."""
    session = models.TestSession(
        user_id="learner-1",
        status=models.SessionStatus.COMPLETED,
        started_at=STARTED,
        completed_at=STARTED + completed_after,
        score=score,
    )
    for index, (concept_id, label, evaluation, feedback) in enumerate(answers):
        question = models.TestQuestion(
            concept_id=concept_id,
            concept_label=label,
            difficulty=models.QuestionDifficulty.MEDIUM,
            question_type=models.QuestionType.DEFINITION,
        )
        session.questions.append(question)
        session.results.append(
            models.TestResult(
                question_id=question.question_id,
                question_index=index,
                user_answer="answer",
                evaluation=evaluation,
                feedback=feedback,
                previous_mastery=0.4,
                new_mastery=0.7 if evaluation == models.Evaluation.CORRECT else 0.2,
            )
        )
    return session


class TestGrouping:
    def test_groups_by_evaluation(self):
        e = models.Evaluation
        session = build_session(
            [
                ("vlan", "VLANs", e.CORRECT, "nice"),
                ("stp", "Spanning Tree", e.INCORRECT, "mixed up root bridge election"),
                ("ospf", "OSPF", e.PARTIAL, "missed area types"),
            ],
            score=50,
        )

        summary = generate_session_summary(session)

        assert [entry.concept_id for entry in summary.correct] == ["vlan"]
        assert [entry.concept_id for entry in summary.incorrect] == ["stp"]
        assert [entry.concept_id for entry in summary.partial] == ["ospf"]
        assert summary.correct[0].feedback is None
        assert summary.incorrect[0].feedback == "mixed up root bridge election"
        assert summary.correct[0].mastery_before == 0.4
        assert summary.correct[0].mastery_after == 0.7
        assert summary.questions_answered == 3

    def test_recommendations_in_order(self):
        e = models.Evaluation
        session = build_session(
            [
                ("stp", "Spanning Tree", e.INCORRECT, ""),
                ("ospf", "OSPF", e.PARTIAL, ""),
                ("bgp", "BGP", e.INCORRECT, ""),
            ],
            score=17,
        )

        summary = generate_session_summary(session)

        assert summary.recommendations == [
            "Review these concepts you struggled with: Spanning Tree, BGP",
            "Strengthen your understanding of: OSPF",
            FALLBACK_RECOMMENDATION,
        ]
        assert summary.concepts_to_review == ["stp", "bgp", "ospf"]

    def test_concepts_to_review_are_unique(self):
        e = models.Evaluation
        session = build_session(
            [("stp", "Spanning Tree", e.INCORRECT, ""), ("stp", "Spanning Tree", e.PARTIAL, "")],
            score=25,
        )

        assert generate_session_summary(session).concepts_to_review == ["stp"]

    def test_results_without_question_are_skipped(self):
        session = build_session([("vlan", "VLANs", models.Evaluation.CORRECT, "")], score=100)
        session.questions.clear()

        summary = generate_session_summary(session)

        assert summary.correct == []
        assert summary.questions_answered == 1


class TestDuration:
    def test_rounds_to_nearest_minute(self):
        session = build_session([], score=0, completed_after=timedelta(minutes=7, seconds=30))

        assert generate_session_summary(session).duration == 8

    def test_open_session_uses_now(self):
        session = build_session([], score=0)
        session.completed_at = None

        summary = generate_session_summary(session, now=STARTED + timedelta(minutes=3))

        assert summary.duration == 3


def test_score_bands():
    assert score_band_recommendation(95).startswith("Excellent work!")
    assert score_band_recommendation(90).startswith("Excellent work!")
    assert score_band_recommendation(70).startswith("Good progress!")
    assert score_band_recommendation(50).startswith("Keep practicing!")
    assert score_band_recommendation(49) == FALLBACK_RECOMMENDATION


def test_perfect_session_has_single_recommendation():
    session = build_session([("vlan", "VLANs", models.Evaluation.CORRECT, "")], score=100)

    summary = generate_session_summary(session)

    assert summary.recommendations == ["Excellent work! Consider exploring more advanced topics."]
    assert summary.concepts_to_review == []
