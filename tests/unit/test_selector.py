"""
Unit tests for AdaptiveSelector.

Pool selection (no topic) and topic resolution: exact, fuzzy, content
search fallback, and the miss results.
"""
import random

import pytest

from mastery_engine.graph import GraphNode, KnowledgeGraph
from mastery_engine.selection import (
    AdaptiveSelector,
    ContentSnippet,
    EmptyPool,
    Found,
    NotFoundAnywhere,
    NotFoundInGraph,
    calculate_priority,
    choose_question_type,
    determine_difficulty,
)
from mastery_engine.selection.selector import QUESTION_TYPES_BY_DIFFICULTY, label_similarity, topic_slug
from mastery_engine.sessions import QuestionDifficulty, QuestionType

from tests.fakes import FakeContentSearch

USER = "learner-1"


class TestPolicy:
    def test_priority_formula(self):
        assert calculate_priority(0.6, False, 3) == pytest.approx(0.46)
        assert calculate_priority(0.5, True, 0) == pytest.approx(0.8)

    def test_priority_recency_boost_is_capped(self):
        assert calculate_priority(0.9, False, 100) == pytest.approx(0.3)

    def test_priority_is_clamped(self):
        assert calculate_priority(0.2, True, 5) == 1.0

    @pytest.mark.parametrize(
        "mastery,expected",
        [
            (0.0, QuestionDifficulty.EASY),
            (0.29, QuestionDifficulty.EASY),
            (0.3, QuestionDifficulty.MEDIUM),
            (0.59, QuestionDifficulty.MEDIUM),
            (0.6, QuestionDifficulty.HARD),
        ],
    )
    def test_difficulty_thresholds(self, mastery, expected):
        assert determine_difficulty(mastery) == expected

    def test_question_type(self):
        rng = random.Random(1)
        assert choose_question_type(QuestionDifficulty.EASY, QuestionType.ANALYSIS, rng) == QuestionType.ANALYSIS
        for _ in range(20):
            assert choose_question_type(QuestionDifficulty.HARD, rng=rng) in QUESTION_TYPES_BY_DIFFICULTY[
                QuestionDifficulty.HARD
            ]

    def test_topic_slug(self):
        assert topic_slug("  Quantum   Entanglement ") == "quantum_entanglement"

    def test_label_similarity(self):
        assert label_similarity("binary search", "Binary Search Trees") == 1.0
        assert label_similarity("subneting", "Subnetting") > 0.9
        assert label_similarity("ospf", "Spanning Tree Protocol") < 0.6


class TestPool:
    @pytest.mark.asyncio
    async def test_empty_when_nothing_tracked(self, selector):
        result = await selector.select_concept(USER)

        assert isinstance(result, EmptyPool)
        assert result.excluded == 0

    @pytest.mark.asyncio
    async def test_weakest_concept_wins(self, selector, mastery_store):
        await mastery_store.create_mastery(USER, "vlan", "VLANs", initial_mastery=0.9)
        await mastery_store.create_mastery(USER, "stp", "Spanning Tree", initial_mastery=0.1)

        result = await selector.select_concept(USER)

        assert isinstance(result, Found)
        assert result.match == "pool"
        assert result.candidate.concept_id == "stp"
        assert result.candidate.priority == pytest.approx(0.9)
        assert result.candidate.reason == "Weak mastery - needs reinforcement"

    @pytest.mark.asyncio
    async def test_due_concept_gets_boost(self, selector, mastery_store, clock):
        await mastery_store.create_mastery(USER, "vlan", "VLANs", initial_mastery=0.6)
        clock.advance(days=2)
        await mastery_store.create_mastery(USER, "stp", "Spanning Tree", initial_mastery=0.4)

        result = await selector.select_concept(USER)

        # vlan: 1 - 0.491 + 0.3 + 0.04
        assert result.candidate.concept_id == "vlan"
        assert result.candidate.is_due_for_review
        assert result.candidate.reason == "Due for spaced repetition review"

    @pytest.mark.asyncio
    async def test_avoided_concepts_are_skipped(self, selector, mastery_store):
        await mastery_store.create_mastery(USER, "vlan", "VLANs", initial_mastery=0.9)
        await mastery_store.create_mastery(USER, "stp", "Spanning Tree", initial_mastery=0.1)

        result = await selector.select_concept(USER, avoid_concept_ids=["stp"])
        assert result.candidate.concept_id == "vlan"

        exhausted = await selector.select_concept(USER, avoid_concept_ids=["stp", "vlan"])
        assert isinstance(exhausted, EmptyPool)
        assert exhausted.excluded == 2

    @pytest.mark.asyncio
    async def test_blank_topic_uses_pool(self, selector, mastery_store):
        await mastery_store.create_mastery(USER, "vlan", "VLANs")

        result = await selector.select_concept(USER, topic="   ")

        assert result.match == "pool"


class TestTopic:
    @pytest.mark.asyncio
    async def test_exact_match_by_id(self, selector, mastery_store):
        await mastery_store.create_mastery(USER, "vlan", "VLANs", initial_mastery=0.4)

        result = await selector.select_concept(USER, topic="vlan")

        assert isinstance(result, Found)
        assert result.match == "exact"
        assert result.candidate.priority == 1.0
        assert result.candidate.mastery == 0.4

    @pytest.mark.asyncio
    async def test_exact_match_by_label_ignores_case(self, selector, mastery_store):
        await mastery_store.create_mastery(USER, "stp", "Spanning Tree")

        result = await selector.select_concept(USER, topic="spanning tree")

        assert result.match == "exact"
        assert result.candidate.concept_id == "stp"

    @pytest.mark.asyncio
    async def test_exact_topic_ignores_avoid_list(self, selector, mastery_store):
        await mastery_store.create_mastery(USER, "stp", "Spanning Tree")

        result = await selector.select_concept(USER, topic="stp", avoid_concept_ids=["stp"])

        assert result.candidate.concept_id == "stp"

    @pytest.mark.asyncio
    async def test_fuzzy_match_on_tracked_label(self, selector, mastery_store):
        await mastery_store.create_mastery(USER, "bst", "Binary Search Trees")

        result = await selector.select_concept(USER, topic="binary search")

        assert isinstance(result, Found)
        assert result.match == "fuzzy"
        assert result.candidate.concept_id == "bst"
        assert result.candidate.reason == 'User requested topic (matched: "Binary Search Trees")'

    @pytest.mark.asyncio
    async def test_fuzzy_match_on_graph_node(self, selector, graph_source):
        await graph_source.save_graph(
            USER, KnowledgeGraph(nodes=[GraphNode(id="tcp-handshake", label="TCP Handshake")])
        )

        result = await selector.select_concept(USER, topic="tcp handshake")

        assert isinstance(result, Found)
        assert result.candidate.concept_id == "tcp-handshake"
        assert result.candidate.mastery == 0.0

    @pytest.mark.asyncio
    async def test_content_search_fallback(self, mastery_store, graph_source):
        snippets = [ContentSnippet(text="Entangled particles share state...", source="notes.pdf", score=0.82)]
        search = FakeContentSearch({"quantum entanglement": snippets})
        selector = AdaptiveSelector(mastery_store, graph_source, search)

        result = await selector.select_concept(USER, topic="Quantum Entanglement")

        assert isinstance(result, NotFoundInGraph)
        assert result.candidate.concept_id == "content_quantum_entanglement"
        assert result.candidate.concept_label == "Quantum Entanglement"
        assert result.candidate.mastery == 0.5
        assert result.snippets == snippets

    @pytest.mark.asyncio
    async def test_not_found_anywhere(self, mastery_store, graph_source):
        search = FakeContentSearch()
        selector = AdaptiveSelector(mastery_store, graph_source, search)

        result = await selector.select_concept(USER, topic="Quantum Entanglement")

        assert isinstance(result, NotFoundAnywhere)
        assert result.topic == "Quantum Entanglement"
        assert search.queries == ["Quantum Entanglement"]

    @pytest.mark.asyncio
    async def test_content_search_failure_is_a_miss(self, mastery_store, graph_source):
        selector = AdaptiveSelector(mastery_store, graph_source, FakeContentSearch(error=TimeoutError("slow")))

        result = await selector.select_concept(USER, topic="Quantum Entanglement")

        assert isinstance(result, NotFoundAnywhere)

    @pytest.mark.asyncio
    async def test_keyword_search_ranks_best_first(self, selector, mastery_store):
        await mastery_store.create_mastery(USER, "ospf", "OSPF Areas")
        await mastery_store.create_mastery(USER, "ospf-lsa", "OSPF LSA Types")
        await mastery_store.create_mastery(USER, "vlan", "VLANs")

        matches = await selector.search_concepts_by_keywords(USER, "ospf areas")

        assert [m.concept_id for m in matches][0] == "ospf"
        assert "vlan" not in [m.concept_id for m in matches]
