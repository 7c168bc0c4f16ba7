"""
Adaptive Concept Selector.

Decides which concept to test next.

Without a topic, candidates are the concepts due for review plus the weakest
concepts, ranked by:

    priority = clamp01((1 - effective) + 0.3 * due + min(0.2, 0.02 * days))

With a topic, resolution runs exact match -> fuzzy label match -> content
search, and every miss is reported as its own result type so callers can
tell "nothing to test yet" from "that topic does not exist".
"""

from __future__ import annotations

import difflib
import random
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

from loguru import logger

from mastery_engine.graph import GraphSource
from mastery_engine.mastery.decay import clamp01
from mastery_engine.mastery.models import EffectiveMastery
from mastery_engine.mastery.store import MasteryStore
from mastery_engine.sessions.models import QuestionDifficulty, QuestionType

POOL_SIZE = 5
DUE_BOOST = 0.3
RECENCY_BOOST_PER_DAY = 0.02
MAX_RECENCY_BOOST = 0.2
FUZZY_THRESHOLD = 0.6
FUZZY_LIMIT = 3
CONTENT_TOP_K = 15
CONTENT_MASTERY = 0.5

QUESTION_TYPES_BY_DIFFICULTY: dict[QuestionDifficulty, tuple[QuestionType, QuestionType]] = {
    QuestionDifficulty.EASY: (QuestionType.DEFINITION, QuestionType.APPLICATION),
    QuestionDifficulty.MEDIUM: (QuestionType.APPLICATION, QuestionType.COMPARISON),
    QuestionDifficulty.HARD: (QuestionType.ANALYSIS, QuestionType.COMPARISON),
}


# =============================================================================
# Collaborators
# =============================================================================


@dataclass
class ContentSnippet:
    """One ranked hit from free-text content search."""

    text: str
    source: str | None = None
    score: float = 0.0


class ContentSearch(Protocol):
    """Free-text search over the learner's uploaded material."""

    async def search(self, query: str, user_id: str, top_k: int = CONTENT_TOP_K) -> list[ContentSnippet]: ...


# =============================================================================
# Results
# =============================================================================


@dataclass
class ConceptCandidate:
    concept_id: str
    concept_label: str
    mastery: float
    effective_mastery: float
    is_due_for_review: bool
    priority: float
    reason: str
    days_since_interaction: float = 0.0


@dataclass
class Found:
    """A tracked concept (or known graph concept) was selected."""

    candidate: ConceptCandidate
    match: str  # "exact", "fuzzy" or "pool"


@dataclass
class NotFoundInGraph:
    """The topic is unknown to the graph but appears in uploaded content."""

    candidate: ConceptCandidate
    snippets: list[ContentSnippet] = field(default_factory=list)


@dataclass
class NotFoundAnywhere:
    """The requested topic matched nothing at all."""

    topic: str


@dataclass
class EmptyPool:
    """No topic was requested and no eligible candidate remains."""

    excluded: int = 0


SelectionResult = Found | NotFoundInGraph | NotFoundAnywhere | EmptyPool


# =============================================================================
# Policy helpers
# =============================================================================


def calculate_priority(effective_mastery: float, is_due_for_review: bool, days_since_interaction: float) -> float:
    priority = 1 - effective_mastery
    if is_due_for_review:
        priority += DUE_BOOST
    priority += min(MAX_RECENCY_BOOST, days_since_interaction * RECENCY_BOOST_PER_DAY)
    return clamp01(priority)


def determine_difficulty(effective_mastery: float) -> QuestionDifficulty:
    if effective_mastery < 0.3:
        return QuestionDifficulty.EASY
    if effective_mastery < 0.6:
        return QuestionDifficulty.MEDIUM
    return QuestionDifficulty.HARD


def choose_question_type(
    difficulty: QuestionDifficulty,
    requested: QuestionType | None = None,
    rng: random.Random | None = None,
) -> QuestionType:
    if requested is not None:
        return requested
    return (rng or random).choice(QUESTION_TYPES_BY_DIFFICULTY[difficulty])


def topic_slug(topic: str) -> str:
    return re.sub(r"\s+", "_", topic.strip().lower())


def _keywords(text: str) -> set[str]:
    return {word for word in re.findall(r"[a-z0-9]+", text.lower()) if len(word) > 2}


def label_similarity(topic: str, label: str) -> float:
    """Best of keyword overlap and character-level similarity, in [0, 1]."""
    ratio = difflib.SequenceMatcher(None, topic.lower(), label.lower()).ratio()
    topic_words = _keywords(topic)
    if not topic_words:
        return ratio
    overlap = len(topic_words & _keywords(label)) / len(topic_words)
    return max(ratio, overlap)


def _candidate_from(mastery: EffectiveMastery, priority: float, reason: str) -> ConceptCandidate:
    return ConceptCandidate(
        concept_id=mastery.concept_id,
        concept_label=mastery.concept_label,
        mastery=mastery.mastery_score,
        effective_mastery=mastery.effective_mastery,
        is_due_for_review=mastery.is_due_for_review,
        priority=priority,
        reason=reason,
        days_since_interaction=mastery.days_since_interaction,
    )


# =============================================================================
# Selector
# =============================================================================


class AdaptiveSelector:
    """Chooses the next concept to test for a learner."""

    def __init__(
        self,
        mastery_store: MasteryStore,
        graph_source: GraphSource | None = None,
        content_search: ContentSearch | None = None,
        rng: random.Random | None = None,
        pool_size: int = POOL_SIZE,
        fuzzy_threshold: float = FUZZY_THRESHOLD,
    ):
        self.mastery_store = mastery_store
        self.graph_source = graph_source
        self.content_search = content_search
        self.rng = rng or random.Random()
        self.pool_size = pool_size
        self.fuzzy_threshold = fuzzy_threshold

    async def select_concept(
        self,
        user_id: str,
        topic: str | None = None,
        avoid_concept_ids: Iterable[str] = (),
    ) -> SelectionResult:
        """
        Select the concept to test next.

        Args:
            user_id: Learner identifier
            topic: Optional topic the learner asked for
            avoid_concept_ids: Concepts already asked or explicitly excluded

        Returns:
            Found, NotFoundInGraph, NotFoundAnywhere or EmptyPool
        """
        if topic and topic.strip():
            return await self._resolve_topic(user_id, topic.strip())
        return await self._select_from_pool(user_id, set(avoid_concept_ids))

    def choose_question_type(
        self, difficulty: QuestionDifficulty, requested: QuestionType | None = None
    ) -> QuestionType:
        return choose_question_type(difficulty, requested, self.rng)

    # ----- pool ---------------------------------------------------------------

    async def _select_from_pool(self, user_id: str, avoid: set[str]) -> SelectionResult:
        candidates: dict[str, ConceptCandidate] = {}
        excluded = 0

        due = await self.mastery_store.get_concepts_due_for_review(user_id, self.pool_size)
        for mastery in due:
            if mastery.concept_id in avoid:
                excluded += 1
                continue
            priority = calculate_priority(mastery.effective_mastery, True, mastery.days_since_interaction)
            candidates[mastery.concept_id] = _candidate_from(mastery, priority, "Due for spaced repetition review")

        weakest = await self.mastery_store.get_weakest_concepts(user_id, self.pool_size)
        for mastery in weakest:
            if mastery.concept_id in candidates:
                continue
            if mastery.concept_id in avoid:
                excluded += 1
                continue
            priority = calculate_priority(
                mastery.effective_mastery, mastery.is_due_for_review, mastery.days_since_interaction
            )
            candidates[mastery.concept_id] = _candidate_from(mastery, priority, "Weak mastery - needs reinforcement")

        if not candidates:
            logger.info(f"No eligible concepts for {user_id} ({excluded} excluded)")
            return EmptyPool(excluded=excluded)

        best = max(candidates.values(), key=lambda c: c.priority)
        logger.debug(f"Selected {best.concept_id} for {user_id} (priority={best.priority:.3f})")
        return Found(best, "pool")

    # ----- topic --------------------------------------------------------------

    async def _resolve_topic(self, user_id: str, topic: str) -> SelectionResult:
        exact = await self._exact_match(user_id, topic)
        if exact is not None:
            return Found(_candidate_from(exact, 1.0, "User requested topic (exact match)"), "exact")

        matches = await self.search_concepts_by_keywords(user_id, topic, FUZZY_LIMIT)
        if matches:
            best = matches[0]
            best.reason = f'User requested topic (matched: "{best.concept_label}")'
            logger.info(f"Fuzzy match for '{topic}': {best.concept_label}")
            return Found(best, "fuzzy")

        snippets = await self._search_content(user_id, topic)
        if snippets:
            logger.info(f"Topic '{topic}' found only in content search ({len(snippets)} snippets)")
            candidate = ConceptCandidate(
                concept_id=f"content_{topic_slug(topic)}",
                concept_label=topic,
                mastery=CONTENT_MASTERY,
                effective_mastery=CONTENT_MASTERY,
                is_due_for_review=False,
                priority=1.0,
                reason="Generated from uploaded materials",
            )
            return NotFoundInGraph(candidate, snippets)

        logger.warning(f"Requested topic '{topic}' not found for {user_id}")
        return NotFoundAnywhere(topic)

    async def _exact_match(self, user_id: str, topic: str) -> EffectiveMastery | None:
        by_id = await self.mastery_store.get_effective_mastery(user_id, topic)
        if by_id is not None:
            return by_id
        wanted = topic.lower()
        for mastery in await self.mastery_store.get_all_mastery(user_id):
            if mastery.concept_label.lower() == wanted:
                return mastery
        return None

    async def search_concepts_by_keywords(self, user_id: str, topic: str, limit: int = FUZZY_LIMIT) -> list[ConceptCandidate]:
        """
        Fuzzy-match a topic against tracked concept labels and graph node labels.

        Returns:
            Up to ``limit`` candidates, best match first
        """
        scored: list[tuple[float, ConceptCandidate]] = []
        seen: set[str] = set()

        for mastery in await self.mastery_store.get_all_mastery(user_id):
            seen.add(mastery.concept_id)
            similarity = label_similarity(topic, mastery.concept_label)
            if similarity >= self.fuzzy_threshold:
                scored.append((similarity, _candidate_from(mastery, 1.0, "")))

        if self.graph_source is not None:
            graph = await self.graph_source.get_graph(user_id)
            for node in graph.nodes:
                if node.id in seen:
                    continue
                similarity = label_similarity(topic, node.label)
                if similarity >= self.fuzzy_threshold:
                    scored.append(
                        (similarity, ConceptCandidate(node.id, node.label, 0.0, 0.0, False, 1.0, ""))
                    )

        scored.sort(key=lambda item: item[0], reverse=True)
        return [candidate for _, candidate in scored[:limit]]

    async def _search_content(self, user_id: str, topic: str) -> list[ContentSnippet]:
        if self.content_search is None:
            return []
        try:
            return await self.content_search.search(topic, user_id, CONTENT_TOP_K)
        except Exception as e:
            logger.warning(f"Content search failed for '{topic}': {e}")
            return []
