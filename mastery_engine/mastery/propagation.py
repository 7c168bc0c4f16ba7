"""
Mastery propagation through the knowledge graph.

When a learner gains mastery on concept X:
- prerequisites of X (incoming edges) receive ``change * weight``
- concepts that build on X (outgoing edges) receive ``change * weight * 0.5``

Only positive changes propagate, one hop deep. Propagation is best-effort:
failures are logged and produce an empty result.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from mastery_engine.graph import (
    GraphEdge,
    GraphSource,
    KnowledgeGraph,
    LearningRelation,
    infer_learning_relation,
)

from .decay import clamp01, round_half_up
from .store import MasteryStore

PROPAGATION_WEIGHTS: dict[LearningRelation, float] = {
    LearningRelation.PREREQUISITE: 0.1,
    LearningRelation.COREQUISITE: 0.05,
    LearningRelation.APPLICATION: 0.02,
    LearningRelation.EXAMPLE: 0.01,
    LearningRelation.OPPOSITE: 0.0,
    LearningRelation.RELATED: 0.03,
}

DEPENDENT_FACTOR = 0.5
MIN_MEANINGFUL_CHANGE = 0.001


@dataclass
class PropagatedChange:
    concept_id: str
    concept_label: str
    previous_mastery: float
    new_mastery: float
    source_concept_id: str
    relation: LearningRelation


@dataclass
class PropagationResult:
    source_concept_id: str
    source_mastery_change: float
    propagated_to: list[PropagatedChange] = field(default_factory=list)

    @property
    def total_affected(self) -> int:
        return len(self.propagated_to)


@dataclass
class PrerequisiteStatus:
    concept_id: str
    concept_label: str
    mastery: float
    effective_mastery: float
    is_weak: bool
    recommendation: str | None = None


@dataclass
class PrerequisiteCheck:
    concept_id: str
    concept_label: str
    prerequisites: list[PrerequisiteStatus] = field(default_factory=list)

    @property
    def weak_prerequisites(self) -> list[str]:
        return [p.concept_id for p in self.prerequisites if p.is_weak]

    @property
    def all_prerequisites_met(self) -> bool:
        return not self.weak_prerequisites


@dataclass
class LearningPathStep:
    concept_id: str
    concept_label: str
    current_mastery: float
    reason: str
    priority: float


class MasteryPropagator:
    """Spreads mastery gains to neighbouring concepts."""

    def __init__(self, mastery_store: MasteryStore, graph_source: GraphSource):
        self.mastery_store = mastery_store
        self.graph_source = graph_source

    async def propagate_mastery(self, user_id: str, concept_id: str, mastery_change: float) -> PropagationResult:
        """
        Propagate a mastery change one hop through the user's graph.

        Args:
            user_id: Learner identifier
            concept_id: Concept whose mastery changed
            mastery_change: Signed change applied to that concept

        Returns:
            PropagationResult listing every neighbour that moved
        """
        result = PropagationResult(concept_id, mastery_change)
        if mastery_change <= 0:
            return result

        try:
            graph = await self.graph_source.get_graph(user_id)
            if not graph.nodes:
                return result

            visited = {concept_id}
            hops: list[tuple[str, GraphEdge, float]] = []
            for edge in graph.incoming(concept_id):
                hops.append((edge.source, edge, 1.0))
            for edge in graph.outgoing(concept_id):
                hops.append((edge.target, edge, DEPENDENT_FACTOR))

            for neighbour_id, edge, factor in hops:
                if neighbour_id in visited:
                    continue
                visited.add(neighbour_id)

                relation = infer_learning_relation(edge)
                if edge.propagation_weight is not None:
                    weight = edge.propagation_weight
                else:
                    weight = PROPAGATION_WEIGHTS[relation] * factor
                if weight <= 0:
                    continue

                change = await self._apply(user_id, neighbour_id, mastery_change * weight, concept_id, relation, graph)
                if change is not None:
                    result.propagated_to.append(change)
        except Exception as e:
            logger.error(f"Mastery propagation failed for {user_id}/{concept_id}: {e}")
            return PropagationResult(concept_id, mastery_change)

        logger.info(f"Mastery propagated from {concept_id}: {result.total_affected} concepts affected")
        return result

    async def _apply(
        self,
        user_id: str,
        concept_id: str,
        change: float,
        source_concept_id: str,
        relation: LearningRelation,
        graph: KnowledgeGraph,
    ) -> PropagatedChange | None:
        mastery = await self.mastery_store.get_mastery(user_id, concept_id)
        if mastery is None:
            node = graph.node(concept_id)
            if node is None:
                return None
            mastery = await self.mastery_store.create_mastery(user_id, concept_id, node.label)

        previous = mastery.mastery_score
        updated = clamp01(previous + change)
        if abs(updated - previous) < MIN_MEANINGFUL_CHANGE:
            return None

        mastery.mastery_score = round_half_up(updated, 3)
        await self.mastery_store.save_mastery(user_id, mastery)

        return PropagatedChange(
            concept_id=concept_id,
            concept_label=mastery.concept_label,
            previous_mastery=previous,
            new_mastery=mastery.mastery_score,
            source_concept_id=source_concept_id,
            relation=relation,
        )

    async def check_prerequisites(
        self,
        user_id: str,
        concept_id: str,
        weakness_threshold: float = 0.5,
    ) -> PrerequisiteCheck:
        """List the concept's prerequisites and flag those below the threshold."""
        try:
            graph = await self.graph_source.get_graph(user_id)
        except Exception as e:
            logger.error(f"Failed to load graph for prerequisite check {user_id}/{concept_id}: {e}")
            return PrerequisiteCheck(concept_id, concept_id)

        node = graph.node(concept_id)
        if node is None:
            return PrerequisiteCheck(concept_id, concept_id)

        check = PrerequisiteCheck(concept_id, node.label)
        for edge in graph.incoming(concept_id):
            if infer_learning_relation(edge) != LearningRelation.PREREQUISITE:
                continue
            prereq = graph.node(edge.source)
            if prereq is None:
                continue

            mastery = await self.mastery_store.get_effective_mastery(user_id, edge.source)
            effective = mastery.effective_mastery if mastery else 0.0
            is_weak = effective < weakness_threshold
            check.prerequisites.append(
                PrerequisiteStatus(
                    concept_id=edge.source,
                    concept_label=prereq.label,
                    mastery=mastery.mastery_score if mastery else 0.0,
                    effective_mastery=effective,
                    is_weak=is_weak,
                    recommendation=f'Review "{prereq.label}" before learning "{node.label}"' if is_weak else None,
                )
            )
        return check

    async def get_learning_path(
        self,
        user_id: str,
        target_concept_id: str | None = None,
        max_suggestions: int = 5,
    ) -> list[LearningPathStep]:
        """
        Suggest concepts to study next.

        With a target: its weak prerequisites, then the target itself.
        Without: weak (< 0.5) or due graph concepts, highest priority first.
        """
        graph = await self.graph_source.get_graph(user_id)
        if not graph.nodes:
            return []

        steps: list[LearningPathStep] = []
        if target_concept_id:
            check = await self.check_prerequisites(user_id, target_concept_id)
            for prereq in check.prerequisites:
                if prereq.is_weak:
                    steps.append(
                        LearningPathStep(
                            prereq.concept_id,
                            prereq.concept_label,
                            prereq.effective_mastery,
                            f'Prerequisite for "{check.concept_label}"',
                            1.0 - prereq.effective_mastery,
                        )
                    )
            target = graph.node(target_concept_id)
            if target is not None:
                mastery = await self.mastery_store.get_effective_mastery(user_id, target_concept_id)
                steps.append(
                    LearningPathStep(
                        target.id,
                        target.label,
                        mastery.effective_mastery if mastery else 0.0,
                        "Target concept",
                        0.9,
                    )
                )
        else:
            for node in graph.nodes:
                mastery = await self.mastery_store.get_effective_mastery(user_id, node.id)
                effective = mastery.effective_mastery if mastery else 0.0
                if effective < 0.5:
                    reason = "Needs learning" if effective < 0.2 else "Needs strengthening"
                    steps.append(LearningPathStep(node.id, node.label, effective, reason, 1.0 - effective))
                elif mastery is not None and mastery.is_due_for_review:
                    steps.append(LearningPathStep(node.id, node.label, effective, "Due for review", 0.8))

        steps.sort(key=lambda s: s.priority, reverse=True)
        return steps[:max_suggestions]
