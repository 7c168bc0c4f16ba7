"""
Knowledge graph shapes and the lookup protocol the engine consumes.

Graph construction happens elsewhere; the engine only reads a user's graph
to resolve topic labels, propagate mastery and check prerequisites.
"""
from __future__ import annotations

from enum import Enum
from typing import Protocol

from loguru import logger
from pydantic import BaseModel, Field

from mastery_engine.storage import KeySpace, KeyValueStore


class LearningRelation(str, Enum):
    """How two concepts relate for learning purposes."""

    PREREQUISITE = "prerequisite"
    COREQUISITE = "corequisite"
    APPLICATION = "application"
    EXAMPLE = "example"
    OPPOSITE = "opposite"
    RELATED = "related"


class GraphNode(BaseModel):
    id: str
    label: str
    type: str = "concept"
    description: str | None = None
    importance: float | None = None


class GraphEdge(BaseModel):
    source: str
    target: str
    relation: str
    learning_relation: LearningRelation | None = None
    propagation_weight: float | None = Field(default=None, ge=0.0, le=1.0)


class KnowledgeGraph(BaseModel):
    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)

    def node(self, concept_id: str) -> GraphNode | None:
        return next((n for n in self.nodes if n.id == concept_id), None)

    def incoming(self, concept_id: str) -> list[GraphEdge]:
        return [e for e in self.edges if e.target == concept_id]

    def outgoing(self, concept_id: str) -> list[GraphEdge]:
        return [e for e in self.edges if e.source == concept_id]


# Keyword groups checked in order; first hit wins
_RELATION_KEYWORDS: list[tuple[LearningRelation, tuple[str, ...]]] = [
    (LearningRelation.PREREQUISITE, ("prerequisite", "requires", "depends")),
    (LearningRelation.EXAMPLE, ("example", "instance")),
    (LearningRelation.APPLICATION, ("applies", "uses", "application")),
    (LearningRelation.OPPOSITE, ("opposite", "contrast")),
    (LearningRelation.COREQUISITE, ("similar", "related")),
]


def infer_learning_relation(edge: GraphEdge) -> LearningRelation:
    """Use the edge's explicit relation, otherwise infer one from its free-text label."""
    if edge.learning_relation is not None:
        return edge.learning_relation

    relation = edge.relation.lower()
    for learning_relation, keywords in _RELATION_KEYWORDS:
        if any(keyword in relation for keyword in keywords):
            return learning_relation
    return LearningRelation.RELATED


class GraphSource(Protocol):
    """Provides the knowledge graph for a user."""

    async def get_graph(self, user_id: str) -> KnowledgeGraph: ...


class StoreGraphSource:
    """Reads graphs serialized under ``graph:{user}`` in the key-value store."""

    def __init__(self, store: KeyValueStore, keys: KeySpace | None = None):
        self.store = store
        self.keys = keys or KeySpace()

    async def get_graph(self, user_id: str) -> KnowledgeGraph:
        data = await self.store.get(self.keys.graph(user_id))
        if data is None:
            return KnowledgeGraph()
        return KnowledgeGraph.model_validate_json(data)

    async def save_graph(self, user_id: str, graph: KnowledgeGraph) -> None:
        await self.store.set(self.keys.graph(user_id), graph.model_dump_json())
        logger.debug(f"Graph saved for {user_id}: {len(graph.nodes)} nodes, {len(graph.edges)} edges")
