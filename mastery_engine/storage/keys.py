"""Persisted key layout."""
from __future__ import annotations


class KeySpace:
    """Builds namespaced keys for every persisted entity."""

    def __init__(self, prefix: str = "mastery-engine"):
        self.prefix = prefix

    def _key(self, *parts: str) -> str:
        return ":".join([self.prefix, *parts]) if self.prefix else ":".join(parts)

    def mastery(self, user_id: str, concept_id: str) -> str:
        return self._key("mastery", user_id, concept_id)

    def mastery_index(self, user_id: str) -> str:
        """Sorted index: concept id -> stored mastery score."""
        return self._key("mastery-index", user_id)

    def review_queue(self, user_id: str) -> str:
        """Sorted index: concept id -> next review time (epoch ms)."""
        return self._key("review-queue", user_id)

    def graph(self, user_id: str) -> str:
        return self._key("graph", user_id)

    def session(self, user_id: str) -> str:
        return self._key("session", user_id)

    def session_archive(self, session_id: str) -> str:
        return self._key("session-archive", session_id)

    def session_history(self, user_id: str) -> str:
        """Sorted index: session id -> start time (epoch ms)."""
        return self._key("session-history", user_id)
