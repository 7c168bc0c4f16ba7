"""
Mastery Store.

Persists one ConceptMastery blob per (user, concept) plus two sorted indexes
per user:

- mastery index: concept -> stored mastery score (weakest/strongest/range)
- review queue: concept -> next review time in epoch ms (due queries)

Decay is applied when records are read, so every ranking query draws
candidates from the stored-score index and re-sorts by effective mastery.
Each update is an independent read-modify-write; store errors are logged
and re-raised.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime, timedelta

from loguru import logger

from mastery_engine.config import Settings
from mastery_engine.storage import KeySpace, KeyValueStore

from .decay import (
    DEFAULT_DECAY_RATE,
    calculate_days_since,
    calculate_effective_mastery,
    clamp01,
    ensure_aware,
    round_half_up,
    to_epoch_ms,
    utc_now,
)
from .models import (
    ConceptMastery,
    EffectiveMastery,
    LearningSignal,
    MasterySummary,
    MasteryUpdate,
)
from .sm2 import SM2Scheduler

# Summary bands (effective mastery)
MASTERED_THRESHOLD = 0.8
WEAK_THRESHOLD = 0.3


class MasteryStore:
    """CRUD, decay and scheduling for per-concept mastery records."""

    def __init__(
        self,
        store: KeyValueStore,
        keys: KeySpace | None = None,
        scheduler: SM2Scheduler | None = None,
        decay_rate: float = DEFAULT_DECAY_RATE,
        default_mastery: float = 0.2,
        default_confidence: float = 0.3,
        confidence_increment: float = 0.1,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.keys = keys or KeySpace()
        self.scheduler = scheduler or SM2Scheduler()
        self.decay_rate = decay_rate
        self.default_mastery = default_mastery
        self.default_confidence = default_confidence
        self.confidence_increment = confidence_increment
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        store: KeyValueStore,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ) -> MasteryStore:
        return cls(
            store,
            keys=KeySpace(settings.key_prefix),
            decay_rate=settings.decay_rate,
            default_mastery=settings.default_mastery,
            default_confidence=settings.default_confidence,
            confidence_increment=settings.confidence_increment,
            clock=clock,
        )

    # ========================================
    # CRUD
    # ========================================

    async def get_mastery(self, user_id: str, concept_id: str) -> ConceptMastery | None:
        """Return the stored record, or None if the concept was never tracked."""
        try:
            data = await self.store.get(self.keys.mastery(user_id, concept_id))
        except Exception as e:
            logger.error(f"Failed to get mastery for {user_id}/{concept_id}: {e}")
            raise
        if data is None:
            return None
        return ConceptMastery.model_validate_json(data)

    async def save_mastery(self, user_id: str, mastery: ConceptMastery) -> None:
        """Write the record and refresh both indexes."""
        concept_id = mastery.concept_id
        try:
            await self.store.set(self.keys.mastery(user_id, concept_id), mastery.model_dump_json())
            await self.store.zadd(self.keys.mastery_index(user_id), {concept_id: mastery.mastery_score})
            await self.store.zadd(
                self.keys.review_queue(user_id),
                {concept_id: to_epoch_ms(mastery.next_review_date)},
            )
        except Exception as e:
            logger.error(f"Failed to save mastery for {user_id}/{concept_id}: {e}")
            raise
        logger.debug(f"Mastery saved: {user_id}/{concept_id} score={mastery.mastery_score}")

    def new_mastery(
        self,
        concept_id: str,
        concept_label: str,
        initial_mastery: float | None = None,
    ) -> ConceptMastery:
        """Build (without saving) a record with default scores."""
        now = self.clock()
        return ConceptMastery(
            concept_id=concept_id,
            concept_label=concept_label,
            mastery_score=self.default_mastery if initial_mastery is None else clamp01(initial_mastery),
            confidence=self.default_confidence,
            last_interaction=now,
            next_review_date=now + timedelta(days=1),
            created_at=now,
        )

    async def create_mastery(
        self,
        user_id: str,
        concept_id: str,
        concept_label: str,
        initial_mastery: float | None = None,
    ) -> ConceptMastery:
        """Create and persist an initial record for a concept."""
        mastery = self.new_mastery(concept_id, concept_label, initial_mastery)
        await self.save_mastery(user_id, mastery)
        logger.info(f"Mastery created: {user_id}/{concept_id} ({concept_label})")
        return mastery

    async def update_mastery_from_signal(self, user_id: str, signal: LearningSignal) -> MasteryUpdate:
        """
        Apply a learning signal to a concept, creating the record if needed.

        Args:
            user_id: Learner identifier
            signal: Evidence to apply

        Returns:
            MasteryUpdate with before/after scores (previous values None for new records)
        """
        mastery = await self.get_mastery(user_id, signal.concept_id)
        is_new = mastery is None
        if mastery is None:
            mastery = self.new_mastery(signal.concept_id, signal.concept_label)

        previous_mastery = mastery.mastery_score
        previous_confidence = mastery.confidence
        now = self.clock()

        is_positive = signal.mastery_delta > 0
        if is_positive:
            mastery.streak_correct += 1
            mastery.streak_wrong = 0
            mastery.correct_attempts += 1
        elif signal.mastery_delta < 0:
            mastery.streak_wrong += 1
            mastery.streak_correct = 0
        mastery.total_attempts += 1

        schedule = self.scheduler.schedule(is_positive, mastery.interval_days, mastery.ease_factor, now)

        mastery.mastery_score = round_half_up(clamp01(previous_mastery + signal.mastery_delta), 3)
        mastery.confidence = round_half_up(min(1.0, previous_confidence + self.confidence_increment), 3)
        mastery.last_interaction = now
        mastery.interval_days = schedule.interval_days
        mastery.ease_factor = schedule.ease_factor
        mastery.next_review_date = schedule.next_review_date
        if is_positive:
            mastery.last_correct_answer = now

        await self.save_mastery(user_id, mastery)

        logger.info(
            f"Mastery updated: {user_id}/{signal.concept_id} "
            f"{signal.type.value} {previous_mastery:.3f} -> {mastery.mastery_score:.3f}"
            f"{' (new)' if is_new else ''}"
        )

        return MasteryUpdate(
            concept_id=signal.concept_id,
            signal=signal,
            previous_mastery=None if is_new else previous_mastery,
            new_mastery=mastery.mastery_score,
            previous_confidence=None if is_new else previous_confidence,
            new_confidence=mastery.confidence,
        )

    async def delete_mastery(self, user_id: str, concept_id: str) -> None:
        """Administrative removal of a record and its index entries."""
        try:
            await self.store.delete(self.keys.mastery(user_id, concept_id))
            await self.store.zrem(self.keys.mastery_index(user_id), concept_id)
            await self.store.zrem(self.keys.review_queue(user_id), concept_id)
        except Exception as e:
            logger.error(f"Failed to delete mastery for {user_id}/{concept_id}: {e}")
            raise
        logger.info(f"Mastery deleted: {user_id}/{concept_id}")

    # ========================================
    # Decay
    # ========================================

    def to_effective(self, mastery: ConceptMastery, now: datetime | None = None) -> EffectiveMastery:
        """Attach decayed mastery and due status to a stored record."""
        now = now or self.clock()
        days = calculate_days_since(mastery.last_interaction, now)
        return EffectiveMastery(
            **mastery.model_dump(),
            effective_mastery=calculate_effective_mastery(mastery.mastery_score, days, self.decay_rate),
            days_since_interaction=round_half_up(days, 1),
            is_due_for_review=ensure_aware(mastery.next_review_date) <= ensure_aware(now),
        )

    async def get_effective_mastery(self, user_id: str, concept_id: str) -> EffectiveMastery | None:
        mastery = await self.get_mastery(user_id, concept_id)
        if mastery is None:
            return None
        return self.to_effective(mastery)

    async def _load_effective(self, user_id: str, concept_ids: Iterable[str]) -> list[EffectiveMastery]:
        results = []
        for concept_id in concept_ids:
            mastery = await self.get_effective_mastery(user_id, concept_id)
            if mastery is not None:
                results.append(mastery)
        return results

    # ========================================
    # Queries
    # ========================================

    async def get_weakest_concepts(self, user_id: str, limit: int = 10) -> list[EffectiveMastery]:
        """Lowest stored scores, re-sorted ascending by effective mastery."""
        if limit <= 0:
            return []
        concept_ids = await self.store.zrange(self.keys.mastery_index(user_id), 0, limit - 1)
        results = await self._load_effective(user_id, concept_ids)
        results.sort(key=lambda m: m.effective_mastery)
        return results

    async def get_strongest_concepts(self, user_id: str, limit: int = 10) -> list[EffectiveMastery]:
        """Highest stored scores, re-sorted descending by effective mastery."""
        if limit <= 0:
            return []
        concept_ids = await self.store.zrange(self.keys.mastery_index(user_id), -limit, -1)
        results = await self._load_effective(user_id, concept_ids)
        results.sort(key=lambda m: m.effective_mastery, reverse=True)
        return results

    async def get_concepts_due_for_review(self, user_id: str, limit: int = 10) -> list[EffectiveMastery]:
        """Concepts whose next review time has passed, earliest first."""
        now_ms = to_epoch_ms(self.clock())
        concept_ids = await self.store.zrange_by_score(
            self.keys.review_queue(user_id), 0, now_ms, offset=0, count=limit
        )
        return await self._load_effective(user_id, concept_ids)

    async def get_all_mastery(self, user_id: str) -> list[EffectiveMastery]:
        concept_ids = await self.store.zrange(self.keys.mastery_index(user_id), 0, -1)
        return await self._load_effective(user_id, concept_ids)

    async def get_mastery_batch(
        self, user_id: str, concept_ids: Iterable[str]
    ) -> dict[str, EffectiveMastery]:
        """Effective mastery keyed by concept id; untracked ids are omitted."""
        return {m.concept_id: m for m in await self._load_effective(user_id, concept_ids)}

    async def has_mastery_data(self, user_id: str) -> bool:
        return await self.store.zcard(self.keys.mastery_index(user_id)) > 0

    async def get_concepts_by_mastery_range(
        self,
        user_id: str,
        min_mastery: float,
        max_mastery: float,
        limit: int = 50,
    ) -> list[EffectiveMastery]:
        """Concepts whose stored score lies in [min_mastery, max_mastery]."""
        concept_ids = await self.store.zrange_by_score(
            self.keys.mastery_index(user_id), min_mastery, max_mastery, offset=0, count=limit
        )
        return await self._load_effective(user_id, concept_ids)

    async def get_mastery_summary(self, user_id: str) -> MasterySummary:
        """Band counts, due count and average over effective mastery."""
        all_mastery = await self.get_all_mastery(user_id)
        scores = [m.effective_mastery for m in all_mastery]
        average = sum(scores) / len(scores) if scores else 0.0

        return MasterySummary(
            user_id=user_id,
            total_concepts=len(all_mastery),
            mastered_concepts=sum(1 for s in scores if s > MASTERED_THRESHOLD),
            learning_concepts=sum(1 for s in scores if WEAK_THRESHOLD < s <= MASTERED_THRESHOLD),
            weak_concepts=sum(1 for s in scores if s <= WEAK_THRESHOLD),
            average_mastery=round_half_up(average, 3),
            concepts_due_for_review=sum(1 for m in all_mastery if m.is_due_for_review),
            last_updated=self.clock(),
        )
