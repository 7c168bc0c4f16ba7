"""
Forgetting-curve helpers.

Stored mastery is never decayed in place. Decay is applied at read time:

    effective = max(0, stored * e^(-rate * days))

so ranking queries see stale strong scores sink without a background job.
"""
from __future__ import annotations

import math
from datetime import UTC, datetime

DEFAULT_DECAY_RATE = 0.1
MS_PER_DAY = 86_400_000


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def to_epoch_ms(value: datetime) -> int:
    return int(ensure_aware(value).timestamp() * 1000)


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with ties going up, unlike the builtin ``round``."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def calculate_days_since(last_interaction: datetime, now: datetime | None = None) -> float:
    """
    Calculate days elapsed since an interaction.

    Args:
        last_interaction: Timestamp of the interaction (can be naive or aware)
        now: Current time (defaults to UTC now)

    Returns:
        Absolute days elapsed as float
    """
    if now is None:
        now = utc_now()

    delta = ensure_aware(now) - ensure_aware(last_interaction)
    return abs(delta.total_seconds()) / 86400.0


def calculate_effective_mastery(
    stored_mastery: float,
    days_since_interaction: float,
    decay_rate: float = DEFAULT_DECAY_RATE,
) -> float:
    """
    Apply exponential decay to a stored mastery score.

    Args:
        stored_mastery: Mastery score as persisted (0-1)
        days_since_interaction: Days since the concept was last touched
        decay_rate: Decay constant per day

    Returns:
        Decayed mastery rounded to 3 decimals
    """
    decayed = stored_mastery * math.exp(-decay_rate * days_since_interaction)
    return round_half_up(max(0.0, decayed), 3)
