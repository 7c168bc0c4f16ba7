"""
SM-2 Spaced Repetition Scheduler.

Binary-outcome variant of SuperMemo 2 used for concept review:

- correct: interval 0 -> 1 day, 1 -> 6 days, otherwise interval * ease;
  ease grows by 0.1 up to 3.0
- incorrect: interval resets to 1 day; ease shrinks by 0.2 down to 1.3
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from .decay import round_half_up, utc_now


@dataclass
class SM2Config:
    """Configuration for SM-2 algorithm."""

    initial_ease: float = 2.5
    minimum_ease: float = 1.3
    maximum_ease: float = 3.0
    ease_bonus: float = 0.1
    ease_penalty: float = 0.2
    first_interval: int = 1  # Days for first review
    second_interval: int = 6  # Days for second review


@dataclass
class ReviewSchedule:
    """Result of one scheduling step."""

    interval_days: int
    ease_factor: float
    next_review_date: datetime


class SM2Scheduler:
    """
    Implements the SM-2 spaced repetition algorithm.

    Each concept carries:
    - Ease Factor: how fast intervals grow (2.5 default, clamped to [1.3, 3.0])
    - Interval: days until next review
    """

    def __init__(self, config: SM2Config | None = None):
        """
        Initialize SM-2 scheduler.

        Args:
            config: Custom configuration (uses defaults if None)
        """
        self.config = config or SM2Config()

    def schedule(
        self,
        is_correct: bool,
        current_interval: int,
        current_ease: float,
        now: datetime | None = None,
    ) -> ReviewSchedule:
        """
        Calculate the next review for a concept.

        Args:
            is_correct: Whether the learner recalled the concept
            current_interval: Interval (days) before this review
            current_ease: Ease factor before this review
            now: Review time (defaults to UTC now)

        Returns:
            ReviewSchedule with new interval, ease and next review date
        """
        now = now or utc_now()
        cfg = self.config

        if is_correct:
            if current_interval == 0:
                interval = cfg.first_interval
            elif current_interval == 1:
                interval = cfg.second_interval
            else:
                interval = int(round_half_up(current_interval * current_ease))
            ease = min(cfg.maximum_ease, current_ease + cfg.ease_bonus)
        else:
            interval = cfg.first_interval
            ease = max(cfg.minimum_ease, current_ease - cfg.ease_penalty)

        return ReviewSchedule(
            interval_days=interval,
            ease_factor=round_half_up(ease, 2),
            next_review_date=now + timedelta(days=interval),
        )
