from datetime import UTC, datetime, timedelta

import pytest

from mastery_engine.mastery.decay import (
    calculate_days_since,
    calculate_effective_mastery,
    round_half_up,
    to_epoch_ms,
)


def test_no_elapsed_time_keeps_stored_score():
    assert calculate_effective_mastery(0.8, 0) == 0.8


def test_one_week_of_decay():
    # 0.8 * e^-0.7
    assert calculate_effective_mastery(0.8, 7) == 0.397


def test_custom_decay_rate():
    assert calculate_effective_mastery(0.5, 10, decay_rate=0.0) == 0.5
    assert calculate_effective_mastery(1.0, 1, decay_rate=0.5) == 0.607


def test_effective_mastery_never_negative():
    assert calculate_effective_mastery(0.0, 365) == 0.0
    assert calculate_effective_mastery(0.9, 10_000) == 0.0


def test_days_since_is_fractional():
    now = datetime(2025, 1, 10, 12, 0, tzinfo=UTC)
    assert calculate_days_since(now - timedelta(hours=36), now) == pytest.approx(1.5)


def test_days_since_future_timestamp_is_absolute():
    now = datetime(2025, 1, 10, tzinfo=UTC)
    assert calculate_days_since(now + timedelta(days=2), now) == pytest.approx(2.0)


def test_naive_timestamps_are_utc():
    aware = datetime(2025, 1, 10, tzinfo=UTC)
    naive = datetime(2025, 1, 9)
    assert calculate_days_since(naive, aware) == pytest.approx(1.0)
    assert to_epoch_ms(naive) == to_epoch_ms(naive.replace(tzinfo=UTC))


@pytest.mark.parametrize("value,digits,expected", [(0.5, 0, 1), (2.5, 0, 3), (0.4, 0, 0), (0.1234, 3, 0.123)])
def test_round_half_up(value, digits, expected):
    assert round_half_up(value, digits) == expected
