"""tests/conftest.py"""
import os

os.environ.setdefault("LOG_TO_FILE", "0")

import pytest

from lottolab.models.types import Combination, Draw
from lottolab.utils.config import GameConfig, load_game_config


def synthetic_draws(n: int, start_id: int = 1, with_bonus: bool = True) -> list[Draw]:
    """
    Powerball-shaped draws built from disjoint bands so numbers never collide:
    7 is drawn every time; 30, 46 and 57 are never drawn (nor used as bonus).
    """
    draws = []
    for i in range(n):
        numbers = (7, 10 + i % 20, 31 + (i * 3) % 15, 47 + i % 10, 58 + (i * 7) % 12)
        draws.append(Draw(
            draw_id=start_id + i,
            draw_date=f"2024-{1 + i // 28:02d}-{1 + i % 28:02d}",
            numbers=numbers,
            bonus=(i % 26) + 1 if with_bonus else None,
        ))
    return draws


def make_combination(numbers, composite_score: float = 0.0, confidence: float = 0.5) -> Combination:
    numbers = tuple(sorted(numbers))
    odd = sum(1 for n in numbers if n % 2)
    high = sum(1 for n in numbers if n > 35)
    return Combination(
        numbers=numbers,
        sum=sum(numbers),
        odd_count=odd,
        even_count=len(numbers) - odd,
        high_count=high,
        low_count=len(numbers) - high,
        first_digit=numbers[0] // 10,
        recurrence_score=0.0,
        skip_score=0.0,
        pair_score=0.0,
        triple_score=0.0,
        sum_score=0.0,
        hot_cold_score=0.0,
        location_score=0.0,
        composite_score=composite_score,
        confidence=confidence,
    )


@pytest.fixture
def powerball() -> GameConfig:
    return load_game_config("powerball")


@pytest.fixture
def history() -> list[Draw]:
    return synthetic_draws(30)


@pytest.fixture
def tiny_game() -> GameConfig:
    return GameConfig(key="tiny", label="Tiny 5/6", number_range=(1, 6), pick_count=5)
