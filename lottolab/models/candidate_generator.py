"""
lottolab/models/candidate_generator.py
Build a pool of distinct candidate combinations biased toward hot/warm numbers.
"""
from __future__ import annotations

import random

from lottolab.models.statistical.number_profiler import NumberProfiler
from lottolab.models.types import HOT, WARM
from lottolab.utils.config import GameConfig
from lottolab.utils.logger import get_logger

log = get_logger("model.generator")


class CandidateGenerator:
    """
    Each candidate walks a shuffled priority list (hot then warm numbers),
    taking each with `include_probability`, then fills the remaining slots
    uniformly from the unused universe. Duplicates are rejected by sorted tuple.
    """

    def __init__(self, game: GameConfig, profiler: NumberProfiler, rng: random.Random | None = None):
        self.game = game
        self.profiler = profiler
        self.rng = rng or random.Random()
        self.include_probability = game.generator["include_probability"]
        self.max_attempts_factor = game.generator["max_attempts_factor"]

    def priority_numbers(self) -> list[int]:
        return [p.number for status in (HOT, WARM) for p in self.profiler.get_numbers_by_status(status)]

    def is_valid(self, candidate: tuple[int, ...]) -> bool:
        lo, hi = self.game.number_range
        return (
            len(candidate) == self.game.pick_count
            and len(set(candidate)) == len(candidate)
            and all(lo <= n <= hi for n in candidate)
        )

    def _biased_candidate(self, priority: list[int]) -> tuple[int, ...]:
        k = self.game.pick_count
        chosen: list[int] = []
        shuffled = list(priority)
        self.rng.shuffle(shuffled)
        for num in shuffled:
            if len(chosen) >= k:
                break
            if self.rng.random() < self.include_probability:
                chosen.append(num)

        available = [n for n in self.game.universe if n not in chosen]
        chosen.extend(self.rng.sample(available, k - len(chosen)))
        return tuple(sorted(chosen))

    def generate(self, target_count: int) -> list[tuple[int, ...]]:
        """Return up to `target_count` distinct candidates; a shorter pool is not an error."""
        priority = self.priority_numbers()
        max_attempts = target_count * self.max_attempts_factor
        pool: list[tuple[int, ...]] = []
        seen: set[tuple[int, ...]] = set()

        attempts = 0
        while len(pool) < target_count and attempts < max_attempts:
            attempts += 1
            candidate = self._biased_candidate(priority)
            if self.is_valid(candidate) and candidate not in seen:
                seen.add(candidate)
                pool.append(candidate)

        if len(pool) < target_count:
            log.warning(f"Generated {len(pool)}/{target_count} candidates after {attempts} attempts")
        else:
            log.debug(f"Generated {len(pool)} candidates ({len(priority)} priority numbers, {attempts} attempts)")
        return pool
