"""
lottolab/models/scoring/combo_scorer.py
Multi-factor composite scoring of candidate combinations.
"""
from __future__ import annotations

from collections import Counter
from itertools import combinations
from math import comb
from typing import Any, Iterable, Sequence

import numpy as np

from lottolab.models.statistical.location_analyzer import LocationAnalyzer
from lottolab.models.statistical.number_profiler import NumberProfiler
from lottolab.models.types import (
    COLD,
    FROZEN,
    HOT,
    WARM,
    Combination,
    Draw,
    InvalidCombinationError,
)
from lottolab.utils.config import GameConfig
from lottolab.utils.logger import get_logger

log = get_logger("model.scorer")

CONFIDENCE_MIN = 0.1
CONFIDENCE_MAX = 0.9
RECENT_SKIP = 5
NEUTRAL_SCORE = 50.0

STATUS_POINTS = {HOT: 80, WARM: 60, COLD: 40, FROZEN: 20}

# (skip upper bound, points); anything longer scores SKIP_FLOOR
SKIP_STEPS = ((10, 80), (20, 60), (30, 40))
SKIP_FLOOR = 20

# Evaluated in this order; each threshold met adds its clause.
REASONS = (
    ("recurrence", 70, "High number recurrence frequency"),
    ("skip_alignment", 60, "Good skip count alignment"),
    ("pair_recurrence", 30, "Contains common number pairs"),
    ("triple_recurrence", 20, "Contains common number triples"),
    ("sum_proximity", 70, "Sum within predicted range"),
    ("hot_cold_status", 60, "Contains hot/warm numbers"),
    ("location_fit", 60, "Good draw location pattern fit"),
)
FALLBACK_REASON = "Average combination characteristics"


class ComboScorer:
    """
    Turns a candidate into a scored Combination using the number profiler,
    the location analyzer and pair/triple recurrence tables.

    Scoring is a pure function of (candidate, tables, weights). The composite
    is a plain weighted sum: weights are looked up by factor name and a factor
    with no weight contributes zero. Weights are never renormalised.
    """

    def __init__(
        self,
        game: GameConfig,
        profiler: NumberProfiler,
        location: LocationAnalyzer,
        draws: Sequence[Draw] = (),
        weights: dict[str, float] | None = None,
    ):
        self.game = game
        self.profiler = profiler
        self.location = location
        self.top_pairs = game.scorer["top_pairs"]
        self.top_triples = game.scorer["top_triples"]
        self.unseen_skip = game.scorer["unseen_skip"]
        self.count_bonus = game.bonus_mode == "shared"
        self.weights: dict[str, float] = dict(weights if weights is not None else game.scoring_weights)

        self.skip_counts: dict[int, int] = {}
        self.common_pairs: list[tuple[tuple[int, int], int]] = []
        self.common_triples: list[tuple[tuple[int, int, int], int]] = []
        self._pair_set: frozenset[tuple[int, ...]] = frozenset()
        self._triple_set: frozenset[tuple[int, ...]] = frozenset()
        self.update_draws(draws)

    # ── Tables ────────────────────────────────────────────────────

    def update_draws(self, draws: Sequence[Draw]) -> None:
        """Recompute skip counts and pair/triple tables. Analyzers are refreshed by their owner."""
        draws = tuple(draws)
        self.skip_counts = self._calculate_skip_counts(draws)
        self.common_pairs = self._most_common(draws, 2, self.top_pairs)
        self.common_triples = self._most_common(draws, 3, self.top_triples)
        self._pair_set = frozenset(group for group, _ in self.common_pairs)
        self._triple_set = frozenset(group for group, _ in self.common_triples)

    def _calculate_skip_counts(self, draws: tuple[Draw, ...]) -> dict[int, int]:
        last_seen: dict[int, int] = {}
        for index, draw in enumerate(draws):
            for num in draw.numbers:
                last_seen[num] = index
            if self.count_bonus and draw.bonus is not None:
                last_seen[draw.bonus] = index
        latest = len(draws) - 1
        return {
            num: latest - last_seen[num] if num in last_seen else self.unseen_skip
            for num in self.game.universe
        }

    @staticmethod
    def _most_common(draws: Iterable[Draw], size: int, limit: int) -> list[tuple[tuple[int, ...], int]]:
        # Counter keeps first-seen order, and most_common sorts stably, so ties keep discovery order
        counts: Counter = Counter()
        for draw in draws:
            counts.update(combinations(draw.numbers, size))
        return counts.most_common(limit)

    # ── Weights ───────────────────────────────────────────────────

    def set_scoring_weights(self, weights: dict[str, float]) -> None:
        """Shallow-merge `weights` into the active map."""
        unknown = [name for name in weights if name not in self.weights]
        if unknown:
            log.warning(f"New weight names {unknown} have no factor yet and contribute nothing")
        self.weights = {**self.weights, **weights}
        log.info(f"Scoring weights updated: {self.weights}")

    def get_scoring_weights(self) -> dict[str, float]:
        return dict(self.weights)

    # ── Scoring ───────────────────────────────────────────────────

    def validate(self, numbers: Sequence[int]) -> tuple[int, ...]:
        lo, hi = self.game.number_range
        ordered = tuple(sorted(int(n) for n in numbers))
        if len(ordered) != self.game.pick_count:
            raise InvalidCombinationError(f"Expected {self.game.pick_count} numbers, got {len(ordered)}: {ordered}")
        if len(set(ordered)) != len(ordered):
            raise InvalidCombinationError(f"Duplicate numbers in {ordered}")
        if ordered[0] < lo or ordered[-1] > hi:
            raise InvalidCombinationError(f"Numbers out of range [{lo}, {hi}]: {ordered}")
        return ordered

    def score_combination(self, numbers: Sequence[int]) -> Combination:
        ordered = self.validate(numbers)
        k = len(ordered)
        total = sum(ordered)
        odd = sum(1 for n in ordered if n % 2 == 1)
        high = sum(1 for n in ordered if n > self.game.high_threshold)

        factors = {
            "recurrence": self._recurrence_score(ordered),
            "skip_alignment": self._skip_score(ordered),
            "pair_recurrence": self._group_score(ordered, 2, self._pair_set),
            "triple_recurrence": self._group_score(ordered, 3, self._triple_set),
            "sum_proximity": self._sum_score(total),
            "hot_cold_status": self._hot_cold_score(ordered),
            "location_fit": self._location_score(),
        }
        composite = sum(score * self.weights.get(name, 0.0) for name, score in factors.items())

        return Combination(
            numbers=ordered,
            sum=total,
            odd_count=odd,
            even_count=k - odd,
            high_count=high,
            low_count=k - high,
            first_digit=ordered[0] // 10,
            recurrence_score=factors["recurrence"],
            skip_score=factors["skip_alignment"],
            pair_score=factors["pair_recurrence"],
            triple_score=factors["triple_recurrence"],
            sum_score=factors["sum_proximity"],
            hot_cold_score=factors["hot_cold_status"],
            location_score=factors["location_fit"],
            composite_score=composite,
            confidence=self._confidence(list(factors.values())),
            reasoning=self._reasoning(factors),
        )

    def _recurrence_score(self, numbers: tuple[int, ...]) -> float:
        total = 0.0
        for num in numbers:
            profile = self.profiler.get_profile(num)
            if profile:
                total += profile.frequency * 100
                if profile.current_skip <= RECENT_SKIP:
                    total += 20
        return total / len(numbers)

    def _skip_score(self, numbers: tuple[int, ...]) -> float:
        total = 0
        for num in numbers:
            skip = self.skip_counts.get(num, self.unseen_skip)
            total += next((points for bound, points in SKIP_STEPS if skip <= bound), SKIP_FLOOR)
        return total / len(numbers)

    @staticmethod
    def _group_score(numbers: tuple[int, ...], size: int, table: frozenset) -> float:
        possible = comb(len(numbers), size)
        if possible == 0:
            return 0.0
        found = sum(1 for group in combinations(numbers, size) if group in table)
        return found / possible * 100

    def _sum_score(self, total: int) -> float:
        snapshot = self.location.get_snapshot()
        if snapshot is None:
            return NEUTRAL_SCORE
        lo, hi = snapshot.sum_range
        target = (lo + hi) / 2
        distance = abs(total - target)
        if lo <= total <= hi:
            half_range = (hi - lo) / 2
            if half_range == 0:
                return 100.0
            return 100 * (1 - distance / half_range)
        return max(0.0, NEUTRAL_SCORE - distance)

    def _hot_cold_score(self, numbers: tuple[int, ...]) -> float:
        total = 0
        for num in numbers:
            profile = self.profiler.get_profile(num)
            if profile:
                total += STATUS_POINTS[profile.status]
        return total / len(numbers)

    def _location_score(self) -> float:
        snapshot = self.location.get_snapshot()
        if snapshot is None:
            return NEUTRAL_SCORE
        return (snapshot.pattern_strength + snapshot.confidence) * 50

    @staticmethod
    def _confidence(scores: list[float]) -> float:
        """Lower spread across factors means higher confidence."""
        mean = float(np.mean(scores))
        if mean == 0:
            return CONFIDENCE_MIN
        ratio = float(np.std(scores)) / mean
        return round(max(CONFIDENCE_MIN, min(CONFIDENCE_MAX, 1 - ratio)), 2)

    @staticmethod
    def _reasoning(factors: dict[str, float]) -> tuple[str, ...]:
        reasons = tuple(text for name, threshold, text in REASONS if factors[name] > threshold)
        return reasons or (FALLBACK_REASON,)

    # ── Introspection ─────────────────────────────────────────────

    def get_analysis_components(self) -> dict[str, Any]:
        return {
            "skip_counts": dict(self.skip_counts),
            "common_pairs": list(self.common_pairs),
            "common_triples": list(self.common_triples),
            "hot_numbers": self.profiler.get_hot_numbers(),
            "cold_numbers": self.profiler.get_cold_numbers(),
            "location": self.location.get_snapshot(),
        }
