"""
lottolab/models/statistical/number_profiler.py
Per-number frequency, skip, heat, status and trend profiles.
"""
from __future__ import annotations

from collections import Counter
from typing import Iterator, Sequence

from lottolab.models.types import (
    COLD,
    FALLING,
    FROZEN,
    HOT,
    RISING,
    STABLE,
    STATUSES,
    WARM,
    Draw,
    NumberProfile,
)
from lottolab.utils.config import GameConfig
from lottolab.utils.logger import get_logger

log = get_logger("model.profiler")

HEAT_BUCKETS = ((80, "80-100"), (60, "60-79"), (40, "40-59"), (20, "20-39"), (0, "0-19"))


def draw_contains(draw: Draw, number: int, count_bonus: bool) -> bool:
    """True if `number` is a primary ball of `draw` (or its bonus when counted)."""
    return number in draw.numbers or (count_bonus and draw.bonus == number)


class NumberProfiler:
    """
    Score each number in the primary range by how often and how recently it
    appeared. Profiles are rebuilt in full on every `update_draws`.

    With `bonus_mode == "shared"` a draw's bonus ball counts as an appearance
    of the same number in the primary range; with "disjoint" only primary
    balls count.
    """

    def __init__(self, game: GameConfig, draws: Sequence[Draw] = ()):
        self.game = game
        params = game.profiler
        self.hot_threshold = params["hot_threshold"]
        self.warm_threshold = params["warm_threshold"]
        self.frozen_skip = params["frozen_skip"]
        self.trend_window = params["trend_window"]
        self.trend_change = params["trend_change"]
        self.list_limit = params["list_limit"]
        self.count_bonus = game.bonus_mode == "shared"
        self.draws: tuple[Draw, ...] = ()
        self._profiles: dict[int, NumberProfile] = {}
        self.update_draws(draws)

    # ── Lifecycle ─────────────────────────────────────────────────

    def update_draws(self, draws: Sequence[Draw]) -> None:
        """Replace the history and recompute every profile."""
        self.draws = tuple(draws)
        self._profiles = {}
        if not self.draws:
            return
        for num in self.game.universe:
            self._profiles[num] = self._profile(num)
        log.debug(f"Profiled {len(self._profiles)} numbers over {len(self.draws)} draws")

    # ── Per-number computation ────────────────────────────────────

    def _profile(self, number: int) -> NumberProfile:
        total = len(self.draws)
        indices = [i for i, draw in enumerate(self.draws) if draw_contains(draw, number, self.count_bonus)]
        skips = [b - a - 1 for a, b in zip(indices, indices[1:])]

        last_index = indices[-1] if indices else -1
        current_skip = total - 1 - last_index if indices else total
        frequency = len(indices) / max(total, 1)
        average_skip = sum(skips) / len(skips) if skips else float(current_skip)

        heat = self._heat_score(frequency, current_skip, average_skip)
        return NumberProfile(
            number=number,
            appearances=len(indices),
            appearance_indices=tuple(indices),
            skips=tuple(skips),
            current_skip=current_skip,
            average_skip=average_skip,
            frequency=frequency,
            heat_score=heat,
            status=self._status(heat, current_skip),
            trend=self._trend(number),
            predicted_next_gap=self._predict_next_gap(current_skip, average_skip),
            last_seen=self.draws[last_index].draw_date if indices else "Never",
        )

    @staticmethod
    def _heat_score(frequency: float, current_skip: int, average_skip: float) -> int:
        """0-100: up to 50 points for frequency, up to 50 for recency."""
        frequency_part = min(frequency * 100, 50)
        recency_part = 50.0
        if average_skip > 0:
            ratio = min(current_skip / average_skip, 2)
            recency_part = max(0.0, 50 * (1 - ratio / 2))
        return int(frequency_part + recency_part + 0.5)

    def _status(self, heat: int, current_skip: int) -> str:
        if heat >= self.hot_threshold:
            return HOT
        if heat >= self.warm_threshold:
            return WARM
        if current_skip > self.frozen_skip:
            return FROZEN
        return COLD

    def _trend(self, number: int) -> str:
        w = self.trend_window
        if len(self.draws) < w:
            return STABLE
        recent = self.draws[-w:]
        older = self.draws[-2 * w:-w]
        recent_count = sum(1 for d in recent if draw_contains(d, number, self.count_bonus))
        older_count = sum(1 for d in older if draw_contains(d, number, self.count_bonus))
        if recent_count > older_count * (1 + self.trend_change):
            return RISING
        if recent_count < older_count * (1 - self.trend_change):
            return FALLING
        return STABLE

    @staticmethod
    def _predict_next_gap(current_skip: int, average_skip: float) -> int:
        if average_skip == 0:
            return max(1, current_skip)
        if current_skip > average_skip:
            return max(1, round(average_skip * 0.7))
        return max(1, round(average_skip * 1.3))

    # ── Lookups ───────────────────────────────────────────────────

    def get_profile(self, number: int) -> NumberProfile | None:
        return self._profiles.get(number)

    def profiles(self) -> Iterator[NumberProfile]:
        return iter(self._profiles.values())

    def get_hot_numbers(self, limit: int | None = None) -> list[NumberProfile]:
        limit = self.list_limit if limit is None else limit
        hot = [p for p in self._profiles.values() if p.status == HOT]
        return sorted(hot, key=lambda p: p.heat_score, reverse=True)[:limit]

    def get_cold_numbers(self, limit: int | None = None) -> list[NumberProfile]:
        limit = self.list_limit if limit is None else limit
        cold = [p for p in self._profiles.values() if p.status in (COLD, FROZEN)]
        return sorted(cold, key=lambda p: p.heat_score)[:limit]

    def get_numbers_by_status(self, status: str) -> list[NumberProfile]:
        if status not in STATUSES:
            raise ValueError(f"Unknown status: {status}")
        matching = [p for p in self._profiles.values() if p.status == status]
        return sorted(matching, key=lambda p: p.heat_score, reverse=True)

    def get_statistics(self) -> dict[str, int]:
        profiles = list(self._profiles.values())
        counts = Counter(p.status for p in profiles)
        n = len(profiles)
        return {
            "total_numbers": n,
            "hot_count": counts.get(HOT, 0),
            "warm_count": counts.get(WARM, 0),
            "cold_count": counts.get(COLD, 0),
            "frozen_count": counts.get(FROZEN, 0),
            "average_heat_score": round(sum(p.heat_score for p in profiles) / n) if n else 0,
            "average_skip_count": round(sum(p.current_skip for p in profiles) / n) if n else 0,
        }

    def get_heat_distribution(self) -> list[dict[str, int | str]]:
        counter: Counter = Counter()
        for p in self._profiles.values():
            for floor, label in HEAT_BUCKETS:
                if p.heat_score >= floor:
                    counter[label] += 1
                    break
        return [{"range": label, "count": counter[label]} for _, label in reversed(HEAT_BUCKETS) if counter[label]]
