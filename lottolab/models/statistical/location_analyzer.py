"""
lottolab/models/statistical/location_analyzer.py
Rolling statistics over the sum of each draw's primary numbers:
trailing range, jump trend, volatility, pattern strength.
"""
from __future__ import annotations

from typing import Any, Sequence

import numpy as np

from lottolab.models.types import (
    DECREASING,
    INCREASING,
    STABLE,
    Draw,
    LocationSnapshot,
    OverUnder,
)
from lottolab.utils.config import GameConfig
from lottolab.utils.logger import get_logger

log = get_logger("model.location")

MIN_DRAWS = 3


class LocationAnalyzer:
    """Tracks the series of draw sums and bounds plausible sums for the next draw."""

    def __init__(self, game: GameConfig, draws: Sequence[Draw] = ()):
        self.game = game
        params = game.location
        self.window = params["window"]
        self.trend_change = params["trend_change"]
        self.min_jump = params["min_jump"]
        self.max_jump = params["max_jump"]
        self.sums: list[int] = []
        self._snapshot: LocationSnapshot | None = None
        self.update_draws(draws)

    # ── Lifecycle ─────────────────────────────────────────────────

    def update_draws(self, draws: Sequence[Draw]) -> None:
        """Replace the history and recompute the snapshot wholesale."""
        self.sums = [d.total for d in draws]
        self._snapshot = None
        if len(self.sums) < MIN_DRAWS:
            return

        trailing = self.sums[-self.window:]
        recent_jumps = self._jumps(trailing)
        all_jumps = self._jumps(self.sums)
        average_jump = round(float(np.mean(all_jumps))) if all_jumps else 0
        trend = self._trend(recent_jumps)
        next_jump = self._predict_next_jump(recent_jumps, average_jump, trend)

        self._snapshot = LocationSnapshot(
            current_draw_index=len(self.sums) - 1,
            sum_range=(min(trailing), max(trailing)),
            predicted_sum_range=self._predict_sum_range(next_jump),
            trend=trend,
            volatility=float(np.std(trailing)),
            pattern_strength=self._pattern_strength(recent_jumps),
            confidence=self._confidence(recent_jumps, average_jump),
            average_jump=average_jump,
            jump_volatility=float(np.std(all_jumps)) if all_jumps else 0.0,
            recent_jumps=tuple(recent_jumps),
            predicted_next_jump=next_jump,
            trailing_average=float(np.mean(trailing)),
        )
        log.debug(f"Location snapshot: range={self._snapshot.sum_range} trend={trend} jump={next_jump}")

    # ── Components ────────────────────────────────────────────────

    @staticmethod
    def _jumps(sums: Sequence[int]) -> list[int]:
        return [abs(b - a) for a, b in zip(sums, sums[1:])]

    def _trend(self, jumps: list[int]) -> str:
        if len(jumps) < 3:
            return STABLE
        half = len(jumps) // 2
        first_avg = float(np.mean(jumps[:half]))
        second_avg = float(np.mean(jumps[half:]))
        if first_avg == 0:
            return INCREASING if second_avg > 0 else STABLE
        if abs(second_avg - first_avg) / first_avg > self.trend_change:
            return INCREASING if second_avg > first_avg else DECREASING
        return STABLE

    def _predict_next_jump(self, jumps: list[int], average_jump: int, trend: str) -> int:
        if not jumps:
            return average_jump
        last = jumps[-1]
        if trend == INCREASING:
            prediction = round(last * 1.2)
        elif trend == DECREASING:
            prediction = round(last * 0.8)
        else:
            # revert toward the long-run average
            prediction = round(last - (last - average_jump) * 0.3)
        return max(self.min_jump, min(self.max_jump, prediction))

    @staticmethod
    def _confidence(jumps: list[int], average_jump: int) -> float:
        if len(jumps) < 3:
            return 0.5
        if average_jump == 0:
            return 0.1
        confidence = max(0.1, min(0.9, 1 - float(np.std(jumps)) / average_jump))
        return round(confidence, 2)

    @staticmethod
    def _pattern_strength(jumps: list[int]) -> float:
        """Similarity of recent jumps to themselves at lags 1 and 2."""
        if len(jumps) < 3:
            return 0.5
        strength = 0.0
        for lag in range(1, min(3, len(jumps))):
            similarities = []
            for i in range(lag, len(jumps)):
                avg = (jumps[i] + jumps[i - lag]) / 2
                diff = abs(jumps[i] - jumps[i - lag])
                similarities.append(1 - diff / avg if avg else 1.0)
            strength += sum(similarities) / len(similarities)
        return max(0.1, min(0.9, strength / 3))

    def _predict_sum_range(self, jump: int) -> tuple[int, int]:
        last = self.sums[-1]
        return max(self.game.min_sum, last - jump), min(self.game.max_sum, last + jump)

    # ── Accessors ─────────────────────────────────────────────────

    def get_snapshot(self) -> LocationSnapshot | None:
        return self._snapshot

    def get_draw_index_range(self) -> dict[str, int]:
        if not self.sums:
            return {"start": 0, "end": 0, "total": 0}
        return {"start": 1, "end": len(self.sums), "total": len(self.sums)}

    def get_over_under(self) -> OverUnder:
        """Compare the trailing window, and the latest sum, against the trailing average."""
        if len(self.sums) < 2:
            latest = self.sums[-1] if self.sums else 0
            return OverUnder(0, 0, 0.0, "balanced", latest, float(latest), "balanced")

        trailing = self.sums[-self.window:]
        average = float(np.mean(trailing))
        over = sum(1 for s in trailing if s > average)
        under = sum(1 for s in trailing if s < average)
        deviation = float(np.mean([abs(s - average) for s in trailing]))

        recent_trend = "balanced"
        if over > under * 1.5:
            recent_trend = "over"
        elif under > over * 1.5:
            recent_trend = "under"

        latest = trailing[-1]
        position = "over" if latest > average else "under" if latest < average else "balanced"
        return OverUnder(
            over_count=over,
            under_count=under,
            average_deviation=round(deviation, 2),
            recent_trend=recent_trend,
            latest_sum=latest,
            trailing_average=average,
            latest_position=position,
        )

    def predict_next_draw(self) -> dict[str, Any]:
        snapshot = self._snapshot
        if snapshot is None:
            return {
                "predicted_sum_range": (self.game.min_sum, self.game.max_sum),
                "confidence": 0.5,
                "expected_jump": 0,
                "risk_level": "high",
            }
        if snapshot.confidence > 0.7:
            risk = "low"
        elif snapshot.confidence > 0.4:
            risk = "medium"
        else:
            risk = "high"
        return {
            "predicted_sum_range": snapshot.predicted_sum_range,
            "confidence": snapshot.confidence,
            "expected_jump": snapshot.predicted_next_jump,
            "risk_level": risk,
        }
