"""
lottolab/models/types.py
Value types shared by the analyzers, scorer, pipeline and backtester.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

# ── Errors ────────────────────────────────────────────────────────


class LottolabError(Exception):
    """Base class for all lottolab errors."""


class InvalidDrawError(LottolabError, ValueError):
    """A draw is malformed or would break chronological order."""


class InvalidCombinationError(LottolabError, ValueError):
    """A candidate has the wrong arity, duplicates, or out-of-range numbers."""


class BacktestIndexError(LottolabError, IndexError):
    """A backtest was requested for a draw outside the available history."""


# ── Status vocabularies ───────────────────────────────────────────

HOT, WARM, COLD, FROZEN = "hot", "warm", "cold", "frozen"
STATUSES = (HOT, WARM, COLD, FROZEN)

RISING, FALLING, STABLE = "rising", "falling", "stable"
INCREASING, DECREASING = "increasing", "decreasing"
IMPROVING, DECLINING = "improving", "declining"

FACTOR_NAMES = (
    "recurrence",
    "skip_alignment",
    "pair_recurrence",
    "triple_recurrence",
    "sum_proximity",
    "hot_cold_status",
    "location_fit",
)


# ── History ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class Draw:
    """One historical result: sorted primary numbers plus an optional bonus ball."""

    draw_id: int
    draw_date: str
    numbers: tuple[int, ...]
    bonus: int | None = None

    def __post_init__(self):
        object.__setattr__(self, "numbers", tuple(sorted(int(n) for n in self.numbers)))

    @property
    def total(self) -> int:
        return sum(self.numbers)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Draw":
        bonus = record.get("bonus")
        return cls(
            draw_id=int(record["draw_id"]),
            draw_date=str(record["draw_date"]),
            numbers=tuple(record["numbers"]),
            bonus=int(bonus) if bonus is not None else None,
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "draw_id": self.draw_id,
            "draw_date": self.draw_date,
            "numbers": list(self.numbers),
            "bonus": self.bonus,
        }


# ── Analyzer outputs ──────────────────────────────────────────────

@dataclass(frozen=True)
class NumberProfile:
    number: int
    appearances: int
    appearance_indices: tuple[int, ...]
    skips: tuple[int, ...]
    current_skip: int
    average_skip: float
    frequency: float
    heat_score: int
    status: str
    trend: str
    predicted_next_gap: int
    last_seen: str = "Never"


@dataclass(frozen=True)
class LocationSnapshot:
    current_draw_index: int
    sum_range: tuple[int, int]
    predicted_sum_range: tuple[int, int]
    trend: str
    volatility: float
    pattern_strength: float
    confidence: float
    average_jump: int
    jump_volatility: float
    recent_jumps: tuple[int, ...]
    predicted_next_jump: int
    trailing_average: float


@dataclass(frozen=True)
class OverUnder:
    over_count: int
    under_count: int
    average_deviation: float
    recent_trend: str
    latest_sum: int
    trailing_average: float
    latest_position: str


# ── Scoring ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class Combination:
    """A fully scored candidate. Built once per scoring call and never mutated."""

    numbers: tuple[int, ...]
    sum: int
    odd_count: int
    even_count: int
    high_count: int
    low_count: int
    first_digit: int
    recurrence_score: float
    skip_score: float
    pair_score: float
    triple_score: float
    sum_score: float
    hot_cold_score: float
    location_score: float
    composite_score: float
    confidence: float
    reasoning: tuple[str, ...] = ()

    def factor_scores(self) -> dict[str, float]:
        return {
            "recurrence": self.recurrence_score,
            "skip_alignment": self.skip_score,
            "pair_recurrence": self.pair_score,
            "triple_recurrence": self.triple_score,
            "sum_proximity": self.sum_score,
            "hot_cold_status": self.hot_cold_score,
            "location_fit": self.location_score,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "numbers": list(self.numbers),
            "sum": self.sum,
            "odd_count": self.odd_count,
            "even_count": self.even_count,
            "high_count": self.high_count,
            "low_count": self.low_count,
            "first_digit": self.first_digit,
            "recurrence_score": self.recurrence_score,
            "skip_score": self.skip_score,
            "pair_score": self.pair_score,
            "triple_score": self.triple_score,
            "sum_score": self.sum_score,
            "hot_cold_score": self.hot_cold_score,
            "location_score": self.location_score,
            "composite_score": self.composite_score,
            "confidence": self.confidence,
            "reasoning": list(self.reasoning),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Combination":
        values = dict(data)
        values["numbers"] = tuple(values["numbers"])
        values["reasoning"] = tuple(values.get("reasoning", ()))
        return cls(**values)


# ── Pipeline ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class PredictionOptions:
    enabled_filters: tuple[str, ...] = ()
    max_combinations: int = 100
    min_score: float = 0.0
    scoring_weights: dict[str, float] | None = None

    def cache_key(self) -> str:
        return json.dumps({
            "filters": sorted(self.enabled_filters),
            "max": self.max_combinations,
            "min": self.min_score,
        }, sort_keys=True)


@dataclass(frozen=True)
class PredictionMetadata:
    average_sum: int = 0
    average_odd_count: float = 0.0
    hot_numbers: tuple[int, ...] = ()
    cold_numbers: tuple[int, ...] = ()
    predicted_sum_range: tuple[int, int] = (0, 0)
    confidence: float = 0.0


@dataclass(frozen=True)
class PredictionResult:
    combinations: tuple[Combination, ...]
    total_generated: int
    total_filtered: int
    filters_applied: tuple[str, ...]
    generation_time_ms: float
    scoring_time_ms: float
    metadata: PredictionMetadata = field(default_factory=PredictionMetadata)


# ── Backtesting ───────────────────────────────────────────────────

@dataclass(frozen=True)
class BacktestOptions:
    max_predictions: int = 100
    enabled_filters: tuple[str, ...] = ()
    min_score: float = 0.0


@dataclass(frozen=True)
class BacktestResult:
    draw_id: int
    draw_date: str
    actual_numbers: tuple[int, ...]
    predicted_combinations: tuple[Combination, ...]
    hits: dict[int, int]
    accuracy: float
    top_score: float
    average_score: float
    processing_time_ms: float

    @property
    def total_predictions(self) -> int:
        return len(self.predicted_combinations)


@dataclass(frozen=True)
class DrawMark:
    index: int = -1
    accuracy: float = 0.0
    date: str = ""


@dataclass(frozen=True)
class BacktestStatistics:
    total_draws: int = 0
    average_accuracy: float = 0.0
    average_score: float = 0.0
    total_hits: dict[int, int] = field(default_factory=dict)
    hit_rates: dict[int, float] = field(default_factory=dict)
    average_processing_time_ms: float = 0.0
    best_draw: DrawMark = field(default_factory=DrawMark)
    worst_draw: DrawMark = field(default_factory=DrawMark)
    score_correlation: float = 0.0
