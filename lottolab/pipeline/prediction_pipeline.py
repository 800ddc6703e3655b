"""
lottolab/pipeline/prediction_pipeline.py
End-to-end prediction flow: candidate pool → filter chain → scoring → ranking.
"""
from __future__ import annotations

import json
import random
import time
from collections import Counter
from dataclasses import replace
from typing import Any, Protocol, Sequence

import numpy as np

from lottolab.history.draw_store import DrawStore
from lottolab.models.candidate_generator import CandidateGenerator
from lottolab.models.context import AnalysisContext
from lottolab.models.filters import FilterChain
from lottolab.models.types import (
    Combination,
    Draw,
    PredictionMetadata,
    PredictionOptions,
    PredictionResult,
)
from lottolab.utils.config import GameConfig
from lottolab.utils.logger import get_logger

log = get_logger("pipeline.predict")

METADATA_LIST_SIZE = 5
SCORE_BINS = (0, 20, 40, 60, 80, 100)
SUM_BIN_COUNT = 6
TOP_NUMBERS = 10


class PredictionCache(Protocol):
    def get(self, key: str) -> PredictionResult | None: ...

    def set(self, key: str, value: PredictionResult) -> None: ...

    def clear(self) -> None: ...


class MemoryCache:
    """Dict-backed PredictionCache."""

    def __init__(self):
        self._store: dict[str, PredictionResult] = {}

    def get(self, key: str) -> PredictionResult | None:
        return self._store.get(key)

    def set(self, key: str, value: PredictionResult) -> None:
        self._store[key] = value

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


def _distribution(values: Sequence[float], edges: Sequence[float]) -> list[dict[str, Any]]:
    clipped = np.clip(np.asarray(values, dtype=float), edges[0], edges[-1])
    counts, _ = np.histogram(clipped, bins=edges)
    return [
        {"range": f"{edges[i]:g}-{edges[i + 1]:g}", "count": int(count)}
        for i, count in enumerate(counts)
    ]


class PredictionPipeline:
    """
    One pipeline serves one history. Every history change goes through
    `update_draws`, which refreshes the analysis context, marks the
    candidate pool stale and clears the result cache.
    """

    def __init__(
        self,
        game: GameConfig,
        history: Sequence[Draw] | AnalysisContext = (),
        filter_chain: FilterChain | None = None,
        cache: PredictionCache | None = None,
        seed: int | None = None,
        rng: random.Random | None = None,
        pool_size: int | None = None,
    ):
        self.game = game
        self._context = history if isinstance(history, AnalysisContext) else AnalysisContext(game, history)
        self.filter_chain = filter_chain if filter_chain is not None else FilterChain(game)
        self.cache = cache
        self.rng = rng if rng is not None else random.Random(seed)
        self.pool_size = pool_size or game.generator["pool_size"]
        self.generator = CandidateGenerator(game, self._context.profiler, self.rng)
        self._pool: list[tuple[int, ...]] = []
        self._pool_version: int | None = None

    @property
    def context(self) -> AnalysisContext:
        return self._context

    # ── History ───────────────────────────────────────────────────

    def update_draws(self, draws: Sequence[Draw]) -> None:
        self._context.update_draws(draws)
        self._pool_version = None
        if self.cache is not None:
            self.cache.clear()
        log.info(f"[PREDICT] History updated: {len(self._context.draws)} draws")

    def attach(self, store: DrawStore) -> None:
        """Follow `store`: load its current draws now and on every append."""
        self.update_draws(store.get_draws())
        store.subscribe(self.update_draws)

    def _ensure_pool(self) -> list[tuple[int, ...]]:
        if self._pool_version != self._context.version:
            if self._context.draws:
                self._pool = self.generator.generate(self.pool_size)
            else:
                self._pool = []
            self._pool_version = self._context.version
            log.info(f"[PREDICT] Candidate pool regenerated: {len(self._pool)} candidates")
        return self._pool

    # ── Weights ───────────────────────────────────────────────────

    def get_scoring_weights(self) -> dict[str, float]:
        return self._context.scorer.get_scoring_weights()

    def set_scoring_weights(self, weights: dict[str, float]) -> None:
        self._context.scorer.set_scoring_weights(weights)
        if self.cache is not None:
            self.cache.clear()

    # ── Prediction ────────────────────────────────────────────────

    def score_combination(self, numbers: Sequence[int]) -> Combination:
        return self._context.scorer.score_combination(numbers)

    def get_available_filters(self) -> list[dict[str, Any]]:
        return self.filter_chain.list_filters()

    def generate_predictions(self, options: PredictionOptions | None = None, **kwargs) -> PredictionResult:
        """
        Rank the current candidate pool.

        Options come from `options` with keyword overrides, e.g.
        ``generate_predictions(enabled_filters=("sum-filter",), max_combinations=20)``.
        Empty history or an empty pool yields a zeroed result, never an error.
        """
        options = options or PredictionOptions()
        if kwargs:
            if "enabled_filters" in kwargs:
                kwargs["enabled_filters"] = tuple(kwargs["enabled_filters"])
            options = replace(options, **kwargs)

        if options.scoring_weights:
            merged = {**self.get_scoring_weights(), **options.scoring_weights}
            if merged != self.get_scoring_weights():
                self.set_scoring_weights(options.scoring_weights)

        key = self._cache_key(options)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                log.debug(f"[PREDICT] Cache hit: {key}")
                return cached

        gen_start = time.perf_counter()
        pool = self._ensure_pool()
        filtered = self.filter_chain.apply_filters(pool, self._context.draws, options.enabled_filters)
        generation_ms = (time.perf_counter() - gen_start) * 1000

        score_start = time.perf_counter()
        scored = [self._context.scorer.score_combination(c) for c in filtered]
        # sorted() is stable, so equal scores keep pool order
        ranked = sorted(scored, key=lambda c: c.composite_score, reverse=True)
        ranked = [c for c in ranked if c.composite_score >= options.min_score][: options.max_combinations]
        scoring_ms = (time.perf_counter() - score_start) * 1000

        result = PredictionResult(
            combinations=tuple(ranked),
            total_generated=len(pool),
            total_filtered=len(filtered),
            filters_applied=tuple(options.enabled_filters),
            generation_time_ms=generation_ms,
            scoring_time_ms=scoring_ms,
            metadata=self._metadata(ranked),
        )
        if self.cache is not None:
            self.cache.set(key, result)

        log.info(
            f"[PREDICT] {len(pool)} generated → {len(filtered)} filtered → {len(ranked)} ranked "
            f"({generation_ms:.1f} ms + {scoring_ms:.1f} ms)"
        )
        return result

    def _cache_key(self, options: PredictionOptions) -> str:
        """Options plus the context version, active weights and enabled filter configs."""
        configs = self.filter_chain.get_filter_configs()
        return json.dumps({
            "options": options.cache_key(),
            "version": self._context.version,
            "weights": self.get_scoring_weights(),
            "filters": {fid: configs.get(fid) for fid in options.enabled_filters},
        }, sort_keys=True, default=str)

    def _metadata(self, combinations: list[Combination]) -> PredictionMetadata:
        if not combinations:
            return PredictionMetadata()
        profiler = self._context.profiler
        sums = [c.sum for c in combinations]
        return PredictionMetadata(
            average_sum=round(float(np.mean(sums))),
            average_odd_count=round(float(np.mean([c.odd_count for c in combinations])), 1),
            hot_numbers=tuple(p.number for p in profiler.get_hot_numbers(METADATA_LIST_SIZE)),
            cold_numbers=tuple(p.number for p in profiler.get_cold_numbers(METADATA_LIST_SIZE)),
            predicted_sum_range=(min(sums), max(sums)),
            confidence=round(float(np.mean([c.confidence for c in combinations])), 2),
        )

    # ── Statistics ────────────────────────────────────────────────

    def get_prediction_stats(self, combinations: Sequence[Combination]) -> dict[str, Any]:
        """Score and sum distributions, most cited numbers and average metrics."""
        if not combinations:
            return {
                "score_distribution": [],
                "top_numbers": [],
                "sum_distribution": [],
                "average_metrics": {"sum": 0.0, "odd_count": 0.0, "high_count": 0.0, "score": 0.0, "confidence": 0.0},
            }

        counts = Counter(n for c in combinations for n in c.numbers)
        sum_edges = np.linspace(self.game.min_sum, self.game.max_sum, SUM_BIN_COUNT + 1).round().tolist()
        return {
            "score_distribution": _distribution([c.composite_score for c in combinations], SCORE_BINS),
            "top_numbers": [{"number": n, "frequency": f} for n, f in counts.most_common(TOP_NUMBERS)],
            "sum_distribution": _distribution([c.sum for c in combinations], sum_edges),
            "average_metrics": {
                "sum": float(np.mean([c.sum for c in combinations])),
                "odd_count": float(np.mean([c.odd_count for c in combinations])),
                "high_count": float(np.mean([c.high_count for c in combinations])),
                "score": float(np.mean([c.composite_score for c in combinations])),
                "confidence": float(np.mean([c.confidence for c in combinations])),
            },
        }
