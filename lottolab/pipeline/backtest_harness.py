"""
lottolab/pipeline/backtest_harness.py
Replay the prediction pipeline against past draws using only the draws
that came before each target.
"""
from __future__ import annotations

import random
import time
from typing import Callable, Iterable, Sequence

import numpy as np

from lottolab.models.context import AnalysisContext, HistorySnapshot
from lottolab.models.filters import FilterChain
from lottolab.models.types import (
    BacktestIndexError,
    BacktestOptions,
    BacktestResult,
    BacktestStatistics,
    Combination,
    Draw,
    DrawMark,
    PredictionOptions,
)
from lottolab.pipeline.prediction_pipeline import PredictionPipeline
from lottolab.utils.config import DEFAULT_SEED, GameConfig
from lottolab.utils.logger import get_logger

log = get_logger("pipeline.backtest")

ProgressCallback = Callable[[int, int], None]


# ── Hit accounting ────────────────────────────────────────────────

def count_matches(numbers: Iterable[int], actual: Iterable[int]) -> int:
    return len(set(numbers) & set(actual))


def calculate_hits(actual: Sequence[int], combinations: Iterable[Combination], pick_count: int) -> dict[int, int]:
    """Bucket candidates by exact match count; zero-match candidates are not bucketed."""
    hits = {k: 0 for k in range(1, pick_count + 1)}
    actual_set = set(actual)
    for combo in combinations:
        matched = count_matches(combo.numbers, actual_set)
        if matched in hits:
            hits[matched] += 1
    return hits


def calculate_accuracy(hits: dict[int, int], total_predictions: int, pick_count: int) -> float:
    """Weighted hit density: Σ k·hits[k] / (predictions · N), in [0, 1]."""
    if total_predictions == 0:
        return 0.0
    weighted = sum(k * count for k, count in hits.items())
    return weighted / (total_predictions * pick_count)


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson r, or 0.0 when undefined (fewer than 2 points or zero variance)."""
    if len(x) < 2:
        return 0.0
    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    if xs.std() == 0 or ys.std() == 0:
        return 0.0
    return float(np.corrcoef(xs, ys)[0, 1])


def score_hit_pairs(results: Iterable[BacktestResult]) -> tuple[list[float], list[int]]:
    """Flatten every candidate of every result into (composite score, matches) pairs."""
    scores: list[float] = []
    matches: list[int] = []
    for result in results:
        for combo in result.predicted_combinations:
            scores.append(combo.composite_score)
            matches.append(count_matches(combo.numbers, result.actual_numbers))
    return scores, matches


# ── Harness ───────────────────────────────────────────────────────

class BacktestHarness:
    """
    Each step builds a fresh AnalysisContext over draws[:i] and a pipeline
    seeded from (seed, i) alone, so results for draw i do not depend on
    anything at or after i, nor on which steps ran before it.
    """

    def __init__(
        self,
        game: GameConfig,
        draws: Sequence[Draw] = (),
        filter_chain: FilterChain | None = None,
        seed: int | None = None,
        pool_size: int | None = None,
        weights: dict[str, float] | None = None,
    ):
        self.game = game
        self.snapshot = HistorySnapshot.of(draws)
        self.filter_chain = filter_chain if filter_chain is not None else FilterChain(game)
        self.seed = seed if seed is not None else (DEFAULT_SEED or 0)
        self.pool_size = pool_size or game.generator["pool_size"]
        self.weights = dict(weights) if weights is not None else None
        self._results: list[BacktestResult] = []

    @property
    def results(self) -> list[BacktestResult]:
        return list(self._results)

    def clear_results(self) -> None:
        self._results = []

    def update_draws(self, draws: Sequence[Draw]) -> None:
        self.snapshot = HistorySnapshot.of(draws)
        self._results = []

    def default_options(self) -> BacktestOptions:
        return BacktestOptions(max_predictions=self.game.backtest["max_predictions"])

    def _step_pipeline(self, index: int) -> PredictionPipeline:
        context = AnalysisContext(self.game, self.snapshot.before(index).draws, weights=self.weights)
        return PredictionPipeline(
            self.game,
            context,
            filter_chain=self.filter_chain,
            rng=random.Random(f"{self.seed}:{index}"),
            pool_size=self.pool_size,
        )

    # ── Single draw ───────────────────────────────────────────────

    def backtest_draw(self, index: int, options: BacktestOptions | None = None) -> BacktestResult:
        if not 0 <= index < len(self.snapshot):
            raise BacktestIndexError(f"Draw index {index} is out of range [0, {len(self.snapshot) - 1}]")
        options = options or self.default_options()
        target = self.snapshot.draws[index]
        log.debug(f"[BACKTEST] Draw {index} ({target.draw_date}) from {index} prior draws")

        start = time.perf_counter()
        prediction = self._step_pipeline(index).generate_predictions(
            PredictionOptions(
                enabled_filters=tuple(options.enabled_filters),
                max_combinations=options.max_predictions,
                min_score=options.min_score,
            )
        )
        processing_ms = (time.perf_counter() - start) * 1000

        combos = prediction.combinations
        k = self.game.pick_count
        hits = calculate_hits(target.numbers, combos, k)
        scores = [c.composite_score for c in combos]
        result = BacktestResult(
            draw_id=index,
            draw_date=target.draw_date,
            actual_numbers=target.numbers,
            predicted_combinations=combos,
            hits=hits,
            accuracy=calculate_accuracy(hits, len(combos), k),
            top_score=max(scores) if scores else 0.0,
            average_score=float(np.mean(scores)) if scores else 0.0,
            processing_time_ms=processing_ms,
        )
        log.debug(f"[BACKTEST] Draw {index}: accuracy {result.accuracy:.1%}")
        return result

    # ── Batch ─────────────────────────────────────────────────────

    def backtest_range(
        self,
        start: int | None = None,
        end: int | None = None,
        options: BacktestOptions | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> list[BacktestResult]:
        """
        Backtest draws start..end inclusive, oldest first. Defaults to the most
        recent `backtest.default_draws` draws. A draw that fails is logged and
        left out of the results.
        """
        total_available = len(self.snapshot)
        if start is None:
            start = max(0, total_available - self.game.backtest["default_draws"])
        if end is None:
            end = total_available - 1
        if start < 0 or end >= total_available:
            raise BacktestIndexError(f"Range {start}..{end} outside [0, {total_available - 1}]")
        if start > end:
            return []

        options = options or self.default_options()
        total = end - start + 1
        log.info(f"[BACKTEST] Running {total} draws ({start} to {end})")

        results: list[BacktestResult] = []
        for i in range(start, end + 1):
            try:
                results.append(self.backtest_draw(i, options))
            except Exception as exc:
                log.error(f"[BACKTEST] Draw {i} failed: {exc}")
                continue
            if on_progress:
                on_progress(i - start + 1, total)

        self._results = results
        log.info(f"[BACKTEST] Complete: {len(results)}/{total} draws processed")
        return results

    # ── Aggregates ────────────────────────────────────────────────

    def get_backtest_statistics(self, results: Sequence[BacktestResult] | None = None) -> BacktestStatistics:
        results = list(self._results if results is None else results)
        empty_hits = {k: 0 for k in range(1, self.game.pick_count + 1)}
        if not results:
            return BacktestStatistics(total_hits=empty_hits)

        total_hits = dict(empty_hits)
        for result in results:
            for k, count in result.hits.items():
                total_hits[k] = total_hits.get(k, 0) + count
        total_predictions = sum(r.total_predictions for r in results)
        hit_rates = {
            k: count / total_predictions if total_predictions else 0.0
            for k, count in total_hits.items()
        }

        # first occurrence wins ties
        best = max(results, key=lambda r: r.accuracy)
        worst = min(results, key=lambda r: r.accuracy)

        return BacktestStatistics(
            total_draws=len(results),
            average_accuracy=float(np.mean([r.accuracy for r in results])),
            average_score=float(np.mean([r.average_score for r in results])),
            total_hits=total_hits,
            hit_rates=hit_rates,
            average_processing_time_ms=float(np.mean([r.processing_time_ms for r in results])),
            best_draw=DrawMark(best.draw_id, best.accuracy, best.draw_date),
            worst_draw=DrawMark(worst.draw_id, worst.accuracy, worst.draw_date),
            score_correlation=pearson_correlation(*score_hit_pairs(results)),
        )
