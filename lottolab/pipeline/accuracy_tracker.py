"""
lottolab/pipeline/accuracy_tracker.py
Longitudinal accuracy monitoring over rolling windows of backtest results.
"""
from __future__ import annotations

import json
from collections import deque
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence

import numpy as np

from lottolab.models.types import DECLINING, IMPROVING, STABLE, BacktestResult
from lottolab.utils.logger import get_logger

log = get_logger("pipeline.tracker")

DEFAULT_WINDOWS = (10, 25, 50, 100)
TREND_THRESHOLD = 0.02
MIN_TREND_ENTRIES = 5
TOP_N = (5, 10, 20, 50)


def _window_trend(accuracies: Sequence[float]) -> str:
    if len(accuracies) < MIN_TREND_ENTRIES:
        return STABLE
    half = len(accuracies) // 2
    diff = float(np.mean(accuracies[half:])) - float(np.mean(accuracies[:half]))
    if diff > TREND_THRESHOLD:
        return IMPROVING
    if diff < -TREND_THRESHOLD:
        return DECLINING
    return STABLE


def _correlation(x: Sequence[float], y: Sequence[float]) -> float:
    n = len(x)
    if n < 2:
        return 0.0
    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    numerator = n * float(xs @ ys) - xs.sum() * ys.sum()
    spread = (n * float(xs @ xs) - xs.sum() ** 2) * (n * float(ys @ ys) - ys.sum() ** 2)
    return float(numerator / np.sqrt(spread)) if spread > 0 else 0.0


class AccuracyTracker:
    """
    Keeps every ingested result plus one bounded FIFO per window size.
    Each window evicts its oldest entry once full, independently of the others.
    """

    def __init__(self, windows: Iterable[int] = DEFAULT_WINDOWS, pick_count: int = 5):
        self.window_sizes = tuple(sorted(set(windows)))
        self.pick_count = pick_count
        self._results: list[BacktestResult] = []
        self._windows: dict[int, deque[BacktestResult]] = {k: deque(maxlen=k) for k in self.window_sizes}

    # ── Ingestion ─────────────────────────────────────────────────

    def add_result(self, result: BacktestResult) -> None:
        self._results.append(result)
        for window in self._windows.values():
            window.append(result)

    def add_results(self, results: Iterable[BacktestResult]) -> None:
        for result in results:
            self.add_result(result)

    def window(self, size: int) -> list[BacktestResult]:
        return list(self._windows[size])

    @property
    def results(self) -> list[BacktestResult]:
        return list(self._results)

    def clear(self) -> None:
        self._results = []
        for window in self._windows.values():
            window.clear()

    def _hit_rate(self, result: BacktestResult, k: int) -> float:
        total = result.total_predictions
        return result.hits.get(k, 0) / total if total else 0.0

    # ── Analysis ──────────────────────────────────────────────────

    def get_accuracy_trends(self) -> dict[str, Any]:
        if not self._results:
            return {"overall": 0.0, "recent": [], "by_match_type": {}}

        recent = []
        for size, window in self._windows.items():
            accuracies = [r.accuracy for r in window]
            recent.append({
                "window": size,
                "accuracy": float(np.mean(accuracies)),
                "trend": _window_trend(accuracies),
            })

        by_match_type = {
            k: [self._hit_rate(r, k) for r in self._results if r.total_predictions]
            for k in range(1, self.pick_count + 1)
        }
        return {
            "overall": float(np.mean([r.accuracy for r in self._results])),
            "recent": recent,
            "by_match_type": by_match_type,
        }

    def get_performance_metrics(self) -> dict[str, Any]:
        if not self._results:
            return {
                "total_draws": 0,
                "average_accuracy": 0.0,
                "best_accuracy": 0.0,
                "worst_accuracy": 0.0,
                "accuracy_std_dev": 0.0,
                "hit_rate_distribution": {},
                "processing_time_stats": {"mean": 0.0, "median": 0.0, "p95": 0.0},
            }

        accuracies = np.array([r.accuracy for r in self._results])
        distribution = {}
        for k in range(1, self.pick_count + 1):
            rates = np.array([self._hit_rate(r, k) for r in self._results])
            distribution[k] = {
                "mean": float(rates.mean()),
                "std_dev": float(rates.std()),
                "best": float(rates.max()),
                "worst": float(rates.min()),
            }

        times = sorted(r.processing_time_ms for r in self._results)
        return {
            "total_draws": len(self._results),
            "average_accuracy": float(accuracies.mean()),
            "best_accuracy": float(accuracies.max()),
            "worst_accuracy": float(accuracies.min()),
            "accuracy_std_dev": float(accuracies.std()),
            "hit_rate_distribution": distribution,
            "processing_time_stats": {
                "mean": float(np.mean(times)),
                "median": times[len(times) // 2],
                "p95": times[int(len(times) * 0.95)],
            },
        }

    def get_prediction_quality_analysis(self) -> dict[str, Any]:
        scores: list[float] = []
        matches: list[int] = []
        for result in self._results:
            actual = set(result.actual_numbers)
            for combo in result.predicted_combinations:
                scores.append(combo.composite_score)
                matches.append(sum(1 for n in combo.numbers if n in actual))

        top_performance = []
        for top_n in TOP_N:
            hits_per_draw = []
            confidence_per_draw = []
            for result in self._results:
                top = sorted(result.predicted_combinations, key=lambda c: c.composite_score, reverse=True)[:top_n]
                if not top:
                    continue
                actual = set(result.actual_numbers)
                hits_per_draw.append(np.mean([len(actual & set(c.numbers)) for c in top]))
                confidence_per_draw.append(np.mean([c.confidence for c in top]))
            top_performance.append({
                "top_n": top_n,
                "average_hits": float(np.mean(hits_per_draw)) if hits_per_draw else 0.0,
                "average_confidence": float(np.mean(confidence_per_draw)) if confidence_per_draw else 0.0,
            })

        return {
            "score_vs_accuracy_correlation": _correlation(scores, matches),
            "top_predictions_performance": top_performance,
        }

    # ── Export ────────────────────────────────────────────────────

    def export_analysis(self) -> dict[str, Any]:
        analysis = {
            "trends": self.get_accuracy_trends(),
            "metrics": self.get_performance_metrics(),
            "quality": self.get_prediction_quality_analysis(),
            "export_date": datetime.now(timezone.utc).isoformat(),
            "total_results": len(self._results),
        }
        log.info(f"[TRACKER] Exported analysis of {len(self._results)} results")
        return analysis

    def export_analysis_json(self, indent: int = 2) -> str:
        return json.dumps(self.export_analysis(), indent=indent)
