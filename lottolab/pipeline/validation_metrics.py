"""
lottolab/pipeline/validation_metrics.py
Statistical validation of backtest results against random-ticket baselines.

The baseline for a single random ticket is hypergeometric: drawing N numbers
out of P, the chance of exactly k matches with the N winning numbers is
hypergeom(M=P, n=N, N=N).pmf(k), and the expected accuracy is N / P.
"""
from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Sequence

import numpy as np
from scipy import stats

from lottolab.models.types import BacktestResult
from lottolab.utils.config import GameConfig
from lottolab.utils.logger import get_logger

log = get_logger("pipeline.validation")

MIN_SIGNIFICANCE_RESULTS = 10
MIN_INTERVAL_RESULTS = 3
MIN_TEMPORAL_RESULTS = 5
ALPHA = 0.05


def _finite(value: float, default: float) -> float:
    value = float(value)
    return value if math.isfinite(value) else default


class ValidationMetrics:
    def __init__(self, game: GameConfig, results: Sequence[BacktestResult] = ()):
        self.game = game
        self._results: list[BacktestResult] = list(results)
        lo, hi = game.number_range
        self.universe_size = hi - lo + 1
        self.pick_count = game.pick_count

    def set_results(self, results: Sequence[BacktestResult]) -> None:
        self._results = list(results)

    # ── Baselines ─────────────────────────────────────────────────

    def expected_accuracy(self) -> float:
        return self.pick_count / self.universe_size

    def expected_hit_rates(self) -> dict[int, float]:
        dist = stats.hypergeom(self.universe_size, self.pick_count, self.pick_count)
        return {k: float(dist.pmf(k)) for k in range(1, self.pick_count + 1)}

    def _hit_rates(self, k: int) -> np.ndarray:
        return np.array([
            r.hits.get(k, 0) / r.total_predictions if r.total_predictions else 0.0
            for r in self._results
        ])

    # ── Significance ──────────────────────────────────────────────

    def perform_significance_tests(self) -> dict[str, Any]:
        if len(self._results) < MIN_SIGNIFICANCE_RESULTS:
            return {
                "accuracy_significance": {"p_value": 1.0, "is_significant": False, "confidence": 0.0, "effect_size": 0.0},
                "hit_rate_significance": {},
                "temporal_stability": {"autocorrelation": 0.0, "trend_significance": 1.0, "volatility": 0.0},
            }
        accuracies = np.array([r.accuracy for r in self._results])
        return {
            "accuracy_significance": self._accuracy_significance(accuracies),
            "hit_rate_significance": self._hit_rate_significance(),
            "temporal_stability": self._temporal_stability(accuracies),
        }

    def _accuracy_significance(self, accuracies: np.ndarray) -> dict[str, Any]:
        """One-sample t-test of mean accuracy against the random-ticket expectation."""
        expected = self.expected_accuracy()
        std = float(accuracies.std(ddof=1))
        if std == 0:
            p_value = 1.0 if accuracies.mean() == expected else 0.0
            effect = 0.0
        else:
            _, p = stats.ttest_1samp(accuracies, expected)
            p_value = _finite(p, 1.0)
            effect = (float(accuracies.mean()) - expected) / std
        return {
            "p_value": p_value,
            "is_significant": p_value < ALPHA,
            "confidence": max(0.0, min(1.0, 1 - p_value)),
            "effect_size": effect,
        }

    def _hit_rate_significance(self) -> dict[int, dict[str, Any]]:
        total_predictions = sum(r.total_predictions for r in self._results)
        report: dict[int, dict[str, Any]] = {}
        for k, expected_rate in self.expected_hit_rates().items():
            hits = sum(r.hits.get(k, 0) for r in self._results)
            observed_rate = hits / total_predictions if total_predictions else 0.0
            if total_predictions == 0 or expected_rate in (0.0, 1.0):
                p_value = 1.0
            else:
                expected_hits = expected_rate * total_predictions
                _, p = stats.chisquare(
                    [hits, total_predictions - hits],
                    [expected_hits, total_predictions - expected_hits],
                )
                p_value = _finite(p, 1.0)
            report[k] = {
                "p_value": p_value,
                "is_significant": p_value < ALPHA,
                "expected_rate": expected_rate,
                "observed_rate": observed_rate,
            }
        return report

    @staticmethod
    def _temporal_stability(accuracies: np.ndarray) -> dict[str, float]:
        n = len(accuracies)
        if n < MIN_TEMPORAL_RESULTS:
            return {"autocorrelation": 0.0, "trend_significance": 1.0, "volatility": 0.0}

        centered = accuracies - accuracies.mean()
        variance = float(np.mean(centered ** 2))
        autocorrelation = 0.0
        if variance > 0:
            autocorrelation = float(np.sum(centered[1:] * centered[:-1])) / ((n - 1) * variance)

        # Mann-Kendall trend test expressed as Kendall's tau against time
        _, p = stats.kendalltau(np.arange(n), accuracies)
        diffs = np.diff(accuracies)
        return {
            "autocorrelation": autocorrelation,
            "trend_significance": _finite(p, 1.0),
            "volatility": float(np.sqrt(np.mean(diffs ** 2))),
        }

    # ── Intervals ─────────────────────────────────────────────────

    @staticmethod
    def _mean_interval(values: np.ndarray, level: float) -> dict[str, float]:
        n = len(values)
        mean = float(values.mean())
        se = float(values.std(ddof=1)) / math.sqrt(n)
        margin = float(stats.t.ppf((1 + level) / 2, n - 1)) * se
        return {"mean": mean, "lower": max(0.0, mean - margin), "upper": min(1.0, mean + margin)}

    def calculate_confidence_intervals(self, level: float = 0.95) -> dict[str, Any]:
        if len(self._results) < MIN_INTERVAL_RESULTS:
            return {"accuracy": {"mean": 0.0, "lower": 0.0, "upper": 0.0}, "hit_rates": {}}
        accuracies = np.array([r.accuracy for r in self._results])
        return {
            "accuracy": self._mean_interval(accuracies, level),
            "hit_rates": {
                k: self._mean_interval(self._hit_rates(k), level)
                for k in range(1, self.pick_count + 1)
            },
        }

    # ── Report ────────────────────────────────────────────────────

    def generate_validation_report(self) -> dict[str, Any]:
        significance = self.perform_significance_tests()
        date_range = None
        if self._results:
            date_range = {"start": self._results[0].draw_date, "end": self._results[-1].draw_date}
        report = {
            "summary": {
                "total_draws": len(self._results),
                "date_range": date_range,
                "expected_accuracy": self.expected_accuracy(),
            },
            "statistical_significance": significance,
            "confidence_intervals": self.calculate_confidence_intervals(),
            "recommendations": self._recommendations(significance),
            "generated_at": datetime.now(timezone.utc).isoformat(),
        }
        log.info(f"[VALIDATE] Report generated for {len(self._results)} results")
        return report

    @staticmethod
    def _recommendations(significance: dict[str, Any]) -> list[str]:
        recommendations = []
        accuracy = significance["accuracy_significance"]
        if not accuracy["is_significant"]:
            recommendations.append(
                "Prediction accuracy is not statistically significant. Consider refining the scoring weights."
            )
        elif accuracy["effect_size"] < 0.5:
            recommendations.append(
                "Prediction accuracy shows a small effect size. Look for ways to improve prediction quality."
            )
        else:
            recommendations.append(
                "Prediction accuracy is statistically significant with a good effect size."
            )

        temporal = significance["temporal_stability"]
        if abs(temporal["autocorrelation"]) > 0.3:
            recommendations.append("High autocorrelation detected. Predictions may be influenced by recent trends.")
        if temporal["volatility"] > 0.1:
            recommendations.append("High prediction volatility detected. Consider stabilizing the scoring weights.")

        significant = [str(k) for k, v in significance["hit_rate_significance"].items() if v["is_significant"]]
        if significant:
            recommendations.append(f"Significant hit rates detected for match counts: {', '.join(significant)}")
        return recommendations
