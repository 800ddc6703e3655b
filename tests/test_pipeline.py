"""tests/test_pipeline.py"""
import json
from math import comb

import pytest

from conftest import make_combination, synthetic_draws
from lottolab.history.draw_store import DrawStore
from lottolab.models.context import AnalysisContext
from lottolab.models.filters import FilterChain
from lottolab.models.types import (
    DECLINING,
    IMPROVING,
    STABLE,
    BacktestIndexError,
    BacktestOptions,
    BacktestResult,
    Draw,
    InvalidCombinationError,
    PredictionMetadata,
    PredictionOptions,
)
from lottolab.pipeline.accuracy_tracker import AccuracyTracker
from lottolab.pipeline.backtest_harness import (
    BacktestHarness,
    calculate_accuracy,
    calculate_hits,
    pearson_correlation,
    score_hit_pairs,
)
from lottolab.pipeline.prediction_pipeline import MemoryCache, PredictionPipeline
from lottolab.pipeline.validation_metrics import ValidationMetrics

ACTUAL = (1, 2, 3, 4, 5)


def make_result(draw_id, combos, actual=ACTUAL, processing_time_ms=1.0, date="2024-01-01") -> BacktestResult:
    hits = calculate_hits(actual, combos, 5)
    scores = [c.composite_score for c in combos]
    return BacktestResult(
        draw_id=draw_id,
        draw_date=date,
        actual_numbers=tuple(actual),
        predicted_combinations=tuple(combos),
        hits=hits,
        accuracy=calculate_accuracy(hits, len(combos), 5),
        top_score=max(scores) if scores else 0.0,
        average_score=sum(scores) / len(scores) if scores else 0.0,
        processing_time_ms=processing_time_ms,
    )


def result_with_accuracy(draw_id, accuracy, processing_time_ms=1.0) -> BacktestResult:
    return BacktestResult(
        draw_id=draw_id,
        draw_date=f"2024-01-{draw_id % 28 + 1:02d}",
        actual_numbers=ACTUAL,
        predicted_combinations=(),
        hits={k: 0 for k in range(1, 6)},
        accuracy=accuracy,
        top_score=0.0,
        average_score=0.0,
        processing_time_ms=processing_time_ms,
    )


class TestPredictionPipeline:
    def test_empty_history_yields_zeroed_result(self, powerball):
        result = PredictionPipeline(powerball, [], seed=1).generate_predictions()
        assert result.combinations == ()
        assert result.total_generated == 0
        assert result.total_filtered == 0
        assert result.metadata == PredictionMetadata()

    def test_identical_calls_rank_identically(self, powerball, history):
        a = PredictionPipeline(powerball, history, seed=3, pool_size=300).generate_predictions(max_combinations=25)
        b = PredictionPipeline(powerball, history, seed=3, pool_size=300).generate_predictions(max_combinations=25)
        assert a.combinations == b.combinations

        pipeline = PredictionPipeline(powerball, history, seed=9, pool_size=300)
        first = pipeline.generate_predictions(max_combinations=25)
        second = pipeline.generate_predictions(max_combinations=25)
        assert first.combinations == second.combinations

    def test_ranked_descending_and_truncated(self, powerball, history):
        result = PredictionPipeline(powerball, history, seed=3, pool_size=300).generate_predictions(
            PredictionOptions(max_combinations=40)
        )
        scores = [c.composite_score for c in result.combinations]
        assert len(scores) == 40
        assert scores == sorted(scores, reverse=True)
        assert result.total_generated == 300
        assert result.total_filtered == 300
        assert result.generation_time_ms >= 0
        assert result.scoring_time_ms >= 0

    def test_min_score(self, powerball, history):
        pipeline = PredictionPipeline(powerball, history, seed=3, pool_size=300)
        full = pipeline.generate_predictions(max_combinations=300)
        threshold = full.combinations[len(full.combinations) // 2].composite_score
        result = pipeline.generate_predictions(max_combinations=300, min_score=threshold)
        assert 0 < len(result.combinations) < len(full.combinations)
        assert all(c.composite_score >= threshold for c in result.combinations)

    def test_filters_applied(self, powerball, history):
        pipeline = PredictionPipeline(powerball, history, seed=3, pool_size=300)
        result = pipeline.generate_predictions(enabled_filters=["highlow-filter"], max_combinations=300)
        assert result.filters_applied == ("highlow-filter",)
        assert result.total_filtered <= result.total_generated
        assert all(1 <= c.high_count <= 4 for c in result.combinations)

    def test_metadata(self, powerball, history):
        result = PredictionPipeline(powerball, history, seed=3, pool_size=300).generate_predictions(max_combinations=20)
        meta = result.metadata
        sums = [c.sum for c in result.combinations]
        assert meta.predicted_sum_range == (min(sums), max(sums))
        assert meta.average_sum == round(sum(sums) / len(sums))
        assert 7 in meta.hot_numbers
        assert len(meta.cold_numbers) <= 5
        assert 0.1 <= meta.confidence <= 0.9

    def test_cache_hit_and_invalidation(self, powerball, history):
        cache = MemoryCache()
        pipeline = PredictionPipeline(powerball, history[:20], cache=cache, seed=3, pool_size=200)
        first = pipeline.generate_predictions(max_combinations=10)
        assert pipeline.generate_predictions(max_combinations=10) is first
        assert len(cache) == 1

        pipeline.update_draws(history)
        assert len(cache) == 0
        refreshed = pipeline.generate_predictions(max_combinations=10)
        assert refreshed is not first

        pipeline.set_scoring_weights({"recurrence": 0.5})
        assert len(cache) == 0

    def test_cache_misses_after_shared_context_refresh(self, powerball, history):
        context = AnalysisContext(powerball, history[:10])
        pipeline = PredictionPipeline(powerball, context, cache=MemoryCache(), seed=3, pool_size=200)
        first = pipeline.generate_predictions(max_combinations=5)

        context.update_draws(history)
        second = pipeline.generate_predictions(max_combinations=5)
        assert second is not first
        assert pipeline.generate_predictions(max_combinations=5) is second

    def test_cache_misses_after_weights_change_on_context(self, powerball, history):
        pipeline = PredictionPipeline(powerball, history, cache=MemoryCache(), seed=3, pool_size=200)
        first = pipeline.generate_predictions(max_combinations=5)

        pipeline.context.scorer.set_scoring_weights({"recurrence": 5.0})
        second = pipeline.generate_predictions(max_combinations=5)
        assert second is not first
        assert second.combinations[0].composite_score != first.combinations[0].composite_score

    def test_cache_misses_after_filter_config_change(self, powerball, history):
        pipeline = PredictionPipeline(powerball, history, cache=MemoryCache(), seed=3, pool_size=200)
        first = pipeline.generate_predictions(enabled_filters=["parity-filter"], max_combinations=5)

        assert pipeline.filter_chain.set_filter_config("parity-filter", {"min_odd": 2, "max_odd": 3})
        second = pipeline.generate_predictions(enabled_filters=["parity-filter"], max_combinations=5)
        assert second is not first
        assert all(2 <= c.odd_count <= 3 for c in second.combinations)

    def test_option_weights_are_applied(self, powerball, history):
        pipeline = PredictionPipeline(powerball, history, seed=3, pool_size=100)
        pipeline.generate_predictions(scoring_weights={"recurrence": 1.0})
        assert pipeline.get_scoring_weights()["recurrence"] == 1.0

    def test_attach_follows_store(self, powerball, history):
        store = DrawStore(powerball, history[:20])
        pipeline = PredictionPipeline(powerball, seed=3, pool_size=100)
        pipeline.attach(store)
        assert len(pipeline.context.draws) == 20
        store.extend(history[20:])
        assert len(pipeline.context.draws) == 30
        assert pipeline.context.profiler.get_profile(7).appearances == 30

    def test_score_combination_propagates_errors(self, powerball, history):
        pipeline = PredictionPipeline(powerball, history, seed=3, pool_size=100)
        with pytest.raises(InvalidCombinationError):
            pipeline.score_combination([1, 2, 3])

    def test_available_filters(self, powerball):
        ids = {f["id"] for f in PredictionPipeline(powerball).get_available_filters()}
        assert "sum-filter" in ids

    def test_prediction_stats(self, powerball, history):
        pipeline = PredictionPipeline(powerball, history, seed=3, pool_size=300)
        combos = pipeline.generate_predictions(max_combinations=50).combinations
        stats = pipeline.get_prediction_stats(combos)
        assert sum(b["count"] for b in stats["score_distribution"]) == 50
        assert sum(b["count"] for b in stats["sum_distribution"]) == 50
        assert len(stats["top_numbers"]) == 10
        assert stats["average_metrics"]["sum"] == pytest.approx(sum(c.sum for c in combos) / 50)

        empty = pipeline.get_prediction_stats([])
        assert empty["top_numbers"] == []
        assert empty["average_metrics"]["score"] == 0.0


class TestHitAccounting:
    def test_hits_and_accuracy(self):
        combos = [
            make_combination((1, 2, 3, 10, 11)),
            make_combination((20, 21, 22, 23, 24)),
        ]
        hits = calculate_hits(ACTUAL, combos, 5)
        assert hits == {1: 0, 2: 0, 3: 1, 4: 0, 5: 0}
        assert calculate_accuracy(hits, 2, 5) == pytest.approx(0.3)

    def test_empty_prediction_set_has_zero_accuracy(self):
        assert calculate_accuracy({k: 0 for k in range(1, 6)}, 0, 5) == 0.0

    def test_correlation_guards(self):
        assert pearson_correlation([1.0], [1.0]) == 0.0
        assert pearson_correlation([1.0, 1.0, 1.0], [0, 1, 2]) == 0.0
        assert pearson_correlation([1.0, 2.0, 3.0], [2, 4, 6]) == pytest.approx(1.0)


class TestBacktestHarness:
    def setup_method(self):
        from lottolab.utils.config import load_game_config

        self.game = load_game_config("powerball")
        self.draws = synthetic_draws(30)
        self.options = BacktestOptions(max_predictions=20)

    def harness(self, draws=None, **kwargs):
        kwargs.setdefault("seed", 5)
        kwargs.setdefault("pool_size", 200)
        return BacktestHarness(self.game, self.draws if draws is None else draws, **kwargs)

    def test_out_of_range_index_raises(self):
        harness = self.harness()
        with pytest.raises(BacktestIndexError):
            harness.backtest_draw(30)
        with pytest.raises(BacktestIndexError):
            harness.backtest_draw(-1)

    def test_range_bounds(self):
        harness = self.harness()
        with pytest.raises(BacktestIndexError):
            harness.backtest_range(-1, 5)
        with pytest.raises(BacktestIndexError):
            harness.backtest_range(0, 30)
        assert harness.backtest_range(10, 9) == []

    def test_no_lookahead(self):
        short = self.harness(self.draws[:25]).backtest_draw(20, self.options)
        harness = self.harness()
        long = harness.backtest_draw(20, self.options)
        for result in (short, long):
            assert result.actual_numbers == self.draws[20].numbers
        assert short.predicted_combinations == long.predicted_combinations
        assert short.hits == long.hits
        assert short.accuracy == long.accuracy

        harness.update_draws(self.draws + synthetic_draws(5, start_id=31))
        again = harness.backtest_draw(20, self.options)
        assert again.predicted_combinations == long.predicted_combinations

    def test_accuracy_bounds_and_progress(self):
        calls = []
        harness = self.harness()
        results = harness.backtest_range(20, 29, self.options, on_progress=lambda done, total: calls.append((done, total)))
        assert len(results) == 10
        assert [r.draw_id for r in results] == list(range(20, 30))
        assert all(0.0 <= r.accuracy <= 1.0 for r in results)
        assert calls[-1] == (10, 10)
        assert harness.results == results

    def test_default_range_is_most_recent(self):
        harness = self.harness(self.draws[:8])
        results = harness.backtest_range(options=self.options)
        assert [r.draw_id for r in results] == list(range(8))
        assert results[0].total_predictions == 0
        assert results[0].accuracy == 0.0

    def test_failed_draw_is_skipped(self):
        harness = self.harness()
        original = harness.backtest_draw

        def flaky(index, options=None):
            if index == 22:
                raise RuntimeError("boom")
            return original(index, options)

        harness.backtest_draw = flaky
        results = harness.backtest_range(20, 24, self.options)
        assert [r.draw_id for r in results] == [20, 21, 23, 24]

    def test_disjoint_predictions_score_zero(self):
        draws = synthetic_draws(25) + [
            Draw(26 + i, f"2024-03-{i + 1:02d}", ACTUAL) for i in range(5)
        ]
        chain = FilterChain(self.game)
        assert chain.set_filter_config("digit-filter", {"first_digits": [1, 2, 3, 4, 5, 6], "exclude_digits": [0]})
        harness = self.harness(draws, filter_chain=chain, pool_size=500)
        options = BacktestOptions(max_predictions=50, enabled_filters=("digit-filter",))

        results = harness.backtest_range(25, 29, options)
        stats = harness.get_backtest_statistics(results)

        assert len(results) == 5
        assert sum(r.total_predictions for r in results) > 0
        assert all(count == 0 for r in results for count in r.hits.values())
        assert stats.total_hits == {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}
        assert stats.average_accuracy == 0.0

    def test_statistics(self):
        a = make_result(10, [
            make_combination((1, 2, 3, 10, 11), composite_score=80.0),
            make_combination((20, 21, 22, 23, 24), composite_score=10.0),
        ], date="2024-01-10")
        b = make_result(11, [make_combination((1, 20, 21, 22, 23), composite_score=50.0)], date="2024-01-11")
        stats = self.harness().get_backtest_statistics([a, b])

        assert stats.total_draws == 2
        assert stats.average_accuracy == pytest.approx(0.25)
        assert stats.total_hits == {1: 1, 2: 0, 3: 1, 4: 0, 5: 0}
        assert stats.hit_rates[1] == pytest.approx(1 / 3)
        assert stats.hit_rates[3] == pytest.approx(1 / 3)
        assert (stats.best_draw.index, stats.best_draw.date) == (10, "2024-01-10")
        assert stats.worst_draw.index == 11
        assert stats.score_correlation > 0

    def test_empty_statistics(self):
        stats = self.harness().get_backtest_statistics([])
        assert stats.total_draws == 0
        assert stats.total_hits == {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}
        assert stats.best_draw.index == -1


class TestAccuracyTracker:
    def test_windows_evict_oldest(self):
        tracker = AccuracyTracker(windows=(3, 5))
        tracker.add_results(result_with_accuracy(i, 0.1) for i in range(10))
        assert [r.draw_id for r in tracker.window(3)] == [7, 8, 9]
        assert [r.draw_id for r in tracker.window(5)] == [5, 6, 7, 8, 9]
        assert len(tracker.results) == 10

    @pytest.mark.parametrize("accuracies, expected", [
        ([0.1] * 5 + [0.2] * 5, IMPROVING),
        ([0.2] * 5 + [0.1] * 5, DECLINING),
        ([0.1] * 10, STABLE),
        ([0.1, 0.1, 0.9, 0.9], STABLE),
    ])
    def test_window_trend(self, accuracies, expected):
        tracker = AccuracyTracker(windows=(10,))
        tracker.add_results(result_with_accuracy(i, acc) for i, acc in enumerate(accuracies))
        trends = tracker.get_accuracy_trends()
        assert trends["recent"][0]["trend"] == expected
        assert trends["overall"] == pytest.approx(sum(accuracies) / len(accuracies))

    def test_performance_metrics(self):
        tracker = AccuracyTracker()
        tracker.add_results(result_with_accuracy(i, i / 100, processing_time_ms=float(i + 1)) for i in range(10))
        metrics = tracker.get_performance_metrics()
        assert metrics["total_draws"] == 10
        assert metrics["best_accuracy"] == pytest.approx(0.09)
        assert metrics["worst_accuracy"] == 0.0
        assert metrics["processing_time_stats"]["median"] == 6.0
        assert metrics["processing_time_stats"]["p95"] == 10.0

    def test_empty_tracker(self):
        tracker = AccuracyTracker()
        assert tracker.get_accuracy_trends()["overall"] == 0.0
        assert tracker.get_performance_metrics()["total_draws"] == 0

    def test_quality_matches_backtest_correlation(self):
        results = [
            make_result(1, [
                make_combination((1, 2, 3, 10, 11), composite_score=80.0, confidence=0.8),
                make_combination((20, 21, 22, 23, 24), composite_score=10.0, confidence=0.2),
            ]),
            make_result(2, [make_combination((1, 20, 21, 22, 23), composite_score=50.0)]),
        ]
        tracker = AccuracyTracker()
        tracker.add_results(results)
        quality = tracker.get_prediction_quality_analysis()
        assert quality["score_vs_accuracy_correlation"] == pytest.approx(pearson_correlation(*score_hit_pairs(results)))
        top5 = quality["top_predictions_performance"][0]
        assert top5["top_n"] == 5
        assert top5["average_hits"] == pytest.approx((1.5 + 1.0) / 2)

    def test_export_is_json(self):
        tracker = AccuracyTracker()
        tracker.add_results(result_with_accuracy(i, 0.1) for i in range(6))
        exported = json.loads(tracker.export_analysis_json())
        assert exported["total_results"] == 6
        assert "export_date" in exported
        assert set(exported) >= {"trends", "metrics", "quality"}

    def test_clear(self):
        tracker = AccuracyTracker(windows=(3,))
        tracker.add_result(result_with_accuracy(1, 0.1))
        tracker.clear()
        assert tracker.results == []
        assert tracker.window(3) == []


class TestValidationMetrics:
    def setup_method(self):
        from lottolab.utils.config import load_game_config

        self.game = load_game_config("powerball")

    def results(self, n):
        out = []
        for i in range(n):
            combos = [make_combination((1, 2, 10, 11, 12)), make_combination((20, 21, 22, 23, 24))]
            if i % 3 == 0:
                combos.append(make_combination((1, 2, 3, 30, 31)))
            out.append(make_result(i, combos))
        return out

    def test_expected_rates(self):
        metrics = ValidationMetrics(self.game)
        rates = metrics.expected_hit_rates()
        assert set(rates) == {1, 2, 3, 4, 5}
        assert rates[5] == pytest.approx(1 / comb(69, 5))
        assert metrics.expected_accuracy() == pytest.approx(5 / 69)

    def test_too_few_results_are_neutral(self):
        metrics = ValidationMetrics(self.game, self.results(5))
        tests = metrics.perform_significance_tests()
        assert tests["accuracy_significance"]["p_value"] == 1.0
        assert tests["hit_rate_significance"] == {}

        metrics.set_results(self.results(2))
        intervals = metrics.calculate_confidence_intervals()
        assert intervals["accuracy"] == {"mean": 0.0, "lower": 0.0, "upper": 0.0}

    def test_significance_and_intervals(self):
        metrics = ValidationMetrics(self.game, self.results(12))
        tests = metrics.perform_significance_tests()
        accuracy = tests["accuracy_significance"]
        assert 0.0 <= accuracy["p_value"] <= 1.0
        assert isinstance(accuracy["is_significant"], bool)
        assert set(tests["hit_rate_significance"]) == {1, 2, 3, 4, 5}
        assert tests["temporal_stability"]["volatility"] >= 0

        ci = metrics.calculate_confidence_intervals()["accuracy"]
        assert 0.0 <= ci["lower"] <= ci["mean"] <= ci["upper"] <= 1.0

    def test_report(self):
        report = ValidationMetrics(self.game, self.results(12)).generate_validation_report()
        assert report["summary"]["total_draws"] == 12
        assert report["recommendations"]
        json.dumps(report)
