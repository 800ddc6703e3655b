"""tests/test_history.py"""
import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from conftest import make_combination, synthetic_draws
from lottolab.history.draw_store import DrawStore
from lottolab.models.types import BacktestResult, Draw, InvalidDrawError
from lottolab.pipeline.backtest_harness import BacktestHarness
from lottolab.reports.exporter import (
    backtest_results_to_csv,
    load_backtest_results_json,
    predictions_to_csv,
    save_backtest_results_json,
    save_report_json,
)


class TestDrawValidation:
    def setup_method(self):
        from lottolab.utils.config import load_game_config

        self.store = DrawStore(load_game_config("powerball"))

    def test_valid_draw(self):
        record = {"draw_id": 1, "draw_date": "2024-02-21", "numbers": [5, 14, 22, 33, 69], "bonus": 26}
        assert self.store.validate_draw(record) is True

    def test_wrong_count(self):
        record = {"draw_id": 1, "draw_date": "2024-02-21", "numbers": [5, 14, 22, 33]}
        assert self.store.validate_draw(record) is False

    def test_duplicate_numbers(self):
        record = {"draw_id": 1, "draw_date": "2024-02-21", "numbers": [5, 5, 22, 33, 41]}
        assert self.store.validate_draw(record) is False

    def test_out_of_range(self):
        record = {"draw_id": 1, "draw_date": "2024-02-21", "numbers": [0, 14, 22, 33, 70]}
        assert self.store.validate_draw(record) is False

    def test_bonus_out_of_range(self):
        record = {"draw_id": 1, "draw_date": "2024-02-21", "numbers": [5, 14, 22, 33, 41], "bonus": 27}
        assert self.store.validate_draw(record) is False

    def test_missing_required_field(self):
        record = {"draw_id": 1, "numbers": [1, 2, 3, 4, 5]}
        assert self.store.validate_draw(record) is False


class TestDrawStore:
    def setup_method(self):
        from lottolab.utils.config import load_game_config

        self.game = load_game_config("powerball")

    def test_append_keeps_order(self):
        store = DrawStore(self.game, synthetic_draws(3))
        store.append(synthetic_draws(1, start_id=4)[0])
        assert [d.draw_id for d in store.get_draws()] == [1, 2, 3, 4]
        assert len(store) == 4

    def test_out_of_order_append_raises(self):
        store = DrawStore(self.game, synthetic_draws(3))
        with pytest.raises(InvalidDrawError):
            store.append(synthetic_draws(1, start_id=3)[0])
        with pytest.raises(InvalidDrawError):
            store.append(Draw(9, "2024-01-01", (1, 2, 3, 4, 99)))

    def test_failed_batch_appends_nothing(self):
        store = DrawStore(self.game, synthetic_draws(3))
        batch = synthetic_draws(2, start_id=4) + [Draw(4, "2024-01-01", (1, 2, 3, 4, 5))]
        with pytest.raises(InvalidDrawError):
            store.extend(batch)
        assert len(store) == 3

    def test_subscribers_receive_snapshot(self):
        store = DrawStore(self.game)
        received = []
        store.subscribe(received.append)
        store.extend(synthetic_draws(5))
        store.append(synthetic_draws(1, start_id=6)[0])
        assert [len(s) for s in received] == [5, 6]
        assert isinstance(received[-1], tuple)

    def test_failing_listener_does_not_block_others(self):
        store = DrawStore(self.game)
        received = []

        def broken(_draws):
            raise RuntimeError("listener down")

        store.subscribe(broken)
        store.subscribe(received.append)
        store.extend(synthetic_draws(3))
        store.append(synthetic_draws(1, start_id=4)[0])
        assert [len(s) for s in received] == [3, 4]
        assert len(store) == 4

    def test_load_jsonl_skips_bad_lines(self, tmp_path):
        path = tmp_path / "draws.jsonl"
        lines = [json.dumps(d.to_record()) for d in synthetic_draws(4)]
        lines.insert(1, "{not json")
        lines.append(json.dumps({"draw_id": 99, "draw_date": "2024-05-01", "numbers": [1, 1, 2, 3, 4]}))
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")

        store = DrawStore(self.game)
        assert store.load(path) == 4
        assert [d.draw_id for d in store.get_draws()] == [1, 2, 3, 4]

    def test_load_csv(self, tmp_path):
        path = tmp_path / "draws.csv"
        path.write_text(
            "draw_id,draw_date,n1,n2,n3,n4,n5,bonus\n"
            "2,2024-01-04,40,3,17,22,61,\n"
            "1,2024-01-01,5,14,22,33,41,9\n",
            encoding="utf-8",
        )
        store = DrawStore(self.game)
        assert store.load_csv(path) == 2
        first, second = store.get_draws()
        assert first.draw_id == 1 and first.bonus == 9
        assert second.numbers == (3, 17, 22, 40, 61)
        assert second.bonus is None

    @patch("lottolab.history.draw_store.time.sleep")
    def test_fetch_jsonl_retries(self, mock_sleep):
        store = DrawStore(self.game)
        response = MagicMock()
        response.text = "\n".join(json.dumps(d.to_record()) for d in synthetic_draws(3))
        store.session = MagicMock()
        store.session.get.side_effect = [requests.ConnectionError("down"), response]

        assert store.fetch_jsonl("https://example.com/draws.jsonl") == 3
        assert store.session.get.call_count == 2
        mock_sleep.assert_called_once()
        assert len(store) == 3

    @patch("lottolab.history.draw_store.time.sleep")
    def test_fetch_jsonl_gives_up(self, mock_sleep):
        store = DrawStore(self.game, max_retries=2)
        store.session = MagicMock()
        store.session.get.side_effect = requests.Timeout("slow")

        assert store.fetch_jsonl("https://example.com/draws.jsonl") == 0
        assert store.session.get.call_count == 2
        assert len(store) == 0


class TestExporter:
    def setup_method(self):
        from lottolab.utils.config import load_game_config

        self.game = load_game_config("powerball")

    def backtest(self):
        harness = BacktestHarness(self.game, synthetic_draws(30), seed=7, pool_size=200)
        return harness, harness.backtest_range(24, 29)

    def test_statistics_survive_json_round_trip(self, tmp_path):
        harness, results = self.backtest()
        path = save_backtest_results_json(results, tmp_path / "out" / "backtest.json")
        loaded = load_backtest_results_json(path)

        assert loaded == results
        assert harness.get_backtest_statistics(loaded) == harness.get_backtest_statistics(results)

    def test_backtest_csv_rounding(self):
        result = BacktestResult(
            draw_id=3,
            draw_date="2024-01-03",
            actual_numbers=(1, 2, 3, 4, 5),
            predicted_combinations=(make_combination((1, 2, 3, 10, 11), composite_score=61.23456),),
            hits={1: 0, 2: 0, 3: 1, 4: 0, 5: 0},
            accuracy=1 / 3,
            top_score=61.23456,
            average_score=61.23456,
            processing_time_ms=12.6,
        )
        lines = backtest_results_to_csv([result]).splitlines()
        assert lines[0].startswith("Draw ID,Date,Actual Numbers,Total Predictions,1-Match Hits")
        assert lines[1] == "3,2024-01-03,1 2 3 4 5,1,0,0,1,0,0,0.3333,61.23,61.23,13"

    def test_predictions_csv(self):
        combos = [make_combination((7, 12, 33, 48, 60), composite_score=55.555)]
        lines = predictions_to_csv(combos).splitlines()
        assert len(lines) == 2
        assert lines[1].startswith("1,7 12 33 48 60,160,")

    def test_save_report(self, tmp_path):
        path = save_report_json({"a": 1, "nested": {2: 0.5}}, tmp_path / "report.json")
        assert json.loads(path.read_text(encoding="utf-8")) == {"a": 1, "nested": {"2": 0.5}}
