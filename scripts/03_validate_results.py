"""
scripts/03_validate_results.py
Load exported backtest results, run accuracy tracking + statistical
validation, and write a combined JSON report.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from lottolab.pipeline.accuracy_tracker import AccuracyTracker
from lottolab.pipeline.validation_metrics import ValidationMetrics
from lottolab.reports.exporter import load_backtest_results_json, save_report_json
from lottolab.utils.config import DEFAULT_GAME, GAME_CONFIG_FILES, load_game_config
from lottolab.utils.logger import get_logger

log = get_logger("validate_results")


def main():
    parser = argparse.ArgumentParser(description="Validate backtest results")
    parser.add_argument("--game", choices=list(GAME_CONFIG_FILES), default=DEFAULT_GAME)
    parser.add_argument("--results", default="results/backtest.json")
    parser.add_argument("--output", default="results/validation_report.json")
    args = parser.parse_args()

    game = load_game_config(args.game)
    results = load_backtest_results_json(args.results)

    tracker = AccuracyTracker(game.tracker["windows"], pick_count=game.pick_count)
    tracker.add_results(results)
    validation = ValidationMetrics(game, results)

    report = {
        "game": game.key,
        "tracking": tracker.export_analysis(),
        "validation": validation.generate_validation_report(),
    }
    save_report_json(report, args.output)

    for line in report["validation"]["recommendations"]:
        log.info(f"→ {line}")


if __name__ == "__main__":
    main()
