"""
scripts/02_run_backtest.py
Replay the prediction pipeline over past draws and export the results.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from rich.console import Console
from rich.table import Table

from lottolab.history.draw_store import DrawStore
from lottolab.models.types import BacktestOptions
from lottolab.pipeline.backtest_harness import BacktestHarness
from lottolab.reports.exporter import backtest_results_to_csv, save_backtest_results_json
from lottolab.utils.config import DEFAULT_GAME, DEFAULT_SEED, GAME_CONFIG_FILES, load_game_config
from lottolab.utils.logger import get_logger

log = get_logger("run_backtest")


def main():
    parser = argparse.ArgumentParser(description="Batch backtest")
    parser.add_argument("--game", choices=list(GAME_CONFIG_FILES), default=DEFAULT_GAME)
    parser.add_argument("--draws", required=True, help="JSONL / CSV file or JSONL URL")
    parser.add_argument("--start", type=int, default=None, help="First draw index (default: last N draws)")
    parser.add_argument("--end", type=int, default=None, help="Last draw index, inclusive")
    parser.add_argument("--max-predictions", type=int, default=None)
    parser.add_argument("--filters", nargs="*", default=[])
    parser.add_argument("--min-score", type=float, default=0.0)
    parser.add_argument("--pool-size", type=int, default=None)
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED)
    parser.add_argument("--output", default="results/backtest.json")
    parser.add_argument("--csv", default=None, help="Optional CSV summary path")
    args = parser.parse_args()

    game = load_game_config(args.game)
    store = DrawStore(game)
    store.load(args.draws)

    harness = BacktestHarness(game, store.get_draws(), seed=args.seed, pool_size=args.pool_size)
    options = BacktestOptions(
        max_predictions=args.max_predictions or game.backtest["max_predictions"],
        enabled_filters=tuple(args.filters),
        min_score=args.min_score,
    )

    def progress(done: int, total: int) -> None:
        if done % 10 == 0 or done == total:
            log.info(f"  {done}/{total} draws")

    results = harness.backtest_range(args.start, args.end, options, on_progress=progress)
    stats = harness.get_backtest_statistics(results)

    table = Table(title=f"{game.label}: backtest of {stats.total_draws} draws")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Average accuracy", f"{stats.average_accuracy:.4f}")
    table.add_row("Average score", f"{stats.average_score:.2f}")
    for k, rate in stats.hit_rates.items():
        table.add_row(f"{k}-match hits", f"{stats.total_hits[k]} ({rate:.2%})")
    table.add_row("Best draw", f"#{stats.best_draw.index} {stats.best_draw.date} ({stats.best_draw.accuracy:.4f})")
    table.add_row("Worst draw", f"#{stats.worst_draw.index} {stats.worst_draw.date} ({stats.worst_draw.accuracy:.4f})")
    table.add_row("Score↔hit correlation", f"{stats.score_correlation:.4f}")
    table.add_row("Avg processing (ms)", f"{stats.average_processing_time_ms:.1f}")
    Console().print(table)

    save_backtest_results_json(results, args.output)
    if args.csv:
        out = Path(args.csv)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(backtest_results_to_csv(results), encoding="utf-8")
        log.info(f"CSV summary written → {out}")


if __name__ == "__main__":
    main()
