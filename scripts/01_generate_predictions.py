"""
scripts/01_generate_predictions.py
Rank candidate combinations for the next draw from a draw history file.

    python scripts/01_generate_predictions.py --draws data/powerball.jsonl \
        --filters sum-filter parity-filter --top 20 --csv out/predictions.csv
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from rich.console import Console
from rich.table import Table

from lottolab.history.draw_store import DrawStore
from lottolab.models.types import PredictionOptions
from lottolab.pipeline.prediction_pipeline import MemoryCache, PredictionPipeline
from lottolab.reports.exporter import predictions_to_csv
from lottolab.utils.config import DEFAULT_GAME, DEFAULT_SEED, GAME_CONFIG_FILES, load_game_config
from lottolab.utils.logger import get_logger

log = get_logger("generate_predictions")


def main():
    parser = argparse.ArgumentParser(description="Generate ranked predictions")
    parser.add_argument("--game", choices=list(GAME_CONFIG_FILES), default=DEFAULT_GAME)
    parser.add_argument("--draws", required=True, help="JSONL / CSV file or JSONL URL")
    parser.add_argument("--filters", nargs="*", default=[], help="Filter ids to enable")
    parser.add_argument("--top", type=int, default=20, help="Max combinations to keep")
    parser.add_argument("--min-score", type=float, default=0.0)
    parser.add_argument("--pool-size", type=int, default=None)
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED)
    parser.add_argument("--csv", default=None, help="Optional CSV output path")
    args = parser.parse_args()

    game = load_game_config(args.game)
    store = DrawStore(game)
    store.load(args.draws)
    if not len(store):
        log.error(f"No draws loaded from {args.draws}")
        sys.exit(1)

    pipeline = PredictionPipeline(game, cache=MemoryCache(), seed=args.seed, pool_size=args.pool_size)
    pipeline.attach(store)
    result = pipeline.generate_predictions(PredictionOptions(
        enabled_filters=tuple(args.filters),
        max_combinations=args.top,
        min_score=args.min_score,
    ))

    table = Table(title=f"{game.label}: top {len(result.combinations)} of {result.total_filtered}")
    for col in ("#", "Numbers", "Sum", "Score", "Conf.", "Reasoning"):
        table.add_column(col)
    for rank, combo in enumerate(result.combinations, 1):
        table.add_row(
            str(rank),
            " ".join(f"{n:02d}" for n in combo.numbers),
            str(combo.sum),
            f"{combo.composite_score:.2f}",
            f"{combo.confidence:.2f}",
            "; ".join(combo.reasoning),
        )
    Console().print(table)

    meta = result.metadata
    log.info(
        f"Hot: {list(meta.hot_numbers)} | Cold: {list(meta.cold_numbers)} | "
        f"avg sum {meta.average_sum} | confidence {meta.confidence}"
    )

    if args.csv:
        out = Path(args.csv)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(predictions_to_csv(result.combinations), encoding="utf-8")
        log.info(f"Predictions written → {out}")


if __name__ == "__main__":
    main()
