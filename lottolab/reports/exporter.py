"""
lottolab/reports/exporter.py
CSV / JSON sinks for predictions and backtest results, plus the JSON loader.
"""
from __future__ import annotations

import csv
import io
import json
from pathlib import Path
from typing import Any, Iterable, Sequence

from lottolab.models.types import BacktestResult, Combination
from lottolab.utils.logger import get_logger

log = get_logger("reports")

ACCURACY_DECIMALS = 4
SCORE_DECIMALS = 2


def _to_csv(headers: list[str], rows: Iterable[list[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue()


def predictions_to_csv(combinations: Sequence[Combination]) -> str:
    headers = [
        "Rank", "Numbers", "Sum", "Odd", "High", "Composite Score", "Confidence",
        "Recurrence", "Skip", "Pairs", "Triples", "Sum Score", "Hot/Cold", "Location", "Reasoning",
    ]
    rows = []
    for rank, c in enumerate(combinations, 1):
        rows.append([
            rank,
            " ".join(str(n) for n in c.numbers),
            c.sum,
            c.odd_count,
            c.high_count,
            round(c.composite_score, SCORE_DECIMALS),
            c.confidence,
            *(round(score, SCORE_DECIMALS) for score in c.factor_scores().values()),
            "; ".join(c.reasoning),
        ])
    return _to_csv(headers, rows)


def backtest_results_to_csv(results: Sequence[BacktestResult]) -> str:
    """One row per backtested draw; accuracy to 4 dp, scores to 2 dp."""
    pick_count = max((len(r.actual_numbers) for r in results), default=5)
    headers = [
        "Draw ID", "Date", "Actual Numbers", "Total Predictions",
        *(f"{k}-Match Hits" for k in range(1, pick_count + 1)),
        "Accuracy", "Top Score", "Average Score", "Processing Time (ms)",
    ]
    rows = []
    for r in results:
        rows.append([
            r.draw_id,
            r.draw_date,
            " ".join(str(n) for n in r.actual_numbers),
            r.total_predictions,
            *(r.hits.get(k, 0) for k in range(1, pick_count + 1)),
            f"{r.accuracy:.{ACCURACY_DECIMALS}f}",
            f"{r.top_score:.{SCORE_DECIMALS}f}",
            f"{r.average_score:.{SCORE_DECIMALS}f}",
            f"{r.processing_time_ms:.0f}",
        ])
    return _to_csv(headers, rows)


# ── JSON records ──────────────────────────────────────────────────

def backtest_results_to_records(results: Sequence[BacktestResult]) -> list[dict[str, Any]]:
    return [
        {
            "draw_id": r.draw_id,
            "draw_date": r.draw_date,
            "actual_numbers": list(r.actual_numbers),
            "predicted_combinations": [c.to_dict() for c in r.predicted_combinations],
            "hits": {str(k): v for k, v in r.hits.items()},
            "accuracy": r.accuracy,
            "top_score": r.top_score,
            "average_score": r.average_score,
            "processing_time_ms": r.processing_time_ms,
        }
        for r in results
    ]


def backtest_results_from_records(records: Iterable[dict[str, Any]]) -> list[BacktestResult]:
    return [
        BacktestResult(
            draw_id=int(rec["draw_id"]),
            draw_date=rec["draw_date"],
            actual_numbers=tuple(rec["actual_numbers"]),
            predicted_combinations=tuple(Combination.from_dict(c) for c in rec["predicted_combinations"]),
            hits={int(k): int(v) for k, v in rec["hits"].items()},
            accuracy=float(rec["accuracy"]),
            top_score=float(rec["top_score"]),
            average_score=float(rec["average_score"]),
            processing_time_ms=float(rec["processing_time_ms"]),
        )
        for rec in records
    ]


def save_backtest_results_json(results: Sequence[BacktestResult], path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(backtest_results_to_records(results), f, ensure_ascii=False, indent=2)
    log.info(f"Saved {len(results)} backtest results → {path}")
    return path


def load_backtest_results_json(path: str | Path) -> list[BacktestResult]:
    with open(path, "r", encoding="utf-8") as f:
        results = backtest_results_from_records(json.load(f))
    log.info(f"Loaded {len(results)} backtest results from {path}")
    return results


def save_report_json(report: dict[str, Any], path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report, f, ensure_ascii=False, indent=2, default=str)
    log.info(f"Report written → {path}")
    return path
