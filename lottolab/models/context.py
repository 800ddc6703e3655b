"""
lottolab/models/context.py
Per-session analysis state: one immutable history snapshot and the
analyzers derived from it, refreshed together on every history change.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from lottolab.models.scoring.combo_scorer import ComboScorer
from lottolab.models.statistical.location_analyzer import LocationAnalyzer
from lottolab.models.statistical.number_profiler import NumberProfiler
from lottolab.models.types import Draw
from lottolab.utils.config import GameConfig
from lottolab.utils.logger import get_logger

log = get_logger("model.context")


@dataclass(frozen=True)
class HistorySnapshot:
    """Ordered, immutable view of the draw history at one point in time."""

    draws: tuple[Draw, ...] = ()

    @classmethod
    def of(cls, draws: Sequence[Draw]) -> "HistorySnapshot":
        return cls(tuple(draws))

    def __len__(self) -> int:
        return len(self.draws)

    def before(self, index: int) -> "HistorySnapshot":
        """Draws strictly before `index`."""
        return HistorySnapshot(self.draws[:index])

    @property
    def fingerprint(self) -> tuple[int, int | None]:
        return len(self.draws), self.draws[-1].draw_id if self.draws else None


class AnalysisContext:
    """
    Owns the profiler, location analyzer and scorer for one history.
    `update_draws` is the single recompute entry point: it refreshes every
    component in dependency order so none of them can go stale on its own.
    """

    def __init__(self, game: GameConfig, draws: Sequence[Draw] = (), weights: dict[str, float] | None = None):
        self.game = game
        self.snapshot = HistorySnapshot.of(draws)
        self.profiler = NumberProfiler(game, self.snapshot.draws)
        self.location = LocationAnalyzer(game, self.snapshot.draws)
        self.scorer = ComboScorer(game, self.profiler, self.location, self.snapshot.draws, weights=weights)
        self.version = 0

    @property
    def draws(self) -> tuple[Draw, ...]:
        return self.snapshot.draws

    def update_draws(self, draws: Sequence[Draw]) -> None:
        self.snapshot = HistorySnapshot.of(draws)
        self.profiler.update_draws(self.snapshot.draws)
        self.location.update_draws(self.snapshot.draws)
        self.scorer.update_draws(self.snapshot.draws)
        self.version += 1
        log.debug(f"Context refreshed: {len(self.snapshot)} draws (version {self.version})")
