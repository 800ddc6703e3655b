"""
lottolab/utils/config.py
Load env vars and per-game config JSON files.
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()

ROOT = Path(__file__).parent.parent.parent
CONFIG_DIR = ROOT / "config"

# ── Environment ───────────────────────────────────────────────────
DEFAULT_GAME: str = os.getenv("LOTTOLAB_GAME", "powerball")
DEFAULT_SEED: int | None = int(os.environ["LOTTOLAB_SEED"]) if os.getenv("LOTTOLAB_SEED") else None

# ── Game types ────────────────────────────────────────────────────
GAME_CONFIG_FILES: dict[str, str] = {
    "powerball": "game_powerball.json",
    "lotto_535": "game_lotto_535.json",
}

GAME_LABELS: dict[str, str] = {
    "powerball": "Powerball 5/69 + 1/26",
    "lotto_535": "Lotto 5/35 + 1/12",
}

BONUS_MODES = ("shared", "disjoint")

DEFAULT_SCORING_WEIGHTS: dict[str, float] = {
    "recurrence": 0.25,
    "skip_alignment": 0.20,
    "pair_recurrence": 0.15,
    "triple_recurrence": 0.10,
    "sum_proximity": 0.15,
    "hot_cold_status": 0.10,
    "location_fit": 0.03,
    "parity_balance": 0.02,
}

_PROFILER_DEFAULTS = {
    "hot_threshold": 70, "warm_threshold": 40, "frozen_skip": 20,
    "trend_window": 10, "trend_change": 0.2, "list_limit": 10,
}
_LOCATION_DEFAULTS = {"window": 10, "trend_change": 0.15, "min_jump": 10, "max_jump": 150}
_SCORER_DEFAULTS = {"top_pairs": 20, "top_triples": 10, "unseen_skip": 100}
_GENERATOR_DEFAULTS = {"pool_size": 5000, "include_probability": 0.7, "max_attempts_factor": 10}
_BACKTEST_DEFAULTS = {"default_draws": 100, "max_predictions": 50}
_TRACKER_DEFAULTS = {"windows": [10, 25, 50, 100]}

_game_config_cache: dict[str, Any] = {}


def get_game_config(game: str) -> dict[str, Any]:
    """Load and cache the config JSON for a given game."""
    if game in _game_config_cache:
        return _game_config_cache[game]
    filename = GAME_CONFIG_FILES.get(game)
    if not filename:
        raise ValueError(f"Unknown game: {game}")
    path = CONFIG_DIR / filename
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        config = json.load(f)
    _game_config_cache[game] = config
    return config


def get_number_range(game: str) -> tuple[int, int]:
    cfg = get_game_config(game)
    lo, hi = cfg["number_range"]
    return lo, hi


def has_bonus(game: str) -> bool:
    """Return True if this game draws a bonus ball."""
    cfg = get_game_config(game)
    return bool(cfg.get("has_bonus", False))


def get_bonus_range(game: str) -> tuple[int, int] | None:
    """Return (lo, hi) of the bonus number range, or None if no bonus."""
    cfg = get_game_config(game)
    br = cfg.get("bonus_range")
    if br:
        return tuple(br)
    return None


def get_pick_count(game: str) -> int:
    """Return how many primary numbers make up a draw (5 for both shipped games)."""
    cfg = get_game_config(game)
    return cfg.get("pick_count", 5)


def get_default_weights(game: str) -> dict[str, float]:
    cfg = get_game_config(game)
    return dict(cfg.get("scoring_weights", DEFAULT_SCORING_WEIGHTS))


# ── Typed game settings ───────────────────────────────────────────

@dataclass(frozen=True)
class GameConfig:
    """Immutable view of one game's rules and tuning parameters."""

    key: str
    label: str
    number_range: tuple[int, int]
    pick_count: int
    bonus_range: tuple[int, int] | None = None
    bonus_mode: str = "shared"
    high_threshold: int = 35
    profiler: dict[str, Any] = field(default_factory=lambda: dict(_PROFILER_DEFAULTS))
    location: dict[str, Any] = field(default_factory=lambda: dict(_LOCATION_DEFAULTS))
    scorer: dict[str, Any] = field(default_factory=lambda: dict(_SCORER_DEFAULTS))
    generator: dict[str, Any] = field(default_factory=lambda: dict(_GENERATOR_DEFAULTS))
    backtest: dict[str, Any] = field(default_factory=lambda: dict(_BACKTEST_DEFAULTS))
    tracker: dict[str, Any] = field(default_factory=lambda: dict(_TRACKER_DEFAULTS))
    scoring_weights: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SCORING_WEIGHTS))

    def __post_init__(self):
        lo, hi = self.number_range
        if lo < 1 or hi < lo:
            raise ValueError(f"Invalid number range: {self.number_range}")
        if not 1 <= self.pick_count <= hi - lo + 1:
            raise ValueError(f"pick_count {self.pick_count} does not fit range {self.number_range}")
        if self.bonus_mode not in BONUS_MODES:
            raise ValueError(f"bonus_mode must be one of {BONUS_MODES}, got {self.bonus_mode!r}")

    @classmethod
    def from_dict(cls, key: str, cfg: dict[str, Any]) -> "GameConfig":
        bonus_range = cfg.get("bonus_range") if cfg.get("has_bonus", bool(cfg.get("bonus_range"))) else None
        return cls(
            key=key,
            label=cfg.get("label", GAME_LABELS.get(key, key)),
            number_range=tuple(cfg["number_range"]),
            pick_count=cfg.get("pick_count", 5),
            bonus_range=tuple(bonus_range) if bonus_range else None,
            bonus_mode=cfg.get("bonus_mode", "shared"),
            high_threshold=cfg.get("high_threshold", 35),
            profiler={**_PROFILER_DEFAULTS, **cfg.get("profiler", {})},
            location={**_LOCATION_DEFAULTS, **cfg.get("location", {})},
            scorer={**_SCORER_DEFAULTS, **cfg.get("scorer", {})},
            generator={**_GENERATOR_DEFAULTS, **cfg.get("generator", {})},
            backtest={**_BACKTEST_DEFAULTS, **cfg.get("backtest", {})},
            tracker={**_TRACKER_DEFAULTS, **cfg.get("tracker", {})},
            scoring_weights=dict(cfg.get("scoring_weights", DEFAULT_SCORING_WEIGHTS)),
        )

    @property
    def universe(self) -> range:
        lo, hi = self.number_range
        return range(lo, hi + 1)

    @property
    def has_bonus(self) -> bool:
        return self.bonus_range is not None

    @property
    def min_sum(self) -> int:
        lo, _ = self.number_range
        return sum(range(lo, lo + self.pick_count))

    @property
    def max_sum(self) -> int:
        _, hi = self.number_range
        return sum(range(hi - self.pick_count + 1, hi + 1))


def load_game_config(game: str | None = None) -> GameConfig:
    """Build a GameConfig from config/<game>.json (defaults to LOTTOLAB_GAME)."""
    game = game or DEFAULT_GAME
    return GameConfig.from_dict(game, get_game_config(game))
