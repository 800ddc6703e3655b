"""
lottolab/models/filters.py
Candidate filter chain: named boolean predicates over a candidate and the
draw history, composed by conjunction and toggled by id.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Sequence

from lottolab.models.types import Draw
from lottolab.utils.config import GameConfig
from lottolab.utils.logger import get_logger

log = get_logger("model.filters")


class BaseFilter(ABC):
    """Abstract base class for all candidate filters."""

    id: str = ""
    name: str = ""
    description: str = ""
    category: str = "basic"

    def __init__(self, game: GameConfig, config: dict[str, Any] | None = None):
        self.game = game
        self.config: dict[str, Any] = {"enabled": True, **self.default_config()}
        if config:
            if not self.validate_config({**self.config, **config}):
                raise ValueError(f"Invalid config for {self.id}: {config}")
            self.config.update(config)

    @abstractmethod
    def default_config(self) -> dict[str, Any]:
        """Return the filter's default parameters."""

    @abstractmethod
    def validate_config(self, config: dict[str, Any]) -> bool:
        """Return True if `config` is usable for this game."""

    @abstractmethod
    def accepts(self, numbers: tuple[int, ...], state: Any) -> bool:
        """Pure predicate: keep the candidate?"""

    def prepare(self, history: Sequence[Draw]) -> Any:
        """Derive per-call state from the history (nothing by default)."""
        return None

    def apply(self, candidates: Iterable[tuple[int, ...]], history: Sequence[Draw]) -> list[tuple[int, ...]]:
        if not self.config["enabled"]:
            return list(candidates)
        state = self.prepare(history)
        return [c for c in candidates if self.accepts(c, state)]

    def get_config(self) -> dict[str, Any]:
        return dict(self.config)

    def set_config(self, config: dict[str, Any]) -> None:
        self.config = {**self.config, **config}

    def describe(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "config": self.get_config(),
        }


class SumFilter(BaseFilter):
    id = "sum-filter"
    name = "Sum Range Filter"
    description = "Keep combinations whose total lies in [min_sum, max_sum]"

    def default_config(self) -> dict[str, Any]:
        span = self.game.max_sum - self.game.min_sum
        return {
            "min_sum": self.game.min_sum + round(span * 0.25),
            "max_sum": self.game.max_sum - round(span * 0.25),
        }

    def validate_config(self, config: dict[str, Any]) -> bool:
        return self.game.min_sum <= config["min_sum"] < config["max_sum"] <= self.game.max_sum

    def accepts(self, numbers: tuple[int, ...], state: Any) -> bool:
        return self.config["min_sum"] <= sum(numbers) <= self.config["max_sum"]


class ParityFilter(BaseFilter):
    id = "parity-filter"
    name = "Odd/Even Balance Filter"
    description = "Keep combinations with an odd count in [min_odd, max_odd]"

    def default_config(self) -> dict[str, Any]:
        return {"min_odd": 1, "max_odd": self.game.pick_count - 1}

    def validate_config(self, config: dict[str, Any]) -> bool:
        return 0 <= config["min_odd"] <= config["max_odd"] <= self.game.pick_count

    def accepts(self, numbers: tuple[int, ...], state: Any) -> bool:
        odd = sum(1 for n in numbers if n % 2 == 1)
        return self.config["min_odd"] <= odd <= self.config["max_odd"]


class SkipFilter(BaseFilter):
    id = "skip-filter"
    name = "Skip Count Filter"
    description = "Keep combinations whose every number has a current skip in [min_skip, max_skip]"
    category = "advanced"

    def default_config(self) -> dict[str, Any]:
        return {"min_skip": 0, "max_skip": 50}

    def validate_config(self, config: dict[str, Any]) -> bool:
        return 0 <= config["min_skip"] < config["max_skip"]

    def prepare(self, history: Sequence[Draw]) -> dict[int, int]:
        count_bonus = self.game.bonus_mode == "shared"
        last_seen: dict[int, int] = {}
        for index, draw in enumerate(history):
            for num in draw.numbers:
                last_seen[num] = index
            if count_bonus and draw.bonus is not None:
                last_seen[draw.bonus] = index
        latest = len(history) - 1
        return {n: latest - last_seen[n] if n in last_seen else len(history) for n in self.game.universe}

    def accepts(self, numbers: tuple[int, ...], state: dict[int, int]) -> bool:
        lo, hi = self.config["min_skip"], self.config["max_skip"]
        return all(lo <= state.get(n, 0) <= hi for n in numbers)


class DigitFilter(BaseFilter):
    id = "digit-filter"
    name = "First Digit Filter"
    description = "Keep combinations whose smallest number has an allowed tens digit and no excluded digit class"
    category = "advanced"

    def default_config(self) -> dict[str, Any]:
        return {"first_digits": list(range(0, self._max_digit() + 1)), "exclude_digits": []}

    def _max_digit(self) -> int:
        return self.game.number_range[1] // 10

    def validate_config(self, config: dict[str, Any]) -> bool:
        allowed = config["first_digits"]
        return (
            len(allowed) > 0
            and all(0 <= d <= self._max_digit() for d in allowed)
            and not set(allowed) & set(config["exclude_digits"])
        )

    def accepts(self, numbers: tuple[int, ...], state: Any) -> bool:
        if min(numbers) // 10 not in self.config["first_digits"]:
            return False
        excluded = set(self.config["exclude_digits"])
        return not any(n // 10 in excluded for n in numbers)


class HighLowFilter(BaseFilter):
    id = "highlow-filter"
    name = "High/Low Split Filter"
    description = "Keep combinations with a count of high numbers in [min_high, max_high]"

    def default_config(self) -> dict[str, Any]:
        return {"min_high": 1, "max_high": self.game.pick_count - 1, "high_threshold": self.game.high_threshold}

    def validate_config(self, config: dict[str, Any]) -> bool:
        return 0 <= config["min_high"] <= config["max_high"] <= self.game.pick_count

    def accepts(self, numbers: tuple[int, ...], state: Any) -> bool:
        high = sum(1 for n in numbers if n > self.config["high_threshold"])
        return self.config["min_high"] <= high <= self.config["max_high"]


DEFAULT_FILTERS = (SumFilter, ParityFilter, SkipFilter, DigitFilter, HighLowFilter)


class FilterChain:
    """Registry of filters; applies the enabled ones in the order given."""

    def __init__(self, game: GameConfig, filters: Iterable[BaseFilter] | None = None):
        self.game = game
        self._filters: dict[str, BaseFilter] = {}
        for f in filters if filters is not None else (cls(game) for cls in DEFAULT_FILTERS):
            self.register_filter(f)

    def register_filter(self, f: BaseFilter) -> None:
        self._filters[f.id] = f

    def get_filter(self, filter_id: str) -> BaseFilter | None:
        return self._filters.get(filter_id)

    def list_filters(self) -> list[dict[str, Any]]:
        return [f.describe() for f in self._filters.values()]

    def get_filters_by_category(self, category: str) -> list[BaseFilter]:
        return [f for f in self._filters.values() if f.category == category]

    def apply_filters(
        self,
        candidates: Iterable[tuple[int, ...]],
        history: Sequence[Draw],
        enabled_ids: Iterable[str] = (),
    ) -> list[tuple[int, ...]]:
        filtered = list(candidates)
        for filter_id in enabled_ids:
            f = self._filters.get(filter_id)
            if f is None:
                log.warning(f"Unknown filter id {filter_id!r} ignored")
                continue
            before = len(filtered)
            filtered = f.apply(filtered, history)
            log.debug(f"{filter_id}: {before} → {len(filtered)}")
        return filtered

    def get_filter_configs(self) -> dict[str, dict[str, Any]]:
        return {fid: f.get_config() for fid, f in self._filters.items()}

    def set_filter_config(self, filter_id: str, config: dict[str, Any]) -> bool:
        f = self._filters.get(filter_id)
        if f is None:
            return False
        merged = {**f.get_config(), **config}
        if not f.validate_config(merged):
            log.warning(f"Rejected config for {filter_id}: {config}")
            return False
        f.set_config(merged)
        return True
