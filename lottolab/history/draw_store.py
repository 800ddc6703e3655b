"""
lottolab/history/draw_store.py
Append-only, chronologically ordered draw history with JSONL / CSV / URL loaders.
"""
from __future__ import annotations

import csv
import json
import random
import time
from pathlib import Path
from typing import Any, Callable, Iterable

import requests

from lottolab.models.types import Draw, InvalidDrawError
from lottolab.utils.config import GameConfig
from lottolab.utils.logger import get_logger

log = get_logger("history")

Listener = Callable[[tuple[Draw, ...]], None]


class DrawStore:
    """
    Holds the draws of one game in increasing draw_id order.
    Listeners registered with `subscribe` receive the full tuple after
    every successful append batch.
    """

    def __init__(self, game: GameConfig, draws: Iterable[Draw] = (), max_retries: int = 3):
        self.game = game
        self.max_retries = max_retries
        self._draws: list[Draw] = []
        self._listeners: list[Listener] = []
        self.session = requests.Session()
        if draws:
            self.extend(draws)

    def __len__(self) -> int:
        return len(self._draws)

    # ── Validation ────────────────────────────────────────────────

    def validate_draw(self, record: dict[str, Any]) -> bool:
        """Validate a raw draw record before it becomes a Draw."""
        required = {"draw_id", "draw_date", "numbers"}
        if not required.issubset(record.keys()):
            log.error(f"Missing fields: {required - record.keys()}")
            return False

        nums = record["numbers"]
        lo, hi = self.game.number_range
        k = self.game.pick_count

        if len(nums) != k:
            log.error(f"Expected {k} numbers, got {len(nums)}: {nums}")
            return False
        if len(set(nums)) != k:
            log.error(f"Duplicate numbers: {nums}")
            return False
        if not all(lo <= n <= hi for n in nums):
            log.error(f"Numbers out of range [{lo},{hi}]: {nums}")
            return False

        bonus = record.get("bonus")
        if bonus is not None:
            if not self.game.has_bonus:
                log.error(f"Game {self.game.key} has no bonus ball: {bonus}")
                return False
            blo, bhi = self.game.bonus_range
            if not blo <= bonus <= bhi:
                log.error(f"Bonus out of range [{blo},{bhi}]: {bonus}")
                return False

        return True

    # ── Mutation ──────────────────────────────────────────────────

    def _check_next(self, draw: Draw, previous: Draw | None) -> None:
        if not self.validate_draw(draw.to_record()):
            raise InvalidDrawError(f"Invalid draw: {draw}")
        if previous is not None and draw.draw_id <= previous.draw_id:
            raise InvalidDrawError(
                f"Draw {draw.draw_id} does not follow the latest draw {previous.draw_id}"
            )

    def append(self, draw: Draw) -> None:
        self.extend([draw])

    def extend(self, draws: Iterable[Draw]) -> None:
        """Validate the whole batch first, then append it and notify listeners once."""
        batch = list(draws)
        previous = self._draws[-1] if self._draws else None
        for draw in batch:
            self._check_next(draw, previous)
            previous = draw
        if not batch:
            return
        self._draws.extend(batch)
        log.debug(f"Appended {len(batch)} draws (total {len(self._draws)})")
        snapshot = self.get_draws()
        for listener in self._listeners:
            try:
                listener(snapshot)
            except Exception as exc:
                log.error(f"Listener {listener!r} failed on {len(snapshot)} draws: {exc}")

    def get_draws(self) -> tuple[Draw, ...]:
        return tuple(self._draws)

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    # ── Loaders ───────────────────────────────────────────────────

    def _ingest_records(self, records: Iterable[dict[str, Any]], source: str) -> int:
        draws = []
        skipped = 0
        for record in records:
            if not self.validate_draw(record):
                skipped += 1
                continue
            draws.append(Draw.from_record(record))
        draws.sort(key=lambda d: d.draw_id)
        self.extend(draws)
        log.info(f"Loaded {len(draws)} draws from {source} ({skipped} skipped)")
        return len(draws)

    def load_jsonl(self, path: str | Path) -> int:
        """Load one JSON record per line. Invalid records are logged and skipped."""
        records = []
        with open(path, "r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(json.loads(line))
                except json.JSONDecodeError as exc:
                    log.warning(f"{path}:{line_no} skipped: {exc}")
        return self._ingest_records(records, str(path))

    def load_csv(self, path: str | Path) -> int:
        """Load draws from CSV with columns draw_id, draw_date, n1..nK[, bonus]."""
        records = []
        with open(path, "r", encoding="utf-8", newline="") as f:
            for row in csv.DictReader(f):
                numbers = [int(row[f"n{i}"]) for i in range(1, self.game.pick_count + 1)]
                bonus = row.get("bonus")
                records.append({
                    "draw_id": int(row["draw_id"]),
                    "draw_date": row["draw_date"],
                    "numbers": numbers,
                    "bonus": int(bonus) if bonus else None,
                })
        return self._ingest_records(records, str(path))

    def load(self, source: str | Path) -> int:
        """Load from a URL, a .csv file or a JSONL file, picked by the source's form."""
        source = str(source)
        if source.startswith(("http://", "https://")):
            return self.fetch_jsonl(source)
        if source.lower().endswith(".csv"):
            return self.load_csv(source)
        return self.load_jsonl(source)

    def fetch_jsonl(self, url: str, timeout: int = 15) -> int:
        """Download a JSONL draw dump with retry + exponential backoff."""
        for attempt in range(1, self.max_retries + 1):
            try:
                log.debug(f"GET {url} (attempt {attempt})")
                resp = self.session.get(url, timeout=timeout)
                resp.raise_for_status()
                break
            except requests.RequestException as exc:
                log.warning(f"Request failed (attempt {attempt}/{self.max_retries}): {exc}")
                if attempt < self.max_retries:
                    time.sleep(2 ** attempt + random.uniform(0, 1))
        else:
            log.error(f"All {self.max_retries} attempts failed for {url}")
            return 0

        records = [json.loads(line) for line in resp.text.splitlines() if line.strip()]
        return self._ingest_records(records, url)
