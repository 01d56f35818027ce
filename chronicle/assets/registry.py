from __future__ import annotations

import csv
import os
from dataclasses import dataclass
from pathlib import Path


class AssetLoadError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class TimelineEvent:
    year: int
    month: int
    label: str
    effect: str
    summary: str = ""


@dataclass(frozen=True, slots=True)
class Timeline:
    """Static, ordered table of dated world events."""

    events: tuple[TimelineEvent, ...]

    @staticmethod
    def from_rows(rows: list[TimelineEvent]) -> "Timeline":
        return Timeline(events=tuple(sorted(rows, key=lambda e: (e.year, e.month))))

    def events_in_range(self, from_year: int, to_year: int) -> tuple[TimelineEvent, ...]:
        """Events with `from_year <= year <= to_year`, in timeline order."""

        if to_year < from_year:
            return ()
        return tuple(e for e in self.events if from_year <= e.year <= to_year)

    def __len__(self) -> int:
        return len(self.events)


@dataclass(frozen=True, slots=True)
class NpcProfile:
    id: str
    name: str
    birth_year: int | None
    death_year: int | None
    region: str
    stance: str
    trust: int

    def alive_in(self, year: int) -> bool:
        if self.birth_year is not None and self.birth_year > year:
            return False
        return self.death_year is None or self.death_year >= year


@dataclass(frozen=True, slots=True)
class NpcRoster:
    profiles: tuple[NpcProfile, ...]
    _by_id: dict[str, NpcProfile]

    @staticmethod
    def from_rows(rows: list[NpcProfile]) -> "NpcRoster":
        by_id: dict[str, NpcProfile] = {}
        for p in rows:
            if p.id in by_id:
                raise AssetLoadError(f"Duplicate npc id: {p.id}")
            by_id[p.id] = p
        return NpcRoster(profiles=tuple(rows), _by_id=by_id)

    def get(self, id: str) -> NpcProfile | None:
        return self._by_id.get(id)

    def ids(self) -> tuple[str, ...]:
        return tuple(p.id for p in self.profiles)

    def death_year(self, id: str) -> int | None:
        p = self._by_id.get(id)
        return p.death_year if p is not None else None

    def __contains__(self, item: object) -> bool:
        return isinstance(item, str) and item in self._by_id


@dataclass(frozen=True, slots=True)
class GameAssets:
    timeline: Timeline
    npcs: NpcRoster


def _read_csv_rows(path: Path) -> list[list[str]]:
    try:
        with path.open(encoding="utf-8-sig", newline="") as f:
            rows = [[c.strip() for c in row] for row in csv.reader(f)]
    except FileNotFoundError as e:
        raise AssetLoadError(f"Asset file not found: {path}") from e

    return [row for row in rows if any(cell for cell in row)]


def _opt_int(raw: str, *, path: Path, column: str) -> int | None:
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise AssetLoadError(f"Bad {column} value {raw!r} in {path}") from e


def load_timeline_csv(path: Path) -> Timeline:
    rows = _read_csv_rows(path)
    if not rows:
        raise AssetLoadError(f"Empty timeline CSV: {path}")

    header = [c.casefold() for c in rows[0]]
    if header[:4] != ["year", "month", "label", "effect"]:
        raise AssetLoadError(f"Unexpected header in {path}: {rows[0]}")

    out: list[TimelineEvent] = []
    for row in rows[1:]:
        if len(row) < 4 or not row[2]:
            continue
        year = _opt_int(row[0], path=path, column="year")
        if year is None:
            continue
        month = _opt_int(row[1], path=path, column="month") or 1
        summary = row[4] if len(row) > 4 else ""
        out.append(TimelineEvent(year=year, month=month, label=row[2], effect=row[3], summary=summary))

    return Timeline.from_rows(out)


def load_npc_csv(path: Path) -> NpcRoster:
    rows = _read_csv_rows(path)
    if not rows:
        raise AssetLoadError(f"Empty npc CSV: {path}")

    header = [c.casefold() for c in rows[0]]
    if header[:2] != ["id", "name"]:
        raise AssetLoadError(f"Unexpected header in {path}: {rows[0]}")

    col = {name: idx for idx, name in enumerate(header)}

    def cell(row: list[str], name: str) -> str:
        idx = col.get(name)
        if idx is None or idx >= len(row):
            return ""
        return row[idx]

    out: list[NpcProfile] = []
    for row in rows[1:]:
        rid, name = cell(row, "id"), cell(row, "name")
        if not rid or not name:
            continue
        trust = _opt_int(cell(row, "trust"), path=path, column="trust")
        out.append(
            NpcProfile(
                id=rid,
                name=name,
                birth_year=_opt_int(cell(row, "birth_year"), path=path, column="birth_year"),
                death_year=_opt_int(cell(row, "death_year"), path=path, column="death_year"),
                region=cell(row, "region"),
                stance=cell(row, "stance") or "neutral",
                trust=50 if trust is None else trust,
            )
        )

    return NpcRoster.from_rows(out)


def _fallback_game_assets() -> GameAssets:
    """Tiny built-in dataset used when the asset CSVs are missing."""

    events = [
        TimelineEvent(year=184, month=2, label="黄巾起义", effect="region_turmoil:jizhou"),
        TimelineEvent(year=189, month=9, label="董卓入京", effect="era_shift:dongzhuo"),
        TimelineEvent(year=190, month=1, label="关东联军讨董", effect="region_war:sili"),
    ]
    npcs = [
        NpcProfile(id="caocao", name="曹操", birth_year=155, death_year=220, region="yuzhou", stance="neutral", trust=50),
        NpcProfile(id="liubei", name="刘备", birth_year=161, death_year=223, region="youzhou", stance="friendly", trust=55),
    ]
    return GameAssets(timeline=Timeline.from_rows(events), npcs=NpcRoster.from_rows(npcs))


def load_game_assets(*, root: Path) -> GameAssets:
    assets_dir = root / "assets"

    # Set CHRONICLE_STRICT_ASSETS=1 to fail instead of falling back to the built-in dataset.
    strict = os.getenv("CHRONICLE_STRICT_ASSETS", "").strip().lower() in {"1", "true", "yes"}

    try:
        return GameAssets(
            timeline=load_timeline_csv(assets_dir / "timeline.csv"),
            npcs=load_npc_csv(assets_dir / "npcs.csv"),
        )
    except AssetLoadError:
        if strict:
            raise
        return _fallback_game_assets()
