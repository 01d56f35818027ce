from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from uuid import uuid4

import redis

from chronicle.api.models import (
    SAVE_VERSION,
    EventLogEntry,
    HistoryLogEntry,
    RegionStatus,
    SaveData,
    SaveMeta,
    WorldTime,
)
from chronicle.config import SaveLimits
from chronicle.defaults import default_npcs, default_player, default_world

logger = logging.getLogger(__name__)


SAVES_SET_KEY = "chronicle:saves"
SAVE_KEY_PREFIX = "chronicle:save:"  # + {slot}


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _save_key(slot: int) -> str:
    return f"{SAVE_KEY_PREFIX}{slot}"


def _clamp(value: int, lo: int, hi: int | None = None) -> int:
    value = max(lo, value)
    return value if hi is None else min(hi, value)


def new_player_id() -> str:
    return f"player_{uuid4().hex[:12]}"


class SaveManager:
    """Owns the persisted SaveData aggregate, one Redis key per slot.

    Storage failures never propagate: writes report False and reads report None,
    so callers can fall back to a fresh session.
    """

    def __init__(self, *, r: redis.Redis, limits: SaveLimits | None = None) -> None:
        self.r = r
        self.limits = limits or SaveLimits()

    # --- lifecycle ---

    def create_new_save(self, slot: int, name: str) -> SaveData:
        if slot < 0:
            raise ValueError("slot must be >= 0")

        now = _now()
        player_id = new_player_id()
        world = default_world()
        return SaveData(
            meta=SaveMeta(
                version=SAVE_VERSION,
                created_at=now,
                last_saved=now,
                player_id=player_id,
                save_name=name,
                save_slot=slot,
            ),
            player=default_player(player_id=player_id),
            world=world,
            npcs=default_npcs(year=world.time.year),
        )

    def load(self, slot: int) -> SaveData | None:
        try:
            raw = self.r.get(_save_key(slot))
        except redis.RedisError:
            logger.exception("Failed to read save slot %s", slot)
            return None
        if not raw:
            return None

        try:
            data = SaveData.model_validate_json(raw)
        except ValueError:
            logger.warning("Discarding corrupt save in slot %s", slot)
            return None

        if data.meta.version != SAVE_VERSION:
            logger.warning(
                "Save slot %s has version %s (current %s); loading without migration",
                slot,
                data.meta.version,
                SAVE_VERSION,
            )
        return data

    def save(self, save_data: SaveData, is_auto: bool = False) -> bool:
        self._trim_dialogue(save_data, self.limits.max_dialogue_history)

        previous = (save_data.meta.last_saved, save_data.meta.last_auto_save)
        now = _now()
        save_data.meta.last_saved = now
        if is_auto:
            save_data.meta.last_auto_save = now

        if self._write(save_data):
            logger.info("Saved slot %s (auto=%s)", save_data.meta.save_slot, is_auto)
            return True

        save_data.meta.last_saved, save_data.meta.last_auto_save = previous
        return False

    def delete_save(self, slot: int) -> bool:
        try:
            pipe = self.r.pipeline(transaction=True)
            pipe.delete(_save_key(slot))
            pipe.srem(SAVES_SET_KEY, str(slot))
            deleted, _ = pipe.execute()
        except redis.RedisError:
            logger.exception("Failed to delete save slot %s", slot)
            return False
        return bool(deleted)

    def list_saves(self) -> list[SaveData]:
        try:
            members = self.r.smembers(SAVES_SET_KEY)
        except redis.RedisError:
            logger.exception("Failed to list save slots")
            return []

        out: list[SaveData] = []
        for raw_slot in members:
            try:
                slot = int(raw_slot)
            except ValueError:
                continue
            data = self.load(slot)
            if data is not None:
                out.append(data)
        out.sort(key=lambda d: d.meta.last_saved, reverse=True)
        return out

    # --- export / import ---

    def export_save(self, slot: int) -> str | None:
        data = self.load(slot)
        if data is None:
            return None
        return data.to_json(indent=2)

    def import_save(self, serialized: str, slot: int) -> bool:
        """Write a previously exported aggregate into `slot`; meta timestamps are kept as-is."""

        if slot < 0:
            return False
        try:
            data = SaveData.model_validate_json(serialized)
        except ValueError:
            logger.warning("Rejected malformed save import for slot %s", slot)
            return False

        data.meta.save_slot = slot
        self._trim_dialogue(data, self.limits.max_dialogue_history)
        return self._write(data)

    # --- in-memory mutations ---

    def log_event(self, save_data: SaveData, event_id: str, *, triggered_at: datetime | None = None) -> bool:
        """Record `event_id` once. A duplicate is a successful no-op, so this always returns True."""

        if save_data.has_event(event_id):
            return True

        now = _now()
        save_data.event_log.append(
            EventLogEntry(
                event_id=event_id,
                player_id=save_data.meta.player_id,
                triggered_at=triggered_at or now,
                recorded_at=now,
            )
        )
        save_data.progress.total_turns += 1
        save_data.progress.last_event_id = event_id
        save_data.progress.last_event_time = now
        return True

    def is_event_logged(self, save_data: SaveData, event_id: str) -> bool:
        return save_data.has_event(event_id)

    def add_dialogue_history(self, save_data: SaveData, lines: Sequence[str] | str) -> None:
        if isinstance(lines, str):
            lines = [lines]
        save_data.dialogue_history.extend(lines)
        self._trim_dialogue(save_data, self.limits.max_dialogue_history)

    def add_history_log(self, save_data: SaveData, entry: HistoryLogEntry) -> None:
        save_data.history_logs.append(entry)
        overflow = len(save_data.history_logs) - self.limits.max_history_logs
        if overflow > 0:
            del save_data.history_logs[:overflow]

    def update_player_attributes(
        self,
        save_data: SaveData,
        *,
        attrs: Mapping[str, int] | None = None,
        resources: Mapping[str, int] | None = None,
        reputation: int | None = None,
        legend: int | None = None,
        health: int | None = None,
    ) -> None:
        """Set absolute values; attrs/reputation/health clamp to 0..100, resources and legend to >= 0."""

        player = save_data.player
        for key, value in (attrs or {}).items():
            player.attrs[key] = _clamp(int(value), 0, 100)
        for key, value in (resources or {}).items():
            if key not in type(player.resources).model_fields:
                raise ValueError(f"Unknown resource: {key}")
            setattr(player.resources, key, _clamp(int(value), 0))
        if reputation is not None:
            player.reputation = _clamp(int(reputation), 0, 100)
        if legend is not None:
            player.legend = _clamp(int(legend), 0)
        if health is not None:
            player.health = _clamp(int(health), 0, 100)

    def update_world_state(
        self,
        save_data: SaveData,
        *,
        era: str | None = None,
        flags: Sequence[str] = (),
        region_status: Mapping[str, RegionStatus] | None = None,
        time: WorldTime | None = None,
    ) -> None:
        """Merge a world patch. Flags are appended once; time only moves forward."""

        world = save_data.world
        if era:
            world.era = era
        for flag in flags:
            if flag not in world.flags:
                world.flags.append(flag)
        for region, status in (region_status or {}).items():
            world.region_status[region] = RegionStatus(status)
        if time is not None and time.as_tuple() > world.time.as_tuple():
            world.time = time.model_copy()

    # --- internals ---

    @staticmethod
    def _trim_dialogue(save_data: SaveData, cap: int) -> None:
        overflow = len(save_data.dialogue_history) - cap
        if overflow > 0:
            del save_data.dialogue_history[:overflow]

    def _write(self, save_data: SaveData) -> bool:
        slot = save_data.meta.save_slot
        payload = save_data.to_json()

        if len(payload.encode("utf-8")) > self.limits.max_record_bytes:
            logger.warning(
                "Save slot %s exceeds %s bytes; trimming dialogue to %s lines",
                slot,
                self.limits.max_record_bytes,
                self.limits.oversize_dialogue_history,
            )
            self._trim_dialogue(save_data, self.limits.oversize_dialogue_history)
            payload = save_data.to_json()
            if len(payload.encode("utf-8")) > self.limits.max_record_bytes:
                logger.error("Save slot %s is still too large after trimming; not saved", slot)
                return False

        try:
            pipe = self.r.pipeline(transaction=True)
            pipe.set(_save_key(slot), payload)
            pipe.sadd(SAVES_SET_KEY, str(slot))
            pipe.execute()
        except redis.RedisError:
            logger.exception("Failed to write save slot %s", slot)
            return False
        return True
