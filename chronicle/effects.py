from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from chronicle.api.models import (
    AdjudicationResponse,
    HistoryKind,
    HistoryLogEntry,
    LogicalResults,
    RegionStatus,
    SaveData,
)
from chronicle.registry import EntityRegistry
from chronicle.save_store import SaveManager

_DELTA_RE = re.compile(r"^([a-zA-Z_]+)([+-]\d+)$")
_NPC_TRUST_RE = re.compile(r"^npc_(.+)_trust([+-]\d+)$")
_LABEL_RE = re.compile(r"^(tag|flag):(.+)$")
_REGION_HINT_RE = re.compile(r"^region_([a-z]+):([a-z0-9_]+)$")

RESOURCE_KEYS = ("gold", "food", "soldiers")


@dataclass(frozen=True, slots=True)
class AppliedEffects:
    applied: tuple[str, ...]
    ignored: tuple[str, ...]
    duplicate: bool = False


def _npc_is_dead(save_data: SaveData, npc_id: str) -> bool:
    npc = next((n for n in save_data.npcs if n.id == npc_id), None)
    if npc is None:
        return True
    if npc.is_alive is False:
        return True
    return npc.death_year is not None and npc.death_year < save_data.world.time.year


def apply_logical_results(*, manager: SaveManager, save_data: SaveData, results: LogicalResults) -> None:
    """Write engine-computed outcomes back: new time first, then the historical events it crossed."""

    if results.new_time is not None:
        old_year = save_data.world.time.year
        manager.update_world_state(save_data, time=results.new_time)
        if save_data.world.time.year != old_year:
            manager.add_history_log(
                save_data,
                HistoryLogEntry(
                    kind=HistoryKind.year_change,
                    text=f"{old_year} 年 → {save_data.world.time.year} 年",
                    year=save_data.world.time.year,
                    month=save_data.world.time.month,
                ),
            )

    for change in results.world_changes:
        manager.add_history_log(
            save_data,
            HistoryLogEntry(kind=HistoryKind.timeline_event, text=change.label, year=change.year, month=change.month),
        )
        m = _REGION_HINT_RE.match(change.effect)
        if m is None:
            continue
        status, region = m.groups()
        if status in RegionStatus.__members__:
            manager.update_world_state(save_data, region_status={region: RegionStatus(status)})


def apply_effects(
    *,
    manager: SaveManager,
    save_data: SaveData,
    effects: Iterable[str],
    registry: EntityRegistry | None = None,
) -> AppliedEffects:
    applied: list[str] = []
    ignored: list[str] = []
    player = save_data.player

    for raw in effects:
        effect = raw.strip()

        m = _NPC_TRUST_RE.match(effect)
        if m is not None:
            npc_id, delta = m.group(1), int(m.group(2))
            known = registry is None or not registry.known("npc") or registry.is_known("npc", npc_id)
            if not known or _npc_is_dead(save_data, npc_id):
                ignored.append(effect)
                continue
            npc = next(n for n in save_data.npcs if n.id == npc_id)
            npc.trust = max(0, min(100, npc.trust + delta))
            applied.append(effect)
            continue

        m = _LABEL_RE.match(effect)
        if m is not None:
            kind, label = m.group(1), m.group(2).strip()
            if kind == "tag":
                if label not in player.tags:
                    player.tags.append(label)
            else:
                manager.update_world_state(save_data, flags=[label])
            applied.append(effect)
            continue

        m = _DELTA_RE.match(effect)
        if m is None:
            ignored.append(effect)
            continue

        key, delta = m.group(1), int(m.group(2))
        if key in player.attrs:
            manager.update_player_attributes(save_data, attrs={key: player.attrs[key] + delta})
        elif key in RESOURCE_KEYS:
            manager.update_player_attributes(save_data, resources={key: getattr(player.resources, key) + delta})
        elif key == "reputation":
            manager.update_player_attributes(save_data, reputation=player.reputation + delta)
        elif key == "legend":
            manager.update_player_attributes(save_data, legend=player.legend + delta)
        elif key == "health":
            manager.update_player_attributes(save_data, health=player.health + delta)
        else:
            ignored.append(effect)
            continue
        applied.append(effect)

    return AppliedEffects(applied=tuple(applied), ignored=tuple(ignored))


def apply_response(
    *,
    manager: SaveManager,
    save_data: SaveData,
    response: AdjudicationResponse,
    logical_results: LogicalResults | None = None,
    registry: EntityRegistry | None = None,
) -> AppliedEffects:
    """Apply one adjudication outcome to the save in place.

    A response whose `event_id` is already in the event log is skipped entirely.
    Logging the event itself is left to the caller.
    """

    if response.event_id and save_data.has_event(response.event_id):
        return AppliedEffects(applied=(), ignored=(), duplicate=True)

    if logical_results is not None:
        apply_logical_results(manager=manager, save_data=save_data, results=logical_results)

    effects: list[str] = []
    if response.result is not None:
        effects.extend(response.result.effects)
    changes = response.state_changes
    if changes is not None:
        effects.extend(changes.player)

    outcome = apply_effects(manager=manager, save_data=save_data, effects=effects, registry=registry)

    if changes is not None and changes.world is not None:
        patch = changes.world
        manager.update_world_state(
            save_data,
            era=patch.era,
            flags=patch.flags or (),
            region_status=patch.region_status,
            time=patch.time,
        )
    return outcome
