from __future__ import annotations

from collections.abc import Sequence

from chronicle.api.models import (
    AdjudicationRequest,
    EventContext,
    HistoryKind,
    NPCState,
    SaveData,
)
from chronicle.assets.singleton import get_assets
from chronicle.constraints.intents import is_movement_intent
from chronicle.defaults import default_npcs, default_player, default_world
from chronicle.registry import EntityRegistry

RECENT_DIALOGUE_LINES = 5
PAST_MILESTONES_COUNT = 3

PLAYER_LINE_PREFIXES = ("你：", "你说：", "你:", "> ")


def is_player_line(line: str) -> bool:
    return line.strip().startswith(PLAYER_LINE_PREFIXES)


def count_dialogue_rounds(history: Sequence[str]) -> int:
    return sum(1 for line in history if is_player_line(line))


def _is_dead(npc: NPCState, *, year: int) -> bool:
    if npc.is_alive is False:
        return True
    death_year = npc.death_year
    if death_year is None:
        death_year = get_assets().npcs.death_year(npc.id)
    return death_year is not None and death_year < year


def build_payload(
    save_data: SaveData | None,
    player_intent: str,
    recent_dialogue: Sequence[str] | None = None,
    *,
    registry: EntityRegistry | None = None,
) -> AdjudicationRequest:
    """Compress the current save (or the defaults) plus an intent into a generator request.

    Never mutates `save_data`. NPCs pass through the registry allow-list and
    dead NPCs are dropped. `event_context` is omitted when there is no recent
    dialogue to send.
    """

    if save_data is not None:
        player = save_data.player.model_copy(deep=True)
        world = save_data.world.model_copy(deep=True)
        npcs = [n.model_copy(deep=True) for n in save_data.npcs]
        history = list(save_data.dialogue_history)
        history_logs = list(save_data.history_logs)
    else:
        player = default_player()
        world = default_world()
        npcs = default_npcs(year=world.time.year)
        history = []
        history_logs = []

    if registry is not None:
        npcs = registry.filter_entities("npc", npcs)
    npcs = [n for n in npcs if not _is_dead(n, year=world.time.year)]

    if recent_dialogue is None:
        recent = history[-RECENT_DIALOGUE_LINES:]
    else:
        recent = list(recent_dialogue)

    event_context: EventContext | None = None
    if recent:
        keys = ["env_sensory"]
        if is_movement_intent(player_intent):
            keys.append("travel_background")
        if player.aspiration is not None:
            keys.append("aspiration")

        memory_tags: list[str] = []
        for entry in history_logs:
            if entry.kind == HistoryKind.crucial_memory and entry.tag and entry.tag not in memory_tags:
                memory_tags.append(entry.tag)

        event_context = EventContext(
            recent_dialogue=recent,
            dialogue_rounds=count_dialogue_rounds(history),
            past_milestones=[e.text for e in history_logs[-PAST_MILESTONES_COUNT:]],
            memory_tags=memory_tags,
            instruction_keys=keys,
        )

    return AdjudicationRequest(
        player_state=player,
        world_state=world,
        npc_state=npcs,
        event_context=event_context,
        player_intent=player_intent,
    )
