from __future__ import annotations

from chronicle.api.models import (
    NPCState,
    PlayerLocation,
    PlayerResources,
    PlayerState,
    RegionStatus,
    Stance,
    WorldState,
    WorldTime,
)
from chronicle.assets.singleton import get_assets

DEFAULT_PLAYER_ID = "player_001"
START_YEAR = 184


def default_player(*, player_id: str = DEFAULT_PLAYER_ID, name: str | None = None) -> PlayerState:
    return PlayerState(
        id=player_id,
        name=name,
        attrs={"strength": 75, "intelligence": 82, "charm": 68, "luck": 55},
        legend=30,
        tags=["civilian"],
        reputation=50,
        resources=PlayerResources(gold=50, food=100, soldiers=0),
        location=PlayerLocation(region="yingchuan", scene="village"),
        health=100,
        stamina=80,
    )


def default_world() -> WorldState:
    return WorldState(
        era=str(START_YEAR),
        flags=["taipingdao_spread=high"],
        time=WorldTime(year=START_YEAR, month=2, day=1),
        region_status={
            "jingzhou": RegionStatus.stable,
            "yuzhou": RegionStatus.turmoil,
            "jizhou": RegionStatus.stable,
        },
    )


def default_npcs(*, year: int = START_YEAR) -> list[NPCState]:
    """Roster NPCs alive in `year`, in roster order."""

    out: list[NPCState] = []
    for p in get_assets().npcs.profiles:
        if not p.alive_in(year):
            continue
        try:
            stance = Stance(p.stance)
        except ValueError:
            stance = Stance.neutral
        out.append(
            NPCState(
                id=p.id,
                name=p.name,
                stance=stance,
                trust=max(0, min(100, p.trust)),
                location=p.region or None,
                birth_year=p.birth_year,
                death_year=p.death_year,
                is_alive=True,
            )
        )
    return out
