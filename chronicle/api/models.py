from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


SAVE_VERSION = "1.0.0"


class Stance(StrEnum):
    hostile = "hostile"
    neutral = "neutral"
    friendly = "friendly"


class RegionStatus(StrEnum):
    stable = "stable"
    turmoil = "turmoil"
    war = "war"
    fallen = "fallen"


class PrimaryGoal(StrEnum):
    unify = "unify"
    wealth = "wealth"
    fortress = "fortress"
    scholar = "scholar"
    other = "other"


class HistoryKind(StrEnum):
    year_change = "year_change"
    timeline_event = "timeline_event"
    travel = "travel"
    bond_milestone = "bond_milestone"
    crucial_memory = "crucial_memory"


class MoodTrigger(StrEnum):
    calm = "calm"
    tension = "tension"
    history = "history"


def _unique(items: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


# --- state ---


class WorldTime(BaseModel):
    year: int = Field(..., ge=1)
    month: int = Field(1, ge=1, le=12)
    day: int = Field(1, ge=1, le=31)

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.year, self.month, self.day)


class PlayerResources(BaseModel):
    gold: int = Field(50, ge=0)
    food: int = Field(100, ge=0)
    soldiers: int = Field(0, ge=0)


class PlayerLocation(BaseModel):
    region: str
    scene: str


class Aspiration(BaseModel):
    destiny_goal: str
    primary_goal: PrimaryGoal = PrimaryGoal.other


class PlayerState(BaseModel):
    id: str
    name: str | None = None
    attrs: dict[str, int] = Field(default_factory=dict)
    legend: int = 0
    # Semantically a set; order is kept only for stable serialization.
    tags: list[str] = Field(default_factory=list)
    reputation: int = 50
    resources: PlayerResources = Field(default_factory=PlayerResources)
    location: PlayerLocation
    health: int = Field(100, ge=0, le=100)
    stamina: int = Field(80, ge=0, le=100)
    status_flags: list[str] = Field(default_factory=list)
    aspiration: Aspiration | None = None

    @field_validator("tags", "status_flags")
    @classmethod
    def _dedupe(cls, v: list[str]) -> list[str]:
        return _unique(v)


class WorldState(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    era: str
    flags: list[str] = Field(default_factory=list)
    time: WorldTime
    region_status: dict[str, RegionStatus] = Field(default_factory=dict, alias="regionStatus")


class NPCState(BaseModel):
    id: str
    name: str | None = None
    stance: Stance = Stance.neutral
    trust: int = Field(50, ge=0, le=100)
    location: str | None = None
    birth_year: int | None = None
    death_year: int | None = None
    is_alive: bool | None = None


# --- persisted aggregate ---


class SaveMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: str = SAVE_VERSION
    created_at: datetime = Field(..., alias="createdAt")
    last_saved: datetime = Field(..., alias="lastSaved")
    last_auto_save: datetime | None = Field(None, alias="lastAutoSave")
    player_id: str = Field(..., alias="playerId")
    save_name: str = Field(..., alias="saveName")
    save_slot: int = Field(..., ge=0, alias="saveSlot")


class EventLogEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    event_id: str = Field(..., alias="eventId")
    player_id: str = Field(..., alias="playerId")
    triggered_at: datetime = Field(..., alias="triggeredAt")
    recorded_at: datetime = Field(..., alias="recordedAt")


class GameProgress(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_turns: int = Field(0, ge=0, alias="totalTurns")
    last_event_id: str = Field("", alias="lastEventId")
    last_event_time: datetime | None = Field(None, alias="lastEventTime")
    game_over: bool = Field(False, alias="gameOver")
    game_over_reason: str | None = Field(None, alias="gameOverReason")
    # Active negative constraint on narrative wording, carried across requests.
    banned_terms: list[str] = Field(default_factory=list, alias="bannedTerms")
    ban_rounds_left: int = Field(0, ge=0, alias="banRoundsLeft")


class HistoryLogEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: HistoryKind = Field(..., alias="type")
    text: str
    year: int
    month: int | None = None
    # Only meaningful for crucial_memory entries.
    tag: str | None = None


class SaveData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    meta: SaveMeta
    player: PlayerState
    world: WorldState
    npcs: list[NPCState] = Field(default_factory=list)
    event_log: list[EventLogEntry] = Field(default_factory=list, alias="eventLog")
    dialogue_history: list[str] = Field(default_factory=list, alias="dialogueHistory")
    progress: GameProgress = Field(default_factory=GameProgress)
    history_logs: list[HistoryLogEntry] = Field(default_factory=list, alias="historyLogs")

    @model_validator(mode="after")
    def _check_identity(self) -> "SaveData":
        npc_ids = [n.id for n in self.npcs]
        if len(npc_ids) != len(set(npc_ids)):
            raise ValueError("npcs must have unique ids")
        event_ids = [e.event_id for e in self.event_log]
        if len(event_ids) != len(set(event_ids)):
            raise ValueError("eventLog must not contain duplicate event ids")
        return self

    def has_event(self, event_id: str) -> bool:
        return any(e.event_id == event_id for e in self.event_log)

    def to_json(self, *, indent: int | None = None) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)


# --- adjudication payload ---


class EventContext(BaseModel):
    recent_dialogue: list[str]
    dialogue_rounds: int = 0
    past_milestones: list[str] = Field(default_factory=list)
    memory_tags: list[str] = Field(default_factory=list)
    # Names of instruction templates the generator should apply this turn.
    instruction_keys: list[str] = Field(default_factory=list)


class WorldChange(BaseModel):
    year: int
    month: int | None = None
    label: str
    effect: str
    summary: str | None = None


class ForcedFailure(BaseModel):
    reason: str
    cause: str | None = None
    instruction: str


class DiversityConstraint(BaseModel):
    forbidden_terms: list[str]
    rounds_remaining: int
    instruction: str


class MemoryResonance(BaseModel):
    tags: list[str]
    instruction: str


class LogicalResults(BaseModel):
    time_passed: int = 0
    time_passed_months: int = 0
    time_passed_days: int = 0
    new_time: WorldTime | None = None
    world_changes: list[WorldChange] = Field(default_factory=list)
    forced_failure: ForcedFailure | None = None
    physiological_success_factor: float | None = None
    diversity: DiversityConstraint | None = None
    perspective_switch: str | None = None
    aspiration_nudge: str | None = None
    memory_resonance: MemoryResonance | None = None
    mood_trigger: MoodTrigger | None = None
    game_over: bool = False
    game_over_reason: str | None = None


class AdjudicationRequest(BaseModel):
    player_state: PlayerState
    world_state: WorldState
    npc_state: list[NPCState] = Field(default_factory=list)
    event_context: EventContext | None = None
    player_intent: str
    logical_results: LogicalResults | None = None

    def to_wire(self) -> dict[str, Any]:
        """Serialize for the generator; absent optional parts are omitted, not null."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AdjudicationResult(BaseModel):
    narrative: str | None = None
    effects: list[str] = Field(default_factory=list)


class WorldPatch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    era: str | None = None
    flags: list[str] | None = None
    time: WorldTime | None = None
    region_status: dict[str, RegionStatus] | None = Field(None, alias="regionStatus")


class StateChanges(BaseModel):
    player: list[str] = Field(default_factory=list)
    world: WorldPatch | None = None


class AdjudicationResponse(BaseModel):
    result: AdjudicationResult | None = None
    state_changes: StateChanges | None = None
    event_id: str | None = None


# --- HTTP surface ---


class SaveCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)


class SaveImportRequest(BaseModel):
    data: str = Field(..., min_length=2)


class TurnRequest(BaseModel):
    intent: str = Field(..., max_length=500)


class SaveSummary(BaseModel):
    slot: int
    save_name: str
    player_id: str
    last_saved: datetime
    year: int
    total_turns: int


class SaveListResponse(BaseModel):
    saves: list[SaveSummary]


class TurnResponse(BaseModel):
    allowed: bool
    reason: str | None = None
    narrative: str | None = None
    effects: list[str] = Field(default_factory=list)
    logical_results: LogicalResults | None = None
    fallback: bool = False
    game_over: bool = False


class FeedbackEntry(BaseModel):
    kind: str
    recorded_at: datetime
    detail: dict[str, Any]


class FeedbackListResponse(BaseModel):
    entries: list[FeedbackEntry]
