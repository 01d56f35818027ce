from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from chronicle.api.models import (
    AdjudicationRequest,
    DiversityConstraint,
    ForcedFailure,
    LogicalResults,
    MemoryResonance,
    MoodTrigger,
    WorldChange,
    WorldTime,
)
from chronicle.assets.registry import Timeline
from chronicle.config import ConstraintSettings
from chronicle.constraints.diversity import NarrativeTracker
from chronicle.constraints.intents import (
    is_battle_intent,
    is_expedition_intent,
    is_high_exertion_intent,
    is_movement_intent,
    is_retreat_intent,
)
from chronicle.constraints.timeparse import advance_time, parse_duration
from chronicle.prompts import render_prompt


@dataclass(frozen=True, slots=True)
class InstructionTemplates:
    physiology_failure: str
    insufficient_food: str
    diversity: str
    perspective_switch: str
    aspiration_nudge: str
    memory_resonance: str


@dataclass(slots=True)
class ConstraintContext:
    """Per-turn working state shared by the rules.

    `payload` is the engine's private copy; rules may mutate it and `results`.
    """

    payload: AdjudicationRequest
    results: LogicalResults
    start_time: WorldTime
    tracker: NarrativeTracker
    settings: ConstraintSettings
    templates: InstructionTemplates

    @property
    def intent(self) -> str:
        return self.payload.player_intent

    @property
    def rounds(self) -> int:
        ctx = self.payload.event_context
        return ctx.dialogue_rounds if ctx is not None else 0


def hunger_from_food(food: int) -> int:
    if food <= 0:
        return 100
    return 100 - min(100, food)


class ConstraintRule(ABC):
    """One independent deterministic rule over the request payload."""

    @abstractmethod
    def apply(self, *, ctx: ConstraintContext) -> None:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class TimeSkipRule(ConstraintRule):
    def apply(self, *, ctx: ConstraintContext) -> None:
        duration = parse_duration(ctx.intent, max_years=ctx.settings.max_skip_years)
        if duration is None:
            return

        current = ctx.payload.world_state.time
        new_time = advance_time(current, duration)
        if new_time.as_tuple() <= current.as_tuple():
            return

        ctx.payload.world_state.time = new_time
        ctx.results.new_time = new_time.model_copy()
        ctx.results.time_passed = duration.whole_years
        ctx.results.time_passed_months = duration.months
        ctx.results.time_passed_days = duration.amount if duration.months == 0 else 0


@dataclass(frozen=True, slots=True)
class TimelineRule(ConstraintRule):
    """Must run after TimeSkipRule: the range ends at the new year."""

    timeline: Timeline

    def apply(self, *, ctx: ConstraintContext) -> None:
        new_time = ctx.payload.world_state.time
        if new_time.as_tuple() == ctx.start_time.as_tuple():
            return

        seen = {(c.year, c.label) for c in ctx.results.world_changes}
        for event in self.timeline.events_in_range(ctx.start_time.year, new_time.year):
            if (event.year, event.label) in seen:
                continue
            ctx.results.world_changes.append(
                WorldChange(
                    year=event.year,
                    month=event.month,
                    label=event.label,
                    effect=event.effect,
                    summary=event.summary or None,
                )
            )


@dataclass(frozen=True, slots=True)
class PhysiologyRule(ConstraintRule):
    def apply(self, *, ctx: ConstraintContext) -> None:
        player = ctx.payload.player_state
        food = player.resources.food
        health = player.health
        hunger = hunger_from_food(food)

        ctx.results.physiological_success_factor = round((health / 100) * (1 - hunger / 100), 3)

        if ctx.results.forced_failure is not None:
            return

        if food <= 0 and is_expedition_intent(ctx.intent):
            ctx.results.forced_failure = ForcedFailure(
                reason="insufficient_food",
                cause="food",
                instruction=ctx.templates.insufficient_food,
            )
            return

        low_health = health < ctx.settings.low_health
        starving = hunger > ctx.settings.high_hunger
        if not (low_health or starving) or not is_high_exertion_intent(ctx.intent):
            return

        if low_health and starving:
            cause, condition = "both", "伤重且饥饿"
        elif low_health:
            cause, condition = "health", "伤重体虚"
        else:
            cause, condition = "hunger", "饥肠辘辘"

        action_kind = "战斗" if is_battle_intent(ctx.intent) else "行动"
        ctx.results.forced_failure = ForcedFailure(
            reason="physiological_failure",
            cause=cause,
            instruction=render_prompt(
                ctx.templates.physiology_failure,
                condition=condition,
                health=health,
                hunger=hunger,
                action_kind=action_kind,
            ),
        )


@dataclass(frozen=True, slots=True)
class DiversityRule(ConstraintRule):
    def apply(self, *, ctx: ConstraintContext) -> None:
        s = ctx.settings
        tracker = ctx.tracker

        if tracker.ban_rounds_left <= 0:
            ratio = tracker.overlap_ratio(sample=s.diversity_sample_lines, min_lines=s.diversity_min_lines)
            if ratio is None or ratio <= s.diversity_overlap_ratio:
                return
            terms = tracker.overused_terms(top_n=s.diversity_top_n)
            if not terms:
                return
            tracker.ban(terms, rounds=s.negative_constraint_rounds)

        terms = list(tracker.banned_terms)
        ctx.results.diversity = DiversityConstraint(
            forbidden_terms=terms,
            rounds_remaining=tracker.ban_rounds_left,
            instruction=render_prompt(
                ctx.templates.diversity,
                rounds=tracker.ban_rounds_left,
                terms="、".join(terms),
            ),
        )


@dataclass(frozen=True, slots=True)
class PerspectiveRule(ConstraintRule):
    def apply(self, *, ctx: ConstraintContext) -> None:
        first_person, streak = ctx.tracker.perspective_streak()
        if first_person is None or streak < ctx.settings.perspective_switch_after:
            return
        if first_person:
            current, target = "第一人称内心独白", "第三人称客观白描"
        else:
            current, target = "第三人称客观描写", "第一人称心理活动或纯感官白描"
        ctx.results.perspective_switch = render_prompt(ctx.templates.perspective_switch, current=current, target=target)


@dataclass(frozen=True, slots=True)
class AspirationRule(ConstraintRule):
    def apply(self, *, ctx: ConstraintContext) -> None:
        aspiration = ctx.payload.player_state.aspiration
        if aspiration is None or not aspiration.destiny_goal.strip():
            return
        rounds = ctx.rounds
        if rounds <= 0 or rounds % ctx.settings.aspiration_interval != 0:
            return
        ctx.results.aspiration_nudge = render_prompt(ctx.templates.aspiration_nudge, goal=aspiration.destiny_goal.strip())


@dataclass(frozen=True, slots=True)
class MemoryResonanceRule(ConstraintRule):
    max_tags: int = 5

    def apply(self, *, ctx: ConstraintContext) -> None:
        event_context = ctx.payload.event_context
        if event_context is None or ctx.rounds <= ctx.settings.memory_resonance_min_rounds:
            return
        tags = event_context.memory_tags[-self.max_tags :]
        if not tags:
            return
        ctx.results.memory_resonance = MemoryResonance(
            tags=list(tags),
            instruction=render_prompt(ctx.templates.memory_resonance, tags="、".join(tags)),
        )


@dataclass(frozen=True, slots=True)
class GameOverRule(ConstraintRule):
    def apply(self, *, ctx: ConstraintContext) -> None:
        s = ctx.settings
        year = ctx.payload.world_state.time.year
        if year >= s.terminal_year:
            ctx.results.game_over = True
            ctx.results.game_over_reason = f"时代落幕：{s.terminal_year} 年天下归一"
        elif year > s.start_year + s.game_over_span_years:
            ctx.results.game_over = True
            ctx.results.game_over_reason = f"春秋已逾 {s.game_over_span_years} 载，一生行至终章"


@dataclass(frozen=True, slots=True)
class MoodRule(ConstraintRule):
    """Derived from the other rules' output; keep it last."""

    history_min_months: int = 6

    def apply(self, *, ctx: ConstraintContext) -> None:
        r = ctx.results
        if r.forced_failure is not None or is_battle_intent(ctx.intent):
            r.mood_trigger = MoodTrigger.tension
        elif r.world_changes and r.time_passed_months >= self.history_min_months:
            r.mood_trigger = MoodTrigger.history
        elif is_retreat_intent(ctx.intent) or is_movement_intent(ctx.intent):
            r.mood_trigger = MoodTrigger.calm


@dataclass(frozen=True, slots=True)
class ConstraintPipeline:
    rules: tuple[ConstraintRule, ...]

    def apply(self, *, ctx: ConstraintContext) -> None:
        for rule in self.rules:
            rule.apply(ctx=ctx)


def default_pipeline(*, timeline: Timeline) -> ConstraintPipeline:
    return ConstraintPipeline(
        rules=(
            TimeSkipRule(),
            TimelineRule(timeline=timeline),
            PhysiologyRule(),
            DiversityRule(),
            PerspectiveRule(),
            AspirationRule(),
            MemoryResonanceRule(),
            GameOverRule(),
            MoodRule(),
        )
    )
