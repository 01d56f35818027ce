from __future__ import annotations

import pytest

from chronicle.api.models import (
    AdjudicationRequest,
    Aspiration,
    EventContext,
    LogicalResults,
    MoodTrigger,
    WorldTime,
)
from chronicle.config import ConstraintSettings
from chronicle.constraints.engine import HardConstraintEngine, apply_hard_constraints
from chronicle.snapshot import build_payload


@pytest.fixture()
def engine() -> HardConstraintEngine:
    return HardConstraintEngine()


def _payload(intent: str, *, year: int = 184, month: int = 2, food: int = 100, health: int = 100) -> AdjudicationRequest:
    payload = build_payload(None, intent)
    payload.world_state.time = WorldTime(year=year, month=month, day=1)
    payload.player_state.resources.food = food
    payload.player_state.health = health
    return payload


def test_retreat_five_years_from_184(engine: HardConstraintEngine) -> None:
    out = engine.apply(_payload("闭关 5 年"))

    assert out.logical_results is not None
    assert out.logical_results.time_passed == 5
    assert out.logical_results.time_passed_months == 60
    assert out.world_state.time.year == 189
    assert out.logical_results.new_time is not None
    assert out.logical_results.new_time.year == 189


def test_module_level_entry_point_matches_engine() -> None:
    out = apply_hard_constraints(_payload("闭关 5 年"))

    assert out.logical_results is not None
    assert out.logical_results.time_passed == 5
    assert out.world_state.time.year == 189


def test_input_payload_is_not_mutated(engine: HardConstraintEngine) -> None:
    payload = _payload("闭关 5 年")

    engine.apply(payload)

    assert payload.world_state.time.year == 184
    assert payload.logical_results is None


def test_timeline_events_between_old_and_new_year(engine: HardConstraintEngine) -> None:
    out = engine.apply(_payload("隐居六年"))

    assert out.world_state.time.year == 190
    changes = out.logical_results.world_changes  # type: ignore[union-attr]
    years = [c.year for c in changes]
    labels = [c.label for c in changes]
    assert 189 in years
    assert "董卓入京" in labels
    # Inclusive range: both endpoints count, nothing past 190.
    assert 184 in years and 190 in years
    assert max(years) == 190
    assert all(c.effect for c in changes)


def test_no_skip_means_no_time_change_and_no_world_changes(engine: HardConstraintEngine) -> None:
    out = engine.apply(_payload("与村中老者攀谈"))

    r = out.logical_results
    assert r is not None
    assert r.time_passed == 0
    assert r.new_time is None
    assert r.world_changes == []
    assert out.world_state.time.as_tuple() == (184, 2, 1)


@pytest.mark.parametrize("intent", ["闭关许多年", "回到184年", "???", "", "闭关 0 年"])
def test_malformed_intent_never_raises(engine: HardConstraintEngine, intent: str) -> None:
    out = engine.apply(_payload(intent))

    assert out.logical_results is not None
    assert out.world_state.time.year == 184


def test_existing_logical_results_are_extended(engine: HardConstraintEngine) -> None:
    payload = _payload("闭关 5 年")
    payload.logical_results = LogicalResults(aspiration_nudge="keep me")

    out = engine.apply(payload)

    assert out.logical_results is not None
    assert out.logical_results.aspiration_nudge == "keep me"
    assert out.logical_results.time_passed == 5


def test_low_health_blocks_combat(engine: HardConstraintEngine) -> None:
    out = engine.apply(_payload("单挑山贼头目", health=10))

    failure = out.logical_results.forced_failure  # type: ignore[union-attr]
    assert failure is not None
    assert failure.reason == "physiological_failure"
    assert failure.cause == "health"
    assert "失败" in failure.instruction
    assert out.logical_results.mood_trigger == MoodTrigger.tension  # type: ignore[union-attr]


def test_hunger_blocks_travel(engine: HardConstraintEngine) -> None:
    out = engine.apply(_payload("启程前往洛阳", food=10))

    failure = out.logical_results.forced_failure  # type: ignore[union-attr]
    assert failure is not None
    assert failure.cause == "hunger"


def test_weak_player_may_still_talk(engine: HardConstraintEngine) -> None:
    out = engine.apply(_payload("与老者攀谈", health=10, food=50))

    r = out.logical_results
    assert r is not None
    assert r.forced_failure is None
    assert r.physiological_success_factor == pytest.approx(0.05)


def test_expedition_without_food_fails(engine: HardConstraintEngine) -> None:
    out = engine.apply(_payload("率军远征辽东", food=0))

    failure = out.logical_results.forced_failure  # type: ignore[union-attr]
    assert failure is not None
    assert failure.reason == "insufficient_food"


def test_healthy_player_gets_full_success_factor(engine: HardConstraintEngine) -> None:
    out = engine.apply(_payload("单挑山贼头目"))

    assert out.logical_results.forced_failure is None  # type: ignore[union-attr]
    assert out.logical_results.physiological_success_factor == 1.0  # type: ignore[union-attr]


def _with_rounds(payload: AdjudicationRequest, rounds: int, *, memory_tags: list[str] | None = None) -> AdjudicationRequest:
    payload.event_context = EventContext(
        recent_dialogue=["你：……"],
        dialogue_rounds=rounds,
        memory_tags=memory_tags or [],
    )
    return payload


def test_aspiration_nudge_every_tenth_round(engine: HardConstraintEngine) -> None:
    payload = _with_rounds(_payload("四处看看"), 20)
    payload.player_state.aspiration = Aspiration(destiny_goal="匡扶汉室")

    out = engine.apply(payload)
    assert out.logical_results.aspiration_nudge is not None  # type: ignore[union-attr]
    assert "匡扶汉室" in out.logical_results.aspiration_nudge  # type: ignore[union-attr,operator]

    off_round = _with_rounds(_payload("四处看看"), 21)
    off_round.player_state.aspiration = Aspiration(destiny_goal="匡扶汉室")
    assert engine.apply(off_round).logical_results.aspiration_nudge is None  # type: ignore[union-attr]


def test_no_aspiration_no_nudge(engine: HardConstraintEngine) -> None:
    out = engine.apply(_with_rounds(_payload("四处看看"), 10))

    assert out.logical_results.aspiration_nudge is None  # type: ignore[union-attr]


def test_memory_resonance_only_after_fifty_rounds(engine: HardConstraintEngine) -> None:
    early = engine.apply(_with_rounds(_payload("四处看看"), 50, memory_tags=["阿石"]))
    assert early.logical_results.memory_resonance is None  # type: ignore[union-attr]

    late = engine.apply(_with_rounds(_payload("四处看看"), 51, memory_tags=["阿石"]))
    resonance = late.logical_results.memory_resonance  # type: ignore[union-attr]
    assert resonance is not None
    assert resonance.tags == ["阿石"]
    assert "阿石" in resonance.instruction


def test_game_over_after_sixty_year_span(engine: HardConstraintEngine) -> None:
    assert engine.apply(_payload("四处看看", year=244)).logical_results.game_over is False  # type: ignore[union-attr]

    out = engine.apply(_payload("四处看看", year=245))
    assert out.logical_results.game_over is True  # type: ignore[union-attr]
    assert out.logical_results.game_over_reason  # type: ignore[union-attr]


def test_game_over_at_terminal_year() -> None:
    engine = HardConstraintEngine(settings=ConstraintSettings(start_year=220))

    out = engine.apply(_payload("四处看看", year=280))

    assert out.logical_results.game_over is True  # type: ignore[union-attr]


def test_game_over_reached_through_time_skip(engine: HardConstraintEngine) -> None:
    out = engine.apply(_payload("隐居十年", year=240))

    assert out.world_state.time.year == 250
    assert out.logical_results.game_over is True  # type: ignore[union-attr]


def test_history_mood_after_long_skip_with_events(engine: HardConstraintEngine) -> None:
    out = engine.apply(_payload("隐居六年"))

    assert out.logical_results.mood_trigger == MoodTrigger.history  # type: ignore[union-attr]


def test_calm_mood_for_short_retreat(engine: HardConstraintEngine) -> None:
    out = engine.apply(_payload("闭关七天"))

    assert out.logical_results.mood_trigger == MoodTrigger.calm  # type: ignore[union-attr]
