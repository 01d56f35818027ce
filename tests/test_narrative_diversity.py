from __future__ import annotations

from chronicle.constraints.diversity import NarrativeTracker, extract_keywords, is_first_person, jaccard
from chronicle.constraints.engine import HardConstraintEngine, apply_hard_constraints
from chronicle.snapshot import build_payload

REPEATED = "残阳如血，古道西风，寒鸦掠过枯树。"


def test_extract_keywords_slices_cjk_runs_and_latin_words() -> None:
    kws = extract_keywords("古道西风 and the old road")

    assert "古道" in kws
    assert "古道西风" in kws
    assert "old" in kws and "road" in kws
    assert "and" in kws
    assert "the" in kws


def test_jaccard_bounds() -> None:
    a = frozenset({"x", "y"})
    assert jaccard(a, a) == 1.0
    assert jaccard(a, frozenset({"z"})) == 0.0
    assert jaccard(frozenset(), frozenset()) == 0.0


def test_player_lines_are_not_observed() -> None:
    tracker = NarrativeTracker.from_history(["你：走吧", REPEATED, "> look", ""])

    assert len(tracker.window) == 1


def test_overlap_needs_minimum_lines() -> None:
    tracker = NarrativeTracker.from_history([REPEATED, REPEATED])

    assert tracker.overlap_ratio(sample=5, min_lines=3) is None


def test_repetitive_narrative_triggers_negative_constraint() -> None:
    engine = HardConstraintEngine()
    tracker = NarrativeTracker.from_history([REPEATED] * 4)

    out = engine.apply(build_payload(None, "四处看看"), tracker=tracker)

    diversity = out.logical_results.diversity  # type: ignore[union-attr]
    assert diversity is not None
    assert diversity.rounds_remaining == 3
    assert "残阳" in diversity.forbidden_terms
    assert len(diversity.forbidden_terms) <= 15
    assert "残阳" in diversity.instruction


def test_varied_narrative_has_no_negative_constraint() -> None:
    engine = HardConstraintEngine()
    tracker = NarrativeTracker.from_history(["晨雾笼罩村口。", "集市上人声鼎沸。", "夜里下起了小雨。", "老者讲起黄巾旧事。"])

    out = engine.apply(build_payload(None, "四处看看"), tracker=tracker)

    assert out.logical_results.diversity is None  # type: ignore[union-attr]


def test_ban_counts_down_with_each_narrative() -> None:
    engine = HardConstraintEngine()
    tracker = NarrativeTracker.from_history([REPEATED] * 4)
    engine.apply(build_payload(None, "四处看看"), tracker=tracker)
    assert tracker.ban_rounds_left == 3

    tracker.observe("你：继续")
    assert tracker.ban_rounds_left == 3

    tracker.observe("雨后山路泥泞难行。")
    tracker.observe("远处传来犬吠。")
    out = engine.apply(build_payload(None, "四处看看"), tracker=tracker)
    assert out.logical_results.diversity.rounds_remaining == 1  # type: ignore[union-attr]

    tracker.observe("炊烟袅袅升起。")
    assert tracker.ban_rounds_left == 0
    assert tracker.banned_terms == ()


def test_perspective_switch_after_three_first_person_lines() -> None:
    engine = HardConstraintEngine()
    lines = ["我心中一动。", "我暗想此事蹊跷。", "我只觉寒意袭来。"]
    assert all(is_first_person(line) for line in lines)

    out = engine.apply(build_payload(None, "四处看看"), tracker=NarrativeTracker.from_history(lines))

    switch = out.logical_results.perspective_switch  # type: ignore[union-attr]
    assert switch is not None
    assert "第三人称" in switch


def test_short_streak_keeps_perspective() -> None:
    engine = HardConstraintEngine()
    tracker = NarrativeTracker.from_history(["山风呼啸。", "我心中一动。", "我暗想此事蹊跷。"])

    out = engine.apply(build_payload(None, "四处看看"), tracker=tracker)

    assert out.logical_results.perspective_switch is None  # type: ignore[union-attr]


def test_full_history_reaches_past_recent_dialogue() -> None:
    history = ["你：看看", REPEATED, "你：再看看", REPEATED, "你：还看", REPEATED, "你：歇一歇", "你：起身", "你：四处走走"]
    payload = build_payload(None, "四处看看", recent_dialogue=history[-5:])

    short = apply_hard_constraints(payload)
    full = apply_hard_constraints(payload, history=history)

    assert short.logical_results.diversity is None  # type: ignore[union-attr]
    diversity = full.logical_results.diversity  # type: ignore[union-attr]
    assert diversity is not None
    assert "残阳" in diversity.forbidden_terms
