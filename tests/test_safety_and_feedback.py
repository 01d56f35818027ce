from __future__ import annotations

import random

import pytest

from chronicle.feedback import FeedbackKind, FeedbackLog
from chronicle.generator.base import GeneratorTransportError
from chronicle.safety import (
    BLOCKLIST_REASONS,
    EMPTY_INPUT_REASON,
    NARRATIVE_REJECT_REASON,
    REMOTE_REJECT_REASON,
    SELF_DISCLOSURE_REPLACEMENT,
    ContentGuard,
    contains_self_disclosure,
    hits_blocklist,
    sanitize_narrative,
)
from chronicle.snapshot import build_payload


@pytest.mark.asyncio
async def test_empty_input_is_rejected() -> None:
    result = await ContentGuard().check_input("   ")

    assert result.allowed is False
    assert result.reason == EMPTY_INPUT_REASON


@pytest.mark.asyncio
async def test_blocklisted_input_gets_in_world_reason() -> None:
    guard = ContentGuard(rng=random.Random(7))

    result = await guard.check_input("我想下载外挂")

    assert result.allowed is False
    assert result.reason in BLOCKLIST_REASONS


@pytest.mark.asyncio
async def test_clean_input_is_allowed_and_stripped() -> None:
    result = await ContentGuard().check_input("  拜访村中老者  ")

    assert result.allowed is True
    assert result.text == "拜访村中老者"


@pytest.mark.asyncio
async def test_remote_check_runs_after_local_list() -> None:
    seen: list[str] = []

    async def remote(text: str) -> bool:
        seen.append(text)
        return False

    guard = ContentGuard(remote_check=remote)

    assert (await guard.check_input("赌博一把")).allowed is False
    assert seen == []

    result = await guard.check_input("拜访村中老者")
    assert result.allowed is False
    assert result.reason == REMOTE_REJECT_REASON
    assert seen == ["拜访村中老者"]


@pytest.mark.asyncio
async def test_blocklisted_narrative_is_replaced() -> None:
    result = await ContentGuard().check_narrative("街头有人聚众赌博，传销头目四处诈骗。")

    assert result.allowed is False
    assert result.reason == "blocklist"
    assert result.text == NARRATIVE_REJECT_REASON


@pytest.mark.asyncio
async def test_narrative_is_softened_before_screening() -> None:
    seen: list[str] = []

    async def remote(text: str) -> bool:
        seen.append(text)
        return True

    result = await ContentGuard(remote_check=remote).check_narrative("城下一片血腥。")

    assert result.allowed is True
    assert result.text == "城下一片肃杀之气。"
    assert seen == ["城下一片肃杀之气。"]


@pytest.mark.asyncio
async def test_remote_rejection_replaces_narrative() -> None:
    async def remote(text: str) -> bool:
        return False

    result = await ContentGuard(remote_check=remote).check_narrative("月下独酌。")

    assert result.allowed is False
    assert result.reason == "remote"
    assert result.text == NARRATIVE_REJECT_REASON


def test_blocklist_matching_is_case_insensitive() -> None:
    assert hits_blocklist("Cheat", blocklist=("cheat",))
    assert hits_blocklist("CHEAT codes", blocklist=("cheat",))
    assert not hits_blocklist("村口的老槐树")


def test_sanitize_replaces_risky_phrases_and_debris() -> None:
    out = sanitize_narrative("战场上一片血腥\ufffd\ufffd，血溅三尺。")

    assert "血腥" not in out
    assert "\ufffd" not in out
    assert "肃杀之气" in out
    assert "兵戈所及" in out


@pytest.mark.parametrize(
    "text",
    ["作为一个语言模型，我无法回答。", "As an AI language model, I cannot.", "我是一个AI助手。"],
)
def test_self_disclosure_is_masked(text: str) -> None:
    assert contains_self_disclosure(text)

    out = sanitize_narrative(text)

    assert SELF_DISCLOSURE_REPLACEMENT in out
    assert not contains_self_disclosure(out)


def test_feedback_log_keeps_last_five() -> None:
    log = FeedbackLog()
    payload = build_payload(None, "四处看看")

    for i in range(7):
        log.record_adjudication_failure(payload, GeneratorTransportError(f"fail {i}"))

    assert len(log) == 5
    latest = log.latest()
    assert latest is not None
    assert latest.kind == FeedbackKind.adjudication_failure
    assert latest.detail["error"] == "GeneratorTransportError: fail 6"
    assert latest.detail["player_intent"] == "四处看看"
    assert log.all()[0].detail["error"] == "GeneratorTransportError: fail 2"

    log.clear()
    assert log.latest() is None


def test_sanitize_failure_truncates_narrative() -> None:
    log = FeedbackLog()

    log.record_sanitize_failure("长" * 800, "self_disclosure")

    entry = log.latest()
    assert entry is not None
    assert entry.kind == FeedbackKind.sanitize_failure
    assert len(entry.detail["narrative"]) == 500
    assert entry.detail["reason"] == "self_disclosure"
