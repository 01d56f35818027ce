from __future__ import annotations

import random
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

# Remote moderation: (text) -> allowed. None means the capability is absent.
RemoteCheck = Callable[[str], Awaitable[bool]]

LOCAL_BLOCKLIST: tuple[str, ...] = (
    "作弊器",
    "外挂",
    "暴恐",
    "低俗",
    "赌博",
    "政治敏感",
    "涉黄",
    "违法",
    "恐怖袭击",
    "色情",
    "反动",
    "暴力",
    "血腥",
    "毒品",
    "诈骗",
    "传销",
    "邪教",
    "分裂",
    "颠覆",
)

BLOCKLIST_REASONS: tuple[str, ...] = (
    "此举有违天道，请重新思虑。",
    "乾坤倒错，慎言！",
    "此问有干天和，还请收回。",
)

EMPTY_INPUT_REASON = "请输入有效内容"
REMOTE_REJECT_REASON = "内容未通过平台审核，请调整后再试"
NARRATIVE_REJECT_REASON = "生成内容未通过审核，已替换为系统回复"

# Soft replacements applied to generated narrative before it is shown or re-checked.
NARRATIVE_RISK_REPLACEMENTS: tuple[tuple[str, str], ...] = (
    ("血腥", "肃杀之气"),
    ("血溅", "兵戈所及"),
    ("头颅悬", "事已至此"),
)

SELF_DISCLOSURE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"作为一个\s*语言\s*模型", re.IGNORECASE),
    re.compile(r"作为\s*一个\s*AI", re.IGNORECASE),
    re.compile(r"As\s+an?\s+AI\s+language\s+model", re.IGNORECASE),
    re.compile(r"I\s+am\s+(?:an?\s+)?(?:AI|language\s+model|assistant)", re.IGNORECASE),
    re.compile(r"我是\s*(?:一个\s*)?(?:AI|语言模型|助手)", re.IGNORECASE),
)
SELF_DISCLOSURE_REPLACEMENT = "（系统忙碌中）"

_REPLACEMENT_CHARS_RE = re.compile("\ufffd+")


@dataclass(frozen=True, slots=True)
class GuardResult:
    allowed: bool
    reason: str | None = None
    text: str | None = None


def hits_blocklist(text: str, *, blocklist: tuple[str, ...] = LOCAL_BLOCKLIST) -> bool:
    normalized = text.casefold()
    return any(word.casefold() in normalized for word in blocklist)


def contains_self_disclosure(text: str) -> bool:
    return any(p.search(text) for p in SELF_DISCLOSURE_PATTERNS)


def replace_self_disclosure(text: str) -> str:
    for p in SELF_DISCLOSURE_PATTERNS:
        text = p.sub(SELF_DISCLOSURE_REPLACEMENT, text)
    return text


def sanitize_narrative(text: str) -> str:
    """Soft-replace risky phrases, drop U+FFFD debris, and mask model self-disclosure."""

    out = _REPLACEMENT_CHARS_RE.sub("", text)
    for src, dst in NARRATIVE_RISK_REPLACEMENTS:
        out = out.replace(src, dst)
    return replace_self_disclosure(out)


@dataclass(slots=True)
class ContentGuard:
    """Screens player input and generated narrative. A rejection is a normal result, never an exception."""

    remote_check: RemoteCheck | None = None
    blocklist: tuple[str, ...] = LOCAL_BLOCKLIST
    rng: random.Random = field(default_factory=random.Random)

    async def check_input(self, text: str) -> GuardResult:
        stripped = text.strip()
        if not stripped:
            return GuardResult(allowed=False, reason=EMPTY_INPUT_REASON)
        if hits_blocklist(stripped, blocklist=self.blocklist):
            return GuardResult(allowed=False, reason=self.rng.choice(BLOCKLIST_REASONS))
        if self.remote_check is not None and not await self.remote_check(stripped):
            return GuardResult(allowed=False, reason=REMOTE_REJECT_REASON)
        return GuardResult(allowed=True, text=stripped)

    async def check_narrative(self, text: str) -> GuardResult:
        """Soften `text`, then screen it locally and remotely.

        On rejection `text` carries the replacement line to show and persist
        in place of the narrative, and `reason` names the failed screen.
        """

        softened = sanitize_narrative(text)
        if hits_blocklist(softened, blocklist=self.blocklist):
            return GuardResult(allowed=False, reason="blocklist", text=NARRATIVE_REJECT_REASON)
        if self.remote_check is not None and softened.strip() and not await self.remote_check(softened):
            return GuardResult(allowed=False, reason="remote", text=NARRATIVE_REJECT_REASON)
        return GuardResult(allowed=True, text=softened)
