from __future__ import annotations

import re

_MOVEMENT_RE = re.compile(r"前往|旅行|云游|游历|周游|赶路|跋涉|行军|出征|进军|投奔|启程|上路|\btravel|\bjourney|\bmarch")
_BATTLE_RE = re.compile(r"击杀|打败|战胜|单挑|决斗|讨伐|斩杀|攻打|厮杀|\battack|\bfight|\bduel")
_EXPEDITION_RE = re.compile(r"长途远征|出兵|行军|远征|率军|率兵|带兵出征|讨伐|攻打|进军|\bexpedition|\bcampaign")
_RETREAT_RE = re.compile(r"闭关|修炼|静养|隐居|读书|苦读|养伤|耕读|\bretreat|\bmeditat|\bstudy")


def _norm(intent: str) -> str:
    return intent.strip().lower()


def is_movement_intent(intent: str) -> bool:
    return bool(_MOVEMENT_RE.search(_norm(intent)))


def is_battle_intent(intent: str) -> bool:
    return bool(_BATTLE_RE.search(_norm(intent)))


def is_expedition_intent(intent: str) -> bool:
    return bool(_EXPEDITION_RE.search(_norm(intent)))


def is_retreat_intent(intent: str) -> bool:
    return bool(_RETREAT_RE.search(_norm(intent)))


def is_high_exertion_intent(intent: str) -> bool:
    """Combat or movement: the actions survival stats can veto."""

    return is_battle_intent(intent) or is_expedition_intent(intent) or is_movement_intent(intent)
