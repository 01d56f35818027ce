from __future__ import annotations

import re
from collections import Counter, deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from chronicle.snapshot import is_player_line

_CJK_RUN_RE = re.compile(r"[一-鿿]+")
_WORD_RE = re.compile(r"[A-Za-z]{3,}")
_FIRST_PERSON_RE = re.compile(r"我|心中|暗想|自忖|暗忖|心想|只觉|恍若|仿佛|\bI\b|\bmy\b", re.IGNORECASE)


def extract_keywords(text: str) -> list[str]:
    """Candidate keywords of one narrative line, with repeats.

    CJK runs yield every 2-4 character slice; latin text yields lowercase words.
    """

    out: list[str] = []
    for run in _CJK_RUN_RE.findall(text):
        for i in range(len(run) - 1):
            for size in range(2, 5):
                if i + size > len(run):
                    break
                out.append(run[i : i + size])
    out.extend(w.lower() for w in _WORD_RE.findall(text))
    return out


def is_first_person(text: str) -> bool:
    return bool(_FIRST_PERSON_RE.search(text))


def jaccard(a: frozenset[str], b: frozenset[str]) -> float:
    if not a and not b:
        return 0.0
    return len(a & b) / len(a | b)


@dataclass(frozen=True, slots=True)
class NarrativeObservation:
    keywords: tuple[str, ...]
    first_person: bool

    @property
    def keyword_set(self) -> frozenset[str]:
        return frozenset(self.keywords)

    @staticmethod
    def from_text(text: str) -> "NarrativeObservation":
        return NarrativeObservation(keywords=tuple(extract_keywords(text)), first_person=is_first_person(text))


@dataclass(slots=True)
class NarrativeTracker:
    """Rolling window over recent system narrative plus the active negative constraint.

    Player lines are ignored. Each observed narrative ticks down the rounds left
    on an active ban.
    """

    lookback: int = 10
    _window: deque[NarrativeObservation] = field(init=False)
    banned_terms: tuple[str, ...] = ()
    ban_rounds_left: int = 0

    def __post_init__(self) -> None:
        self._window = deque(maxlen=self.lookback)

    @staticmethod
    def from_history(lines: Iterable[str], *, lookback: int = 10) -> "NarrativeTracker":
        tracker = NarrativeTracker(lookback=lookback)
        for line in lines:
            tracker.observe(line)
        return tracker

    def observe(self, narrative: str) -> None:
        if not narrative.strip() or is_player_line(narrative):
            return
        self._window.append(NarrativeObservation.from_text(narrative))
        if self.ban_rounds_left > 0:
            self.ban_rounds_left -= 1
            if self.ban_rounds_left == 0:
                self.banned_terms = ()

    def ban(self, terms: Sequence[str], *, rounds: int) -> None:
        self.banned_terms = tuple(terms)
        self.ban_rounds_left = rounds if terms else 0

    @property
    def window(self) -> tuple[NarrativeObservation, ...]:
        return tuple(self._window)

    def overlap_ratio(self, *, sample: int, min_lines: int) -> float | None:
        """Mean Jaccard overlap of consecutive keyword sets over the last `sample` lines.

        None when fewer than `min_lines` lines are available.
        """

        recent = self.window[-sample:]
        if len(recent) < max(2, min_lines):
            return None
        pairs = list(zip(recent, recent[1:]))
        return sum(jaccard(a.keyword_set, b.keyword_set) for a, b in pairs) / len(pairs)

    def overused_terms(self, *, top_n: int, min_count: int = 2) -> list[str]:
        counts: Counter[str] = Counter()
        for obs in self._window:
            counts.update(obs.keywords)
        return [term for term, n in counts.most_common() if n >= min_count][:top_n]

    def perspective_streak(self) -> tuple[bool | None, int]:
        """(first_person, length) of the trailing run of same-perspective lines."""

        if not self._window:
            return (None, 0)
        last = self._window[-1].first_person
        streak = 0
        for obs in reversed(self._window):
            if obs.first_person != last:
                break
            streak += 1
        return (last, streak)
