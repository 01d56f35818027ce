from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from chronicle.api.models import AdjudicationRequest

MAX_FEEDBACK_ENTRIES = 5
MAX_NARRATIVE_CHARS = 500


class FeedbackKind(StrEnum):
    adjudication_failure = "adjudication_failure"
    sanitize_failure = "sanitize_failure"


@dataclass(frozen=True, slots=True)
class FeedbackSnapshot:
    kind: FeedbackKind
    recorded_at: datetime
    detail: dict[str, Any]


@dataclass(slots=True)
class FeedbackLog:
    """Ring buffer of the last few adjudication and safety failures, for diagnostics only."""

    maxlen: int = MAX_FEEDBACK_ENTRIES
    _entries: deque[FeedbackSnapshot] = field(init=False)

    def __post_init__(self) -> None:
        self._entries = deque(maxlen=self.maxlen)

    def record_adjudication_failure(self, request: AdjudicationRequest, error: BaseException) -> None:
        self._entries.append(
            FeedbackSnapshot(
                kind=FeedbackKind.adjudication_failure,
                recorded_at=datetime.now(tz=UTC),
                detail={
                    "error": f"{type(error).__name__}: {error}",
                    "player_intent": request.player_intent,
                    "world_time": request.world_state.time.model_dump(),
                    "location": request.player_state.location.model_dump(),
                },
            )
        )

    def record_sanitize_failure(self, narrative: str, reason: str) -> None:
        self._entries.append(
            FeedbackSnapshot(
                kind=FeedbackKind.sanitize_failure,
                recorded_at=datetime.now(tz=UTC),
                detail={"narrative": narrative[:MAX_NARRATIVE_CHARS], "reason": reason},
            )
        )

    def latest(self) -> FeedbackSnapshot | None:
        return self._entries[-1] if self._entries else None

    def all(self) -> list[FeedbackSnapshot]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
