from __future__ import annotations

from enum import StrEnum

from statemachine import State, StateMachine


class SessionPhase(StrEnum):
    ready = "ready"
    adjudicating = "adjudicating"
    ended = "ended"


class SessionFSM(StateMachine):
    """Lifecycle of one player session.

    - ready -> adjudicating -> ready, one intent at a time
    - any -> ended on game over; nothing leaves ended
    """

    ready = State(SessionPhase.ready.value, value=SessionPhase.ready.value, initial=True)
    adjudicating = State(SessionPhase.adjudicating.value, value=SessionPhase.adjudicating.value)
    ended = State(SessionPhase.ended.value, value=SessionPhase.ended.value, final=True)

    begin_turn = ready.to(adjudicating)
    finish_turn = adjudicating.to(ready)
    end = ready.to(ended) | adjudicating.to(ended)

    def __init__(self, *, phase: SessionPhase = SessionPhase.ready):
        super().__init__(start_value=phase.value)

    @property
    def phase(self) -> SessionPhase:
        return SessionPhase(str(self.current_state.value))
