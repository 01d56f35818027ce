from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import uuid4

from chronicle.api.models import LogicalResults, SaveData
from chronicle.assets.singleton import get_assets
from chronicle.constraints.engine import HardConstraintEngine
from chronicle.effects import apply_response
from chronicle.feedback import FeedbackLog
from chronicle.fsm import SessionFSM, SessionPhase
from chronicle.generator.base import GeneratorError, NarrativeGenerator
from chronicle.registry import EntityRegistry
from chronicle.safety import ContentGuard, contains_self_disclosure, sanitize_narrative
from chronicle.save_store import SaveManager
from chronicle.snapshot import build_payload

logger = logging.getLogger(__name__)

FALLBACK_NARRATIVE = "忽然间风沙大作，天地一片昏黄，你只得暂避片刻，再作打算。"
PLAYER_LINE_PREFIX = "你："


class SessionBusyError(ValueError):
    pass


class SessionEndedError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class TurnOutcome:
    allowed: bool
    reason: str | None = None
    narrative: str | None = None
    effects: tuple[str, ...] = ()
    logical_results: LogicalResults | None = None
    fallback: bool = False
    game_over: bool = False
    saved: bool = False


class GameSession:
    """Drives one player's turns: guard, snapshot, constraints, generator, apply, persist.

    Only one intent may be in flight; a second submission while adjudicating
    raises SessionBusyError. Once a turn reports game over the session ends
    and the save is marked so that later sessions on it start ended.
    """

    def __init__(
        self,
        *,
        manager: SaveManager,
        save_data: SaveData,
        generator: NarrativeGenerator,
        engine: HardConstraintEngine | None = None,
        guard: ContentGuard | None = None,
        feedback: FeedbackLog | None = None,
        registry: EntityRegistry | None = None,
    ) -> None:
        self.manager = manager
        self.save_data = save_data
        self.generator = generator
        self.engine = engine or HardConstraintEngine()
        self.guard = guard or ContentGuard()
        self.feedback = feedback if feedback is not None else FeedbackLog()
        self.fsm = SessionFSM(phase=SessionPhase.ended if save_data.progress.game_over else SessionPhase.ready)

        if registry is None:
            registry = EntityRegistry()
            registry.register_many("npc", get_assets().npcs.ids())
            registry.register_many("npc", (n.id for n in save_data.npcs))
        self.registry = registry

        self.tracker = self.engine.new_tracker()
        for line in save_data.dialogue_history:
            self.tracker.observe(line)
        progress = save_data.progress
        if progress.ban_rounds_left > 0:
            self.tracker.ban(progress.banned_terms, rounds=progress.ban_rounds_left)

    @classmethod
    def open(
        cls,
        *,
        manager: SaveManager,
        slot: int,
        generator: NarrativeGenerator,
        name: str = "新的旅程",
        engine: HardConstraintEngine | None = None,
        guard: ContentGuard | None = None,
        feedback: FeedbackLog | None = None,
    ) -> "GameSession":
        """Resume `slot`, or start and persist a fresh save when it is empty or unreadable."""

        save_data = manager.load(slot)
        if save_data is None:
            save_data = manager.create_new_save(slot, name)
            if not manager.save(save_data):
                logger.warning("Could not persist new save for slot %s; continuing in memory", slot)
        return cls(
            manager=manager,
            save_data=save_data,
            generator=generator,
            engine=engine,
            guard=guard,
            feedback=feedback,
        )

    @property
    def phase(self) -> SessionPhase:
        return self.fsm.phase

    async def submit_intent(self, text: str) -> TurnOutcome:
        if self.phase == SessionPhase.ended:
            raise SessionEndedError("Game has ended")
        if self.phase != SessionPhase.ready:
            raise SessionBusyError("An adjudication is already in progress")

        self.fsm.begin_turn()
        outcome: TurnOutcome | None = None
        try:
            verdict = await self.guard.check_input(text)
            if not verdict.allowed:
                return TurnOutcome(allowed=False, reason=verdict.reason)
            outcome = await self._run_turn(verdict.text or text.strip())
            return outcome
        finally:
            if outcome is not None and outcome.game_over:
                self.fsm.end()
            else:
                self.fsm.finish_turn()

    async def _run_turn(self, intent: str) -> TurnOutcome:
        payload = build_payload(self.save_data, intent, registry=self.registry)
        payload = self.engine.apply(payload, tracker=self.tracker)
        results = payload.logical_results

        try:
            response = await self.generator.adjudicate(payload)
        except GeneratorError as e:
            logger.warning("Adjudication failed, using fallback narrative: %s", e)
            self.feedback.record_adjudication_failure(payload, e)
            return TurnOutcome(allowed=True, narrative=FALLBACK_NARRATIVE, logical_results=results, fallback=True)

        raw = (response.result.narrative if response.result is not None else None) or ""
        if contains_self_disclosure(raw):
            self.feedback.record_sanitize_failure(raw, "self_disclosure")
        screened = await self.guard.check_narrative(raw)
        if not screened.allowed:
            logger.info("Generated narrative rejected by %s screen", screened.reason)
            self.feedback.record_sanitize_failure(sanitize_narrative(raw), screened.reason or "blocklist")
        narrative = screened.text or ""

        applied = apply_response(
            manager=self.manager,
            save_data=self.save_data,
            response=response,
            logical_results=results,
            registry=self.registry,
        )
        game_over = bool(results is not None and results.game_over)
        if applied.duplicate:
            return TurnOutcome(allowed=True, narrative=narrative, logical_results=results, game_over=game_over)

        self.manager.add_dialogue_history(self.save_data, [f"{PLAYER_LINE_PREFIX}{intent}", narrative])
        self.tracker.observe(narrative)
        progress = self.save_data.progress
        progress.banned_terms = list(self.tracker.banned_terms)
        progress.ban_rounds_left = self.tracker.ban_rounds_left
        if game_over:
            progress.game_over = True
            progress.game_over_reason = results.game_over_reason if results is not None else None
        self.manager.log_event(self.save_data, response.event_id or uuid4().hex)
        saved = self.manager.save(self.save_data, is_auto=True)
        if not saved:
            logger.warning("Auto-save failed for slot %s", self.save_data.meta.save_slot)

        return TurnOutcome(
            allowed=True,
            narrative=narrative,
            effects=applied.applied,
            logical_results=results,
            game_over=game_over,
            saved=saved,
        )
