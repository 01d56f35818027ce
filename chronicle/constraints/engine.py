from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from chronicle.api.models import AdjudicationRequest, LogicalResults
from chronicle.assets.registry import Timeline
from chronicle.assets.singleton import get_assets
from chronicle.config import ConstraintSettings
from chronicle.constraints.diversity import NarrativeTracker
from chronicle.constraints.rules import (
    ConstraintContext,
    ConstraintPipeline,
    InstructionTemplates,
    default_pipeline,
)
from chronicle.prompts import load_prompt


def load_instruction_templates(*, root: Path | None = None) -> InstructionTemplates:
    return InstructionTemplates(
        physiology_failure=load_prompt("physiology_failure.txt", root=root),
        insufficient_food=load_prompt("insufficient_food.txt", root=root),
        diversity=load_prompt("diversity.txt", root=root),
        perspective_switch=load_prompt("perspective_switch.txt", root=root),
        aspiration_nudge=load_prompt("aspiration_nudge.txt", root=root),
        memory_resonance=load_prompt("memory_resonance.txt", root=root),
    )


class HardConstraintEngine:
    """Runs the constraint pipeline over a request and returns an annotated copy.

    The input payload is never mutated. An existing `logical_results` block is
    extended, not replaced.
    """

    def __init__(
        self,
        *,
        settings: ConstraintSettings | None = None,
        timeline: Timeline | None = None,
        templates: InstructionTemplates | None = None,
        pipeline: ConstraintPipeline | None = None,
    ) -> None:
        self.settings = settings or ConstraintSettings()
        self.timeline = timeline if timeline is not None else get_assets().timeline
        self.templates = templates or load_instruction_templates()
        self.pipeline = pipeline or default_pipeline(timeline=self.timeline)

    def new_tracker(self) -> NarrativeTracker:
        return NarrativeTracker(lookback=self.settings.diversity_lookback_rounds)

    def apply(
        self,
        payload: AdjudicationRequest,
        *,
        tracker: NarrativeTracker | None = None,
        history: Sequence[str] | None = None,
    ) -> AdjudicationRequest:
        """Annotate a copy of `payload` with the pipeline's logical results.

        Without a `tracker`, one is built from `history` (the full dialogue
        history, player lines included) or, failing that, from the at most
        five lines of `event_context.recent_dialogue`. Only the first two
        give the diversity check its full lookback window.
        """

        out = payload.model_copy(deep=True)
        results = out.logical_results or LogicalResults()

        if tracker is None:
            if history is None:
                history = out.event_context.recent_dialogue if out.event_context is not None else []
            tracker = NarrativeTracker.from_history(history, lookback=self.settings.diversity_lookback_rounds)

        ctx = ConstraintContext(
            payload=out,
            results=results,
            start_time=out.world_state.time.model_copy(),
            tracker=tracker,
            settings=self.settings,
            templates=self.templates,
        )
        self.pipeline.apply(ctx=ctx)

        out.logical_results = results
        return out


_DEFAULT_ENGINE: HardConstraintEngine | None = None


def apply_hard_constraints(payload: AdjudicationRequest, *, history: Sequence[str] | None = None) -> AdjudicationRequest:
    """Stateless entry point using the loaded assets and default thresholds.

    Pass the save's dialogue history as `history` so that repetition older
    than `event_context.recent_dialogue` still counts.
    """

    global _DEFAULT_ENGINE
    if _DEFAULT_ENGINE is None:
        _DEFAULT_ENGINE = HardConstraintEngine()
    return _DEFAULT_ENGINE.apply(payload, history=history)


def reset_default_engine_for_tests() -> None:
    global _DEFAULT_ENGINE
    _DEFAULT_ENGINE = None
