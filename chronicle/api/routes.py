from __future__ import annotations

from typing import Annotated

import redis
from fastapi import APIRouter, Depends, HTTPException, Path, Response, status

from chronicle.api.deps import get_engine, get_feedback_log, get_generator, get_redis
from chronicle.api.models import (
    FeedbackEntry,
    FeedbackListResponse,
    SaveCreateRequest,
    SaveData,
    SaveImportRequest,
    SaveListResponse,
    SaveSummary,
    TurnRequest,
    TurnResponse,
)
from chronicle.constraints.engine import HardConstraintEngine
from chronicle.feedback import FeedbackLog
from chronicle.generator.base import NarrativeGenerator
from chronicle.lock import SlotBusyError, slot_lock
from chronicle.save_store import SaveManager
from chronicle.session import GameSession, SessionEndedError

router = APIRouter()

Slot = Annotated[int, Path(ge=0, le=999)]


def _require_save(manager: SaveManager, slot: int) -> SaveData:
    data = manager.load(slot)
    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Save not found")
    return data


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/saves", response_model=SaveListResponse)
async def list_saves_route(r: redis.Redis = Depends(get_redis)) -> SaveListResponse:
    saves = SaveManager(r=r).list_saves()
    return SaveListResponse(
        saves=[
            SaveSummary(
                slot=s.meta.save_slot,
                save_name=s.meta.save_name,
                player_id=s.meta.player_id,
                last_saved=s.meta.last_saved,
                year=s.world.time.year,
                total_turns=s.progress.total_turns,
            )
            for s in saves
        ]
    )


@router.post("/saves/{slot}", response_model=SaveData, status_code=status.HTTP_201_CREATED)
async def create_save_route(
    payload: SaveCreateRequest,
    slot: Slot,
    r: redis.Redis = Depends(get_redis),
) -> SaveData:
    manager = SaveManager(r=r)
    if manager.load(slot) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Save slot already in use")

    data = manager.create_new_save(slot, payload.name)
    if not manager.save(data):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Save could not be written")
    return data


@router.get("/saves/{slot}", response_model=SaveData)
async def get_save_route(slot: Slot, r: redis.Redis = Depends(get_redis)) -> SaveData:
    return _require_save(SaveManager(r=r), slot)


@router.delete("/saves/{slot}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_save_route(slot: Slot, r: redis.Redis = Depends(get_redis)) -> Response:
    if not SaveManager(r=r).delete_save(slot):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Save not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/saves/{slot}/export")
async def export_save_route(slot: Slot, r: redis.Redis = Depends(get_redis)) -> dict[str, str]:
    exported = SaveManager(r=r).export_save(slot)
    if exported is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Save not found")
    return {"data": exported}


@router.post("/saves/{slot}/import", response_model=SaveData, status_code=status.HTTP_201_CREATED)
async def import_save_route(
    payload: SaveImportRequest,
    slot: Slot,
    r: redis.Redis = Depends(get_redis),
) -> SaveData:
    manager = SaveManager(r=r)
    if not manager.import_save(payload.data, slot):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Malformed save data")
    return _require_save(manager, slot)


@router.post("/saves/{slot}/turn", response_model=TurnResponse)
async def turn_route(
    payload: TurnRequest,
    slot: Slot,
    r: redis.Redis = Depends(get_redis),
    generator: NarrativeGenerator = Depends(get_generator),
    engine: HardConstraintEngine = Depends(get_engine),
    feedback: FeedbackLog = Depends(get_feedback_log),
) -> TurnResponse:
    manager = SaveManager(r=r)

    try:
        with slot_lock(r=r, slot=slot):
            data = _require_save(manager, slot)
            session = GameSession(
                manager=manager,
                save_data=data,
                generator=generator,
                engine=engine,
                feedback=feedback,
            )
            outcome = await session.submit_intent(payload.intent)
    except (SlotBusyError, SessionEndedError) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    return TurnResponse(
        allowed=outcome.allowed,
        reason=outcome.reason,
        narrative=outcome.narrative,
        effects=list(outcome.effects),
        logical_results=outcome.logical_results,
        fallback=outcome.fallback,
        game_over=outcome.game_over,
    )


@router.get("/feedback", response_model=FeedbackListResponse)
async def feedback_route(feedback: FeedbackLog = Depends(get_feedback_log)) -> FeedbackListResponse:
    return FeedbackListResponse(
        entries=[FeedbackEntry(kind=e.kind.value, recorded_at=e.recorded_at, detail=e.detail) for e in feedback.all()]
    )
