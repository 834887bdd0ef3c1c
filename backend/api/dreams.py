"""
Dream endpoints: creation, listing, edits, reordering, story regeneration, deletion.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from api.ideas import now_position
from dependencies import get_broker, get_current_user_id, get_pipeline_deps, get_store
from helpers.ai_helpers import PipelineDeps, run_dream_story
from helpers.auth import load_owned_record
from helpers.events import EventBroker
from helpers.record_store import RecordStore
from models.schemas import DREAMS_TABLE, CreateDreamRequest, MoveRequest, UpdateDreamRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/dreams", tags=["Dreams"])


def _restart_story(deps: PipelineDeps, dream: dict, fields: dict) -> int:
    """Advance the dream's generation (conditionally) with `fields`, reset to pending. Returns the new generation."""
    generation = int(dream.get("generation") or 0)
    next_generation = generation + 1
    update = {
        **fields,
        "status": "pending",
        "story": None,
        "analysis": None,
        "error": None,
        "generation": next_generation,
    }
    if not deps.store.patch(DREAMS_TABLE, str(dream["id"]), update, generation=generation):
        raise HTTPException(status_code=409, detail="Dream changed, try again")
    deps.scheduler.run_after(0, run_dream_story, deps, str(dream["id"]), next_generation)
    return next_generation


@router.post("", status_code=201)
async def create_dream(
    request: CreateDreamRequest,
    user_id: str = Depends(get_current_user_id),
    deps: PipelineDeps = Depends(get_pipeline_deps),
):
    dream = deps.store.insert(DREAMS_TABLE, {
        "user_id": user_id,
        "content": request.content,
        "status": "pending",
        "position": now_position(),
        "generation": 1,
    })
    dream_id = str(dream["id"])
    logger.info(f"[Dreams] created {dream_id} for {user_id}")

    await deps.broker.publish(user_id, "record_created", {"kind": "dream", "record": dream})
    deps.scheduler.run_after(0, run_dream_story, deps, dream_id, dream["generation"])
    return {"status": "success", "data": dream}


@router.get("")
async def list_dreams(
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_store),
):
    return {"status": "success", "data": store.list_by_owner(DREAMS_TABLE, user_id)}


@router.get("/{dream_id}")
async def get_dream(
    dream_id: str,
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_store),
):
    return {"status": "success", "data": load_owned_record(store, DREAMS_TABLE, dream_id, user_id)}


@router.patch("/{dream_id}")
async def update_dream_content(
    dream_id: str,
    request: UpdateDreamRequest,
    user_id: str = Depends(get_current_user_id),
    deps: PipelineDeps = Depends(get_pipeline_deps),
):
    """New content invalidates the story: back to 'pending' and one new generation job."""
    dream = load_owned_record(deps.store, DREAMS_TABLE, dream_id, user_id)
    generation = _restart_story(deps, dream, {"content": request.content})
    await deps.broker.publish(user_id, "record_updated", {"kind": "dream", "record_id": dream_id, "status": "pending"})
    return {"status": "success", "data": deps.store.get(DREAMS_TABLE, dream_id) or {"id": dream_id, "generation": generation}}


@router.post("/{dream_id}/regenerate", status_code=202)
async def regenerate_dream(
    dream_id: str,
    user_id: str = Depends(get_current_user_id),
    deps: PipelineDeps = Depends(get_pipeline_deps),
):
    dream = load_owned_record(deps.store, DREAMS_TABLE, dream_id, user_id)
    generation = _restart_story(deps, dream, {})
    await deps.broker.publish(user_id, "record_updated", {"kind": "dream", "record_id": dream_id, "status": "pending"})
    return {"status": "success", "data": {"id": dream_id, "status": "pending", "generation": generation}}


@router.patch("/{dream_id}/position")
async def move_dream(
    dream_id: str,
    request: MoveRequest,
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_store),
    events: EventBroker = Depends(get_broker),
):
    load_owned_record(store, DREAMS_TABLE, dream_id, user_id)
    if not store.patch(DREAMS_TABLE, dream_id, {"position": request.position}):
        raise HTTPException(status_code=404, detail="Record not found")
    await events.publish(user_id, "record_updated", {"kind": "dream", "record_id": dream_id, "position": request.position})
    return {"status": "success", "data": {"id": dream_id, "position": request.position}}


@router.delete("/{dream_id}")
async def delete_dream(
    dream_id: str,
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_store),
    events: EventBroker = Depends(get_broker),
):
    load_owned_record(store, DREAMS_TABLE, dream_id, user_id)
    store.delete(DREAMS_TABLE, dream_id)
    await events.publish(user_id, "record_deleted", {"kind": "dream", "record_id": dream_id})
    return {"status": "success", "message": "Dream deleted"}
