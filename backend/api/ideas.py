"""
Idea endpoints.

This module handles:
- Idea creation with optional image/audio upload and analysis trigger
- Listing with resolved media URLs
- Content edits, reordering, re-analysis and deletion
"""

import logging
import time
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from config import settings
from dependencies import get_broker, get_current_user_id, get_media, get_pipeline_deps, get_store
from helpers.ai_helpers import PipelineDeps, run_idea_analysis
from helpers.auth import load_owned_record
from helpers.events import EventBroker
from helpers.record_store import MediaStore, RecordStore
from models.schemas import IDEAS_TABLE, MoveRequest, UpdateContentRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/ideas", tags=["Ideas"])


def now_position() -> int:
    """Default ordering key: creation time in epoch milliseconds."""
    return int(time.time() * 1000)


def _idea_to_response(idea: Dict[str, Any], media: MediaStore) -> Dict[str, Any]:
    out = dict(idea)
    out["image_url"] = media.public_url(settings.image_bucket, idea.get("image_path"))
    out["audio_url"] = media.public_url(settings.audio_bucket, idea.get("audio_path"))
    return out


async def _read_media(upload: Optional[UploadFile], kind: str) -> Optional[tuple[bytes, str]]:
    """Read an optional upload, enforcing its media type (image/* or audio/*)."""
    if upload is None:
        return None
    content_type = (upload.content_type or "").lower()
    if not content_type.startswith(f"{kind}/"):
        raise HTTPException(status_code=400, detail=f"Expected an {kind} file, got '{content_type or 'unknown'}'")
    data = await upload.read()
    if not data:
        raise HTTPException(status_code=400, detail=f"Uploaded {kind} file is empty")
    return data, content_type


@router.post("", status_code=201)
async def create_idea(
    content: str = Form(""),
    image: Optional[UploadFile] = File(None),
    audio: Optional[UploadFile] = File(None),
    user_id: str = Depends(get_current_user_id),
    deps: PipelineDeps = Depends(get_pipeline_deps),
):
    """
    Create an idea and schedule its analysis.

    - Uploads image/audio to Supabase Storage
    - Saves the idea as 'pending', generation 1
    - Publishes record_created immediately
    - Returns without waiting for the analysis
    """
    image_upload = await _read_media(image, "image")
    audio_upload = await _read_media(audio, "audio")

    image_path = None
    audio_path = None
    if image_upload:
        image_path = deps.media.upload(settings.image_bucket, user_id, None, *image_upload)
    if audio_upload:
        audio_path = deps.media.upload(settings.audio_bucket, user_id, None, *audio_upload)

    idea = deps.store.insert(IDEAS_TABLE, {
        "user_id": user_id,
        "content": content,
        "image_path": image_path,
        "audio_path": audio_path,
        "status": "pending",
        "position": now_position(),
        "generation": 1,
    })
    idea_id = str(idea["id"])
    logger.info(
        f"[Ideas] created {idea_id} for {user_id} "
        f"(text: {len(content)} chars, image: {'yes' if image_path else 'no'}, audio: {'yes' if audio_path else 'no'})"
    )

    response = _idea_to_response(idea, deps.media)
    await deps.broker.publish(user_id, "record_created", {"kind": "idea", "record": response})
    deps.scheduler.run_after(0, run_idea_analysis, deps, idea_id, idea["generation"])
    return {"status": "success", "data": response}


@router.get("")
async def list_ideas(
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_store),
    media: MediaStore = Depends(get_media),
):
    """Caller's ideas, newest position first."""
    ideas = store.list_by_owner(IDEAS_TABLE, user_id)
    return {"status": "success", "data": [_idea_to_response(idea, media) for idea in ideas]}


@router.get("/{idea_id}")
async def get_idea(
    idea_id: str,
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_store),
    media: MediaStore = Depends(get_media),
):
    idea = load_owned_record(store, IDEAS_TABLE, idea_id, user_id)
    return {"status": "success", "data": _idea_to_response(idea, media)}


@router.patch("/{idea_id}")
async def update_idea(
    idea_id: str,
    request: UpdateContentRequest,
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_store),
    events: EventBroker = Depends(get_broker),
):
    """Edit the idea text. The stored analysis stays until the user re-analyzes."""
    load_owned_record(store, IDEAS_TABLE, idea_id, user_id)
    if not store.patch(IDEAS_TABLE, idea_id, {"content": request.content}):
        raise HTTPException(status_code=404, detail="Record not found")
    await events.publish(user_id, "record_updated", {"kind": "idea", "record_id": idea_id, "content": request.content})
    return {"status": "success", "data": store.get(IDEAS_TABLE, idea_id)}


@router.patch("/{idea_id}/position")
async def move_idea(
    idea_id: str,
    request: MoveRequest,
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_store),
    events: EventBroker = Depends(get_broker),
):
    load_owned_record(store, IDEAS_TABLE, idea_id, user_id)
    if not store.patch(IDEAS_TABLE, idea_id, {"position": request.position}):
        raise HTTPException(status_code=404, detail="Record not found")
    await events.publish(user_id, "record_updated", {"kind": "idea", "record_id": idea_id, "position": request.position})
    return {"status": "success", "data": {"id": idea_id, "position": request.position}}


@router.post("/{idea_id}/reanalyze", status_code=202)
async def reanalyze_idea(
    idea_id: str,
    user_id: str = Depends(get_current_user_id),
    deps: PipelineDeps = Depends(get_pipeline_deps),
):
    """
    Reset the idea to 'analyzing' and schedule a fresh analysis.

    The generation advance is conditional on the generation just read, so a
    second click racing this one gets 409 instead of a duplicate job.
    """
    idea = load_owned_record(deps.store, IDEAS_TABLE, idea_id, user_id)
    generation = int(idea.get("generation") or 0)
    next_generation = generation + 1
    if not deps.store.patch(
        IDEAS_TABLE,
        idea_id,
        {"status": "analyzing", "analysis": None, "error": None, "generation": next_generation},
        generation=generation,
    ):
        raise HTTPException(status_code=409, detail="Idea changed, try again")

    await deps.broker.publish(user_id, "record_updated", {"kind": "idea", "record_id": idea_id, "status": "analyzing"})
    deps.scheduler.run_after(0, run_idea_analysis, deps, idea_id, next_generation)
    logger.info(f"[Ideas] re-analysis of {idea_id} scheduled (generation {next_generation})")
    return {"status": "success", "data": {"id": idea_id, "status": "analyzing", "generation": next_generation}}


@router.delete("/{idea_id}")
async def delete_idea(
    idea_id: str,
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_store),
    media: MediaStore = Depends(get_media),
    events: EventBroker = Depends(get_broker),
):
    """Hard delete, media objects included."""
    idea = load_owned_record(store, IDEAS_TABLE, idea_id, user_id)
    store.delete(IDEAS_TABLE, idea_id)
    for bucket, path in ((settings.image_bucket, idea.get("image_path")), (settings.audio_bucket, idea.get("audio_path"))):
        try:
            media.remove(bucket, path)
        except Exception as e:
            logger.warning(f"[Ideas] could not remove {bucket}/{path}: {e}")
    await events.publish(user_id, "record_deleted", {"kind": "idea", "record_id": idea_id})
    return {"status": "success", "message": "Idea deleted"}
