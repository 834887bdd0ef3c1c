"""
Legacy completion channel: an external worker posts a finished analysis.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from dependencies import get_broker, get_store
from helpers.events import EventBroker
from helpers.record_store import RecordStore
from models.schemas import IDEAS_TABLE, IdeaAnalysis

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Webhooks"])


@router.post("/gemini-analysis", response_class=PlainTextResponse)
async def receive_gemini_analysis(
    request: Request,
    store: RecordStore = Depends(get_store),
    broker: EventBroker = Depends(get_broker),
):
    """
    Accepts {"ideaId": ..., "analysis": {...}}.

    400 on a missing field or an invalid analysis, 200 once stored, 500 otherwise.
    The write advances the idea's generation, so an in-flight job cannot overwrite it.
    """
    try:
        body = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        return PlainTextResponse("Request body must be a JSON object", status_code=400)

    idea_id = body.get("ideaId")
    analysis = body.get("analysis")
    if not idea_id or not analysis:
        return PlainTextResponse("Missing ideaId or analysis in request body", status_code=400)

    try:
        validated = IdeaAnalysis.model_validate(analysis)
    except ValidationError as e:
        logger.warning(f"[Webhook] invalid analysis for idea {idea_id}: {e}")
        return PlainTextResponse("Invalid analysis in request body", status_code=400)

    try:
        idea = store.get(IDEAS_TABLE, str(idea_id))
        if not idea:
            raise LookupError(f"idea {idea_id} not found")
        generation = int(idea.get("generation") or 0)
        payload = validated.model_dump()
        updated = store.patch(
            IDEAS_TABLE,
            str(idea_id),
            {"status": "analyzed", "analysis": payload, "error": None, "generation": generation + 1},
            generation=generation,
        )
        if not updated:
            raise RuntimeError(f"idea {idea_id} changed while storing the analysis")
        await broker.publish(
            str(idea["user_id"]),
            "analysis_completed",
            {"record_id": str(idea_id), "status": "analyzed", "analysis": payload},
        )
    except Exception:
        logger.exception(f"[Webhook] failed to process analysis for idea {idea_id}")
        return PlainTextResponse("Internal Server Error", status_code=500)

    return PlainTextResponse("Analysis received and processed.", status_code=200)
