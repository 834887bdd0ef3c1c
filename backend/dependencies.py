"""
FastAPI dependency providers. Tests swap get_supabase / get_model through
app.dependency_overrides.
"""

from functools import lru_cache
from typing import Optional

from fastapi import BackgroundTasks, Depends, Header, Query
from supabase import Client

from ai.client import GeminiClient
from config import Settings, settings
from database import get_supabase
from helpers.ai_helpers import PipelineDeps
from helpers.auth import bearer_token, resolve_user_id
from helpers.events import EventBroker, broker
from helpers.record_store import MediaStore, RecordStore
from helpers.scheduler import JobScheduler


def get_settings() -> Settings:
    return settings


@lru_cache(maxsize=1)
def get_model() -> GeminiClient:
    return GeminiClient.from_settings(settings)


def get_broker() -> EventBroker:
    return broker


def get_store(client: Client = Depends(get_supabase)) -> RecordStore:
    return RecordStore(client)


def get_media(client: Client = Depends(get_supabase)) -> MediaStore:
    return MediaStore(client)


def get_scheduler(background_tasks: BackgroundTasks) -> JobScheduler:
    return JobScheduler(background_tasks)


def get_pipeline_deps(
    store: RecordStore = Depends(get_store),
    media: MediaStore = Depends(get_media),
    model: GeminiClient = Depends(get_model),
    events: EventBroker = Depends(get_broker),
    scheduler: JobScheduler = Depends(get_scheduler),
    app_settings: Settings = Depends(get_settings),
) -> PipelineDeps:
    return PipelineDeps(
        store=store,
        media=media,
        model=model,
        broker=events,
        scheduler=scheduler,
        settings=app_settings,
    )


def get_current_user_id(
    authorization: Optional[str] = Header(None),
    client: Client = Depends(get_supabase),
) -> str:
    return resolve_user_id(client, bearer_token(authorization))


def get_stream_user_id(
    access_token: Optional[str] = Query(None),
    client: Client = Depends(get_supabase),
) -> str:
    """EventSource cannot send headers, so the stream takes the token as a query param."""
    return resolve_user_id(client, access_token)
