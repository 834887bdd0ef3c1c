import os

# Settings validate at import time
os.environ.setdefault("GEMINI_API_KEY", "test-key")

import pytest
from fastapi.testclient import TestClient

from fakes import FakeModel, FakeSupabase, RecordingScheduler


@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest.fixture
def model():
    return FakeModel()


@pytest.fixture
def client(supabase, model):
    from database import get_supabase
    from dependencies import get_model
    from main import app

    app.dependency_overrides[get_supabase] = lambda: supabase
    app.dependency_overrides[get_model] = lambda: model
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def deps(supabase, model):
    """Pipeline dependencies wired to the fakes, for calling jobs directly."""
    from config import settings
    from helpers.ai_helpers import PipelineDeps
    from helpers.events import EventBroker
    from helpers.record_store import MediaStore, RecordStore

    return PipelineDeps(
        store=RecordStore(supabase),
        media=MediaStore(supabase),
        model=model,
        broker=EventBroker(),
        scheduler=RecordingScheduler(),
        settings=settings,
    )
