"""
ai/app.py

Gemini status endpoint. Mounted by main.py: from ai.app import router
"""

from fastapi import APIRouter, Depends

from ai.prompts import load_prompt
from config import Settings
from dependencies import get_settings

router = APIRouter(prefix="/ai", tags=["AI"])


@router.get("/health")
async def health(app_settings: Settings = Depends(get_settings)):
    """Model names, active prompt versions and whether their templates load."""
    templates_ok = True
    for name, version in (
        ("idea_analysis", app_settings.idea_prompt_version),
        ("dream_story", app_settings.dream_prompt_version),
        ("transcription", "v1"),
    ):
        try:
            load_prompt(name, version)
        except FileNotFoundError:
            templates_ok = False

    return {
        "status": "ok" if templates_ok else "degraded",
        "has_credentials": bool(app_settings.gemini_api_key),
        "model": app_settings.gemini_model,
        "transcription_model": app_settings.transcription_model,
        "idea_prompt_version": app_settings.idea_prompt_version,
        "dream_prompt_version": app_settings.dream_prompt_version,
        "templates_ok": templates_ok,
    }
