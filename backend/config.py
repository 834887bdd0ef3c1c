import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

load_dotenv()


class Settings(BaseModel):
    model_config = ConfigDict(validate_default=True)

    app_env: str = os.getenv("APP_ENV", "local")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    cors_allow_origins: str = os.getenv("CORS_ALLOW_ORIGINS", "*")

    # Supabase: tables, storage buckets, auth
    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_key: str = os.getenv("SUPABASE_KEY", "")
    image_bucket: str = os.getenv("SUPABASE_IMAGE_BUCKET", "images")
    audio_bucket: str = os.getenv("SUPABASE_AUDIO_BUCKET", "audio")

    # Gemini
    gemini_api_key: str = os.getenv("GEMINI_API_KEY", "")
    gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    transcription_model: str = os.getenv("GEMINI_TRANSCRIPTION_MODEL", "gemini-2.5-flash")

    # Prompt templates live in ai/prompts/<name>_<version>.md
    idea_prompt_version: str = os.getenv("IDEA_PROMPT_VERSION", "v2")
    dream_prompt_version: str = os.getenv("DREAM_PROMPT_VERSION", "v1")

    @field_validator("gemini_api_key")
    @classmethod
    def require_api_key(cls, value: str) -> str:
        if not value.strip():
            raise ValueError(
                "GEMINI_API_KEY environment variable not set. Add it to .env or the deployment secrets."
            )
        return value


settings = Settings()
