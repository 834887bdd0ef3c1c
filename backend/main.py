import logging
import time
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from logging_config import setup_logging
from ai.app import router as ai_router
from api import dreams, events, ideas, webhooks

setup_logging(settings.log_level)
logger = logging.getLogger("ideabox.api")


def log_startup_config() -> None:
    """Log config status at startup (no secrets)."""
    cfg = {
        "APP_ENV": settings.app_env,
        "SUPABASE_URL_set": bool(settings.supabase_url),
        "SUPABASE_KEY_set": bool(settings.supabase_key),
        "GEMINI_MODEL": settings.gemini_model,
        "IDEA_PROMPT_VERSION": settings.idea_prompt_version,
        "DREAM_PROMPT_VERSION": settings.dream_prompt_version,
        "image_bucket": settings.image_bucket,
        "audio_bucket": settings.audio_bucket,
    }
    logger.info("Ideabox API startup config: %s", cfg)


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_startup_config()
    yield
    logger.info("Ideabox API shutting down")


app = FastAPI(title="Ideabox API", version="0.1.0", lifespan=lifespan)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    rid = f"{id(request):x}"
    path = request.url.path
    method = request.method
    start = time.perf_counter()
    logger.info("[%s] -> %s %s", rid, method, path)
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    level = logging.WARNING if response.status_code >= 400 else logging.INFO
    logger.log(level, "[%s] <- %s %s %d %.0fms", rid, method, path, response.status_code, elapsed_ms)
    return response


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch unhandled exceptions, log full traceback, return 500."""
    logger.exception("Unhandled exception %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={
            "detail": str(exc),
            "type": type(exc).__name__,
            "_traceback": traceback.format_exc() if settings.app_env != "production" else None,
        },
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins.split(","),
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ideas.router)
app.include_router(dreams.router)
app.include_router(events.router)
app.include_router(webhooks.router)
app.include_router(ai_router)


@app.get("/")
def root():
    return {"status": "ok", "service": "ideabox"}
