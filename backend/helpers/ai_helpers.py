"""
Analysis pipeline jobs.

Each job runs off the request path (see helpers.scheduler) and carries the
record generation it was scheduled for. Every write is a conditional patch
on that generation, so a job that lost the race against a newer user action,
or whose record was deleted, writes nothing.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ai.client import GeminiClient
from ai.parsing import ParseError, parse_dream_story, parse_idea_analysis
from ai.prompts import NO_SPEECH, build_dream_prompt, build_idea_prompt
from config import Settings
from helpers.events import EventBroker
from helpers.record_store import MediaStore, RecordStore, guess_audio_mime
from helpers.scheduler import JobScheduler
from models.schemas import DREAMS_TABLE, IDEAS_TABLE, AnalysisError, IdeaAnalysis

logger = logging.getLogger(__name__)

FAILED_TITLE = "Analysis Failed"
ERROR_MESSAGE_LIMIT = 500


@dataclass
class PipelineDeps:
    store: RecordStore
    media: MediaStore
    model: GeminiClient
    broker: EventBroker
    scheduler: JobScheduler
    settings: Settings


class PipelineFailure(Exception):
    def __init__(self, cause: str, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.cause = cause
        self.message = message
        self.field = field

    @classmethod
    def from_parse_error(cls, error: ParseError) -> "PipelineFailure":
        return cls(error.cause, error.detail, error.field)

    def to_error(self) -> AnalysisError:
        return AnalysisError(cause=self.cause, message=self.message[:ERROR_MESSAGE_LIMIT], field=self.field)


def failed_idea_analysis(message: str) -> IdeaAnalysis:
    """Sentinel payload stored alongside status 'failed'."""
    return IdeaAnalysis(
        score=1,
        title=FAILED_TITLE,
        summary="Could not generate analysis due to an error.",
        reasoning=f"Error: {message[:ERROR_MESSAGE_LIMIT]}",
        feasibility="N/A",
        similar_ideas="N/A",
    )


def combine_idea_text(content: Optional[str], transcription: Optional[str]) -> str:
    parts = []
    if content and content.strip():
        parts.append(content.strip())
    if transcription and transcription.strip() and transcription.strip() != NO_SPEECH:
        parts.append(f"Transcribed audio:\n{transcription.strip()}")
    return "\n\n".join(parts)


def _load_current(deps: PipelineDeps, table: str, record_id: str, generation: int) -> Optional[Dict[str, Any]]:
    record = deps.store.get(table, record_id)
    if not record:
        logger.warning(f"[AI] {table} {record_id} not found, job dropped")
        return None
    if record.get("generation") != generation:
        logger.info(
            f"[AI] {table} {record_id} moved to generation {record.get('generation')}, "
            f"stale job for generation {generation} dropped"
        )
        return None
    return record


async def run_idea_analysis(deps: PipelineDeps, idea_id: str, generation: int) -> None:
    """
    Analyze one idea and persist the outcome.

    Logic:
    1. Audio without transcription: transcribe, persist, schedule a second run, stop
    2. Mark 'analyzing'
    3. No text and no image: mark 'analyzed' without analysis
    4. Prompt (+ image) -> Gemini -> parse
    5. Success: 'analyzed' + analysis. Failure: 'failed' + sentinel + error
    """
    idea = _load_current(deps, IDEAS_TABLE, idea_id, generation)
    if idea is None:
        return
    user_id = str(idea["user_id"])

    if idea.get("audio_path") and idea.get("transcription") is None:
        await _transcribe_idea(deps, idea, generation)
        return

    # A stale analysis (or failure sentinel) never sits next to 'analyzing'
    if not deps.store.patch(
        IDEAS_TABLE, idea_id, {"status": "analyzing", "analysis": None, "error": None}, generation=generation
    ):
        logger.info(f"[AI] idea {idea_id} changed before analysis started, job dropped")
        return
    await deps.broker.publish(user_id, "record_updated", {"kind": "idea", "record_id": idea_id, "status": "analyzing"})

    idea_text = combine_idea_text(idea.get("content"), idea.get("transcription"))
    image_path = idea.get("image_path")

    if not idea_text and not image_path:
        logger.info(f"[AI] idea {idea_id} has no text or image, skipping model call")
        if deps.store.patch(
            IDEAS_TABLE, idea_id, {"status": "analyzed", "analysis": None, "error": None}, generation=generation
        ):
            await deps.broker.publish(
                user_id, "analysis_completed", {"record_id": idea_id, "status": "analyzed", "analysis": None}
            )
        return

    version = deps.settings.idea_prompt_version
    logger.info(f"[AI] idea {idea_id} analysis started (image: {'yes' if image_path else 'no'}, prompt {version})")

    analysis: Optional[IdeaAnalysis] = None
    failure: Optional[PipelineFailure] = None
    try:
        contents = []
        if image_path:
            try:
                image_bytes = deps.media.download(deps.settings.image_bucket, image_path)
            except Exception as e:
                raise PipelineFailure("media_error", f"Could not load image: {e}")
            contents.append(deps.model.image_part(image_bytes))
        contents.append(build_idea_prompt(idea_text, bool(image_path), version))

        raw_text = await deps.model.generate(contents)
        if not raw_text.strip():
            raise PipelineFailure("empty_response", "No response content from AI")

        result = parse_idea_analysis(raw_text)
        if isinstance(result, ParseError):
            logger.error(f"[AI] idea {idea_id} unparseable response ({result.cause}):\n{raw_text[:2000]}")
            raise PipelineFailure.from_parse_error(result)
        analysis = result.value

    except PipelineFailure as e:
        failure = e
    except Exception as e:
        logger.exception(f"[AI] idea {idea_id} model call failed")
        failure = PipelineFailure("model_error", str(e) or type(e).__name__)

    if failure is not None:
        await _persist_idea_failure(deps, idea_id, user_id, generation, failure)
        return

    payload = analysis.model_dump()
    if deps.store.patch(
        IDEAS_TABLE,
        idea_id,
        {"status": "analyzed", "analysis": payload, "error": None, "prompt_version": version},
        generation=generation,
    ):
        await deps.broker.publish(
            user_id, "analysis_completed", {"record_id": idea_id, "status": "analyzed", "analysis": payload}
        )
        logger.info(f"[AI] idea {idea_id} analyzed: score {analysis.score}, title {analysis.title!r}")
    else:
        logger.info(f"[AI] idea {idea_id} changed during analysis, result discarded")


async def _transcribe_idea(deps: PipelineDeps, idea: Dict[str, Any], generation: int) -> None:
    idea_id = str(idea["id"])
    audio_path = idea["audio_path"]
    logger.info(f"[AI] idea {idea_id} transcription started")
    try:
        audio_bytes = deps.media.download(deps.settings.audio_bucket, audio_path)
        transcription = await deps.model.transcribe(audio_bytes, guess_audio_mime(audio_path))
    except Exception as e:
        logger.exception(f"[AI] idea {idea_id} transcription failed")
        failure = PipelineFailure("transcription_error", str(e) or type(e).__name__)
        await _persist_idea_failure(deps, idea_id, str(idea["user_id"]), generation, failure)
        return

    if not deps.store.patch(IDEAS_TABLE, idea_id, {"transcription": transcription}, generation=generation):
        logger.info(f"[AI] idea {idea_id} changed during transcription, transcript discarded")
        return
    logger.info(f"[AI] idea {idea_id} transcribed ({len(transcription)} chars), scheduling analysis")
    deps.scheduler.run_after(0, run_idea_analysis, deps, idea_id, generation)


async def _persist_idea_failure(
    deps: PipelineDeps, idea_id: str, user_id: str, generation: int, failure: PipelineFailure
) -> None:
    logger.error(f"[AI] idea {idea_id} analysis failed ({failure.cause}): {failure.message}")
    error = failure.to_error().model_dump()
    written = deps.store.patch(
        IDEAS_TABLE,
        idea_id,
        {
            "status": "failed",
            "analysis": failed_idea_analysis(failure.message).model_dump(),
            "error": error,
        },
        generation=generation,
    )
    if written:
        await deps.broker.publish(user_id, "analysis_failed", {"record_id": idea_id, "status": "failed", "error": error})


async def run_dream_story(deps: PipelineDeps, dream_id: str, generation: int) -> None:
    """Generate a title and story for one dream."""
    dream = _load_current(deps, DREAMS_TABLE, dream_id, generation)
    if dream is None:
        return
    user_id = str(dream["user_id"])
    content = (dream.get("content") or "").strip()

    failure: Optional[PipelineFailure] = None
    story = None
    try:
        if not content:
            raise PipelineFailure("missing_story", "Dream has no content to retell")
        logger.info(f"[AI] dream {dream_id} story generation started")
        raw_text = await deps.model.generate(
            [build_dream_prompt(content, deps.settings.dream_prompt_version)],
            json_output=True,
            temperature=0.9,
        )
        result = parse_dream_story(raw_text)
        if isinstance(result, ParseError):
            logger.error(f"[AI] dream {dream_id} unparseable response ({result.cause}):\n{raw_text[:2000]}")
            raise PipelineFailure.from_parse_error(result)
        story = result.value

    except PipelineFailure as e:
        failure = e
    except Exception as e:
        logger.exception(f"[AI] dream {dream_id} model call failed")
        failure = PipelineFailure("model_error", str(e) or type(e).__name__)

    if failure is not None:
        logger.error(f"[AI] dream {dream_id} story failed ({failure.cause}): {failure.message}")
        error = failure.to_error().model_dump()
        if deps.store.patch(DREAMS_TABLE, dream_id, {"status": "failed", "error": error}, generation=generation):
            await deps.broker.publish(user_id, "story_failed", {"record_id": dream_id, "status": "failed", "error": error})
        return

    analysis = story.analysis.model_dump() if story.analysis else None
    if deps.store.patch(
        DREAMS_TABLE,
        dream_id,
        {"status": "storified", "story": story.story, "analysis": analysis, "error": None},
        generation=generation,
    ):
        await deps.broker.publish(
            user_id,
            "story_completed",
            {"record_id": dream_id, "status": "storified", "story": story.story, "analysis": analysis},
        )
        logger.info(f"[AI] dream {dream_id} storified")
    else:
        logger.info(f"[AI] dream {dream_id} changed during generation, story discarded")
