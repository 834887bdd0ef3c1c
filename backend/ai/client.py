"""
Gemini client wrapper.

Constructed once from Settings and handed to the pipeline jobs; nothing in
the pipeline reaches for a module-level client.
"""

import logging
from typing import List, Optional, Union

from google import genai
from google.genai import types

from ai.images import prepare_idea_image
from ai.prompts import transcription_prompt

logger = logging.getLogger(__name__)

Content = Union[str, types.Part]


class GeminiClient:
    def __init__(self, client: genai.Client, model: str, transcription_model: Optional[str] = None) -> None:
        self._client = client
        self.model = model
        self.transcription_model = transcription_model or model

    @classmethod
    def from_settings(cls, settings) -> "GeminiClient":
        return cls(
            genai.Client(api_key=settings.gemini_api_key),
            model=settings.gemini_model,
            transcription_model=settings.transcription_model,
        )

    async def generate(
        self,
        contents: List[Content],
        *,
        json_output: bool = False,
        temperature: float = 0.4,
        model: Optional[str] = None,
    ) -> str:
        """Single-shot generation; returns the reply text ("" when the model sent none)."""
        model_name = model or self.model
        config = types.GenerateContentConfig(
            temperature=temperature,
            response_mime_type="application/json" if json_output else None,
        )
        logger.info(f"Gemini call - model: {model_name}")
        resp = await self._client.aio.models.generate_content(
            model=model_name,
            contents=contents,
            config=config,
        )
        raw_text = resp.text or ""
        logger.debug(f"Gemini raw response:\n{raw_text[:2000]}")
        return raw_text

    async def transcribe(self, audio_bytes: bytes, mime_type: str) -> str:
        audio_part = types.Part.from_bytes(data=audio_bytes, mime_type=mime_type)
        text = await self.generate(
            [audio_part, transcription_prompt()],
            temperature=0.0,
            model=self.transcription_model,
        )
        return text.strip()

    @staticmethod
    def image_part(image_bytes: bytes) -> types.Part:
        image = prepare_idea_image(image_bytes)
        return types.Part.from_bytes(data=image.data, mime_type=image.mime_type)
