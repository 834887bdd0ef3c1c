"""
Pydantic models for records, analysis payloads and request validation.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


IDEAS_TABLE = "ideas"
DREAMS_TABLE = "dreams"

IdeaStatus = Literal["pending", "analyzing", "analyzed", "failed"]
DreamStatus = Literal["pending", "storified", "failed"]

FailureCause = Literal[
    "empty_response",
    "missing_field",
    "invalid_score",
    "invalid_json",
    "missing_story",
    "model_error",
    "media_error",
    "transcription_error",
]


class IdeaAnalysis(BaseModel):
    """Six-field structured analysis of an idea."""

    model_config = ConfigDict(populate_by_name=True)

    score: float = Field(ge=1, le=10)
    title: str
    summary: str
    reasoning: str
    feasibility: str
    # The legacy webhook posts camelCase
    similar_ideas: str = Field(alias="similarIdeas")


class DreamAnalysis(BaseModel):
    title: Optional[str] = None


class AnalysisError(BaseModel):
    """Why a pipeline run ended in the failed state."""

    cause: FailureCause
    message: str
    field: Optional[str] = None


class UpdateContentRequest(BaseModel):
    content: str


class MoveRequest(BaseModel):
    position: float


class CreateDreamRequest(BaseModel):
    content: str

    @field_validator("content")
    @classmethod
    def require_content(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("dream content must not be empty")
        return value


class UpdateDreamRequest(CreateDreamRequest):
    pass
