"""
Parsers for model replies.

Both parsers return a tagged result, ParseOk or ParseError, and never raise.

Idea analysis grammar: six required lines, in any order,

    Score: <number in [1, 10]>
    Title: <rest of line>
    Summary: <rest of line>
    Reasoning: <rest of line>
    Feasibility: <rest of line>
    Similar Ideas: <rest of line>

Labels may be wrapped in Markdown emphasis (``**Score:**``). The first
occurrence of a label wins; an empty value counts as missing.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Optional, Union

from models.schemas import DreamAnalysis, IdeaAnalysis

IDEA_FIELDS = (
    ("score", "Score"),
    ("title", "Title"),
    ("summary", "Summary"),
    ("reasoning", "Reasoning"),
    ("feasibility", "Feasibility"),
    ("similar_ideas", "Similar Ideas"),
)

SCORE_MIN = 1.0
SCORE_MAX = 10.0

_NUMBER = re.compile(r"^[+-]?\d+(?:\.\d+)?$")


@dataclass(frozen=True)
class ParseOk:
    value: Any


@dataclass(frozen=True)
class ParseError:
    cause: str
    detail: str
    field: Optional[str] = None


ParseResult = Union[ParseOk, ParseError]


def _label_pattern(label: str) -> re.Pattern:
    return re.compile(
        rf"^[ \t]*[*_]*{re.escape(label)}[*_]*[ \t]*:[*_]*[ \t]*(?P<value>.*?)[ \t*_]*$",
        re.MULTILINE | re.IGNORECASE,
    )


_LABEL_PATTERNS = {key: _label_pattern(label) for key, label in IDEA_FIELDS}


def parse_score(raw: str) -> Optional[float]:
    """Return the score as a float, or None when it is not a number in [1, 10]."""
    value = (raw or "").strip()
    if not _NUMBER.match(value):
        return None
    score = float(value)
    if score < SCORE_MIN or score > SCORE_MAX:
        return None
    return score


def parse_idea_analysis(text: str) -> ParseResult:
    if not text or not text.strip():
        return ParseError(cause="empty_response", detail="No response content from AI")

    values = {}
    for key, label in IDEA_FIELDS:
        match = _LABEL_PATTERNS[key].search(text)
        value = match.group("value").strip() if match else ""
        if not value:
            return ParseError(
                cause="missing_field",
                detail=f"Invalid AI response format. Missing '{label}:' line.",
                field=key,
            )
        values[key] = value

    score = parse_score(values["score"])
    if score is None:
        return ParseError(
            cause="invalid_score",
            detail=f"AI returned an invalid score: {values['score'][:50]}",
            field="score",
        )
    values["score"] = score
    return ParseOk(IdeaAnalysis(**values))


def strip_code_fence(raw_text: str) -> str:
    """Remove a ```json ... ``` (or bare ```) wrapper if the reply has one."""
    if not raw_text:
        return raw_text
    match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", raw_text)
    if match:
        return match.group(1).strip()
    return raw_text.strip()


@dataclass(frozen=True)
class DreamStory:
    story: str
    analysis: Optional[DreamAnalysis]


def parse_dream_story(text: str) -> ParseResult:
    if not text or not text.strip():
        return ParseError(cause="empty_response", detail="No content from AI")

    try:
        payload = json.loads(strip_code_fence(text))
    except json.JSONDecodeError as e:
        return ParseError(cause="invalid_json", detail=f"Invalid JSON response from AI: {e}")

    if not isinstance(payload, dict):
        return ParseError(cause="invalid_json", detail="AI response is not a JSON object")

    story = payload.get("story")
    if not isinstance(story, str) or not story.strip():
        return ParseError(
            cause="missing_story",
            detail="AI response did not contain a story field",
            field="story",
        )

    title = payload.get("title")
    analysis = DreamAnalysis(title=title.strip()) if isinstance(title, str) and title.strip() else None
    return ParseOk(DreamStory(story=story.strip(), analysis=analysis))
