"""
Versioned prompt templates.

Templates are Markdown files in ai/prompts named <name>_<version>.md and
rendered with str.format, so literal braces in a template must be doubled.
"""

import os
from functools import lru_cache

PROMPT_DIR = os.path.join(os.path.dirname(__file__), "prompts")

NO_SPEECH = "[no speech detected]"

IMAGE_CONTEXT = (
    "\nAn image is attached. Treat the image as the primary context for the idea; "
    "the text between the markers, if any, supplements it.\n"
)


@lru_cache(maxsize=None)
def load_prompt(name: str, version: str) -> str:
    """Read ai/prompts/<name>_<version>.md."""
    path = os.path.join(PROMPT_DIR, f"{name}_{version}.md")
    if not os.path.exists(path):
        raise FileNotFoundError(f"Unknown prompt template: {name} {version}")
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def build_idea_prompt(idea_text: str, has_image: bool, version: str) -> str:
    return load_prompt("idea_analysis", version).format(
        idea_text=idea_text.strip() or "(no text, see the attached image)",
        image_context=IMAGE_CONTEXT if has_image else "",
    )


def build_dream_prompt(dream_text: str, version: str) -> str:
    return load_prompt("dream_story", version).format(dream_text=dream_text.strip())


def transcription_prompt() -> str:
    return load_prompt("transcription", "v1")
