from __future__ import annotations

import json
import logging
from typing import Optional, Sequence

from pydantic import BaseModel, Field, ValidationError, field_validator

from common.errors import GenerationError
from common.grok import GrokClient


logger = logging.getLogger(__name__)

DEFAULT_MODEL = "grok-3"
DEFAULT_TEMPERATURE = 0.8

PROMPT_TEMPLATE = """
You are generating a daily Bible lesson from the NIV.
Rules:
- Select ONE insightful passage (1–5 verses) from ANY book.
- NEVER repeat: {completed}
- Return JSON only:
{{
  "reference": "Book Chapter:Start-End",
  "lesson_html": "<h2>...</h2>..."
}}
"""


class GeneratedLesson(BaseModel):
    """One lesson as returned by the model. Only `reference` is persisted."""

    reference: str = Field(..., min_length=1)
    lesson_html: str = Field(..., min_length=1)

    @field_validator("reference", "lesson_html")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


def build_prompt(completed: Sequence[str]) -> str:
    """Return the lesson prompt listing every reference already covered."""
    completed_list = ", ".join(completed) or "none"
    return PROMPT_TEMPLATE.format(completed=completed_list)


def parse_lesson(content: str) -> GeneratedLesson:
    """Parse the model's message content into a GeneratedLesson.

    Raises GenerationError if the content is not a JSON object with non-empty
    string `reference` and `lesson_html` fields.
    """
    try:
        raw = json.loads(content)
    except json.JSONDecodeError as ex:
        raise GenerationError(f"Model returned content that is not JSON: {ex}") from ex
    if not isinstance(raw, dict):
        raise GenerationError("Model returned JSON that is not an object")
    try:
        # strict: a numeric "reference" is not silently coerced to str
        return GeneratedLesson.model_validate(raw, strict=True)
    except ValidationError as ex:
        raise GenerationError(f"Model returned an incomplete lesson: {ex}") from ex


class LessonGenerator:
    """
    Produces one GeneratedLesson per call through the Grok chat completions API.

    Notes
    - The model is told which references to skip; its compliance is trusted.
      No check is made that the reference is real or new.
    """

    def __init__(
        self,
        client: GrokClient,
        *,
        model: str = DEFAULT_MODEL,
        temperature: Optional[float] = DEFAULT_TEMPERATURE,
    ) -> None:
        self._client = client
        self._model = model
        self._temperature = temperature

    def generate(self, completed: Sequence[str]) -> GeneratedLesson:
        prompt = build_prompt(completed)
        logger.debug("Requesting lesson from %s (%d passages excluded)", self._model, len(completed))
        completion = self._client.chat(
            prompt,
            model=self._model,
            temperature=self._temperature,
            json_object=True,
        )
        lesson = parse_lesson(self._client.first_content(completion))
        logger.info("Generated lesson for %s", lesson.reference)
        return lesson


__all__ = [
    "GeneratedLesson",
    "LessonGenerator",
    "build_prompt",
    "parse_lesson",
]
