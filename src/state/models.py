from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Preferences(BaseModel):
    """Recipient preferences. Read-only for the daily run."""

    model_config = ConfigDict(extra="allow")

    email: str = Field(..., description="Recipient email address")
    verses_per_lesson: str = Field(default="", description="Lesson length preference, e.g. '1-5'")
    focus_themes: List[str] = Field(default_factory=list, description="Focus theme labels")


class ProgressState(BaseModel):
    """
    Persistent lesson progress, stored as a JSON file in a git repository.

    Fields
    - plan: free-text label for the active lesson plan.
    - completed_passages: references already covered, oldest first. Append-only.
    - total_lessons: always len(completed_passages); recomputed by `record_lesson`.
    - last_generated: date of the most recent successful run (None before the first).
    - preferences: recipient email and lesson preferences.

    Notes
    - Unknown top-level keys are kept so a round-trip does not drop fields
      written by other tools.
    """

    model_config = ConfigDict(extra="allow")

    plan: str = Field(default="", description="Active lesson plan label")
    completed_passages: List[str] = Field(
        default_factory=list,
        description="Scripture references already generated, in order",
    )
    total_lessons: int = Field(default=0, ge=0)
    last_generated: Optional[date] = Field(
        default=None,
        description="YYYY-MM-DD of the last successful run",
    )
    preferences: Preferences

    def has_passage(self, reference: str) -> bool:
        return reference in self.completed_passages

    def record_lesson(self, reference: str, *, on: date) -> None:
        """Append `reference` and refresh the derived fields."""
        self.completed_passages.append(reference)
        self.total_lessons = len(self.completed_passages)
        self.last_generated = on
