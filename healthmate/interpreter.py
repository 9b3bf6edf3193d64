"""Interpretation of raw completion text.

Structured mode pulls a JSON array of suggestions out of the model's reply.
When that fails the fixed defaults are used instead, and the result says so,
so callers and stored rows can tell real output from substituted content.
"""

import json
import logging
import re
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError, field_validator

from .models import SuggestionCategory, SuggestionSource

logger = logging.getLogger(__name__)

# First "[" through last "]", across lines
JSON_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")

REGENERATED_SECTION_HEADING = "--- Updated {section} ---"


class ParseError(Exception):
    """Raised when the model output has no usable suggestion array."""

    pass


class Suggestion(BaseModel):
    """One categorized diet or lifestyle recommendation."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    title: str
    description: str
    category: SuggestionCategory

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "category": self.category.value,
        }


_suggestion_list = TypeAdapter(list[Suggestion])


DEFAULT_SUGGESTIONS: tuple[Suggestion, ...] = (
    Suggestion(
        title="Start Your Day Right",
        description=(
            "Begin with a protein-rich breakfast like Greek yogurt with berries and nuts. "
            "This helps maintain stable blood sugar levels throughout the morning."
        ),
        category=SuggestionCategory.BREAKFAST,
    ),
    Suggestion(
        title="Power Lunch Bowl",
        description=(
            "Create a colorful bowl with quinoa, grilled chicken, mixed vegetables, and avocado. "
            "Include leafy greens for extra nutrients."
        ),
        category=SuggestionCategory.LUNCH,
    ),
    Suggestion(
        title="Light Evening Meal",
        description=(
            "Opt for grilled fish with steamed vegetables and brown rice. "
            "Keep dinner lighter to improve sleep quality and digestion."
        ),
        category=SuggestionCategory.DINNER,
    ),
    Suggestion(
        title="Smart Snacking",
        description=(
            "Choose nuts, fruits, or veggie sticks with hummus between meals. "
            "These provide sustained energy without blood sugar spikes."
        ),
        category=SuggestionCategory.SNACK,
    ),
    Suggestion(
        title="Stay Hydrated",
        description=(
            "Drink at least 8 glasses of water daily. Add lemon or cucumber for flavor. "
            "Proper hydration supports all bodily functions."
        ),
        category=SuggestionCategory.LIFESTYLE,
    ),
)


@dataclass(frozen=True)
class Parsed:
    """Suggestions taken from the model output."""

    suggestions: list[Suggestion]

    @property
    def source(self) -> SuggestionSource:
        return SuggestionSource.PARSED

    @property
    def reason(self) -> None:
        return None


@dataclass(frozen=True)
class FellBackToDefault:
    """Model output was unusable; the default suggestions were substituted."""

    suggestions: list[Suggestion]
    reason: str

    @property
    def source(self) -> SuggestionSource:
        return SuggestionSource.FALLBACK


InterpretationResult = Parsed | FellBackToDefault


def extract_suggestions(raw: str) -> list[Suggestion]:
    """Parse the first bracketed JSON array in the text into suggestions.

    Raises:
        ParseError: If no array is found, it is not valid JSON, it is empty,
            or an element is not a valid suggestion.
    """
    match = JSON_ARRAY_PATTERN.search(raw or "")
    if not match:
        raise ParseError("No JSON found in response")

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON array: {e}") from e

    if not isinstance(data, list) or not data:
        raise ParseError("JSON array is empty")

    try:
        return _suggestion_list.validate_python(data)
    except ValidationError as e:
        raise ParseError(f"Invalid suggestion: {e.errors()[0]['msg']}") from e


def interpret_suggestions(raw: str) -> InterpretationResult:
    """Interpret structured-mode output.

    Returns:
        Parsed with the model's suggestions, or FellBackToDefault with the
        fixed five defaults and the reason parsing failed.
    """
    try:
        return Parsed(suggestions=extract_suggestions(raw))
    except ParseError as e:
        logger.warning(f"Error parsing AI response, using default suggestions: {e}")
        return FellBackToDefault(suggestions=list(DEFAULT_SUGGESTIONS), reason=str(e))


def append_regenerated_section(plan: str, section: str, new_text: str) -> str:
    """Append regenerated content for one section under its own heading.

    The original plan is kept untouched as a prefix of the result.
    """
    heading = REGENERATED_SECTION_HEADING.format(section=section)
    return f"{plan}\n\n{heading}\n{new_text.strip()}"
