"""System prompts and user prompt construction."""

from functools import lru_cache
from pathlib import Path
from typing import Iterable

from ..models import normalize_food_item

# Directory holding the system prompt text files
PROMPTS_DIR = Path(__file__).parent

# Meal sections a plan is organized into, in display order
PLAN_SECTIONS = ("Breakfast", "Lunch", "Dinner", "Snacks")

DEFAULT_SUGGESTIONS_REQUEST = (
    "Generate 5 personalized diet and lifestyle suggestions for a health-conscious individual."
)


@lru_cache(maxsize=None)
def load_system_prompt(name: str) -> str:
    """Load a system prompt from file by name (without extension)."""
    with open(PROMPTS_DIR / f"{name}.txt", "r", encoding="utf-8") as f:
        return f.read().strip()


def plan_system_prompt(regenerate_section: str | None = None) -> str:
    """Pick the plan system prompt.

    Full-plan mode when no section is given, otherwise a narrower prompt
    asking for alternatives to that one section.
    """
    if regenerate_section is None:
        return load_system_prompt("full_plan")
    if regenerate_section not in PLAN_SECTIONS:
        raise ValueError(f"Unknown plan section: {regenerate_section}")
    return load_system_prompt("section_only").format(section=regenerate_section)


def _clean_items(items: Iterable[str] | None) -> list[str]:
    cleaned = {normalize_food_item(item) for item in items or ()}
    cleaned.discard("")
    return sorted(cleaned)


def build_diet_prompt(
    goal: str,
    allergies: Iterable[str] | None = None,
    dislikes: Iterable[str] | None = None,
) -> str:
    """Merge a goal with the user's allergies and disliked foods.

    Each clause is appended only when its set is non-empty. Items are
    lowercased and sorted so the same preferences always give the same
    prompt.

    Args:
        goal: Free-text description of what the user wants.
        allergies: Allergens to avoid.
        dislikes: Foods the user does not want.

    Returns:
        The instruction string sent to the completion service.
    """
    parts = [goal.strip()]

    allergy_items = _clean_items(allergies)
    if allergy_items:
        parts.append(f"Avoid allergens: {', '.join(allergy_items)}.")

    dislike_items = _clean_items(dislikes)
    if dislike_items:
        parts.append(f"Avoid disliked foods: {', '.join(dislike_items)}.")

    return "\n\n".join(p for p in parts if p)
