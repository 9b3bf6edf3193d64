"""Database models for the health companion service."""

from .base import Base, TimestampMixin, normalize_food_item
from .diet_suggestion import DietSuggestion, SuggestionCategory, SuggestionSource
from .diet_plan import DietPlan
from .preferences import FoodPreference, PreferenceKind
from .chat import Chat, ChatMessage, MessageRole, DEFAULT_CHAT_TITLE, CHAT_TITLE_LENGTH
from .health_report import HealthReport

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "normalize_food_item",
    # Diet
    "DietSuggestion",
    "SuggestionCategory",
    "SuggestionSource",
    "DietPlan",
    "FoodPreference",
    "PreferenceKind",
    # Chat
    "Chat",
    "ChatMessage",
    "MessageRole",
    "DEFAULT_CHAT_TITLE",
    "CHAT_TITLE_LENGTH",
    # Reports
    "HealthReport",
]
