"""Persistence adapter: all reads and writes against the relational store.

Writes flush inside the caller's session so that a failure surfaces here as
PersistenceError and the session dependency rolls the whole request back.
"""

import logging
from datetime import date

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import get_settings
from .errors import NotFoundError, PersistenceError
from .interpreter import InterpretationResult
from .models import (
    Chat,
    ChatMessage,
    DietPlan,
    DietSuggestion,
    FoodPreference,
    HealthReport,
    MessageRole,
    PreferenceKind,
    DEFAULT_CHAT_TITLE,
    normalize_food_item,
)

logger = logging.getLogger(__name__)


def _flush(db_session: Session, what: str) -> None:
    try:
        db_session.flush()
    except SQLAlchemyError as e:
        logger.error(f"Database error saving {what}: {e}")
        raise PersistenceError(f"Failed to save {what}") from e


# =============================================================================
# Diet suggestions
# =============================================================================


def save_suggestions(
    db_session: Session, user_id: str, result: InterpretationResult
) -> list[DietSuggestion]:
    """Insert one row per suggestion in a single batch.

    Args:
        db_session: Database session.
        user_id: Owner of the suggestions.
        result: Interpreter output; its source and reason are stored on each row.

    Returns:
        The inserted rows.

    Raises:
        PersistenceError: If the insert fails. Nothing is saved in that case.
    """
    rows = [
        DietSuggestion(
            user_id=user_id,
            title=s.title,
            description=s.description,
            category=s.category,
            source=result.source,
            fallback_reason=result.reason,
        )
        for s in result.suggestions
    ]
    db_session.add_all(rows)
    _flush(db_session, "diet suggestions")
    logger.info(f"Saved {len(rows)} {result.source.value} suggestions for user {user_id}")
    return rows


def list_suggestions(db_session: Session, user_id: str, limit: int = 50) -> list[DietSuggestion]:
    """Get a user's suggestions, newest first."""
    return list(
        db_session.scalars(
            select(DietSuggestion)
            .where(DietSuggestion.user_id == user_id)
            .order_by(DietSuggestion.created_at.desc(), DietSuggestion.id.desc())
            .limit(limit)
        )
    )


# =============================================================================
# Free-text plans
# =============================================================================


def save_plan(
    db_session: Session,
    user_id: str,
    content: str,
    goal: str | None = None,
    max_plans: int | None = None,
) -> DietPlan:
    """Save a plan and drop the user's oldest plans beyond max_plans.

    max_plans defaults to the MAX_SAVED_PLANS setting.
    """
    if max_plans is None:
        max_plans = get_settings().max_saved_plans
    plan = DietPlan(user_id=user_id, content=content, goal=goal)
    db_session.add(plan)
    _flush(db_session, "diet plan")

    keep_ids = select(DietPlan.id).where(DietPlan.user_id == user_id).order_by(
        DietPlan.created_at.desc(), DietPlan.id.desc()
    ).limit(max_plans)
    kept = list(db_session.scalars(keep_ids))
    try:
        result = db_session.execute(
            delete(DietPlan)
            .where(DietPlan.user_id == user_id, DietPlan.id.not_in(kept))
            .execution_options(synchronize_session=False)
        )
    except SQLAlchemyError as e:
        logger.error(f"Database error trimming plans: {e}")
        raise PersistenceError("Failed to save diet plan") from e
    if result.rowcount:
        logger.info(f"Dropped {result.rowcount} old plans for user {user_id}")
    return plan


def list_plans(db_session: Session, user_id: str) -> list[DietPlan]:
    """Get a user's saved plans, newest first."""
    return list(
        db_session.scalars(
            select(DietPlan)
            .where(DietPlan.user_id == user_id)
            .order_by(DietPlan.created_at.desc(), DietPlan.id.desc())
        )
    )


# =============================================================================
# Food preferences
# =============================================================================


def get_preferences(db_session: Session, user_id: str) -> dict[str, list[str]]:
    """Get a user's allergies and disliked foods.

    Returns:
        {"allergies": [...], "dislikes": [...]} with items sorted.
    """
    rows = db_session.scalars(
        select(FoodPreference)
        .where(FoodPreference.user_id == user_id)
        .order_by(FoodPreference.item)
    )
    prefs = {"allergies": [], "dislikes": []}
    for row in rows:
        key = "allergies" if row.kind == PreferenceKind.ALLERGY else "dislikes"
        prefs[key].append(row.item)
    return prefs


def add_preference(
    db_session: Session, user_id: str, kind: PreferenceKind, item: str
) -> str:
    """Add an allergy or dislike. Adding an existing item is a no-op.

    Returns:
        The normalized item.
    """
    normalized = normalize_food_item(item)
    if not normalized:
        raise ValueError("Preference item cannot be empty")

    existing = db_session.scalar(
        select(FoodPreference).where(
            FoodPreference.user_id == user_id,
            FoodPreference.kind == kind,
            FoodPreference.item == normalized,
        )
    )
    if existing is None:
        db_session.add(FoodPreference(user_id=user_id, kind=kind, item=normalized))
        _flush(db_session, "preference")
    return normalized


def remove_preference(
    db_session: Session, user_id: str, kind: PreferenceKind, item: str
) -> bool:
    """Remove an allergy or dislike.

    Returns:
        True if a row was deleted.
    """
    result = db_session.execute(
        delete(FoodPreference).where(
            FoodPreference.user_id == user_id,
            FoodPreference.kind == kind,
            FoodPreference.item == normalize_food_item(item),
        )
    )
    return bool(result.rowcount)


# =============================================================================
# Chats
# =============================================================================


def create_chat(db_session: Session, user_id: str, title: str = DEFAULT_CHAT_TITLE) -> Chat:
    chat = Chat(user_id=user_id, title=title)
    db_session.add(chat)
    _flush(db_session, "chat")
    return chat


def get_chat(db_session: Session, chat_id: int, user_id: str | None = None) -> Chat:
    """Load a chat, optionally checking its owner.

    Raises:
        NotFoundError: If the chat does not exist or belongs to someone else.
    """
    chat = db_session.get(Chat, chat_id)
    if chat is None or (user_id is not None and chat.user_id != user_id):
        raise NotFoundError(f"Chat {chat_id} not found")
    return chat


def list_chats(db_session: Session, user_id: str) -> list[Chat]:
    """Get a user's chats, most recently updated first."""
    return list(
        db_session.scalars(
            select(Chat)
            .where(Chat.user_id == user_id)
            .order_by(Chat.updated_at.desc(), Chat.id.desc())
        )
    )


def get_chat_messages(db_session: Session, chat_id: int) -> list[ChatMessage]:
    """Get a chat's messages in the order they were sent."""
    return list(
        db_session.scalars(
            select(ChatMessage)
            .where(ChatMessage.chat_id == chat_id)
            .order_by(ChatMessage.created_at, ChatMessage.id)
        )
    )


def add_chat_message(
    db_session: Session, chat: Chat, role: MessageRole, content: str
) -> ChatMessage:
    message = ChatMessage(chat_id=chat.id, role=role, content=content)
    db_session.add(message)
    _flush(db_session, "chat message")
    return message


def rename_chat(db_session: Session, chat: Chat, title: str) -> Chat:
    chat.title = title
    _flush(db_session, "chat")
    return chat


def delete_chat(db_session: Session, chat: Chat) -> None:
    db_session.delete(chat)
    _flush(db_session, "chat")


# =============================================================================
# Health reports
# =============================================================================


def save_report(
    db_session: Session,
    user_id: str,
    title: str,
    summary: str | None,
    report_date: date | None = None,
) -> HealthReport:
    report = HealthReport(
        user_id=user_id,
        title=title,
        summary=summary,
        report_date=report_date or date.today(),
    )
    db_session.add(report)
    _flush(db_session, "health report")
    return report


def list_reports(db_session: Session, user_id: str) -> list[HealthReport]:
    """Get a user's reports, newest first."""
    return list(
        db_session.scalars(
            select(HealthReport)
            .where(HealthReport.user_id == user_id)
            .order_by(HealthReport.created_at.desc(), HealthReport.id.desc())
        )
    )
