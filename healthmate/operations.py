"""User-facing operations and the per-user operation guard.

Each operation is one sequential chain: build prompt, call the completion
service, interpret the reply, persist. A user has at most one operation in
flight; starting another while one runs is rejected.
"""

import enum
import logging
import threading
from collections import OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator

from sqlalchemy.orm import Session

from . import persistence
from .completion_client import CompletionClient
from .errors import CompletionServiceError, OperationInProgressError
from .interpreter import InterpretationResult, append_regenerated_section, interpret_suggestions
from .models import CHAT_TITLE_LENGTH, DEFAULT_CHAT_TITLE, Chat, HealthReport, MessageRole
from .prompts import (
    DEFAULT_SUGGESTIONS_REQUEST,
    build_diet_prompt,
    load_system_prompt,
    plan_system_prompt,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Operation slots
# =============================================================================


class OperationState(str, enum.Enum):
    """Lifecycle of a user's most recent operation."""

    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class _Slot:
    state: OperationState = OperationState.IDLE
    operation: str | None = None


class OperationSlots:
    """Single-slot guard allowing one in-flight operation per user.

    Finished slots are kept so their outcome can be reported, up to
    max_tracked users; beyond that the least recently used finished slots
    are forgotten and read as idle. In-flight slots are never dropped.
    """

    def __init__(self, max_tracked: int = 1024):
        self._lock = threading.Lock()
        self._slots: OrderedDict[str, _Slot] = OrderedDict()
        self.max_tracked = max_tracked

    def state(self, user_id: str) -> OperationState:
        with self._lock:
            slot = self._slots.get(user_id)
            return slot.state if slot else OperationState.IDLE

    def current(self, user_id: str) -> str | None:
        """Name of the operation in flight for the user, if any."""
        with self._lock:
            slot = self._slots.get(user_id)
            if slot and slot.state == OperationState.IN_FLIGHT:
                return slot.operation
            return None

    @contextmanager
    def hold(self, user_id: str, operation: str) -> Generator[None, None, None]:
        """Claim the user's slot for the duration of the block.

        Raises:
            OperationInProgressError: If the user already has an operation in flight.
        """
        with self._lock:
            slot = self._slots.get(user_id)
            if slot and slot.state == OperationState.IN_FLIGHT:
                raise OperationInProgressError(user_id, slot.operation or "unknown")
            if slot is None:
                slot = self._slots[user_id] = _Slot()
            self._slots.move_to_end(user_id)
            slot.state = OperationState.IN_FLIGHT
            slot.operation = operation
            self._evict_finished()

        try:
            yield
        except BaseException:
            with self._lock:
                slot.state = OperationState.FAILED
            raise
        with self._lock:
            slot.state = OperationState.SUCCEEDED

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    def _evict_finished(self) -> None:
        # Caller holds the lock
        excess = len(self._slots) - self.max_tracked
        if excess <= 0:
            return
        stale = [
            user_id
            for user_id, slot in self._slots.items()
            if slot.state != OperationState.IN_FLIGHT
        ][:excess]
        for user_id in stale:
            del self._slots[user_id]

    def reset(self) -> None:
        with self._lock:
            self._slots.clear()


operation_slots = OperationSlots()


def _require_reply(text: str, what: str) -> str:
    """Reject a blank completion so it is never shown or stored as a result."""
    if not text or not text.strip():
        logger.error(f"Completion service returned no text for {what}")
        raise CompletionServiceError(f"Completion service returned no text for {what}")
    return text


# =============================================================================
# Diet suggestions (structured mode)
# =============================================================================


def generate_suggestions(
    db_session: Session, client: CompletionClient, user_id: str
) -> InterpretationResult:
    """Generate, interpret and save five suggestions for a user.

    The user's stored allergies and dislikes are added to the request.
    If saving fails the error propagates and no suggestions are returned.
    """
    prefs = persistence.get_preferences(db_session, user_id)
    user_message = build_diet_prompt(
        DEFAULT_SUGGESTIONS_REQUEST, prefs["allergies"], prefs["dislikes"]
    )

    raw = client.complete(load_system_prompt("structured_suggestions"), user_message)
    result = interpret_suggestions(raw)
    persistence.save_suggestions(db_session, user_id, result)
    return result


# =============================================================================
# Diet plans (free-text mode)
# =============================================================================


def generate_plan_text(
    client: CompletionClient, prompt: str, regenerate_section: str | None = None
) -> str:
    """Generate a full plan, or alternatives for one section, as plain text.

    Raises:
        CompletionServiceError: If the service fails or replies with no text.
    """
    text = client.complete(plan_system_prompt(regenerate_section), prompt)
    return _require_reply(text, "diet plan")


def generate_plan_for_goal(
    db_session: Session, client: CompletionClient, user_id: str, goal: str
) -> str:
    """Generate a full plan for a goal using the user's stored preferences."""
    prefs = persistence.get_preferences(db_session, user_id)
    prompt = build_diet_prompt(goal, prefs["allergies"], prefs["dislikes"])
    return generate_plan_text(client, prompt)


def regenerate_plan_section(
    db_session: Session,
    client: CompletionClient,
    user_id: str,
    plan: str,
    section: str,
    goal: str | None = None,
) -> str:
    """Generate new options for one section and append them to the plan."""
    prefs = persistence.get_preferences(db_session, user_id)
    base = goal or f"Give me new {section.lower()} ideas."
    prompt = build_diet_prompt(base, prefs["allergies"], prefs["dislikes"])
    new_text = generate_plan_text(client, prompt, regenerate_section=section)
    return append_regenerated_section(plan, section, new_text)


# =============================================================================
# Health chat
# =============================================================================


def send_chat_message(
    db_session: Session,
    client: CompletionClient,
    user_id: str,
    message: str,
    chat_id: int | None = None,
    history_limit: int = 20,
) -> tuple[Chat, str]:
    """Send a user message to the assistant and store both sides.

    Creates the chat when chat_id is None. A chat still carrying the default
    title is renamed after its first message. At most history_limit earlier
    messages are sent as context; 0 sends none.

    Returns:
        Tuple of (chat, assistant_reply).
    """
    if chat_id is None:
        chat = persistence.create_chat(db_session, user_id)
    else:
        chat = persistence.get_chat(db_session, chat_id, user_id=user_id)

    earlier = persistence.get_chat_messages(db_session, chat.id)
    history = earlier[-history_limit:] if history_limit > 0 else []
    messages = [{"role": m.role.value, "content": m.content} for m in history]
    messages.append({"role": "user", "content": message})

    persistence.add_chat_message(db_session, chat, MessageRole.USER, message)
    reply = client.complete_messages(load_system_prompt("health_chat"), messages)
    reply = _require_reply(reply, "chat message")
    persistence.add_chat_message(db_session, chat, MessageRole.ASSISTANT, reply)

    if not earlier and chat.title == DEFAULT_CHAT_TITLE:
        persistence.rename_chat(db_session, chat, message[:CHAT_TITLE_LENGTH])

    return chat, reply


# =============================================================================
# Health reports
# =============================================================================


def analyze_report(client: CompletionClient, file_name: str, content: str | None = None) -> str:
    """Summarize a report from its text, or from its name alone if no text is given."""
    if content and content.strip():
        user_message = f"Report file: {file_name}\n\nReport contents:\n{content.strip()}"
    else:
        user_message = f"Report file: {file_name}\n\nThe report contents are not available."
    summary = client.complete(load_system_prompt("report_analysis"), user_message)
    return _require_reply(summary, "report analysis")


def upload_report(
    db_session: Session,
    client: CompletionClient,
    user_id: str,
    file_name: str,
    content: str | None = None,
) -> HealthReport:
    """Analyze a report and save it with its summary."""
    summary = analyze_report(client, file_name, content)
    return persistence.save_report(db_session, user_id, title=file_name, summary=summary)
