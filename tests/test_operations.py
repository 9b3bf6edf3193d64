import json
import threading

import pytest
from pydantic import ValidationError

from healthmate import operations, persistence
from healthmate.config import Settings
from healthmate.errors import CompletionServiceError, OperationInProgressError
from healthmate.interpreter import FellBackToDefault, Parsed
from healthmate.models import PreferenceKind
from healthmate.operations import OperationSlots, OperationState

from .conftest import FakeCompletionClient


def test_slot_rejects_second_operation_for_same_user():
    slots = OperationSlots()

    with slots.hold("user-1", "generate-plan"):
        assert slots.state("user-1") == OperationState.IN_FLIGHT
        assert slots.current("user-1") == "generate-plan"
        with pytest.raises(OperationInProgressError) as exc_info:
            with slots.hold("user-1", "save-plan"):
                pass

    assert exc_info.value.running == "generate-plan"
    assert slots.state("user-1") == OperationState.SUCCEEDED


def test_slot_is_per_user():
    slots = OperationSlots()

    with slots.hold("user-1", "generate-plan"):
        with slots.hold("user-2", "generate-plan"):
            assert slots.state("user-2") == OperationState.IN_FLIGHT

    assert slots.state("user-3") == OperationState.IDLE


def test_slot_records_failure_and_frees_up():
    slots = OperationSlots()

    with pytest.raises(RuntimeError):
        with slots.hold("user-1", "generate-plan"):
            raise RuntimeError("boom")

    assert slots.state("user-1") == OperationState.FAILED
    assert slots.current("user-1") is None
    with slots.hold("user-1", "generate-plan"):
        pass
    assert slots.state("user-1") == OperationState.SUCCEEDED


def test_slot_admits_one_of_many_concurrent_callers():
    slots = OperationSlots()
    started = threading.Event()
    release = threading.Event()
    rejected = []

    def long_operation():
        with slots.hold("user-1", "generate-plan"):
            started.set()
            release.wait(timeout=5)

    worker = threading.Thread(target=long_operation)
    worker.start()
    started.wait(timeout=5)
    for _ in range(3):
        try:
            with slots.hold("user-1", "save-plan"):
                pass
        except OperationInProgressError:
            rejected.append(True)
    release.set()
    worker.join(timeout=5)

    assert rejected == [True, True, True]
    assert slots.state("user-1") == OperationState.SUCCEEDED



def test_finished_slots_are_forgotten_beyond_the_bound():
    slots = OperationSlots(max_tracked=3)

    for i in range(10):
        with slots.hold(f"user-{i}", "generate-plan"):
            pass

    assert len(slots) == 3
    assert slots.state("user-0") == OperationState.IDLE
    assert slots.state("user-9") == OperationState.SUCCEEDED


def test_in_flight_slots_are_never_forgotten():
    slots = OperationSlots(max_tracked=2)

    with slots.hold("user-1", "generate-plan"):
        with slots.hold("user-2", "generate-plan"):
            for i in range(3, 8):
                with slots.hold(f"user-{i}", "save-plan"):
                    pass
            assert slots.current("user-1") == "generate-plan"
            assert slots.current("user-2") == "generate-plan"
            with pytest.raises(OperationInProgressError):
                with slots.hold("user-1", "save-plan"):
                    pass
            # Both in-flight slots plus the latest finished one
            assert len(slots) == 3

    assert slots.state("user-1") == OperationState.SUCCEEDED

def test_generate_suggestions_includes_preferences_and_saves(db_session):
    persistence.add_preference(db_session, "user-1", PreferenceKind.ALLERGY, "Peanuts")
    payload = [
        {"title": "Eggs", "description": "Boiled eggs.", "category": "breakfast"},
        {"title": "Stretch", "description": "Morning stretch.", "category": "lifestyle"},
    ]
    client = FakeCompletionClient(replies=[json.dumps(payload)])

    result = operations.generate_suggestions(db_session, client, "user-1")

    assert isinstance(result, Parsed)
    assert "Avoid allergens: peanuts." in client.last_user_message
    assert "JSON array" in client.calls[0]["system"]
    assert len(persistence.list_suggestions(db_session, "user-1")) == 2


def test_generate_suggestions_saves_defaults_on_prose_reply(db_session):
    client = FakeCompletionClient(replies=["Eat well and sleep more."])

    result = operations.generate_suggestions(db_session, client, "user-1")

    assert isinstance(result, FellBackToDefault)
    assert len(persistence.list_suggestions(db_session, "user-1")) == 5


def test_generate_suggestions_propagates_upstream_error(db_session):
    client = FakeCompletionClient(error=CompletionServiceError("AI gateway error: 500", status=500))

    with pytest.raises(CompletionServiceError):
        operations.generate_suggestions(db_session, client, "user-1")

    assert persistence.list_suggestions(db_session, "user-1") == []


def test_plan_text_uses_section_prompt_only_when_regenerating():
    client = FakeCompletionClient(replies=["full plan", "dinner ideas"])

    assert operations.generate_plan_text(client, "lose weight") == "full plan"
    assert operations.generate_plan_text(client, "lose weight", "Dinner") == "dinner ideas"

    assert "four sections" in client.calls[0]["system"]
    assert "Dinner only" in client.calls[1]["system"]
    assert client.calls[1]["messages"] == [{"role": "user", "content": "lose weight"}]


def test_regenerate_section_keeps_original_plan_as_prefix(db_session):
    persistence.add_preference(db_session, "user-1", PreferenceKind.DISLIKE, "mushrooms")
    client = FakeCompletionClient(replies=["1. Shakshuka\n2. Avocado toast"])
    plan = "Breakfast: oats\nLunch: soup\nDinner: fish\nSnacks: fruit"

    updated = operations.regenerate_plan_section(db_session, client, "user-1", plan, "Breakfast")

    assert updated.startswith(plan)
    assert "--- Updated Breakfast ---" in updated[len(plan):]
    assert updated.endswith("2. Avocado toast")
    assert "Avoid disliked foods: mushrooms." in client.last_user_message


def test_chat_keeps_history_and_titles_new_chat(db_session):
    client = FakeCompletionClient(replies=["Aim for 7-9 hours.", "Try a wind-down routine."])

    chat, reply = operations.send_chat_message(db_session, client, "user-1", "How much sleep do I need?")
    assert reply == "Aim for 7-9 hours."
    assert chat.title == "How much sleep do I need?"

    chat, reply = operations.send_chat_message(
        db_session, client, "user-1", "Any tips?", chat_id=chat.id
    )
    assert client.calls[1]["messages"] == [
        {"role": "user", "content": "How much sleep do I need?"},
        {"role": "assistant", "content": "Aim for 7-9 hours."},
        {"role": "user", "content": "Any tips?"},
    ]
    assert chat.title == "How much sleep do I need?"
    assert len(persistence.get_chat_messages(db_session, chat.id)) == 4



def test_chat_history_limit_of_zero_sends_only_new_message(db_session):
    client = FakeCompletionClient(replies=["a1", "a2", "a3"])
    chat, _ = operations.send_chat_message(db_session, client, "user-1", "m1")
    operations.send_chat_message(db_session, client, "user-1", "m2", chat_id=chat.id)

    operations.send_chat_message(
        db_session, client, "user-1", "m3", chat_id=chat.id, history_limit=0
    )

    assert client.calls[-1]["messages"] == [{"role": "user", "content": "m3"}]
    assert chat.title == "m1"


def test_chat_history_limit_keeps_most_recent_messages(db_session):
    client = FakeCompletionClient(replies=["a1", "a2", "a3"])
    chat, _ = operations.send_chat_message(db_session, client, "user-1", "m1")
    operations.send_chat_message(db_session, client, "user-1", "m2", chat_id=chat.id)

    operations.send_chat_message(
        db_session, client, "user-1", "m3", chat_id=chat.id, history_limit=2
    )

    assert client.calls[-1]["messages"] == [
        {"role": "user", "content": "m2"},
        {"role": "assistant", "content": "a2"},
        {"role": "user", "content": "m3"},
    ]


def test_negative_chat_history_limit_is_rejected():
    with pytest.raises(ValidationError, match="chat_history_limit"):
        Settings(chat_history_limit=-1)


def test_zero_saved_plans_is_rejected():
    with pytest.raises(ValidationError, match="max_saved_plans"):
        Settings(max_saved_plans=0)


@pytest.mark.parametrize("reply", ["", "   "])
def test_blank_chat_reply_is_an_error(db_session, reply):
    client = FakeCompletionClient(replies=[reply])

    with pytest.raises(CompletionServiceError, match="no text"):
        operations.send_chat_message(db_session, client, "user-1", "Hello?")

    db_session.rollback()
    assert persistence.list_chats(db_session, "user-1") == []


@pytest.mark.parametrize("reply", ["", "\n\n"])
def test_blank_plan_text_is_an_error(reply):
    client = FakeCompletionClient(replies=[reply])

    with pytest.raises(CompletionServiceError, match="no text"):
        operations.generate_plan_text(client, "High protein plan")


def test_blank_report_summary_is_an_error(db_session):
    client = FakeCompletionClient(replies=[" "])

    with pytest.raises(CompletionServiceError, match="no text"):
        operations.upload_report(db_session, client, "user-1", "lipids.pdf", "LDL 150")

def test_chat_title_is_truncated(db_session):
    client = FakeCompletionClient(replies=["Sure."])
    message = "x" * 80

    chat, _ = operations.send_chat_message(db_session, client, "user-1", message)

    assert chat.title == "x" * 50


def test_upload_report_saves_summary(db_session):
    client = FakeCompletionClient(replies=["Cholesterol slightly high."])

    report = operations.upload_report(db_session, client, "user-1", "lipids.pdf", "LDL 150 mg/dL")

    assert report.summary == "Cholesterol slightly high."
    assert "LDL 150 mg/dL" in client.last_user_message
    assert [r.title for r in persistence.list_reports(db_session, "user-1")] == ["lipids.pdf"]


def test_analyze_report_without_content_uses_file_name():
    client = FakeCompletionClient(replies=["A blood panel usually covers..."])

    summary = operations.analyze_report(client, "blood_panel.pdf")

    assert summary == "A blood panel usually covers..."
    assert "blood_panel.pdf" in client.last_user_message
    assert "not available" in client.last_user_message
