"""Shared fixtures: in-memory database, fake completion client, API client."""

import os

# Settings are read from the environment, so configure before importing the app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["COMPLETION_PROVIDER"] = "gateway"
os.environ["AI_GATEWAY_API_KEY"] = "test-gateway-key"
os.environ["CREATE_TABLES_ON_STARTUP"] = "false"

import pytest
from fastapi.testclient import TestClient

from healthmate.completion_client import CompletionClient, get_completion_client
from healthmate.database import SessionLocal, engine
from healthmate.main import app
from healthmate.models import Base
from healthmate.operations import operation_slots


class FakeCompletionClient(CompletionClient):
    """Completion client returning canned replies and recording calls."""

    def __init__(self, replies=None, error=None):
        self.replies = list(replies or [])
        self.error = error
        self.calls = []

    def complete_messages(self, system_prompt, messages):
        self.calls.append({"system": system_prompt, "messages": list(messages)})
        if self.error is not None:
            raise self.error
        if self.replies:
            return self.replies.pop(0)
        return "ok"

    @property
    def last_user_message(self) -> str:
        return self.calls[-1]["messages"][-1]["content"]


@pytest.fixture(autouse=True)
def tables():
    Base.metadata.create_all(bind=engine)
    operation_slots.reset()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def fake_client():
    return FakeCompletionClient()


@pytest.fixture
def api_client(fake_client):
    app.dependency_overrides[get_completion_client] = lambda: fake_client
    yield TestClient(app)
    app.dependency_overrides.clear()
