"""Shared fixtures for chatloop tests."""

from __future__ import annotations

import pytest

from chatloop.session import SessionOrchestrator

from .helpers import EventRecorder, FakeChatModel, make_config


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def fake_llm() -> FakeChatModel:
    return FakeChatModel()


@pytest.fixture
def orchestrator(fake_llm, recorder) -> SessionOrchestrator:
    return SessionOrchestrator(make_config(), llm=fake_llm, sink=recorder)
