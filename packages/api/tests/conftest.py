# This project was developed with assistance from AI tools.
"""Shared fixtures: in-memory backends wired the way the app wires the real ones."""

import pytest
from factories import FakeCrm, FakeScheduler, FakeStorage, FakeStore, RecordingDispatcher


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def crm():
    return FakeCrm()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def scheduler():
    return FakeScheduler()
