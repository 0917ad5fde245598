from pathlib import Path

import pytest

from delivery.sink import SubmissionSink
from delivery.storage import FileSubmissionStore
from robochat.core.contact_config import load_contact_config
from robochat.core.errors import PersistenceError

PACKAGE_CONFIG = Path(__file__).resolve().parent.parent / "robochat" / "contact_config.json"


class ScriptedClient:
    """Stands in for ChatCompletionClient: each call pops the next scripted outcome (text or exception)."""

    def __init__(self, outcomes=None, api_key="test-key"):
        self.outcomes = list(outcomes or [])
        self.api_key = api_key
        self.calls = []

    def _next(self):
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def call(self, messages, model=None, temperature=None, max_tokens=None):
        self.calls.append({"messages": list(messages), "model": model, "temperature": temperature, "max_tokens": max_tokens})
        return self._next()

    def complete(self, messages, model=None, temperature=None, max_tokens=None):
        self.calls.append({"messages": list(messages), "model": model, "temperature": temperature, "max_tokens": max_tokens})
        return self._next()


class ScriptedPolicy:
    """Stands in for RetryPolicy in ChatSession / wizard tests."""

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.calls = []

    def send(self, messages, **options):
        self.calls.append({"messages": list(messages), "options": options})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class BrokenStore:
    def save(self, record):
        raise PersistenceError("file", "disk full")


class RecordingNotifier:
    def __init__(self, result=True):
        self.result = result
        self.records = []

    def __call__(self, record):
        self.records.append(record)
        return self.result


@pytest.fixture
def contact_config():
    return load_contact_config(PACKAGE_CONFIG)


@pytest.fixture
def file_store(tmp_path):
    return FileSubmissionStore(tmp_path / "contact-data")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def sink(file_store, notifier):
    return SubmissionSink(file_store, notifier)
