"""Pytest configuration and shared fixtures for quiz generation tests."""

import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from quizgen.metrics import GenerationMetrics


@pytest.fixture
def mock_openai_api_key() -> str:
    """Fixture providing a mock OpenAI API key for testing."""
    return "sk-test-mock-api-key-12345"


@pytest.fixture
def sample_content() -> str:
    """Fixture providing educational source text long enough to generate from."""
    return (
        "Photosynthesis is the process by which green plants use sunlight to "
        "make their own food. Inside the chloroplasts, chlorophyll absorbs "
        "light energy, which drives the conversion of carbon dioxide and water "
        "into glucose. Oxygen is released as a by-product of this reaction. "
        "The glucose produced is used for energy and to build cellulose for "
        "cell walls."
    )


@pytest.fixture
def metrics() -> GenerationMetrics:
    """Fixture providing a fresh metrics tracker."""
    return GenerationMetrics()


@pytest.fixture
def mc_question() -> Dict[str, Any]:
    """Fixture providing a well-formed multiple choice question."""
    return {
        "type": "mc",
        "difficulty": "medium",
        "stem": "What do plants release during photosynthesis?",
        "answers": [
            {"text": "Oxygen", "is_correct": True, "feedback": "Correct."},
            {"text": "Nitrogen", "is_correct": False, "feedback": "No."},
            {"text": "Helium", "is_correct": False, "feedback": "No."},
            {"text": "Argon", "is_correct": False, "feedback": "No."},
        ],
        "feedback_correct": "Well done!",
        "feedback_incorrect": "Plants release oxygen.",
    }


@pytest.fixture
def tf_question() -> Dict[str, Any]:
    """Fixture providing a well-formed true/false question."""
    return {
        "type": "tf",
        "difficulty": "easy",
        "stem": "Chlorophyll absorbs light energy.",
        "answers": [
            {"text": "True", "is_correct": True},
            {"text": "False", "is_correct": False},
        ],
    }


class RecordingSleep:
    """Stand-in for time.sleep that records requested delays."""

    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Fixture providing a sleep function that never blocks."""
    return RecordingSleep()


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    """Fixture providing a controllable clock."""
    return FakeClock()


def completion_body(
    content: str, usage: Optional[Dict[str, int]] = None
) -> Dict[str, Any]:
    """Build a chat-completions response body."""
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": usage
        or {"prompt_tokens": 1200, "completion_tokens": 800, "total_tokens": 2000},
    }


@pytest.fixture
def make_completion() -> Callable[..., Dict[str, Any]]:
    """Fixture providing the completion body builder."""
    return completion_body


@pytest.fixture
def questions_json(mc_question, tf_question) -> str:
    """Fixture providing model output with two valid questions."""
    return json.dumps({"questions": [mc_question, tf_question]})


class ScriptedTransport(httpx.MockTransport):
    """MockTransport that replays a fixed sequence of responses or errors.

    Each item is either an ``httpx.Response`` or an exception instance to
    raise. Every request seen is kept in ``requests``.
    """

    def __init__(self, script: List[Any]):
        self.script = list(script)
        self.requests: List[httpx.Request] = []
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.script:
            raise AssertionError("Unexpected extra request")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def scripted_transport() -> Callable[[List[Any]], ScriptedTransport]:
    """Fixture providing a factory for scripted httpx transports."""
    return ScriptedTransport
