import pytest
from fastapi.testclient import TestClient

from geminisearch.api.app import create_app
from geminisearch.core.config import AppConfig
from geminisearch.core.ports import ModelReply
from geminisearch.core.sessions import SessionStore

METADATA = {
    "groundingChunks": [
        {"web": {"uri": "https://a.example/page", "title": "A"}},
        {"web": {"uri": "https://b.example/page", "title": "B"}},
    ],
    "groundingSupports": [
        {"segment": {"text": "alpha"}, "groundingChunkIndices": [0], "confidenceScores": [0.9]},
        {"segment": {"text": "beta"}, "groundingChunkIndices": [1, 0], "confidenceScores": [0.8, 0.7]},
    ],
}


class FakeModel:
    """Scriptable stand-in for the Gemini client.

    `responder(history, grounded)` returns a ModelReply or raises.
    """

    model = "fake-model"

    def __init__(self, responder=None):
        self.calls = []
        self.responder = responder or (lambda history, grounded: ModelReply(
            text="Summary: hello", grounding_metadata=METADATA if grounded else None))

    def generate(self, history, grounded):
        self.calls.append({"history": list(history), "grounded": grounded})
        return self.responder(history, grounded)


@pytest.fixture
def config():
    return AppConfig(api_key="test-key")


@pytest.fixture
def model():
    return FakeModel()


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def client(config, model, store):
    return TestClient(create_app(config=config, model=model, store=store))
