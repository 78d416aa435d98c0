# tests/test_llm_gemini.py
import json

import pytest
import requests

from geminisearch.adapters.llm_gemini import DEFAULT_MODEL, GeminiClient
from geminisearch.core.errors import UpstreamError, UpstreamRateLimited


def _response(status: int, body) -> requests.Response:
    r = requests.Response()
    r.status_code = status
    r._content = (body if isinstance(body, str) else json.dumps(body)).encode("utf-8")
    r.encoding = "utf-8"
    return r


class FakeHttp:
    def __init__(self, result):
        self.result = result
        self.requests = []

    def post(self, url, **kwargs):
        self.requests.append({"url": url, **kwargs})
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


OK_BODY = {
    "candidates": [{
        "content": {"role": "model", "parts": [{"text": "Hello "}, {"text": "world"}]},
        "groundingMetadata": {"groundingChunks": [{"web": {"uri": "https://x", "title": "X"}}]},
    }],
}

HISTORY = [{"role": "user", "text": "hi"}]


def test_grounded_request_shape():
    http = FakeHttp(_response(200, OK_BODY))
    client = GeminiClient(api_key="k", session=http, max_tokens=100)

    reply = client.generate(HISTORY, grounded=True)

    req = http.requests[0]
    assert req["url"].endswith(f"/models/{DEFAULT_MODEL}:generateContent")
    assert req["headers"]["x-goog-api-key"] == "k"
    assert req["json"]["contents"] == [{"role": "user", "parts": [{"text": "hi"}]}]
    assert req["json"]["tools"] == [{"google_search": {}}]
    assert req["json"]["generationConfig"]["maxOutputTokens"] == 100
    assert req["timeout"] == 60.0

    assert reply.text == "Hello world"
    assert reply.grounding_metadata["groundingChunks"][0]["web"]["title"] == "X"


def test_ungrounded_request_has_no_tools():
    http = FakeHttp(_response(200, {"candidates": [{"content": {"parts": [{"text": "ok"}]}}]}))
    reply = GeminiClient(api_key="k", model="gemini-x", session=http).generate(HISTORY, grounded=False)

    assert "tools" not in http.requests[0]["json"]
    assert "/models/gemini-x:" in http.requests[0]["url"]
    assert reply.text == "ok"
    assert reply.grounding_metadata is None


def test_rate_limit_is_tagged_with_retry_delay():
    body = {"error": {
        "code": 429,
        "message": "You exceeded your current quota.",
        "status": "RESOURCE_EXHAUSTED",
        "details": [{"@type": "type.googleapis.com/google.rpc.RetryInfo", "retryDelay": "16s"}],
    }}
    client = GeminiClient(api_key="k", session=FakeHttp(_response(429, json.dumps(body, separators=(",", ":")))))

    with pytest.raises(UpstreamRateLimited) as ei:
        client.generate(HISTORY, grounded=True)
    assert ei.value.status == 429
    assert ei.value.retry_after_seconds == 16
    assert ei.value.message == "You exceeded your current quota."


def test_http_error_keeps_status_and_api_message():
    body = {"error": {"code": 400, "message": "Search grounding is not supported.", "status": "INVALID_ARGUMENT"}}
    client = GeminiClient(api_key="k", session=FakeHttp(_response(400, body)))

    with pytest.raises(UpstreamError) as ei:
        client.generate(HISTORY, grounded=True)
    assert ei.value.status == 400
    assert str(ei.value) == "Search grounding is not supported."


def test_non_json_error_body():
    client = GeminiClient(api_key="k", session=FakeHttp(_response(502, "Bad Gateway")))
    with pytest.raises(UpstreamError) as ei:
        client.generate(HISTORY, grounded=False)
    assert ei.value.status == 502
    assert ei.value.message == "Bad Gateway"


def test_transport_failure():
    client = GeminiClient(api_key="k", session=FakeHttp(requests.ConnectionError("refused")))
    with pytest.raises(UpstreamError) as ei:
        client.generate(HISTORY, grounded=False)
    assert ei.value.status is None
    assert "refused" in ei.value.message


def test_malformed_success_body():
    client = GeminiClient(api_key="k", session=FakeHttp(_response(200, "<html>")))
    with pytest.raises(UpstreamError):
        client.generate(HISTORY, grounded=False)


def test_parse_reply_tolerates_missing_pieces():
    assert GeminiClient.parse_reply({}).text == ""
    assert GeminiClient.parse_reply({"candidates": []}).text == ""
    assert GeminiClient.parse_reply({"candidates": [{"content": {"parts": [{"inlineData": {}}]}}]}).text == ""
