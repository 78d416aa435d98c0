# src/geminisearch/adapters/llm_gemini.py
import logging
from typing import Any, Dict, List, Optional

import requests

from geminisearch.core.errors import UpstreamError, UpstreamRateLimited, extract_retry_after_seconds
from geminisearch.core.ports import ModelReply

DEFAULT_MODEL = "gemini-2.5-flash"
API_BASE = "https://generativelanguage.googleapis.com/v1beta"
SEARCH_TOOL = {"google_search": {}}

logger = logging.getLogger("geminisearch.gemini")


def _error_message(resp: requests.Response) -> str:
    try:
        err = resp.json().get("error") or {}
        msg = err.get("message") if isinstance(err, dict) else None
    except (ValueError, AttributeError):
        msg = None
    return msg or (resp.text or "").strip()[:2000] or f"Gemini API request failed (status {resp.status_code})"


class GeminiClient:
    """
    Minimal client for models/{model}:generateContent.
    Every failure leaves this class as UpstreamError / UpstreamRateLimited.
    """

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        temperature: float = 0.9,
        top_p: float = 1.0,
        top_k: int = 1,
        max_tokens: int = 2048,
        timeout: Optional[float] = 60.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.model = model or DEFAULT_MODEL
        self.generation_config = {
            "temperature": temperature,
            "topP": top_p,
            "topK": top_k,
            "maxOutputTokens": max_tokens,
        }
        self.timeout = timeout
        self.http = session or requests.Session()

    @property
    def url(self) -> str:
        return f"{API_BASE}/models/{self.model}:generateContent"

    def _payload(self, history: List[Dict[str, str]], grounded: bool) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "contents": [{"role": m["role"], "parts": [{"text": m["text"]}]} for m in history],
            "generationConfig": self.generation_config,
        }
        if grounded:
            body["tools"] = [SEARCH_TOOL]
        return body

    def generate(self, history: List[Dict[str, str]], grounded: bool) -> ModelReply:
        try:
            resp = self.http.post(
                self.url,
                json=self._payload(history, grounded),
                headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UpstreamError(f"Gemini API request failed: {e}") from e

        if resp.status_code == 429:
            # the retry hint may live in the message or in error.details[].retryDelay
            raise UpstreamRateLimited(_error_message(resp), retry_after_seconds=extract_retry_after_seconds(resp.text))
        if not 200 <= resp.status_code < 300:
            raise UpstreamError(_error_message(resp), status=resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError("Gemini API returned a malformed response") from e
        reply = self.parse_reply(data)
        logger.debug("[gemini] model=%s grounded=%s chars=%d", self.model, grounded, len(reply.text))
        return reply

    @staticmethod
    def parse_reply(data: Any) -> ModelReply:
        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
            return ModelReply(text="")
        first = candidates[0]
        content = first.get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        parts = parts if isinstance(parts, list) else []
        text = "".join(p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str))
        metadata = first.get("groundingMetadata")
        return ModelReply(text=text, grounding_metadata=metadata if isinstance(metadata, dict) else None)
