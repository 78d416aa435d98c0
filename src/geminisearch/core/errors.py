# src/geminisearch/core/errors.py
import math
import re
from dataclasses import dataclass
from typing import Any, Optional

DEFAULT_STATUS = 500

# "Please retry in 16.028201274s."
_RETRY_IN = re.compile(r"retry in\s+(\d+(?:\.\d+)?)s", re.I)
# embedded detail: "retryDelay":"16s"
_RETRY_DELAY = re.compile(r'retryDelay"\s*:\s*"(\d+)s"', re.I)


class GeminiSearchError(Exception):
    """Base class for everything this service raises on purpose."""


class ConfigurationError(GeminiSearchError):
    """Missing or malformed settings; the process must not serve traffic."""


class ValidationError(GeminiSearchError):
    status = 400


class NotFoundError(GeminiSearchError):
    status = 404


class UpstreamError(GeminiSearchError):
    """Any failure talking to the model API, normalized at the client boundary."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class UpstreamRateLimited(UpstreamError):
    def __init__(self, message: str, retry_after_seconds: Optional[int] = None):
        super().__init__(message, status=429)
        self.retry_after_seconds = retry_after_seconds


@dataclass(frozen=True)
class ErrorReport:
    status: int
    message: str
    retry_after_seconds: Optional[int] = None


def _http_status(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if 400 <= value <= 599 else None


def coerce_status(error: Any) -> Optional[int]:
    response = getattr(error, "response", None)
    candidates = [
        getattr(error, "status", None),
        getattr(error, "status_code", None),
        getattr(response, "status", None) if response is not None else None,
        getattr(response, "status_code", None) if response is not None else None,
    ]
    for value in candidates:
        status = _http_status(value)
        if status is not None:
            return status
    return None


def extract_retry_after_seconds(message: Optional[str]) -> Optional[int]:
    if not message:
        return None
    m = _RETRY_IN.search(message)
    if m:
        return math.ceil(float(m.group(1)))
    m = _RETRY_DELAY.search(message)
    if m:
        return int(m.group(1))
    return None


def classify_error(error: BaseException, default_message: str) -> ErrorReport:
    """Turn an unrecovered handler error into the status/message/delay triple
    the HTTP layer reports."""
    status = coerce_status(error) or DEFAULT_STATUS
    message = getattr(error, "message", None) or str(error) or default_message

    retry_after = None
    if status == 429:
        retry_after = getattr(error, "retry_after_seconds", None)
        if retry_after is None:
            retry_after = extract_retry_after_seconds(message)
    return ErrorReport(status=status, message=message, retry_after_seconds=retry_after)
