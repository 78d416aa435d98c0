# src/geminisearch/core/sessions.py
import logging
import time
import uuid
from collections import OrderedDict
from typing import Callable, Generic, Optional, Protocol, TypeVar

logger = logging.getLogger("geminisearch.sessions")

H = TypeVar("H")

ID_LENGTH = 10


def new_session_id() -> str:
    return uuid.uuid4().hex[:ID_LENGTH]


class ExpiryPolicy(Protocol):
    def expired(self, created_at: float, now: float) -> bool: ...


class NeverExpire:
    def expired(self, created_at: float, now: float) -> bool:
        return False


class TtlExpiry:
    def __init__(self, ttl_seconds: float):
        self.ttl_seconds = ttl_seconds

    def expired(self, created_at: float, now: float) -> bool:
        return now - created_at >= self.ttl_seconds


class SessionStore(Generic[H]):
    """
    In-memory map of session id -> conversation handle.

    Owned by the app instance. With the default policy entries live until the
    process exits; `policy` adds age-based expiry and `max_items` evicts the
    least recently used entry once the map is full.
    Not locked: callers access it from the event-loop thread only.
    """

    def __init__(
        self,
        policy: Optional[ExpiryPolicy] = None,
        max_items: int = 0,
        id_factory: Callable[[], str] = new_session_id,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.policy = policy or NeverExpire()
        self.max_items = max_items
        self._new_id = id_factory
        self._clock = clock
        self._entries: "OrderedDict[str, tuple[float, H]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def _prune(self, now: float):
        doomed = [k for k, (created, _) in self._entries.items() if self.policy.expired(created, now)]
        for k in doomed:
            self._entries.pop(k, None)
        if doomed:
            logger.info("[sessions] expired %d session(s)", len(doomed))

    def create(self, handle: H) -> str:
        now = self._clock()
        self._prune(now)
        session_id = self._new_id()
        while session_id in self._entries:
            session_id = self._new_id()
        self._entries[session_id] = (now, handle)
        if self.max_items:
            while len(self._entries) > self.max_items:
                evicted, _ = self._entries.popitem(last=False)
                logger.info("[sessions] evicted %s (max_items=%d)", evicted, self.max_items)
        return session_id

    def lookup(self, session_id: str) -> Optional[H]:
        entry = self._entries.get(session_id)
        if entry is None:
            return None
        created, handle = entry
        if self.policy.expired(created, self._clock()):
            self._entries.pop(session_id, None)
            return None
        self._entries.move_to_end(session_id)
        return handle
