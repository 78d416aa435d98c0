# src/geminisearch/core/chat.py
from enum import Enum
from typing import Dict, List

from geminisearch.core.ports import IChatModel, ModelReply


class GroundingMode(str, Enum):
    GROUNDED = "grounded"      # google_search tool attached
    UNGROUNDED = "ungrounded"  # plain generation (tool unavailable at search time)


class ChatSession:
    """
    Conversation handle: the turn history plus the grounding mode fixed when
    the session was opened. History only grows on successful sends.
    """

    def __init__(self, model: IChatModel, mode: GroundingMode):
        self.model = model
        self.mode = mode
        self._history: List[Dict[str, str]] = []

    @property
    def history(self) -> List[Dict[str, str]]:
        return list(self._history)

    def send(self, text: str) -> ModelReply:
        turn = {"role": "user", "text": text}
        reply = self.model.generate(self._history + [turn], grounded=self.mode is GroundingMode.GROUNDED)
        self._history.append(turn)
        self._history.append({"role": "model", "text": reply.text})
        return reply
