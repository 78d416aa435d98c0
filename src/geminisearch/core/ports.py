from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol


@dataclass
class ModelReply:
    text: str
    grounding_metadata: Optional[Dict[str, Any]] = None


class IChatModel(Protocol):
    model: str

    def generate(self, history: List[Dict[str, str]], grounded: bool) -> ModelReply: ...
