# src/geminisearch/core/sources.py
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple


@dataclass
class Source:
    title: str
    url: str
    snippet: str = ""

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class _Pending:
    title: str
    url: str
    parts: List[str] = field(default_factory=list)
    seen: Set[int] = field(default_factory=set)  # support positions already used


def _as_list(v: Any) -> list:
    return v if isinstance(v, list) else []


def _support_texts(supports: list, index: int) -> List[Tuple[int, str]]:
    texts = []
    for pos, s in enumerate(supports):
        if not isinstance(s, dict):
            continue
        indices = s.get("groundingChunkIndices")
        if not isinstance(indices, list):
            continue
        if not any(isinstance(i, int) and not isinstance(i, bool) and i == index for i in indices):
            continue
        segment = s.get("segment")
        text = segment.get("text") if isinstance(segment, dict) else None
        if isinstance(text, str) and text:
            texts.append((pos, text))
    return texts


def extract_sources(metadata: Optional[Dict[str, Any]]) -> List[Source]:
    """
    Walk groundingMetadata into a url-unique, first-seen-ordered source list.
    Each source's snippet joins the segment texts of every support that
    references any chunk carrying that url. No metadata -> [].
    """
    if not isinstance(metadata, dict):
        return []
    chunks = _as_list(metadata.get("groundingChunks"))
    supports = _as_list(metadata.get("groundingSupports"))

    by_url: Dict[str, _Pending] = {}
    for i, chunk in enumerate(chunks):
        web = chunk.get("web") if isinstance(chunk, dict) else None
        if not isinstance(web, dict):
            continue
        url, title = web.get("uri"), web.get("title")
        if not url or not title:
            continue
        pending = by_url.setdefault(url, _Pending(title=title, url=url))
        for pos, text in _support_texts(supports, i):
            # a support citing two chunks of the same url counts once
            if pos not in pending.seen:
                pending.seen.add(pos)
                pending.parts.append(text)

    return [Source(title=p.title, url=p.url, snippet=" ".join(p.parts)) for p in by_url.values()]
