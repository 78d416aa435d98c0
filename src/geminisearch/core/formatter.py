# src/geminisearch/core/formatter.py
import re
from typing import Optional

from markdown_it import MarkdownIt

# lines that start with word(s) followed by a colon
MAIN_SECTION = re.compile(r"^([A-Za-z][A-Za-z\s]+):(\s*)", re.M)
# remaining word(s) + colon at a line start, not a time/ratio like 10:30
SUB_SECTION = re.compile(r"^([A-Za-z][A-Za-z\s]+):(?!\d)", re.M)
BULLET = re.compile(r"^[•●○]\s*", re.M)

# GFM tables, strikethrough and autolinks; a single newline renders as <br>
_md = MarkdownIt("gfm-like", {"breaks": True})


def to_markdown(text: Optional[str]) -> str:
    """Heuristically structure freeform model text as markdown."""
    if not text:
        return ""
    out = text.replace("\r\n", "\n")
    out = MAIN_SECTION.sub(r"## \1\2", out)
    out = SUB_SECTION.sub(r"### \1", out)
    out = BULLET.sub("* ", out)

    paragraphs = []
    for p in out.split("\n\n"):
        if not p:
            continue
        # headers and list items pass through untouched
        if p.startswith(("#", "*", "-")):
            paragraphs.append(p)
        else:
            paragraphs.append(f"{p}\n")
    return "\n\n".join(paragraphs)


def format_response(text: Optional[str]) -> str:
    md = to_markdown(text)
    if not md:
        return ""
    return _md.render(md)
