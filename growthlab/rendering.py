"""
Inline rich-text rendering for assistant replies.

Both renderers are pure functions of the accumulated text, so re-rendering
after every delta is idempotent.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Literal

SpanStyle = Literal["text", "bold", "italic", "link"]

BULLET_PATTERN = re.compile(r"^\s*[\*\-]\s+")
INLINE_PATTERN = re.compile(r"(\*\*[^*]+\*\*|\*[^*]+\*)")
ROUTE_SPLIT_PATTERN = re.compile(r"(\([/\w-]+\))", re.ASCII)
ROUTE_PATTERN = re.compile(r"^\((/[\w-]+)\)$", re.ASCII)


@dataclass(frozen=True)
class Span:
    text: str
    style: SpanStyle = "text"
    target: str | None = None


@dataclass(frozen=True)
class RenderedLine:
    spans: tuple[Span, ...] = field(default_factory=tuple)
    bullet: bool = False

    @property
    def plain_text(self) -> str:
        return "".join(span.text for span in self.spans)


def _inline_spans(text: str) -> tuple[Span, ...]:
    spans: list[Span] = []
    for part in INLINE_PATTERN.split(text):
        if not part:
            continue
        if len(part) > 4 and part.startswith("**") and part.endswith("**"):
            spans.append(Span(part[2:-2], "bold"))
        elif len(part) > 2 and part.startswith("*") and part.endswith("*"):
            spans.append(Span(part[1:-1], "italic"))
        else:
            spans.append(Span(part))
    return tuple(spans)


def render_markdown(text: str) -> list[RenderedLine]:
    """Render `**bold**`, `*italic*` and `-`/`*` bullets, one entry per line."""
    lines: list[RenderedLine] = []
    for line in text.split("\n"):
        bullet = BULLET_PATTERN.match(line) is not None
        if bullet:
            line = BULLET_PATTERN.sub("", line, count=1)
        lines.append(RenderedLine(spans=_inline_spans(line), bullet=bullet))
    return lines


def render_route_links(text: str) -> list[Span]:
    """Turn parenthesised app routes such as `(/models)` into link spans."""
    spans: list[Span] = []
    for part in ROUTE_SPLIT_PATTERN.split(text):
        if not part:
            continue
        match = ROUTE_PATTERN.match(part)
        if match:
            spans.append(Span(part, "link", target=match.group(1)))
        else:
            spans.append(Span(part))
    return spans
