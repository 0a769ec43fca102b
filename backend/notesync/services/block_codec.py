"""
NoteSync Backend — Block-Content Codec
=======================================

What:  Converts between the editor's block tree and flat text.
How:   `decode_to_plain_text` walks the tree lazily and yields one line per
       block that carries text; `encode_from_plain_text` turns lines back
       into paragraph blocks under a level-1 heading.

Block shape:
    {
        "id": "paragraph-1",
        "type": "paragraph",
        "props": {"textColor": "default", ...},
        "content": [{"type": "text", "text": "Hello", "styles": {}}],
        "children": [...]
    }

Round-trip is lossy: headings, lists and inline styles collapse to plain
paragraphs. Only text survives.
"""

from typing import Any, Iterable, Iterator, List, Mapping, Optional

DEFAULT_BLOCK_PROPS = {
    "textColor": "default",
    "backgroundColor": "default",
    "textAlignment": "left",
}


def _block_text(block: Mapping[str, Any]) -> str:
    content = block.get("content")
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    runs = []
    for item in content:
        if isinstance(item, Mapping) and isinstance(item.get("text"), str):
            runs.append(item["text"])
        elif isinstance(item, str):
            runs.append(item)
    return "".join(runs)


def _walk(blocks: Any) -> Iterator[str]:
    if not isinstance(blocks, (list, tuple)):
        return
    for block in blocks:
        if not isinstance(block, Mapping):
            continue
        text = _block_text(block)
        if text:
            yield text
        yield from _walk(block.get("children"))


class PlainTextLines(Iterable[str]):
    """
    Restartable, lazy view over the text lines of a block tree.

    Every `iter()` starts a fresh depth-first walk, so the same view can be
    consumed more than once (e.g. counted, then joined).
    """

    def __init__(self, blocks: Optional[List[Any]]):
        self._blocks = blocks or []

    def __iter__(self) -> Iterator[str]:
        return _walk(self._blocks)

    def join(self, separator: str = "\n") -> str:
        return separator.join(self)


def decode_to_plain_text(blocks: Optional[List[Any]]) -> PlainTextLines:
    """
    Yield one text line per block that has text, children after parents.

    Malformed nodes never raise; they contribute nothing.
    """
    return PlainTextLines(blocks)


def encode_from_plain_text(text: str, heading_label: str) -> List[dict]:
    """
    Build block content from flat text.

    Each non-blank line becomes a paragraph with id `paragraph-<n>` (1-based);
    a `heading-1` block carrying `heading_label` is prepended.
    """
    lines = [line.strip() for line in (text or "").splitlines() if line.strip()]

    paragraphs = [
        {
            "id": f"paragraph-{index}",
            "type": "paragraph",
            "props": dict(DEFAULT_BLOCK_PROPS),
            "content": [{"type": "text", "text": line, "styles": {}}],
            "children": [],
        }
        for index, line in enumerate(lines, start=1)
    ]

    heading = {
        "id": "heading-1",
        "type": "heading",
        "props": {"level": "1", **DEFAULT_BLOCK_PROPS},
        "content": [{"type": "text", "text": heading_label, "styles": {}}],
        "children": [],
    }
    return [heading, *paragraphs]
