"""Test doubles and sample data shared by the test modules."""

from typing import Any, Dict, List, Sequence
from unittest.mock import AsyncMock

# Smallest byte string that passes the PDF checks
SAMPLE_PDF = b"%PDF-1.4\n1 0 obj << /Type /Catalog >> endobj\ntrailer << >>\n%%EOF\n"


class FakeGeminiClient:
    """Stands in for GeminiClient: same surface, canned answers."""

    def __init__(self, has_credentials: bool = True):
        self.has_credentials = has_credentials
        self.generate_text = AsyncMock(return_value="Generated line one.\nGenerated line two.")
        self.extract_document = AsyncMock(return_value="Extracted heading\nExtracted body text.")
        self.health_check = AsyncMock(return_value="available")


def paragraph(text: str, children: Sequence[Dict[str, Any]] = ()) -> Dict[str, Any]:
    return {
        "id": f"p-{text[:12]}",
        "type": "paragraph",
        "props": {},
        "content": [{"type": "text", "text": text, "styles": {}}],
        "children": list(children),
    }


def texts(blocks: List[Dict[str, Any]]) -> List[str]:
    """Text of each top-level block, in order."""
    return ["".join(run["text"] for run in block["content"]) for block in blocks]
