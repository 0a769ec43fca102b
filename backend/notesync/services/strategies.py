"""
NoteSync Backend — Content Generation Strategies
=================================================

What:  The two ways a note can be summarized or turned into quiz questions:
         external  → Google Gemini through GeminiClient
         fallback  → a local, deterministic reducer (no network)
How:   `GenerationStrategy` is a tagged value: `kind` selects the behaviour,
       `client` is only present for the external kind. `build_strategy`
       picks the kind from GENERATION_STRATEGY.

External failures are raised as ExternalServiceError; a strategy never
silently degrades to the fallback on its own. The pipeline decides (before
calling) whether the external strategy is usable at all.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from notesync.config import Settings
from notesync.exceptions import ExternalServiceError
from notesync.services.gemini_service import GeminiClient

logger = logging.getLogger(__name__)

SUMMARY_INSTRUCTION = "Please summarize the following note content in a concise and clear manner:"
QUIZ_INSTRUCTION = (
    "Based on the following note content, generate five challenging quiz "
    "questions. Provide only the questions."
)

INSUFFICIENT_SUMMARY = "Unable to generate summary due to insufficient content."
INSUFFICIENT_QUIZ = "Unable to generate quiz questions due to insufficient content."

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_QUIZ_QUESTION_COUNT = 5


class StrategyKind(str, Enum):
    EXTERNAL = "external"
    FALLBACK = "fallback"


# ── Local reducers ────────────────────────────────────────────────────────


def basic_summary(text: str) -> str:
    """
    Keep the first two sentences of every non-empty paragraph.

    Paragraphs are separated by blank lines in the output. A result of ten
    characters or fewer counts as no summary at all.
    """
    summary = ""
    for paragraph in (text or "").split("\n"):
        if not paragraph.strip():
            continue
        sentences = _SENTENCE_SPLIT.split(paragraph.strip())
        summary += " ".join(sentences[:2]) + "\n\n"
    return summary if len(summary) > 10 else INSUFFICIENT_SUMMARY


def basic_quiz(text: str) -> str:
    """Turn up to five sentences of the note into recall questions."""
    sentences = [
        sentence.strip().rstrip(".!?").strip()
        for paragraph in (text or "").split("\n")
        for sentence in _SENTENCE_SPLIT.split(paragraph.strip())
        if sentence.strip()
    ]
    sentences = [s for s in sentences if len(s.split()) >= 3]
    if not sentences:
        return INSUFFICIENT_QUIZ

    questions = [
        f"{index}. Explain in your own words: \"{sentence}\"?"
        for index, sentence in enumerate(sentences[:_QUIZ_QUESTION_COUNT], start=1)
    ]
    return "\n".join(questions)


# ── Strategy ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class GenerationStrategy:
    kind: StrategyKind
    client: Optional[GeminiClient] = None

    @property
    def name(self) -> str:
        return "gemini" if self.kind is StrategyKind.EXTERNAL else "basic"

    @property
    def is_external(self) -> bool:
        return self.kind is StrategyKind.EXTERNAL

    @property
    def is_ready(self) -> bool:
        """False when the external strategy has no usable credentials."""
        if self.kind is StrategyKind.FALLBACK:
            return True
        return self.client is not None and self.client.has_credentials

    async def summarize(self, text: str) -> str:
        if self.kind is StrategyKind.FALLBACK:
            return basic_summary(text)
        return await self.client.generate_text(SUMMARY_INSTRUCTION, text)

    async def generate_quiz(self, text: str) -> str:
        if self.kind is StrategyKind.FALLBACK:
            return basic_quiz(text)
        return await self.client.generate_text(QUIZ_INSTRUCTION, text)

    async def extract_document(self, data: bytes, mime_type: str) -> str:
        """Only the external strategy can read documents."""
        if self.kind is StrategyKind.FALLBACK:
            raise ExternalServiceError(
                message="Document extraction is unavailable with the basic generation strategy",
                reason=ExternalServiceError.UNAVAILABLE,
                context={"strategy": self.name},
            )
        return await self.client.extract_document(data, mime_type)


FALLBACK_STRATEGY = GenerationStrategy(kind=StrategyKind.FALLBACK)


def build_strategy(config: Settings, client: Optional[GeminiClient] = None) -> GenerationStrategy:
    """Select the strategy named by GENERATION_STRATEGY."""
    if config.generation_strategy == "basic":
        logger.info("Generation strategy: basic (local reducer)")
        return FALLBACK_STRATEGY

    client = client or GeminiClient(config)
    logger.info("Generation strategy: gemini (model=%s)", config.gemini_model)
    return GenerationStrategy(kind=StrategyKind.EXTERNAL, client=client)
