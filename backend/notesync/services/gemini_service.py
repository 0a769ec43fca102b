"""
NoteSync Backend — Google Gemini Provider Client
=================================================

What:  Thin async client around Google Gemini used by the external generation
       strategy: text generation (summary, quiz) and PDF text extraction.
How:   Every call goes through a circuit breaker, is bounded by GEMINI_TIMEOUT,
       and has its provider errors translated into ExternalServiceError with a
       stable `reason`. Calls are never retried here; retrying is the caller's
       decision.
Who:   Built once by the application container and shared across requests so
       that the circuit breaker state is shared too.

Error translation:
    PermissionDenied / Unauthenticated / "API key not valid"  → invalid_credentials
    ResourceExhausted                                         → quota_exceeded
    DeadlineExceeded / ServiceUnavailable / timeout / network → unavailable
    BlockedPromptException / StopCandidateException / blocked → safety_blocked
    no candidates or no text                                  → malformed_response
"""

import asyncio
import logging
import time
import uuid
from typing import Any, List, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from google.generativeai.types import (
    BlockedPromptException,
    HarmBlockThreshold,
    HarmCategory,
    StopCandidateException,
)

from notesync.config import Settings, settings as default_settings
from notesync.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

PDF_EXTRACTION_PROMPT = (
    "Extract all text content from the following PDF document. Present the "
    "extracted text clearly. If the PDF contains images or diagrams, describe "
    "them briefly if possible, otherwise state that non-text content was "
    "present but could not be fully extracted."
)

SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
}


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker
# ══════════════════════════════════════════════════════════════════════════


class CircuitBreaker:
    """
    Circuit breaker guarding the provider.

    State Machine:
        CLOSED     normal operation; failures are counted
                   → OPEN once failure_count reaches the threshold
        OPEN       every call fails fast with ExternalServiceError(unavailable)
                   → HALF_OPEN after recovery_timeout seconds
        HALF_OPEN  one trial call is let through
                   → CLOSED on success, back to OPEN on failure

    Not thread-safe: shared by the coroutines of a single uvicorn process.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns True when a call may proceed.

        Raises:
            ExternalServiceError(reason="unavailable") while the circuit is OPEN.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.monotonic() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info("Circuit breaker transitioning to HALF_OPEN after %.1fs", elapsed)
                self.state = self.HALF_OPEN
                return True

            remaining = max(1, int(self.recovery_timeout - elapsed))
            raise ExternalServiceError(
                message="Content generation is temporarily unavailable. Please try again later.",
                reason=ExternalServiceError.UNAVAILABLE,
                retry_after=remaining,
                context={"circuit_state": self.state},
            )

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.monotonic()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Error Translation
# ══════════════════════════════════════════════════════════════════════════


def translate_provider_error(error: BaseException) -> ExternalServiceError:
    """Map an SDK / transport exception onto ExternalServiceError."""
    provider_message = str(error) or type(error).__name__

    if isinstance(error, ExternalServiceError):
        return error

    if isinstance(error, (BlockedPromptException, StopCandidateException)):
        return ExternalServiceError(
            message="The content was blocked by the provider's safety filters.",
            reason=ExternalServiceError.SAFETY_BLOCKED,
            provider_message=provider_message,
        )

    if isinstance(
        error, (google_exceptions.PermissionDenied, google_exceptions.Unauthenticated)
    ) or "API key not valid" in provider_message:
        return ExternalServiceError(
            message="The content generation service rejected the configured credentials.",
            reason=ExternalServiceError.INVALID_CREDENTIALS,
            provider_message=provider_message,
        )

    if isinstance(error, google_exceptions.ResourceExhausted):
        return ExternalServiceError(
            message="The content generation quota has been exceeded. Please try again later.",
            reason=ExternalServiceError.QUOTA_EXCEEDED,
            provider_message=provider_message,
        )

    # DeadlineExceeded, ServiceUnavailable, timeouts, connection errors, anything else
    return ExternalServiceError(
        message="The content generation service is unavailable. Please try again later.",
        reason=ExternalServiceError.UNAVAILABLE,
        provider_message=provider_message,
    )


def _response_text(response: Any) -> str:
    feedback = getattr(response, "prompt_feedback", None)
    block_reason = getattr(feedback, "block_reason", None) if feedback is not None else None
    if block_reason:
        raise ExternalServiceError(
            message="The content was blocked by the provider's safety filters.",
            reason=ExternalServiceError.SAFETY_BLOCKED,
            provider_message=f"Prompt blocked: {getattr(block_reason, 'name', block_reason)}",
        )

    if not getattr(response, "candidates", None):
        raise ExternalServiceError(
            message="The content generation service returned no content.",
            reason=ExternalServiceError.MALFORMED_RESPONSE,
            provider_message="Response contained no candidates",
        )

    try:
        text = response.text
    except ValueError as e:
        # The SDK raises ValueError when the candidate has no text parts
        raise ExternalServiceError(
            message="The content generation service returned no content.",
            reason=ExternalServiceError.MALFORMED_RESPONSE,
            provider_message=str(e),
        )

    if not isinstance(text, str) or not text.strip():
        raise ExternalServiceError(
            message="The content generation service returned no content.",
            reason=ExternalServiceError.MALFORMED_RESPONSE,
            provider_message="Response text was empty",
        )
    return text.strip()


# ══════════════════════════════════════════════════════════════════════════
# Gemini Client
# ══════════════════════════════════════════════════════════════════════════


class GeminiClient:
    """
    Google Gemini client for the external generation strategy.

    The SDK is configured once per client; the model object is reused across
    calls. `has_credentials` is False for a missing or placeholder API key, in
    which case the pipeline never calls the provider.
    """

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings
        self.has_credentials = self.config.has_provider_credentials

        if self.has_credentials:
            genai.configure(api_key=self.config.gemini_api_key)

        self.model = genai.GenerativeModel(
            self.config.gemini_model,
            generation_config={
                "temperature": self.config.gemini_temperature,
                "max_output_tokens": self.config.gemini_max_output_tokens,
            },
            safety_settings=SAFETY_SETTINGS,
        )

        self.circuit_breaker = CircuitBreaker(
            failure_threshold=self.config.cb_failure_threshold,
            recovery_timeout=self.config.cb_recovery_timeout,
        )

        logger.info(
            "GeminiClient initialized with model=%s, credentials=%s, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            self.config.gemini_model,
            "configured" if self.has_credentials else "missing",
            self.config.cb_failure_threshold,
            self.config.cb_recovery_timeout,
        )

    async def generate_text(self, instruction: str, text: str) -> str:
        """Run a single-turn prompt: the instruction followed by the note text."""
        return await self._generate([instruction, text], operation="generate_text")

    async def extract_document(self, data: bytes, mime_type: str = "application/pdf") -> str:
        """Extract the text of an inline document (sent base64 by the SDK)."""
        parts = [PDF_EXTRACTION_PROMPT, {"mime_type": mime_type, "data": data}]
        return await self._generate(parts, operation="extract_document")

    async def _generate(self, parts: List[Any], operation: str) -> str:
        call_id = uuid.uuid4().hex[:8]

        self.circuit_breaker.can_execute()

        logger.info("[%s] Gemini %s started (model=%s)", call_id, operation, self.config.gemini_model)
        start_time = time.monotonic()

        try:
            response = await asyncio.wait_for(
                self.model.generate_content_async(
                    parts,
                    request_options={"timeout": self.config.gemini_timeout},
                ),
                timeout=self.config.gemini_timeout,
            )
            text = _response_text(response)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = translate_provider_error(e)
            if error.reason != ExternalServiceError.SAFETY_BLOCKED:
                self.circuit_breaker.record_failure()
            logger.warning(
                "[%s] Gemini %s failed after %.0fms: reason=%s error=%s",
                call_id,
                operation,
                (time.monotonic() - start_time) * 1000,
                error.reason,
                error.provider_message,
            )
            if error is e:
                raise
            raise error from e

        self.circuit_breaker.record_success()
        logger.info(
            "[%s] Gemini %s completed in %.0fms, %d chars",
            call_id,
            operation,
            (time.monotonic() - start_time) * 1000,
            len(text),
        )
        return text

    async def health_check(self) -> str:
        """
        Report provider availability without spending tokens.

        Returns one of: unconfigured, circuit_open, available, unavailable.
        """
        if not self.has_credentials:
            return "unconfigured"
        if self.circuit_breaker.state == CircuitBreaker.OPEN:
            return "circuit_open"
        try:
            models = await asyncio.wait_for(
                asyncio.to_thread(lambda: [m.name for m in genai.list_models()]),
                timeout=min(self.config.gemini_timeout, 10.0),
            )
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return "unavailable"

        target = f"models/{self.config.gemini_model}"
        if target not in models:
            logger.warning("Configured model %s not found in available models", target)
        return "available"
