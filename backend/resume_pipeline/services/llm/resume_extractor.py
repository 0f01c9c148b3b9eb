import asyncio
import json
import logging
import re
from typing import Any, Dict, Optional

import httpx
from langchain_core.output_parsers import StrOutputParser
from langchain_core.runnables import Runnable
from langchain_ollama import ChatOllama
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ...config import Settings
from ...exceptions import LlmError
from ...schemas.resume import normalize_resume_data
from ...utils.logger import get_logger
from .prompts import RESUME_EXTRACTION_PROMPT, SYSTEM_PROMPT

logger = get_logger(__name__)

TRUNCATION_MARKER = "...[truncated]"

# Failures that will not go away by asking again
FATAL_STATUS_CODES = {401, 403, 429}
FATAL_MARKERS = (
    "invalid api key",
    "incorrect api key",
    "rate limit",
    "quota",
)


def build_chat_model(settings: Settings) -> ChatOllama:
    """JSON-mode, low temperature chat model used for extraction."""
    kwargs: Dict[str, Any] = {
        "model": settings.LLM_MODEL,
        "temperature": settings.LLM_TEMPERATURE,
        "format": "json",
        "num_predict": 4096,
    }
    if settings.LLM_BASE_URL:
        kwargs["base_url"] = settings.LLM_BASE_URL
    return ChatOllama(**kwargs)


def preprocess_text(text: str, max_length: int = 20000) -> str:
    """
    Squeeze whitespace and cap the length sent to the model.
    The head of a résumé carries most of the information, so the tail is cut.
    """
    cleaned = re.sub(r"\n{3,}", "\n\n", text)
    cleaned = re.sub(r"[ \t]{2,}", " ", cleaned).strip()

    if len(cleaned) > max_length:
        cleaned = cleaned[:max_length] + TRUNCATION_MARKER
        logger.info(f"Text truncated from {len(text)} to {len(cleaned)} characters")

    return cleaned


def parse_llm_json(content: Optional[str]) -> Dict[str, Any]:
    """Parse the model reply, stripping markdown code fences if present."""
    raw = (content or "").strip()
    if raw.startswith("```"):
        raw = re.sub(r"^```(?:json)?\s*", "", raw)
        raw = re.sub(r"\s*```$", "", raw)
    if not raw:
        raise LlmError("LLM did not return any content")

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse JSON: {raw[:200]}")
        raise LlmError(f"LLM response is not valid JSON: {e}", cause=e) from e

    if not isinstance(parsed, dict):
        raise LlmError(f"LLM response is not a JSON object (got {type(parsed).__name__})")
    return parsed


def classify_llm_failure(exc: BaseException) -> LlmError:
    status_code = getattr(exc, "status_code", None)
    if status_code is None and isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code

    message = str(exc) or exc.__class__.__name__
    lowered = message.lower()
    fatal = status_code in FATAL_STATUS_CODES or any(marker in lowered for marker in FATAL_MARKERS)
    return LlmError(message, retryable=not fatal, cause=exc)


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, LlmError) and exc.retryable


class ResumeDataExtractor:
    """
    Turns résumé text into a document matching the résumé schema.

    Each attempt is one call through `prompt | llm | StrOutputParser()` bounded
    by `timeout` seconds. Timeouts and transport errors are retried with
    exponential backoff; credential, quota and rate-limit errors are not.
    A reply that is not a JSON object is never re-sent.
    """

    def __init__(
        self,
        llm: Runnable,
        max_retries: int = 3,
        base_delay: float = 1.0,
        timeout: float = 60.0,
        max_text_length: int = 20000,
    ):
        self.chain = RESUME_EXTRACTION_PROMPT | llm | StrOutputParser()
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.timeout = timeout
        self.max_text_length = max_text_length

    @classmethod
    def from_settings(cls, settings: Settings, llm: Optional[Runnable] = None) -> "ResumeDataExtractor":
        return cls(
            llm=llm if llm is not None else build_chat_model(settings),
            max_retries=settings.LLM_MAX_RETRIES,
            base_delay=settings.LLM_RETRY_BASE_DELAY,
            timeout=settings.LLM_TIMEOUT_SECONDS,
            max_text_length=settings.LLM_MAX_TEXT_LENGTH,
        )

    async def extract(self, text: str) -> Dict[str, Any]:
        processed = preprocess_text(text, self.max_text_length)
        logger.info(f"Processing text ({len(processed)} chars, reduced from {len(text)})")

        try:
            content = await self._call_with_retry(processed)
            data = parse_llm_json(content)
        except LlmError as e:
            raise LlmError(f"Failed to extract resume data: {e.message}", cause=e) from e

        logger.info(f"Received structured resume data ({len(content)} chars)")
        return normalize_resume_data(data)

    async def _call_with_retry(self, text: str) -> str:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.base_delay),
            retry=retry_if_exception(_is_retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return await retrying(self._invoke_once, text)

    async def _invoke_once(self, text: str) -> str:
        try:
            return await asyncio.wait_for(
                self.chain.ainvoke({"instructions": SYSTEM_PROMPT, "resume_text": text}),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise LlmError(f"LLM call timed out after {self.timeout:g}s", retryable=True, cause=e) from e
        except LlmError:
            raise
        except Exception as e:
            raise classify_llm_failure(e) from e
