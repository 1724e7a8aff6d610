from __future__ import annotations

import logging
import re

from google import genai
from google.genai import errors

from app.core.config import settings

logger = logging.getLogger(__name__)

QUOTA_EXCEEDED_CODE = 429
DEFAULT_CONTEXT = "Beautiful life memory"
DEFAULT_TITLE = "AI Memory"
DEFAULT_DESCRIPTION = "A cinematic memory."

_TITLE_PATTERN = re.compile(r"TITLE:\s*(.*)", re.IGNORECASE)
_DESCRIPTION_PATTERN = re.compile(r"DESCRIPTION:\s*(.*)", re.IGNORECASE)


class GeminiInvalidResponseException(Exception):
    pass


def build_memory_prompt(context: str | None) -> str:
    return (
        "Create cinematic memory details.\n"
        "Return EXACT format:\n"
        "TITLE: 3-5 word cinematic title\n"
        "DESCRIPTION: One emotional sentence\n"
        f"Context: {context or DEFAULT_CONTEXT}\n"
    )


async def call_predict(query: str, model: str) -> str:
    client = genai.Client(api_key=settings.GEMINI_API_KEY)
    response = await client.aio.models.generate_content(model=model, contents=query)
    if not response.text:
        raise GeminiInvalidResponseException()
    return response.text


def _is_quota_error(exc: Exception) -> bool:
    return isinstance(exc, errors.APIError) and exc.code == QUOTA_EXCEEDED_CODE


async def generate_with_fallback(query: str) -> str:
    """Primary model first; a single retry on the fallback model when quota runs out."""
    try:
        return await call_predict(query, settings.GEMINI_MODEL)
    except Exception as exc:
        if not _is_quota_error(exc):
            raise
        logger.info("Gemini quota exceeded on %s, retrying with %s", settings.GEMINI_MODEL, settings.GEMINI_FALLBACK_MODEL)
    return await call_predict(query, settings.GEMINI_FALLBACK_MODEL)


def parse_title_description(text: str, fallback_prompt: str | None = None) -> tuple[str, str]:
    title_match = _TITLE_PATTERN.search(text or "")
    description_match = _DESCRIPTION_PATTERN.search(text or "")
    title = title_match.group(1).strip() if title_match else ""
    description = description_match.group(1).strip() if description_match else ""
    return (
        title or DEFAULT_TITLE,
        description or fallback_prompt or DEFAULT_DESCRIPTION,
    )
