"""Abstract translation through an LLM chat API (OpenAI by default, Claude optional)."""

from __future__ import annotations

import logging
import os
from typing import Any

import anthropic
from openai import OpenAI

DEFAULT_PROVIDER = "openai"
DEFAULT_TARGET_LANGUAGE = "ja"
DEFAULT_OPENAI_MODEL = "gpt-5.2"
DEFAULT_CLAUDE_MODEL = "claude-opus-4-6"
# Abstracts top out around 1,920 characters; leave room for CJK output.
MAX_OUTPUT_TOKENS = 4096

LOGGER = logging.getLogger(__name__)

_SYSTEM_PROMPT = """You are a professional translator of scientific writing.
Detect the language of the text you are given and translate it into the language
with ISO 639-1 code "{target}".
Keep technical terms, model names, math and citations intact.
Respond ONLY with the translation. No preamble, no notes, no quotation marks."""


class TranslationError(RuntimeError):
    """The translation backend was unavailable or returned nothing usable."""


def translate_text(text: str, target_language: str | None = None, provider: str | None = None) -> str:
    """Translate text into target_language (source language auto-detected).

    Makes exactly one API call; any failure raises TranslationError rather than
    falling back to the untranslated text.
    """
    target = target_language or os.getenv("TRANSLATION_TARGET_LANGUAGE", DEFAULT_TARGET_LANGUAGE)
    backend = (provider or os.getenv("TRANSLATION_PROVIDER", DEFAULT_PROVIDER)).strip().lower()
    if not text.strip():
        raise TranslationError("Refusing to translate empty text")

    LOGGER.info("Translating %s chars to %s via %s", len(text), target, backend)
    system = _SYSTEM_PROMPT.format(target=target)

    try:
        if backend == "openai":
            translated = _translate_with_openai(system, text)
        elif backend in ("anthropic", "claude"):
            translated = _translate_with_claude(system, text)
        else:
            raise TranslationError(f"Unknown TRANSLATION_PROVIDER: {backend!r}")
    except TranslationError:
        raise
    except Exception as exc:
        raise TranslationError(f"{backend} translation failed: {exc}") from exc

    translated = translated.strip()
    if not translated:
        raise TranslationError(f"{backend} returned an empty translation")
    return translated


def _translate_with_openai(system: str, text: str) -> str:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise TranslationError("OPENAI_API_KEY environment variable is required")

    # One attempt only; the SDK would otherwise retry 5xx and 429 twice.
    client = OpenAI(api_key=api_key, max_retries=0)
    response = client.chat.completions.create(
        model=os.getenv("OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
        max_completion_tokens=MAX_OUTPUT_TOKENS,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": text},
        ],
    )
    return response.choices[0].message.content or ""


def _translate_with_claude(system: str, text: str) -> str:
    api_key = os.getenv("ANTHROPIC_API_KEY")
    if not api_key:
        raise TranslationError("ANTHROPIC_API_KEY environment variable is required")

    claude_model = os.getenv("CLAUDE_MODEL", DEFAULT_CLAUDE_MODEL)
    client = anthropic.Anthropic(api_key=api_key, max_retries=0)
    kwargs: dict[str, Any] = {
        "model": claude_model,
        "max_tokens": MAX_OUTPUT_TOKENS,
        "system": system,
        "messages": [{"role": "user", "content": text}],
    }
    LOGGER.debug("Calling Claude model=%s max_tokens=%s", claude_model, MAX_OUTPUT_TOKENS)
    response = client.messages.create(**kwargs)
    return "".join(block.text for block in response.content if getattr(block, "type", "") == "text")
