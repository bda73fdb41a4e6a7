"""LLM provider interface and Gemini implementation."""

from __future__ import annotations

import logging
import time
from typing import Protocol

from google import genai
from google.genai import types

from datenatlas import config

logger = logging.getLogger(__name__)


class GenerationProvider(Protocol):
    """Protocol for text generation providers."""

    model: str

    def generate(self, prompt: str, system: str | None = None) -> str:
        """Generate text from a prompt, returning the response string."""
        ...


class GeminiProvider:
    """Gemini text generation."""

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        self._client = genai.Client(api_key=api_key or config.GEMINI_API_KEY)
        self.model = model or config.SUMMARY_MODEL

    def generate(self, prompt: str, system: str | None = None) -> str:
        """Generate text using Gemini.

        Args:
            prompt: The user prompt.
            system: Optional system instruction.

        Returns:
            The generated text response (empty if the model returned none).
        """
        logger.debug("Generate via %s (%d char prompt)", self.model, len(prompt))
        t0 = time.perf_counter()
        gen_config = None
        if system:
            gen_config = types.GenerateContentConfig(
                system_instruction=system,
            )
        response = self._client.models.generate_content(
            model=self.model,
            contents=prompt,
            config=gen_config,
        )
        logger.debug("Generate complete: %d chars, %.0fms", len(response.text or ""), (time.perf_counter() - t0) * 1000)
        return response.text or ""
