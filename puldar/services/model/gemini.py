"""
Gemini Model Client

Sends the system prompt and utterance to Gemini and returns the raw
text. Transient API failures are retried with exponential backoff; a
blocked response is not retried. Whatever still fails surfaces as
ModelError.

Cancellation is never retried or converted.
"""

from typing import Optional

import google.generativeai as genai
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from puldar.config import GeminiSettings, get_settings
from puldar.services.model.interface import ModelClient, ModelError


logger = structlog.get_logger(__name__)


class GeminiModelClient(ModelClient):
    """ModelClient backed by google-generativeai."""

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._generation_config = {
            "temperature": self._settings.temperature,
            "max_output_tokens": self._settings.max_tokens,
            "response_mime_type": "application/json",
        }

    @property
    def model_name(self) -> str:
        return self._settings.model_name

    async def complete(self, system_prompt: str, user_input: str) -> str:
        model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            system_instruction=system_prompt,
            generation_config=self._generation_config,
        )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._settings.max_attempts),
                wait=wait_exponential(multiplier=1, min=1, max=8),
                retry=retry_if_not_exception_type(ValueError),
                reraise=True,
            ):
                with attempt:
                    response = await model.generate_content_async(user_input)
                    # .text raises ValueError when the candidate was blocked
                    text = response.text
        except ValueError as e:
            raise ModelError(f"Gemini returned no usable text: {e}", service="gemini") from e
        except Exception as e:
            logger.warning("gemini_call_failed", error=str(e), model=self.model_name)
            raise ModelError(f"Gemini call failed: {e}", service="gemini") from e

        return text.strip()
