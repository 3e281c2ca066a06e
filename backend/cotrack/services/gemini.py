"""Gemini text generation client."""
from typing import Callable, Optional

from google import genai
from google.genai import errors as genai_errors

from cotrack.config import settings
from cotrack.utils.exceptions import LLMConfigurationError, LLMError, LLMRateLimitError
from cotrack.utils.logger import logger

API_KEY_MISSING_MESSAGE = "Gemini API key not configured"


class GeminiClient:
    """Thin async wrapper around google-genai used by chatbot, summaries and team analysis."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        """
        Initialize the client.

        Raises:
            LLMConfigurationError: If no API key is available
        """
        self.api_key = api_key or settings.gemini_api_key
        self.model = model or settings.gemini_model

        if not self.api_key:
            raise LLMConfigurationError(API_KEY_MISSING_MESSAGE)

        self._client = genai.Client(api_key=self.api_key)
        logger.info(f"[GEMINI] Initialized with model: {self.model}")

    async def generate(self, prompt: str) -> str:
        """
        Run a single prompt and return the response text.

        Raises:
            LLMRateLimitError: On HTTP 429 from the provider
            LLMError: On any other provider failure
        """
        logger.debug(f"[GEMINI] Sending prompt ({len(prompt)} chars) to {self.model}")
        try:
            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
            )
        except genai_errors.APIError as e:
            if e.code == 429:
                logger.warning(f"[GEMINI] Rate limited: {e.message}")
                raise LLMRateLimitError(str(e)) from e
            logger.error(f"[GEMINI] API error {e.code}: {e.message}")
            raise LLMError(f"Gemini request failed ({e.code}): {e.message}") from e
        except Exception as e:
            logger.error(f"[GEMINI] Request failed: {e}", exc_info=True)
            raise LLMError(f"Gemini request failed: {e}") from e

        text = response.text or ""
        logger.debug(f"[GEMINI] Response received, length: {len(text)}")
        return text


def get_llm_factory() -> Callable[[], GeminiClient]:
    """
    FastAPI dependency returning a client factory.

    Handlers validate their input before building the client, so a missing
    API key is only reported for requests that would reach the model.
    """
    return GeminiClient
