"""Reasoning service boundary.

Every model call in the pipeline goes through ``generate_json``. The
factory returns an explicit unavailable client when the configured
provider has no credentials, so callers can check ``available`` up front
instead of failing mid-pipeline.
"""

from enum import Enum
from typing import Optional, Union

from clinic_ingest.core.exceptions import ConfigurationError
from clinic_ingest.core.llm_client import OPENROUTER_CHAT_URL, GeminiClient, OpenRouterClient
from clinic_ingest.utils.logging import get_logger

LOGGER = get_logger(__name__)


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    GEMINI = "gemini"
    OPENROUTER = "openrouter"


class UnifiedLLMClient:
    """Provider-agnostic client that always asks for a JSON response."""

    available = True

    def __init__(
        self,
        provider: Union[str, LLMProvider],
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        timeout: int = 60,
        max_retries: int = 3,
    ):
        """Initialize unified LLM client.

        Args:
            provider: "gemini" or "openrouter"
            api_key: API key for the provider
            model: Model name to use
            base_url: Chat-completions URL (OpenRouter only)
            timeout: Request timeout in seconds
            max_retries: Maximum attempts per call
        """
        self.provider = LLMProvider(provider)
        self.model = model

        if self.provider == LLMProvider.GEMINI:
            self.client = GeminiClient(
                api_key=api_key,
                model=model,
                timeout=timeout,
                max_retries=max_retries,
            )
        else:
            self.client = OpenRouterClient(
                api_key=api_key,
                model=model,
                base_url=base_url or OPENROUTER_CHAT_URL,
                timeout=timeout,
                max_retries=max_retries,
            )
        LOGGER.info(f"Initialized unified LLM with {self.provider.value} provider (model: {model})")

    async def generate_json(
        self,
        system_instruction: str,
        prompt: str,
        temperature: float = 0.0,
    ) -> str:
        """Run one completion and return the raw JSON text.

        Args:
            system_instruction: System prompt
            prompt: User prompt
            temperature: Sampling temperature

        Returns:
            Model output; callers parse and validate it

        Raises:
            APIClientError: On transport or provider failure
            APITimeoutError: When every attempt timed out
        """
        return await self.client.generate_content(
            contents=prompt,
            system_instruction=system_instruction,
            generation_config={
                "temperature": temperature,
                "response_mime_type": "application/json",
            },
        )


class UnavailableLLMClient:
    """Stand-in used when the reasoning service has no credentials."""

    available = False

    def __init__(self, reason: str):
        self.reason = reason

    async def generate_json(
        self,
        system_instruction: str,
        prompt: str,
        temperature: float = 0.0,
    ) -> str:
        raise ConfigurationError(self.reason)


ReasoningClient = Union[UnifiedLLMClient, UnavailableLLMClient]


def create_reasoning_client(llm_settings) -> ReasoningClient:
    """Create the reasoning client described by ``LLMSettings``.

    Args:
        llm_settings: ``settings.llm``

    Returns:
        UnifiedLLMClient, or UnavailableLLMClient when the provider is
        unknown or its API key is missing
    """
    try:
        provider = LLMProvider(llm_settings.provider.lower())
    except ValueError:
        LOGGER.error(f"Unsupported LLM provider: {llm_settings.provider}")
        return UnavailableLLMClient(f"Unsupported LLM provider: {llm_settings.provider}")

    if provider == LLMProvider.GEMINI:
        api_key = (llm_settings.gemini_api_key or "").strip()
        model = llm_settings.gemini_model
        env_name = "GEMINI_API_KEY"
    else:
        api_key = (llm_settings.openrouter_api_key or "").strip()
        model = llm_settings.openrouter_model
        env_name = "OPENROUTER_API_KEY"

    if not api_key:
        LOGGER.warning(f"{env_name} not configured; reasoning service unavailable")
        return UnavailableLLMClient(f"{env_name} not configured")

    return UnifiedLLMClient(
        provider=provider,
        api_key=api_key,
        model=model,
        base_url=llm_settings.openrouter_api_url,
        timeout=llm_settings.timeout_seconds,
        max_retries=llm_settings.max_retries,
    )
