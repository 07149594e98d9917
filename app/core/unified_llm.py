"""Unified LLM client factory and manager.

Provides a single interface over the Gemini and OpenRouter providers with
provider selection from configuration and optional Gemini fallback.
"""

from enum import Enum
from typing import Any, Dict, Optional, Union

from app.core.config import LLMSettings, settings
from app.core.exceptions import APIClientError, ConfigurationError
from app.core.llm_client import Contents, GeminiClient, OpenRouterClient
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    GEMINI = "gemini"
    OPENROUTER = "openrouter"


class UnifiedLLMClient:
    """Provider-agnostic client.

    With ``fallback_to_gemini`` the OpenRouter provider falls back to Gemini
    once when the primary call fails.
    """

    def __init__(
        self,
        provider: Union[str, LLMProvider],
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        timeout: int = 60,
        max_retries: int = 1,
        fallback_to_gemini: bool = False,
        gemini_api_key: Optional[str] = None,
        gemini_model: Optional[str] = None,
    ):
        self.provider = LLMProvider(provider)
        self.model = model
        self.fallback_client = None

        if self.provider == LLMProvider.GEMINI:
            self.client = GeminiClient(
                api_key=api_key,
                model=model,
                timeout=timeout,
                max_retries=max_retries
            )
            LOGGER.info(f"Initialized unified LLM with Gemini provider (model: {model})")
            return

        self.client = OpenRouterClient(
            api_key=api_key,
            model=model,
            base_url=base_url or "https://openrouter.ai/api/v1/chat/completions",
            timeout=timeout,
            max_retries=max_retries
        )

        if fallback_to_gemini:
            if not gemini_api_key:
                raise ConfigurationError("gemini_api_key required when fallback_to_gemini=True")
            self.fallback_client = GeminiClient(
                api_key=gemini_api_key,
                model=gemini_model or "gemini-2.0-flash",
                timeout=timeout,
                max_retries=max_retries
            )
            LOGGER.info(
                f"Initialized unified LLM with OpenRouter provider (model: {model}) "
                f"and Gemini fallback (model: {gemini_model})"
            )
        else:
            LOGGER.info(f"Initialized unified LLM with OpenRouter provider (model: {model})")

    async def generate_content(
        self,
        contents: Contents,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Generate content using the configured provider.

        Raises:
            APIClientError: If generation fails (and the fallback, when enabled)
        """
        try:
            return await self.client.generate_content(
                contents=contents,
                system_instruction=system_instruction,
                generation_config=generation_config
            )
        except APIClientError as e:
            if not self.fallback_client:
                raise
            LOGGER.warning(
                f"Primary provider ({self.provider.value}) failed, attempting Gemini fallback: {e}"
            )
            try:
                return await self.fallback_client.generate_content(
                    contents=contents,
                    system_instruction=system_instruction,
                    generation_config=generation_config
                )
            except APIClientError as fallback_error:
                LOGGER.error(f"Fallback to Gemini also failed: {fallback_error}")
                raise APIClientError(
                    f"Both primary ({self.provider.value}) and fallback (Gemini) failed",
                    original_error=fallback_error,
                ) from fallback_error


def create_llm_client_from_settings(llm_settings: Optional[LLMSettings] = None) -> UnifiedLLMClient:
    """Create a unified LLM client from configuration settings.

    Raises:
        ConfigurationError: If the provider is unknown or its API key is missing
    """
    llm_settings = llm_settings or settings.llm

    try:
        provider = LLMProvider(llm_settings.provider.lower())
    except ValueError as e:
        raise ConfigurationError(f"Unsupported LLM provider: {llm_settings.provider}", original_error=e)

    if provider == LLMProvider.GEMINI:
        if not llm_settings.gemini_api_key.strip():
            raise ConfigurationError(
                "gemini_api_key required when provider='gemini'. "
                "Please set GEMINI_API_KEY environment variable."
            )
        return UnifiedLLMClient(
            provider=provider,
            api_key=llm_settings.gemini_api_key.strip(),
            model=llm_settings.gemini_model,
            timeout=llm_settings.timeout_seconds,
            max_retries=llm_settings.max_retries,
        )

    if not llm_settings.openrouter_api_key.strip():
        raise ConfigurationError(
            "openrouter_api_key required when provider='openrouter'. "
            "Please set OPENROUTER_API_KEY environment variable."
        )

    enable_fallback = llm_settings.enable_fallback and bool(llm_settings.gemini_api_key.strip())
    return UnifiedLLMClient(
        provider=provider,
        api_key=llm_settings.openrouter_api_key.strip(),
        model=llm_settings.openrouter_model,
        base_url=llm_settings.openrouter_api_url,
        timeout=llm_settings.timeout_seconds,
        max_retries=llm_settings.max_retries,
        fallback_to_gemini=enable_fallback,
        gemini_api_key=llm_settings.gemini_api_key.strip() if enable_fallback else None,
        gemini_model=llm_settings.gemini_model if enable_fallback else None,
    )
