"""Provider clients for the generative model.

Every client exposes the same coroutine::

    generate_content(contents, system_instruction=None, generation_config=None) -> str

``generation_config`` uses provider-neutral keys: ``temperature``,
``max_output_tokens`` and ``response_mime_type``.
"""

import asyncio
from typing import Any, Dict, List, Optional, Union

import httpx
from google import genai
from google.genai import types
from httpx import HTTPStatusError, TimeoutException

from app.core.exceptions import APIClientError, APITimeoutError
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

Contents = Union[str, List[Union[str, Dict[str, Any]]]]


def _flatten_contents(contents: Contents) -> str:
    if isinstance(contents, str):
        return contents
    parts = []
    for part in contents:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and "text" in part:
            parts.append(str(part["text"]))
    return "".join(parts)


class BaseLLMClient:
    """HTTP transport for JSON LLM APIs with bounded retries.

    Client errors (4xx other than 429) fail immediately. Server errors,
    rate limiting and timeouts are retried with exponential backoff.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: int = 60,
        max_retries: int = 1,
        retry_delay: int = 2
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.logger = LOGGER

    async def call_api(
        self,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """POST a JSON payload and return the decoded JSON response.

        Raises:
            APIClientError: If the API call fails after retries
            APITimeoutError: If the last attempt timed out
        """
        request_headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if headers:
            request_headers.update(headers)

        self.logger.debug(
            f"Calling LLM API: {self.base_url}",
            extra={"timeout": self.timeout, "max_retries": self.max_retries}
        )

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(self.max_retries):
                last_attempt = attempt == self.max_retries - 1
                try:
                    response = await client.post(self.base_url, headers=request_headers, json=payload)
                    response.raise_for_status()
                    return response.json()

                except HTTPStatusError as e:
                    status_code = e.response.status_code
                    self.logger.warning(
                        f"API HTTP error (Attempt {attempt + 1}/{self.max_retries})",
                        extra={"url": self.base_url, "status_code": status_code, "error_body": e.response.text[:500]}
                    )
                    if (400 <= status_code < 500 and status_code != 429) or last_attempt:
                        raise APIClientError(f"API HTTP Error {status_code}", original_error=e) from e

                except TimeoutException as e:
                    self.logger.warning(
                        f"API Timeout (Attempt {attempt + 1}/{self.max_retries})",
                        extra={"url": self.base_url}
                    )
                    if last_attempt:
                        raise APITimeoutError(
                            f"Model call timed out after {self.timeout}s", original_error=e
                        ) from e

                except (httpx.HTTPError, ValueError) as e:
                    self.logger.warning(
                        f"API error (Attempt {attempt + 1}/{self.max_retries}): {e}",
                        extra={"url": self.base_url}
                    )
                    if last_attempt:
                        raise APIClientError(f"API Error: {e}", original_error=e) from e

                await asyncio.sleep(self.retry_delay * (2 ** attempt))

        raise APIClientError(f"Failed to call API {self.base_url} after {self.max_retries} attempts")


class GeminiClient:
    """Wrapper for the Google Gemini async API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        timeout: int = 60,
        max_retries: int = 1,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_retries = max(1, max_retries)

        try:
            self.client = genai.Client(api_key=self.api_key)
            LOGGER.info(f"Initialized Gemini client with model {self.model}")
        except Exception as e:
            LOGGER.error(f"Failed to initialize Gemini client: {e}")
            raise APIClientError(f"Failed to initialize Gemini client: {e}", original_error=e)

    def _build_config(
        self,
        system_instruction: Optional[str],
        generation_config: Optional[Dict[str, Any]],
    ) -> types.GenerateContentConfig:
        config = types.GenerateContentConfig(temperature=0.0)
        if generation_config:
            if "temperature" in generation_config:
                config.temperature = generation_config["temperature"]
            if "max_output_tokens" in generation_config:
                config.max_output_tokens = generation_config["max_output_tokens"]
            if "response_mime_type" in generation_config:
                config.response_mime_type = generation_config["response_mime_type"]
        if system_instruction:
            config.system_instruction = system_instruction
        return config

    async def generate_content(
        self,
        contents: Contents,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Generate content using the Gemini model.

        Raises:
            APITimeoutError: If the call exceeds the client timeout
            APIClientError: If generation fails
        """
        config = self._build_config(system_instruction, generation_config)

        for attempt in range(self.max_retries):
            last_attempt = attempt == self.max_retries - 1
            try:
                response = await asyncio.wait_for(
                    self.client.aio.models.generate_content(
                        model=self.model,
                        contents=contents,
                        config=config
                    ),
                    timeout=self.timeout,
                )
                if not response.text:
                    LOGGER.warning("Empty response from Gemini")
                    return ""
                return response.text

            except asyncio.TimeoutError as e:
                LOGGER.warning(f"Gemini call timed out (Attempt {attempt + 1}/{self.max_retries})")
                if last_attempt:
                    raise APITimeoutError(
                        f"Model call timed out after {self.timeout}s", original_error=e
                    ) from e

            except Exception as e:
                LOGGER.warning(f"Gemini API error (Attempt {attempt + 1}/{self.max_retries}): {e}")
                if last_attempt:
                    LOGGER.error(f"Gemini generation failed after retries: {e}", exc_info=True)
                    raise APIClientError(f"Gemini generation failed: {e}", original_error=e) from e

            await asyncio.sleep(2 ** attempt)

        raise APIClientError("Gemini generation failed")


class OpenRouterClient:
    """OpenAI-compatible chat completions through OpenRouter."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://openrouter.ai/api/v1/chat/completions",
        timeout: int = 60,
        max_retries: int = 1,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.client = BaseLLMClient(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries
        )
        LOGGER.info(f"Initialized OpenRouter client with model {self.model}")

    def build_payload(
        self,
        contents: Contents,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        messages = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        messages.append({"role": "user", "content": _flatten_contents(contents)})

        payload: Dict[str, Any] = {"model": self.model, "messages": messages}

        generation_config = generation_config or {"temperature": 0.0}
        if "temperature" in generation_config:
            payload["temperature"] = generation_config["temperature"]
        if "max_output_tokens" in generation_config:
            payload["max_tokens"] = generation_config["max_output_tokens"]
        if generation_config.get("response_mime_type") == "application/json":
            payload["response_format"] = {"type": "json_object"}

        return payload

    async def generate_content(
        self,
        contents: Contents,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Generate content using the OpenRouter model.

        Raises:
            APITimeoutError: If the call timed out
            APIClientError: If generation fails or the response has no choices
        """
        payload = self.build_payload(contents, system_instruction, generation_config)
        response = await self.client.call_api(payload=payload)

        choices = response.get("choices") if isinstance(response, dict) else None
        if not choices:
            LOGGER.error(f"Unexpected OpenRouter response format: {str(response)[:500]}")
            raise APIClientError("Invalid response format from OpenRouter")

        content = (choices[0].get("message") or {}).get("content") or ""
        if not content:
            LOGGER.warning("Empty response from OpenRouter")
        return content
