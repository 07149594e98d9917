from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from app.core.config import LLMSettings
from app.core.exceptions import APIClientError, APITimeoutError, ConfigurationError
from app.core.llm_client import BaseLLMClient, OpenRouterClient
from app.core.unified_llm import LLMProvider, UnifiedLLMClient, create_llm_client_from_settings


def _response(status_code, json_body=None):
    request = httpx.Request("POST", "https://openrouter.test/chat")
    return httpx.Response(status_code, json=json_body or {}, request=request)


@pytest.fixture
def mock_http_client():
    """Patch httpx.AsyncClient inside the LLM transport."""
    client = MagicMock()
    client.post = AsyncMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=None)
    with patch("app.core.llm_client.httpx.AsyncClient", return_value=client):
        yield client


class TestBaseLLMClient:

    @pytest.mark.asyncio
    async def test_success(self, mock_http_client):
        mock_http_client.post.return_value = _response(200, {"choices": []})
        client = BaseLLMClient(api_key="k", base_url="https://openrouter.test/chat")

        assert await client.call_api({"model": "m"}) == {"choices": []}
        _, kwargs = mock_http_client.post.call_args
        assert kwargs["headers"]["Authorization"] == "Bearer k"

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, mock_http_client):
        mock_http_client.post.return_value = _response(401)
        client = BaseLLMClient(api_key="k", base_url="https://openrouter.test/chat", max_retries=3, retry_delay=0)

        with pytest.raises(APIClientError, match="401"):
            await client.call_api({})
        assert mock_http_client.post.await_count == 1

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self, mock_http_client):
        mock_http_client.post.side_effect = [_response(503), _response(200, {"ok": True})]
        client = BaseLLMClient(api_key="k", base_url="https://openrouter.test/chat", max_retries=2, retry_delay=0)

        assert await client.call_api({}) == {"ok": True}
        assert mock_http_client.post.await_count == 2

    @pytest.mark.asyncio
    async def test_timeout_on_last_attempt(self, mock_http_client):
        mock_http_client.post.side_effect = httpx.ReadTimeout("slow")
        client = BaseLLMClient(api_key="k", base_url="https://openrouter.test/chat", timeout=5)

        with pytest.raises(APITimeoutError, match="5s"):
            await client.call_api({})


class TestOpenRouterClient:

    def test_payload_requests_json_object(self):
        client = OpenRouterClient(api_key="k", model="some/model")
        payload = client.build_payload(
            [{"text": "Hello "}, "world"],
            system_instruction="Be terse",
            generation_config={"temperature": 0.3, "max_output_tokens": 16000, "response_mime_type": "application/json"},
        )

        assert payload["messages"] == [
            {"role": "system", "content": "Be terse"},
            {"role": "user", "content": "Hello world"},
        ]
        assert payload["max_tokens"] == 16000
        assert payload["temperature"] == 0.3
        assert payload["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_generate_content_reads_first_choice(self):
        client = OpenRouterClient(api_key="k", model="some/model")
        client.client.call_api = AsyncMock(return_value={"choices": [{"message": {"content": '{"a": 1}'}}]})

        assert await client.generate_content("prompt") == '{"a": 1}'

    @pytest.mark.asyncio
    async def test_missing_choices(self):
        client = OpenRouterClient(api_key="k", model="some/model")
        client.client.call_api = AsyncMock(return_value={"error": "overloaded"})

        with pytest.raises(APIClientError, match="Invalid response format"):
            await client.generate_content("prompt")


class TestUnifiedLLMClient:

    @pytest.mark.asyncio
    async def test_falls_back_to_gemini(self):
        with patch("app.core.unified_llm.GeminiClient") as gemini_cls:
            gemini_cls.return_value.generate_content = AsyncMock(return_value="{}")
            client = UnifiedLLMClient(
                provider="openrouter", api_key="k", model="m",
                fallback_to_gemini=True, gemini_api_key="g",
            )
            client.client.generate_content = AsyncMock(side_effect=APIClientError("API HTTP Error 502"))

            assert await client.generate_content("prompt") == "{}"

    @pytest.mark.asyncio
    async def test_error_propagates_without_fallback(self):
        client = UnifiedLLMClient(provider="openrouter", api_key="k", model="m")
        client.client.generate_content = AsyncMock(side_effect=APIClientError("API HTTP Error 502"))

        with pytest.raises(APIClientError):
            await client.generate_content("prompt")

    def test_fallback_requires_gemini_key(self):
        with pytest.raises(ConfigurationError):
            UnifiedLLMClient(provider="openrouter", api_key="k", model="m", fallback_to_gemini=True)


class TestFactory:

    def test_openrouter_from_settings(self):
        client = create_llm_client_from_settings(
            LLMSettings(LLM_PROVIDER="openrouter", OPENROUTER_API_KEY=" key ", GEMINI_API_KEY="")
        )
        assert client.provider == LLMProvider.OPENROUTER
        assert client.client.api_key == "key"
        assert client.fallback_client is None

    @pytest.mark.parametrize("values", [
        {"LLM_PROVIDER": "openrouter", "OPENROUTER_API_KEY": ""},
        {"LLM_PROVIDER": "gemini", "GEMINI_API_KEY": "  "},
        {"LLM_PROVIDER": "ollama"},
    ])
    def test_misconfiguration(self, values):
        with pytest.raises(ConfigurationError):
            create_llm_client_from_settings(LLMSettings(**values))
