"""Tests for the LLM providers."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock, patch

import pytest
import requests

from transcript_qa.tools.rag.config import RAGConfig
from transcript_qa.tools.rag.errors import (
    MalformedUpstreamResponse,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from transcript_qa.tools.rag.llm import (
    PROVIDERS,
    GemmaProvider,
    OpenRouterProvider,
    create_llm_provider,
)


@pytest.fixture
def openrouter() -> OpenRouterProvider:
    return OpenRouterProvider(
        api_key="router-key",
        model="test/model",
        temperature=0.2,
        max_output_tokens=512,
        timeout=5.0,
        api_url="https://openrouter.test/v1/chat/completions",
    )


@pytest.fixture
def gemma() -> GemmaProvider:
    return GemmaProvider(api_key="google-key", model="gemma-test", timeout=5.0)


def mock_response(payload: object) -> MagicMock:
    response = MagicMock()
    response.json.return_value = payload
    response.text = repr(payload)
    return response


class TestOpenRouterProvider:
    """Tests for the OpenRouter chat completions backend."""

    def test_returns_message_content(self, openrouter: OpenRouterProvider) -> None:
        payload = {"choices": [{"message": {"content": '{"structuredAnswer": {}}'}}]}

        with patch("transcript_qa.tools.rag.llm.requests.post") as mock_post:
            mock_post.return_value = mock_response(payload)
            text = openrouter.generate("prompt text")

        assert text == '{"structuredAnswer": {}}'
        args, kwargs = mock_post.call_args
        assert args[0] == "https://openrouter.test/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer router-key"
        assert kwargs["json"]["model"] == "test/model"
        assert kwargs["json"]["messages"] == [{"role": "user", "content": "prompt text"}]
        assert kwargs["json"]["max_tokens"] == 512
        assert kwargs["timeout"] == 5.0

    def test_timeout(self, openrouter: OpenRouterProvider) -> None:
        with patch(
            "transcript_qa.tools.rag.llm.requests.post",
            side_effect=requests.Timeout("slow"),
        ):
            with pytest.raises(UpstreamTimeout) as exc_info:
                openrouter.generate("prompt")

        assert exc_info.value.stage == "llm"
        assert exc_info.value.status == 503

    def test_connection_error(self, openrouter: OpenRouterProvider) -> None:
        with patch(
            "transcript_qa.tools.rag.llm.requests.post",
            side_effect=requests.ConnectionError("refused"),
        ):
            with pytest.raises(UpstreamUnavailable) as exc_info:
                openrouter.generate("prompt")

        assert not isinstance(exc_info.value, UpstreamTimeout)

    def test_http_error(self, openrouter: OpenRouterProvider) -> None:
        response = mock_response({})
        response.raise_for_status.side_effect = requests.HTTPError("500 Server Error")

        with patch("transcript_qa.tools.rag.llm.requests.post", return_value=response):
            with pytest.raises(UpstreamUnavailable):
                openrouter.generate("prompt")

    @pytest.mark.parametrize(
        "payload",
        [{}, {"choices": []}, {"choices": [{"message": {}}]}, ["not", "a", "dict"]],
    )
    def test_unexpected_payload(self, openrouter: OpenRouterProvider, payload: object) -> None:
        with patch(
            "transcript_qa.tools.rag.llm.requests.post",
            return_value=mock_response(payload),
        ):
            with pytest.raises(MalformedUpstreamResponse):
                openrouter.generate("prompt")

    def test_empty_content(self, openrouter: OpenRouterProvider) -> None:
        payload = {"choices": [{"message": {"content": ""}}]}

        with patch(
            "transcript_qa.tools.rag.llm.requests.post",
            return_value=mock_response(payload),
        ):
            with pytest.raises(MalformedUpstreamResponse):
                openrouter.generate("prompt")

    def test_missing_key(self) -> None:
        provider = OpenRouterProvider(api_key=None, model="m", api_url="https://x.test")

        with patch("transcript_qa.tools.rag.llm.requests.post") as mock_post:
            with pytest.raises(UpstreamUnavailable, match="API key"):
                provider.generate("prompt")

        mock_post.assert_not_called()


class TestGemmaProvider:
    """Tests for the Google AI Studio backend."""

    def test_generate(self, gemma: GemmaProvider) -> None:
        with patch("transcript_qa.tools.rag.llm.genai.Client") as mock_client_cls:
            client = mock_client_cls.return_value
            client.models.generate_content.return_value.text = "answer"

            text = gemma.generate("prompt text")

        assert text == "answer"
        assert mock_client_cls.call_args.kwargs["api_key"] == "google-key"
        kwargs = client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemma-test"
        assert kwargs["contents"] == "prompt text"
        assert kwargs["config"].temperature == 0.7
        assert kwargs["config"].top_k == 1
        assert kwargs["config"].max_output_tokens == 2048

    def test_client_uses_configured_timeout(self, gemma: GemmaProvider) -> None:
        """Test that the request timeout reaches the HTTP client in milliseconds."""
        with patch("transcript_qa.tools.rag.llm.genai.Client") as mock_client_cls:
            gemma.client

        http_options = mock_client_cls.call_args.kwargs["http_options"]
        assert http_options.timeout == 5000

    def test_client_created_once(self, gemma: GemmaProvider) -> None:
        with patch("transcript_qa.tools.rag.llm.genai.Client") as mock_client_cls:
            mock_client_cls.return_value.models.generate_content.return_value.text = "a"
            gemma.generate("one")
            gemma.generate("two")

        mock_client_cls.assert_called_once()

    def test_api_error(self, gemma: GemmaProvider) -> None:
        with patch("transcript_qa.tools.rag.llm.genai.Client") as mock_client_cls:
            mock_client_cls.return_value.models.generate_content.side_effect = RuntimeError(
                "quota"
            )
            with pytest.raises(UpstreamUnavailable):
                gemma.generate("prompt")

    def test_empty_text(self, gemma: GemmaProvider) -> None:
        with patch("transcript_qa.tools.rag.llm.genai.Client") as mock_client_cls:
            mock_client_cls.return_value.models.generate_content.return_value.text = None
            with pytest.raises(MalformedUpstreamResponse):
                gemma.generate("prompt")

    def test_missing_key(self) -> None:
        provider = GemmaProvider(api_key=None, model="gemma-test")

        with patch("transcript_qa.tools.rag.llm.genai.Client") as mock_client_cls:
            with pytest.raises(UpstreamUnavailable):
                provider.generate("prompt")

        mock_client_cls.assert_not_called()


class TestCreateLLMProvider:
    """Tests for provider selection."""

    def test_registry(self) -> None:
        assert set(PROVIDERS) == {"gemma", "openrouter"}

    def test_gemma_from_config(self) -> None:
        config = RAGConfig(llm_provider="GEMMA", gemma_api_key="k", llm_timeout_seconds=12)

        provider = create_llm_provider(config)

        assert isinstance(provider, GemmaProvider)
        assert provider.api_key == "k"
        assert provider.model == "gemma-3n-e4b-it"
        assert provider.timeout == 12

    def test_openrouter_from_config(self) -> None:
        config = RAGConfig(
            llm_provider="openrouter",
            openrouter_api_key="k",
            openrouter_model="some/model",
        )

        provider = create_llm_provider(config)

        assert isinstance(provider, OpenRouterProvider)
        assert provider.model == "some/model"
        assert provider.api_url == "https://openrouter.ai/api/v1/chat/completions"

    def test_unknown_provider(self) -> None:
        with pytest.raises(ValueError, match="not supported"):
            create_llm_provider(RAGConfig(llm_provider="claude"))

    def test_missing_key_warns(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
        monkeypatch.delenv("RAG_OPENROUTER_API_KEY", raising=False)

        with caplog.at_level(logging.WARNING):
            provider = create_llm_provider(RAGConfig(llm_provider="openrouter"))

        assert provider.api_key is None
        assert "No API key" in caplog.text
