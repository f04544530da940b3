"""Tests for stres.llm: HttpLLM and EchoLLM."""

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from stres.llm import EchoLLM, HttpLLM, LLMError, client_from_connection
from stres.models import Message, ModelRequest


def _request(mode: str = "narrative", max_tokens: int = 512) -> ModelRequest:
    return ModelRequest(
        mode=mode,
        max_tokens=max_tokens,
        temperature=0.7,
        messages=[
            Message(role="assistant", text="A goblin blocks the road."),
            Message(role="user", text="I draw my sword."),
        ],
    )


# ---------------------------------------------------------------------------
# EchoLLM
# ---------------------------------------------------------------------------

class TestEchoLLM:
    async def test_returns_last_user_turn(self) -> None:
        assert await EchoLLM()(_request()) == "I draw my sword."

    async def test_no_user_turn(self) -> None:
        request = ModelRequest(mode="narrative", max_tokens=10, messages=[])
        assert await EchoLLM()(request) == ""


# ---------------------------------------------------------------------------
# HttpLLM: KoboldCpp format
# ---------------------------------------------------------------------------

def _mock_response(body: dict, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


class TestHttpLLMKoboldCpp:
    @pytest.fixture
    def llm(self) -> HttpLLM:
        return HttpLLM(provider_url="http://localhost:5001", api_key="")

    async def test_happy_path(self, llm: HttpLLM) -> None:
        body = {"results": [{"text": "The goblin snarls."}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            result = await llm(_request())
        assert result == "The goblin snarls."

    async def test_posts_to_correct_url(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"results": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm(_request())
        assert mock_post.call_args[0][0] == "http://localhost:5001/api/v1/generate"

    async def test_sends_prompt_and_budget(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"results": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm(_request(mode="combat", max_tokens=150))
        sent = mock_post.call_args.kwargs["json"]
        assert sent["prompt"] == "A goblin blocks the road.\n\n> I draw my sword."
        assert sent["max_length"] == 150
        assert sent["temperature"] == 0.7

    async def test_bearer_token_sent_when_api_key_set(self) -> None:
        llm = HttpLLM(provider_url="http://localhost:5001", api_key="secret")
        mock_post = AsyncMock(return_value=_mock_response({"results": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm(_request())
        assert mock_post.call_args.kwargs["headers"].get("Authorization") == "Bearer secret"

    async def test_no_auth_header_when_no_api_key(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"results": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm(_request())
        assert "Authorization" not in mock_post.call_args.kwargs["headers"]

    async def test_connect_error_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Cannot connect"):
                await llm(_request())

    async def test_timeout_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(side_effect=httpx.TimeoutException("timeout"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="timed out"):
                await llm(_request())

    async def test_http_error_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({}, status=503))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="HTTP 503"):
                await llm(_request())

    async def test_malformed_response_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"unexpected": "format"}))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Unexpected response format"):
                await llm(_request())


# ---------------------------------------------------------------------------
# HttpLLM: OpenAI format
# ---------------------------------------------------------------------------

class TestHttpLLMOpenAI:
    @pytest.fixture
    def llm(self) -> HttpLLM:
        return HttpLLM.from_config({
            "provider_url": "http://localhost:8080/",
            "provider_format": "openai",
            "model": "mistral-7b",
        })

    async def test_posts_to_correct_url(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"choices": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm(_request())
        assert mock_post.call_args[0][0] == "http://localhost:8080/v1/completions"

    async def test_sends_model_and_max_tokens(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"choices": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm(_request(max_tokens=150))
        sent = mock_post.call_args.kwargs["json"]
        assert sent["model"] == "mistral-7b"
        assert sent["max_tokens"] == 150

    async def test_malformed_response_raises_llm_error(self, llm: HttpLLM) -> None:
        body = {"results": [{"text": "kobold format accidentally"}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Unexpected response format"):
                await llm(_request())


# ---------------------------------------------------------------------------
# client_from_connection
# ---------------------------------------------------------------------------

def test_client_from_connection() -> None:
    assert client_from_connection({"provider_url": ""}) is None
    assert client_from_connection({}) is None
    assert isinstance(client_from_connection({"provider_url": "http://localhost:5001"}), HttpLLM)
