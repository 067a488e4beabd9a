"""Tests for the oracle LLM clients."""

import json
import random
from unittest.mock import AsyncMock

import httpx
import pytest

from battle_arena.services.llm.client import (
    FakeLLMClient,
    GeminiClient,
    GenerationConfig,
    IncompleteResponseError,
    LLMResponse,
    create_client,
)

GENERATION = GenerationConfig()


def _gemini_body(text: str | None = "ok", **extra) -> dict:
    candidate = {"content": {"parts": [{"text": text}]}, "finishReason": "STOP"}
    return {
        "candidates": [candidate],
        "usageMetadata": {
            "promptTokenCount": 10,
            "candidatesTokenCount": 5,
            "totalTokenCount": 15,
        },
        **extra,
    }


def _client() -> GeminiClient:
    return GeminiClient(api_key="test-key", model="test-model", retry_wait=0)


class TestFakeLLMClient:
    """Tests for fake LLM client."""

    async def test_scripted_responses_in_order(self):
        client = FakeLLMClient(responses=["first", "second"])

        assert (await client.complete("a", GENERATION)).content == "first"
        assert (await client.complete("b", GENERATION)).content == "second"
        assert client.prompts == ["a", "b"]

    async def test_tracks_call_count(self):
        """Test fake client tracks call count."""
        client = FakeLLMClient(seed=42)
        assert client.call_count == 0

        await client.complete("hello", GENERATION)
        assert client.call_count == 1

        await client.complete("hello", GENERATION)
        assert client.call_count == 2

    async def test_deterministic_with_same_seed(self):
        """Test fake client produces deterministic output with same seed."""
        first = await FakeLLMClient(seed=42).complete("battle", GENERATION)
        second = await FakeLLMClient(seed=42).complete("battle", GENERATION)
        assert first == second

    async def test_verdict_is_fenced_json(self):
        """Test the seeded verdict is a fenced JSON object with the expected fields."""
        result = await FakeLLMClient(seed=3).complete("battle", GENERATION)
        assert isinstance(result, LLMResponse)
        assert result.content.startswith("```json")

        data = json.loads(result.content.strip("`").removeprefix("json"))
        assert data["winner"] in ["character1", "character2", "draw"]
        assert data["narrative"]
        assert data["isDraw"] == (data["winner"] == "draw")
        assert result.prompt_tokens > 0

    async def test_does_not_mutate_global_random_state(self):
        """Fake verdict generation should not alter global random state."""
        client = FakeLLMClient(seed=42)

        random.seed(98765)
        expected_next = random.random()

        random.seed(98765)
        await client.complete("battle", GENERATION)
        actual_next = random.random()

        assert actual_next == expected_next


class TestGeminiClientRequest:
    """Tests for the generateContent request and response handling."""

    async def test_request_shape(self, monkeypatch: pytest.MonkeyPatch):
        """Sends the prompt and generation parameters to the model endpoint."""
        client = _client()
        request = httpx.Request("POST", client.url)
        response = httpx.Response(200, request=request, json=_gemini_body())
        post_mock = AsyncMock(return_value=response)
        monkeypatch.setattr(client.client, "post", post_mock)

        try:
            result = await client.complete("Who wins?", GENERATION)
            assert result == LLMResponse("ok", 10, 5, 15)

            url = post_mock.await_args.args[0]
            kwargs = post_mock.await_args.kwargs
            assert url.endswith("/models/test-model:generateContent")
            assert kwargs["params"] == {"key": "test-key"}
            assert kwargs["json"] == {
                "contents": [{"parts": [{"text": "Who wins?"}]}],
                "generationConfig": {
                    "temperature": 0.7,
                    "topP": 0.9,
                    "topK": 50,
                    "maxOutputTokens": 500,
                },
            }
        finally:
            await client.close()

    @pytest.mark.parametrize(
        "body",
        [
            {"candidates": []},
            {"promptFeedback": {"blockReason": "SAFETY"}},
            {"candidates": [{"finishReason": "SAFETY"}]},
            {"candidates": [{"content": {"parts": []}}]},
            _gemini_body("   "),
        ],
    )
    async def test_missing_content_raises_incomplete(
        self, monkeypatch: pytest.MonkeyPatch, body: dict
    ):
        """Blocked or empty candidates raise without retrying."""
        client = _client()
        request = httpx.Request("POST", client.url)
        post_mock = AsyncMock(return_value=httpx.Response(200, request=request, json=body))
        monkeypatch.setattr(client.client, "post", post_mock)

        try:
            with pytest.raises(IncompleteResponseError):
                await client.complete("hello", GENERATION)
            assert post_mock.await_count == 1
        finally:
            await client.close()

    async def test_handles_non_numeric_usage_fields(self, monkeypatch: pytest.MonkeyPatch):
        """Non-numeric usage fields are safely coerced to zero."""
        client = _client()
        request = httpx.Request("POST", client.url)
        body = _gemini_body()
        body["usageMetadata"] = {
            "promptTokenCount": "not-a-number",
            "candidatesTokenCount": None,
            "totalTokenCount": "3.14",
        }
        post_mock = AsyncMock(return_value=httpx.Response(200, request=request, json=body))
        monkeypatch.setattr(client.client, "post", post_mock)

        try:
            result = await client.complete("hello", GENERATION)
            assert result.content == "ok"
            assert result.prompt_tokens == 0
            assert result.completion_tokens == 0
            assert result.total_tokens == 0
        finally:
            await client.close()


class TestGeminiClientRetry:
    """Tests for Gemini retry behavior."""

    async def test_retries_on_request_error_then_succeeds(self, monkeypatch: pytest.MonkeyPatch):
        """Retries transient request errors and succeeds on a later attempt."""
        client = _client()
        request = httpx.Request("POST", client.url)
        post_mock = AsyncMock(
            side_effect=[
                httpx.ConnectTimeout("timeout", request=request),
                httpx.Response(200, request=request, json=_gemini_body()),
            ]
        )
        monkeypatch.setattr(client.client, "post", post_mock)

        try:
            result = await client.complete("hello", GENERATION)
            assert result.content == "ok"
            assert post_mock.await_count == 2
        finally:
            await client.close()

    async def test_request_error_exhausts_after_three_attempts(
        self, monkeypatch: pytest.MonkeyPatch
    ):
        """Raises request error after exhausting retries."""
        client = _client()
        request = httpx.Request("POST", client.url)
        post_mock = AsyncMock(side_effect=httpx.ConnectTimeout("timeout", request=request))
        monkeypatch.setattr(client.client, "post", post_mock)

        try:
            with pytest.raises(httpx.ConnectTimeout):
                await client.complete("hello", GENERATION)
            assert post_mock.await_count == 3
        finally:
            await client.close()

    @pytest.mark.parametrize("status", [429, 500, 503])
    async def test_retries_transient_status(self, monkeypatch: pytest.MonkeyPatch, status: int):
        """Rate limits and server errors are retried."""
        client = _client()
        request = httpx.Request("POST", client.url)
        post_mock = AsyncMock(
            side_effect=[
                httpx.Response(status, request=request, json={"error": "busy"}),
                httpx.Response(200, request=request, json=_gemini_body()),
            ]
        )
        monkeypatch.setattr(client.client, "post", post_mock)

        try:
            result = await client.complete("hello", GENERATION)
            assert result.content == "ok"
            assert post_mock.await_count == 2
        finally:
            await client.close()

    async def test_http_status_error_exhausts_after_three_attempts(
        self, monkeypatch: pytest.MonkeyPatch
    ):
        """Raises HTTP status error after exhausting retries."""
        client = _client()
        request = httpx.Request("POST", client.url)
        post_mock = AsyncMock(
            side_effect=[
                httpx.Response(500, request=request, json={"error": "server error"}),
                httpx.Response(500, request=request, json={"error": "server error"}),
                httpx.Response(500, request=request, json={"error": "server error"}),
            ]
        )
        monkeypatch.setattr(client.client, "post", post_mock)

        try:
            with pytest.raises(httpx.HTTPStatusError):
                await client.complete("hello", GENERATION)
            assert post_mock.await_count == 3
        finally:
            await client.close()

    async def test_client_errors_are_not_retried(self, monkeypatch: pytest.MonkeyPatch):
        """A 400 (e.g. bad key) fails on the first attempt."""
        client = _client()
        request = httpx.Request("POST", client.url)
        post_mock = AsyncMock(
            return_value=httpx.Response(400, request=request, json={"error": "bad key"})
        )
        monkeypatch.setattr(client.client, "post", post_mock)

        try:
            with pytest.raises(httpx.HTTPStatusError):
                await client.complete("hello", GENERATION)
            assert post_mock.await_count == 1
        finally:
            await client.close()


class TestCreateClient:
    """Tests for client selection."""

    async def test_dry_run_gives_fake(self):
        assert isinstance(create_client(api_key="key", dry_run=True), FakeLLMClient)

    async def test_no_key_gives_none(self):
        assert create_client(api_key=None) is None

    async def test_key_gives_gemini(self):
        client = create_client(api_key="key", model="m")
        try:
            assert isinstance(client, GeminiClient)
            assert client.model == "m"
        finally:
            await client.close()
