"""Generative-text API client with async support and retries."""

from __future__ import annotations

import json
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
import structlog
import yaml
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from battle_arena.core.errors import OracleError

logger = structlog.get_logger()

_FAKE_RESPONSES_PATH = Path(__file__).parent / "fake_responses.yaml"


class IncompleteResponseError(OracleError):
    """The endpoint answered but returned no usable text (e.g. safety block)."""

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason
        super().__init__(f"Response contained no content (reason: {reason or 'unknown'})")


@dataclass(frozen=True)
class LLMResponse:
    """Response from an LLM API call with usage data."""

    content: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass(frozen=True)
class GenerationConfig:
    """Sampling parameters sent with every request."""

    temperature: float = 0.7
    top_p: float = 0.9
    top_k: int = 50
    max_output_tokens: int = 500

    def to_payload(self) -> dict[str, Any]:
        return {
            "temperature": self.temperature,
            "topP": self.top_p,
            "topK": self.top_k,
            "maxOutputTokens": self.max_output_tokens,
        }


def _load_fake_responses() -> dict[str, Any]:
    """Load fake response templates from YAML file (cached after first call).

    Returns:
        Dictionary containing response templates.
    """
    if not hasattr(_load_fake_responses, "_cache"):
        with _FAKE_RESPONSES_PATH.open(encoding="utf-8") as f:
            _load_fake_responses._cache = yaml.safe_load(f)
    return _load_fake_responses._cache


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class LLMClient(ABC):
    """Abstract base class for async LLM clients."""

    @abstractmethod
    async def complete(self, prompt: str, generation: GenerationConfig) -> LLMResponse:
        """Generate text for a single prompt.

        Args:
            prompt: Natural-language prompt.
            generation: Sampling parameters.

        Returns:
            LLMResponse with content and usage data.
        """

    async def close(self) -> None:  # noqa: B027
        """Close any resources. Override if needed."""


class FakeLLMClient(LLMClient):
    """Fake async LLM client for testing and dry runs.

    Returns scripted responses in order when given, otherwise seeded random
    verdicts rendered from fake_responses.yaml.
    """

    def __init__(self, seed: int = 42, responses: list[str] | None = None) -> None:
        """Initialize fake client.

        Args:
            seed: Random seed for deterministic verdicts.
            responses: Scripted response texts, returned one per call.
        """
        self.seed = seed
        self.responses = list(responses or [])
        self.call_count = 0
        self.prompts: list[str] = []

    async def complete(self, prompt: str, generation: GenerationConfig) -> LLMResponse:
        self.call_count += 1
        self.prompts.append(prompt)

        if self.responses:
            content = self.responses.pop(0)
        else:
            content = self._fake_verdict()

        prompt_tokens = len(prompt.split()) * 2
        completion_tokens = len(content.split()) * 2
        return LLMResponse(
            content=content,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        )

    def _fake_verdict(self) -> str:
        """Generate a fenced JSON verdict without touching global random state."""
        templates = _load_fake_responses()["verdict"]
        rng = random.Random(self.seed + self.call_count)  # noqa: S311
        winner = rng.choices(
            ["character1", "character2", "draw"],
            weights=templates["weights"],
        )[0]
        body = json.dumps(
            {
                "winner": winner,
                "narrative": templates["narratives"][winner],
                "isDraw": winner == "draw",
            }
        )
        return templates["wrapper"].format(body=body)


def _is_retryable(error: BaseException) -> bool:
    if isinstance(error, httpx.RequestError):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status == 429 or status >= 500
    return False


class GeminiClient(LLMClient):
    """Async client for a Gemini-style generateContent endpoint."""

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-pro-latest",
        max_attempts: int = 3,
        retry_wait: float = 0.5,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: API key sent as the key query parameter.
            model: Model name used in the endpoint path.
            max_attempts: Attempts per call, including the first.
            retry_wait: Base of the exponential backoff between attempts.
            timeout: Per-request HTTP timeout in seconds.
        """
        self.api_key = api_key
        self.model = model
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait
        self.client = httpx.AsyncClient(timeout=timeout)

    @property
    def url(self) -> str:
        return f"{self.BASE_URL}/{self.model}:generateContent"

    async def complete(self, prompt: str, generation: GenerationConfig) -> LLMResponse:
        """Generate text, retrying transport errors, 429 and 5xx responses.

        Raises:
            httpx.HTTPError: On API error after retries.
            IncompleteResponseError: If the response carries no text.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.retry_wait, max=self.retry_wait * 8),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._call_api(prompt, generation)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _call_api(self, prompt: str, generation: GenerationConfig) -> LLMResponse:
        logger.info("api_call", model=self.model, max_tokens=generation.max_output_tokens)

        response = await self.client.post(
            self.url,
            params={"key": self.api_key},
            headers={"Content-Type": "application/json"},
            json={
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": generation.to_payload(),
            },
        )
        response.raise_for_status()

        data = response.json()
        content = self._extract_text(data)
        usage = data.get("usageMetadata") or {}
        prompt_tokens = _as_int(usage.get("promptTokenCount"))
        completion_tokens = _as_int(usage.get("candidatesTokenCount"))
        total_tokens = _as_int(usage.get("totalTokenCount")) or prompt_tokens + completion_tokens

        logger.debug(
            "api_response",
            model=self.model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
        )
        return LLMResponse(
            content=content,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
        )

    @staticmethod
    def _extract_text(data: dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            raise IncompleteResponseError(block_reason or "no candidates")

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        text = parts[0].get("text") if parts else None
        if not text or not text.strip():
            raise IncompleteResponseError(candidate.get("finishReason"))
        return text

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()


def create_client(
    api_key: str | None = None,
    model: str = "gemini-1.5-pro-latest",
    dry_run: bool = False,
    seed: int = 42,
) -> LLMClient | None:
    """Create the oracle client for the given settings.

    Args:
        api_key: Oracle API key.
        model: Model name.
        dry_run: Use fake client instead of real API.
        seed: Random seed for fake client.

    Returns:
        LLMClient instance, or None when there is no key and no dry run, in
        which case battles are decided by the local fallback only.
    """
    if dry_run:
        logger.info("using_fake_client", seed=seed)
        return FakeLLMClient(seed=seed)

    if not api_key:
        logger.warning("oracle_disabled", reason="no api key")
        return None

    return GeminiClient(api_key, model=model)
