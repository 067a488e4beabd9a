from .client import (
    FakeLLMClient,
    GeminiClient,
    GenerationConfig,
    IncompleteResponseError,
    LLMClient,
    LLMResponse,
    create_client,
)

__all__ = [
    "FakeLLMClient",
    "GeminiClient",
    "GenerationConfig",
    "IncompleteResponseError",
    "LLMClient",
    "LLMResponse",
    "create_client",
]
