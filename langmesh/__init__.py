"""Top-level package for langmesh.

langmesh wraps an OpenAI-compatible chat client, records one telemetry event
per call, and ships batches to the langmesh collection endpoint without
affecting the call's result. The main entry point is `InstrumentedClient`.
"""

from loguru import logger

from .client import InstrumentedClient
from .config import ConfigLoader, LangmeshConfig
from .llm.openai_client import OpenAIChatClient, OpenAIProviderError
from .models.datatypes import (
    CallContext,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    Usage,
)

logger.disable("langmesh")

__all__ = [
    "CallContext",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    "ChatMessage",
    "ConfigLoader",
    "InstrumentedClient",
    "LangmeshConfig",
    "OpenAIChatClient",
    "OpenAIProviderError",
    "Usage",
    "__version__",
]

__version__ = "0.1.0"
