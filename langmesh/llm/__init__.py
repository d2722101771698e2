"""Provider HTTP clients wrapped by the instrumentation layer."""

from .openai_client import OpenAIChatClient, OpenAIProviderError

__all__ = ["OpenAIChatClient", "OpenAIProviderError"]
