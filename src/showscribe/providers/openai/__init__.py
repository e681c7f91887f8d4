"""OpenAI provider for chat completion and transcription."""

from .openai_provider import OpenAIProvider

__all__ = ["OpenAIProvider"]
