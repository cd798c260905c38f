"""Generative model adapters."""

from nutriscan.infrastructure.ai.openai_client import (
    OpenAIModelClient,
    RetryingModelClient,
    build_messages,
    image_data_url,
)

__all__ = ["OpenAIModelClient", "RetryingModelClient", "build_messages", "image_data_url"]
