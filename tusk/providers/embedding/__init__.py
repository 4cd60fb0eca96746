"""Embedding provider adapters (OpenAI-compatible API, Nomic via Ollama)."""

from tusk.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from tusk.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["NomicEmbeddingProvider", "OpenAIEmbeddingProvider"]
