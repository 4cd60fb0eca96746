"""Generation provider adapters.

Two implementations of IGenerationProvider
(tusk/interfaces/generation_provider.py):
    - OpenAIGenerationProvider -- gpt-4o-mini / gpt-4o (also OpenAI-compatible APIs)
    - OllamaGenerationProvider -- local models via an Ollama server
"""

from tusk.providers.llm.ollama_provider import OllamaGenerationProvider
from tusk.providers.llm.openai_provider import OpenAIGenerationProvider

__all__ = ["OllamaGenerationProvider", "OpenAIGenerationProvider"]
