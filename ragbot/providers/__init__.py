"""
Remote model providers (embeddings + answer generation).

Usage:
    from ragbot.config import ProviderConfig
    from ragbot.providers import ProviderFactory

    embedder, generator = ProviderFactory.create(ProviderConfig.from_env())
    vector = await embedder.embed("What is in the contract?")
    answer = await generator.generate(context_text, "What is in the contract?")
"""

from .base import BaseAnswerGenerator, BaseEmbeddingProvider
from .gemini import GeminiAnswerGenerator, GeminiEmbeddingProvider, build_genai_client
from .factory import ProviderFactory

__all__ = [
    'BaseAnswerGenerator',
    'BaseEmbeddingProvider',
    'GeminiAnswerGenerator',
    'GeminiEmbeddingProvider',
    'ProviderFactory',
    'build_genai_client',
]
