"""
Factory for provider instances based on configuration.
"""

import logging
from typing import Optional, Tuple

from google import genai

from ..config import ProviderConfig
from .base import BaseAnswerGenerator, BaseEmbeddingProvider
from .gemini import GeminiAnswerGenerator, GeminiEmbeddingProvider, build_genai_client

logger = logging.getLogger(__name__)


class ProviderFactory:
    """Builds the embedding provider and answer generator from one ProviderConfig"""

    @staticmethod
    def create(
        config: ProviderConfig,
        client: Optional[genai.Client] = None,
    ) -> Tuple[BaseEmbeddingProvider, BaseAnswerGenerator]:
        """
        Create both providers sharing a single Gen AI client.

        Args:
            config: Provider settings
            client: Existing client to reuse (built from config if None)

        Returns:
            (embedding_provider, answer_generator)

        Raises:
            ConfigurationError: If credentials are missing
        """
        client = client or build_genai_client(config)

        embedder = GeminiEmbeddingProvider(config, client=client)
        generator = GeminiAnswerGenerator(config, client=client)

        logger.info(
            f"Providers ready: embeddings={config.embedding_model} ({config.embedding_dimension}d), "
            f"generation={config.generation_model}"
        )
        return embedder, generator
