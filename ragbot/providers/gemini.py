"""
Gemini embedding and answer generation via the Google Gen AI SDK.

Works against either the Gemini Developer API (API key) or Vertex AI
(project + location), chosen by ProviderConfig.

The SDK calls are synchronous; they run in a worker thread so the event loop
stays free. Transient failures (rate limit, server errors) are retried with
exponential backoff; anything else fails fast as a ProviderError.
"""

import asyncio
import logging
from typing import Callable, List, Optional, TypeVar

from google import genai
from google.genai import types
from google.genai.types import EmbedContentConfig, HttpOptions

from ..config import ProviderConfig
from ..exceptions import AnswerGenerationError, EmbeddingError, ProviderError
from .base import NO_ANSWER, BaseAnswerGenerator, BaseEmbeddingProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Retry configuration (exponential backoff on transient errors)
RETRY_INITIAL_DELAY = 1.0  # seconds
RETRY_EXP_BASE = 2.0
RETRY_STATUS_CODES = {429, 500, 503, 504}  # Rate limit, server errors


def build_genai_client(config: ProviderConfig) -> genai.Client:
    """
    Create a Google Gen AI client from explicit configuration.

    Raises:
        ConfigurationError: If neither an API key nor a Vertex AI project is configured
    """
    config.validate_credentials()
    # HttpOptions.timeout is in milliseconds
    http_options = HttpOptions(timeout=int(config.timeout_seconds * 1000))

    if config.use_vertexai:
        logger.info(f"Initializing Google Gen AI client (Vertex AI, project={config.project_id}, location={config.location})")
        return genai.Client(
            vertexai=True,
            project=config.project_id,
            location=config.location,
            http_options=http_options,
        )

    logger.info("Initializing Google Gen AI client (Gemini API key)")
    return genai.Client(api_key=config.api_key, http_options=http_options)


def _status_code(error: Exception) -> Optional[int]:
    return getattr(error, 'code', None) or getattr(error, 'status_code', None)


async def call_with_retry(
    func: Callable[[], T],
    operation: str,
    max_attempts: int,
    initial_delay: float = RETRY_INITIAL_DELAY,
) -> T:
    """
    Run a blocking SDK call in a thread, retrying transient failures.

    Args:
        func: Zero-argument callable performing the SDK request
        operation: Name used in log messages
        max_attempts: Total attempts (1 = no retry)
        initial_delay: Delay before the first retry in seconds

    Returns:
        Whatever `func` returns

    Raises:
        ProviderError: After a non-retriable error or when attempts run out
    """
    last_error: Optional[Exception] = None

    for attempt in range(max_attempts):
        try:
            return await asyncio.to_thread(func)
        except Exception as e:
            last_error = e
            code = _status_code(e)
            logger.warning(f"Attempt {attempt + 1}/{max_attempts}: {operation} failed (code {code}): {e}")

            if code not in RETRY_STATUS_CODES:
                break

            if attempt < max_attempts - 1:
                delay = initial_delay * (RETRY_EXP_BASE ** attempt)
                logger.info(f"Retrying {operation} in {delay:.1f}s...")
                await asyncio.sleep(delay)

    raise ProviderError(f"{operation} failed: {last_error}", status_code=_status_code(last_error)) from last_error


class GeminiEmbeddingProvider(BaseEmbeddingProvider):
    """Embeddings from a Gemini embedding model"""

    def __init__(self, config: ProviderConfig, client: Optional[genai.Client] = None):
        """
        Args:
            config: Provider settings (model, dimensionality, retries)
            client: Pre-built client (shared with the generator, or a mock in tests)
        """
        self.config = config
        self.client = client or build_genai_client(config)
        self.model_name = config.embedding_model

    @property
    def dimension(self) -> int:
        return self.config.embedding_dimension

    async def embed(self, text: str) -> List[float]:
        def _request():
            return self.client.models.embed_content(
                model=self.model_name,
                contents=text,
                config=EmbedContentConfig(output_dimensionality=self.dimension),
            )

        try:
            response = await call_with_retry(_request, "embedding", self.config.max_retries)
        except ProviderError as e:
            raise EmbeddingError(str(e), status_code=e.status_code) from e.__cause__

        try:
            values = list(response.embeddings[0].values)
        except (AttributeError, IndexError, TypeError) as e:
            raise EmbeddingError(f"Malformed embedding response from {self.model_name}") from e

        if not values:
            raise EmbeddingError(f"Empty embedding returned by {self.model_name}")

        return values


class GeminiAnswerGenerator(BaseAnswerGenerator):
    """Answers from a Gemini chat model"""

    def __init__(self, config: ProviderConfig, client: Optional[genai.Client] = None):
        self.config = config
        self.client = client or build_genai_client(config)
        self.model_name = config.generation_model

    async def generate(self, context_text: str, question: str) -> str:
        prompt = self.build_prompt(context_text, question)

        def _request():
            return self.client.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=types.GenerateContentConfig(
                    temperature=self.config.temperature,
                    max_output_tokens=self.config.max_output_tokens,
                ),
            )

        try:
            response = await call_with_retry(_request, "answer generation", self.config.max_retries)
        except ProviderError as e:
            raise AnswerGenerationError(str(e), status_code=e.status_code) from e.__cause__

        try:
            text = response.text
        except (AttributeError, ValueError) as e:
            raise AnswerGenerationError(f"Malformed generation response from {self.model_name}") from e

        if not text or not text.strip():
            logger.warning(f"{self.model_name} returned an empty answer")
            return NO_ANSWER

        return text.strip()
