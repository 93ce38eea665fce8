"""
Abstract interfaces for remote model providers.

Embedding and answer generation live behind these interfaces so the retrieval
core and the chat service can be exercised with fakes. Implementations raise
ProviderError subclasses, never raw SDK exceptions.
"""

from abc import ABC, abstractmethod
from typing import List

ANSWER_PROMPT_TEMPLATE = """Context:
{context}

Question: {question}

Answer:"""

NO_ANSWER = "No answer generated."


class BaseEmbeddingProvider(ABC):
    """Produces a dense vector for a text span"""

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """
        Embed text.

        Raises:
            EmbeddingError: On API error, auth failure or malformed response
        """
        pass

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Expected embedding dimensionality"""
        pass

    def close(self):
        """Optional cleanup (close API clients, etc.)"""
        pass


class BaseAnswerGenerator(ABC):
    """Produces a natural-language answer grounded in retrieved context"""

    @abstractmethod
    async def generate(self, context_text: str, question: str) -> str:
        """
        Answer the question from the given context.

        Raises:
            AnswerGenerationError: On API error, auth failure or malformed response
        """
        pass

    @staticmethod
    def build_prompt(context_text: str, question: str) -> str:
        return ANSWER_PROMPT_TEMPLATE.format(context=context_text, question=question)

    def close(self):
        pass
