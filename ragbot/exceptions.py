"""Exception hierarchy for the chatbot backend"""


class RagbotError(Exception):
    """Base class for all ragbot errors"""


class ConfigurationError(RagbotError):
    """Missing or contradictory configuration (API keys, project ids, etc.)"""


class ProviderError(RagbotError):
    """
    Remote model provider failed (non-2xx response, auth failure, malformed response).

    The original provider exception is kept on ``__cause__`` for diagnostics.
    """

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class EmbeddingError(ProviderError):
    """Embedding generation failed"""


class AnswerGenerationError(ProviderError):
    """Answer generation failed - terminal for the query"""
