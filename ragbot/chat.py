"""
Chat query orchestration.

answer(bot_id, question):
1. Load every chunk of the bot; none → canned "no documents" answer, no provider calls
2. Hybrid retrieval (BM25 + vectors, lexical-only fallback)
3. Generate the answer from the top chunks' content
4. Citations "Page <n>" per retrieved chunk
5. Log user/assistant messages to the session (best-effort)

Generation failures are terminal and propagate as AnswerGenerationError; the
HTTP layer turns them into an apology. Session logging failures are logged and
never affect the answer.
"""

import logging
import time
from typing import List, Optional, Sequence

from .models import ChatAnswer, ScoredChunk
from .providers.base import BaseAnswerGenerator
from .retrieval import HybridRetriever
from .utils import generate_session_token

logger = logging.getLogger(__name__)

NO_DOCUMENTS_ANSWER = "I don't have any documents to answer from yet. Please upload some documents first."
APOLOGY_ANSWER = "Sorry, something went wrong. Please try again."
CONTEXT_SEPARATOR = "\n\n"


def build_context(results: Sequence[ScoredChunk]) -> str:
    """Chunk contents joined by blank lines, best first"""
    return CONTEXT_SEPARATOR.join(r.chunk.content for r in results)


def build_citations(results: Sequence[ScoredChunk]) -> List[str]:
    return [r.chunk.citation for r in results]


class ChatService:
    """Answers questions for one bot at a time"""

    def __init__(
        self,
        store,
        retriever: HybridRetriever,
        generator: BaseAnswerGenerator,
        session_logger=None,
    ):
        """
        Args:
            store: Chunk store with `get_chunks(bot_id)`
            retriever: Hybrid retriever
            generator: Answer generator
            session_logger: Object with `get_or_create_session` and `log_exchange`;
                None disables message logging
        """
        self.store = store
        self.retriever = retriever
        self.generator = generator
        self.session_logger = session_logger

    async def _log_exchange(self, bot_id: str, session_token: str, question: str, reply: ChatAnswer):
        """Persist the turn; failures are logged, never raised"""
        if self.session_logger is None:
            return
        try:
            session_id = await self.session_logger.get_or_create_session(bot_id, session_token)
            await self.session_logger.log_exchange(
                session_id=session_id,
                bot_id=bot_id,
                question=question,
                answer=reply.answer,
                citations=reply.citations,
                response_time_ms=reply.response_time_ms,
            )
        except Exception:
            logger.exception(f"Failed to log chat messages for bot {bot_id}, session {session_token}")

    async def answer(self, bot_id: str, question: str, session_id: Optional[str] = None) -> ChatAnswer:
        """
        Answer a question from the bot's documents.

        Args:
            bot_id: Tenant whose chunks are searched
            question: User question
            session_id: Client session token; generated when missing

        Returns:
            ChatAnswer with answer text, citations and session token

        Raises:
            AnswerGenerationError: If the answer generator fails
        """
        start = time.monotonic()
        session_token = session_id or generate_session_token()

        chunks = await self.store.get_chunks(bot_id)
        if not chunks:
            logger.info(f"Bot {bot_id} has no documents, returning canned answer")
            return ChatAnswer(answer=NO_DOCUMENTS_ANSWER, citations=[], session_id=session_token)

        retrieval = await self.retriever.retrieve(question, chunks)
        logger.info(f"Retrieved {len(retrieval.results)} of {len(chunks)} chunks for bot {bot_id} ({retrieval.mode})")

        answer_text = await self.generator.generate(build_context(retrieval.results), question)

        reply = ChatAnswer(
            answer=answer_text,
            citations=build_citations(retrieval.results),
            session_id=session_token,
            sources=retrieval.results,
        )
        reply.response_time_ms = int((time.monotonic() - start) * 1000)

        await self._log_exchange(bot_id, session_token, question, reply)

        logger.info(f"Answered bot {bot_id} in {reply.response_time_ms}ms")
        return reply
