"""
DocChat - RAG Engine
=====================
Answers a question from the knowledge base and the session's history.

``RAGManager.answer`` flow:
    1. Retrieve → top-k chunks from the ``VectorStore``
    2. Context  → chunk contents joined by blank lines
    3. History  → prior messages, oldest first, as ``role: content`` lines
    4. Prompt   → ``RAG_PROMPT_TEMPLATE`` with history/context/question
    5. Generate → async LLM invocation
    6. Save     → append the turn to the ``SessionStore``
    7. Return   → the model's text, verbatim

Retrieval runs in a worker thread so concurrent requests are not
serialised behind the blocking embed + search calls.  Retrieval and LLM
failures are logged and re-raised unchanged; there is no retry and no
canned fallback answer.

Usage:
    from docchat.src.core.rag_engine import RAGManager
    rag = RAGManager(vector_store, session_store)
    answer = await rag.answer("What documents are required?", "session_123")
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence

from langchain_core.messages import HumanMessage

from docchat.config.prompt_templates import NO_CONTEXT_PLACEHOLDER, NO_HISTORY_PLACEHOLDER, RAG_PROMPT_TEMPLATE
from docchat.config.settings import settings
from docchat.src.core.providers import build_llm
from docchat.src.core.schemas import ChatMessage, DocumentChunk, Turn
from docchat.src.core.sessions import InMemorySessionStore, SessionStore
from docchat.src.database.vector_store import VectorStore
from docchat.src.utils.logger import get_logger

logger = get_logger(__name__)


class RAGManager:
    """
    Orchestrates retrieve → prompt → generate → remember.

    Parameters
    ----------
    vector_store
        An initialised ``VectorStore`` for retrieval.
    session_store
        History backend.  Defaults to a fresh ``InMemorySessionStore``.
    llm
        Any object exposing ``async ainvoke(messages)``.  Defaults to the
        configured Gemini chat model.
    k
        Retrieval breadth.  Defaults to ``settings.RETRIEVAL_K``.
    """

    __slots__ = ("_retriever", "_sessions", "_llm")

    def __init__(self, vector_store: VectorStore, session_store: SessionStore | None = None, llm: object | None = None, k: int | None = None) -> None:
        self._retriever = vector_store.as_retriever(k)
        # Empty stores are falsy (``__len__``); test identity, not truthiness
        self._sessions: SessionStore = session_store if session_store is not None else InMemorySessionStore()
        self._llm = llm if llm is not None else build_llm()


    @property
    def sessions(self) -> SessionStore:
        return self._sessions


    async def answer(self, query: str, session_id: str | None = None) -> str:
        """Answer *query* within *session_id* (``settings.DEFAULT_SESSION_ID`` if absent)."""
        session_id = session_id or settings.DEFAULT_SESSION_ID
        t_start = time.perf_counter()

        # ── 1. Retrieve (embedding + search block; run off the event loop) ─
        try:
            chunks = await asyncio.to_thread(self._retriever, query)
        except Exception:
            logger.exception("[RAG] Retrieval failed for session '%s'.", session_id)
            raise
        search_ms = (time.perf_counter() - t_start) * 1000

        # ── 2–4. Build prompt ─────────────────────────────────────────
        history = await self._sessions.get(session_id)
        prompt = self.build_prompt(query, chunks, history)
        logger.debug("[RAG] Prompt for session '%s': %d chunk(s), %d history message(s).", session_id, len(chunks), len(history))

        # ── 5. Generate ───────────────────────────────────────────────
        t_llm = time.perf_counter()
        try:
            response = await self._llm.ainvoke([HumanMessage(content=prompt)])  # type: ignore[attr-defined]
        except Exception:
            logger.exception("[RAG] LLM call failed for session '%s'.", session_id)
            raise
        answer = response_text(response)
        llm_ms = (time.perf_counter() - t_llm) * 1000

        # ── 6. Save ───────────────────────────────────────────────────
        await self._sessions.append(session_id, Turn(question=query, answer=answer))

        total_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[RAG] Session '%s' answered in %.1fms (search=%.1f, llm=%.1f, %d chars).", session_id, total_ms, search_ms, llm_ms, len(answer))
        return answer

    # ══════════════════════════════════════════════════════════════════
    #  PROMPT FORMATTING
    # ══════════════════════════════════════════════════════════════════

    @classmethod
    def build_prompt(cls, question: str, chunks: Sequence[DocumentChunk], history: Sequence[ChatMessage]) -> str:
        return RAG_PROMPT_TEMPLATE.format(history=cls.format_history(history), context=cls.format_context(chunks), question=question)


    @staticmethod
    def format_context(chunks: Sequence[DocumentChunk]) -> str:
        if not chunks:
            return NO_CONTEXT_PLACEHOLDER
        return "\n\n".join(chunk.content for chunk in chunks)


    @staticmethod
    def format_history(messages: Sequence[ChatMessage]) -> str:
        if not messages:
            return NO_HISTORY_PLACEHOLDER
        return "\n".join(f"{msg.role}: {msg.content}" for msg in messages)


def response_text(response: object) -> str:
    """Extract plain text from a chat-model response (string or content parts)."""
    content = getattr(response, "content", response)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type", "text") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)
    return str(content)
