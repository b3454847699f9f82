"""
DocChat - Model Providers
==========================
Factories for the Gemini embedding model and chat model, both via
``langchain-google-genai``.  Imports are deferred so that modules which
only need the types (and the test-suite) never load the SDK.
"""

from __future__ import annotations

from docchat.config.settings import settings
from docchat.src.utils.logger import get_logger

logger = get_logger(__name__)


def build_embedder() -> object:
    """Create the ``GoogleGenerativeAIEmbeddings`` used for chunks and queries."""
    from langchain_google_genai import GoogleGenerativeAIEmbeddings

    embedder = GoogleGenerativeAIEmbeddings(model=settings.EMBEDDING_MODEL, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
    logger.info("Embedder initialised: %s", settings.EMBEDDING_MODEL)
    return embedder


def build_llm() -> object:
    """Create the Gemini chat model used to answer questions."""
    from langchain_google_genai import ChatGoogleGenerativeAI

    llm = ChatGoogleGenerativeAI(
        model=settings.LLM_MODEL,
        temperature=settings.LLM_TEMPERATURE,
        top_p=settings.LLM_TOP_P,
        max_output_tokens=settings.LLM_MAX_TOKENS,
        google_api_key=settings.GOOGLE_API_KEY.get_secret_value(),
    )
    logger.info("LLM initialised: %s (temperature=%.1f, top_p=%.1f)", settings.LLM_MODEL, settings.LLM_TEMPERATURE, settings.LLM_TOP_P)
    return llm
