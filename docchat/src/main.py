"""
DocChat - Application Entry Point
==================================
FastAPI application factory.  On startup the lifespan handler wires the
shared services onto ``app.state``:

    embedder → VectorStore → ensure_collection()
             → IngestionPipeline
             → SessionStore → RAGManager

Services passed to ``create_app`` are used as-is (tests inject fakes);
anything missing is built from ``settings``.

Run:
    python -m docchat.src.main
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docchat.config.settings import settings
from docchat.src.api.routes import chat_router, health_router
from docchat.src.core.ingestor import IngestionPipeline
from docchat.src.core.rag_engine import RAGManager
from docchat.src.core.sessions import build_session_store
from docchat.src.database.vector_store import VectorStore
from docchat.src.utils.logger import get_logger, quiet_library_loggers

logger = get_logger(__name__)


def create_app(vector_store: VectorStore | None = None, ingestion_pipeline: IngestionPipeline | None = None, rag_manager: RAGManager | None = None) -> FastAPI:
    """Build the FastAPI app; ``None`` services are created at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        quiet_library_loggers()
        store = vector_store
        if store is None:
            from docchat.src.core.providers import build_embedder

            store = VectorStore(embedder=build_embedder())
            store.ensure_collection(settings.COLLECTION_NAME, [settings.TEXT_PROPERTY])

        app.state.vector_store = store
        app.state.ingestion_pipeline = ingestion_pipeline if ingestion_pipeline is not None else IngestionPipeline(store)
        app.state.rag_manager = rag_manager if rag_manager is not None else RAGManager(store, build_session_store())

        logger.info("DocChat API ready — collection '%s'.", settings.COLLECTION_NAME)
        yield
        logger.info("DocChat API shut down.")

    app = FastAPI(
        title="DocChat",
        description="Retrieval-augmented chat over ingested web pages and PDFs.",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(chat_router)
    app.include_router(health_router)
    return app


# Server Start
if __name__ == "__main__":
    import uvicorn

    logger.info("Starting DocChat API on %s:%d …", settings.HOST, settings.PORT)
    uvicorn.run(create_app(), host=settings.HOST, port=settings.PORT)
