"""
DocChat - IngestionPipeline
============================
Loads a web page or PDF, splits it into overlapping windows, makes the
loader metadata storage-safe and writes the chunks into the
``VectorStore``.

Key design decisions:
    • **Dependency Injection** – receives the ``VectorStore`` and, for
      tests, an alternative ``{source_kind: loader_factory}`` table.
    • **Per-kind splitting** – both kinds use ``CHUNK_SIZE`` /
      ``CHUNK_OVERLAP``; PDFs prefer paragraph → line → sentence → word
      boundaries, web pages use the splitter's default separators.
    • **Uniform metadata sanitization** – every chunk, whatever its
      source kind, gets sanitized keys plus a reversible key mapping.
    • **No rollback** – a failure part-way leaves earlier writes in place.

Usage:
    from docchat.src.core.ingestor import IngestionPipeline
    pipeline = IngestionPipeline(vector_store)
    added    = pipeline.ingest("https://example.com/terms", "web")
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from typing import Any, Literal

from langchain_core.documents import Document
from langchain_text_splitters import RecursiveCharacterTextSplitter

from docchat.config.settings import settings
from docchat.src.core.schemas import DocumentChunk
from docchat.src.database.vector_store import VectorStore
from docchat.src.utils.logger import get_logger
from docchat.src.utils.text_utils import sanitize_metadata_keys

logger = get_logger(__name__)

SourceKind = Literal["web", "pdf"]
LoaderFactory = Callable[[str], Any]

# Separator preference for PDFs, coarsest first
_PDF_SEPARATORS = ["\n\n", "\n", ".", " "]


def _web_loader(url: str) -> Any:
    from langchain_community.document_loaders import WebBaseLoader

    return WebBaseLoader(url)


def _pdf_loader(path: str) -> Any:
    from langchain_community.document_loaders import PyPDFLoader

    # One document for the whole file; the splitter decides the windows
    return PyPDFLoader(path, mode="single")


DEFAULT_LOADERS: dict[str, LoaderFactory] = {"web": _web_loader, "pdf": _pdf_loader}


class IngestionPipeline:
    """
    End-to-end ingestion of one source: load → split → sanitize → store.

    Parameters
    ----------
    vector_store
        An initialised ``VectorStore`` (injected).
    loaders
        Optional override of the loader factory per source kind.
    chunk_size, chunk_overlap
        Override ``settings.CHUNK_SIZE`` / ``settings.CHUNK_OVERLAP``.
    """

    def __init__(self, vector_store: VectorStore, loaders: Mapping[str, LoaderFactory] | None = None, chunk_size: int | None = None, chunk_overlap: int | None = None) -> None:
        self._store = vector_store
        self._loaders: dict[str, LoaderFactory] = dict(loaders or DEFAULT_LOADERS)
        self._chunk_size = chunk_size or settings.CHUNK_SIZE
        self._chunk_overlap = chunk_overlap if chunk_overlap is not None else settings.CHUNK_OVERLAP

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC ENTRY POINT
    # ══════════════════════════════════════════════════════════════════

    def ingest(self, source_locator: str, source_kind: str, source_name: str | None = None) -> int:
        """
        Ingest one source into the vector store.

        Parameters
        ----------
        source_locator
            URL for ``"web"``, filesystem path for ``"pdf"``.
        source_kind
            ``"web"`` or ``"pdf"``.
        source_name
            Replaces the loader's ``source`` metadata (e.g. the original
            filename of an upload saved under a temporary path).

        Returns
        -------
        int
            Number of chunks written.

        Raises
        ------
        ValueError
            If *source_kind* is not supported.
        """
        if source_kind not in self._loaders:
            raise ValueError(f"Unsupported source kind {source_kind!r}; expected one of {sorted(self._loaders)}.")

        t_start = time.perf_counter()
        logger.info("Ingesting %s source: %s", source_kind, source_locator)

        documents = self._load(source_locator, source_kind)
        if not documents:
            logger.warning("Loader returned no documents for %s", source_locator)
            return 0

        t_split = time.perf_counter()
        pieces = self.split(documents, source_kind)
        split_ms = (time.perf_counter() - t_split) * 1000

        chunks = [self._to_chunk(piece, source_name) for piece in pieces if piece.page_content.strip()]
        logger.info("Source '%s' → %d document(s), %d chunk(s) in %.1fms.", source_locator, len(documents), len(chunks), split_ms)

        added = self._store.add_documents(chunks)

        total_ms = (time.perf_counter() - t_start) * 1000
        logger.info("Source '%s' complete — %d chunk(s) stored, total: %.1fms.", source_locator, added, total_ms)
        return added

    # ══════════════════════════════════════════════════════════════════
    #  STAGES
    # ══════════════════════════════════════════════════════════════════

    def _load(self, source_locator: str, source_kind: str) -> list[Document]:
        loader = self._loaders[source_kind](source_locator)
        try:
            return list(loader.load())
        except Exception:
            logger.exception("Failed to load %s source: %s", source_kind, source_locator)
            raise


    def splitter_for(self, source_kind: str) -> RecursiveCharacterTextSplitter:
        if source_kind == "pdf":
            return RecursiveCharacterTextSplitter(chunk_size=self._chunk_size, chunk_overlap=self._chunk_overlap, separators=_PDF_SEPARATORS)
        return RecursiveCharacterTextSplitter(chunk_size=self._chunk_size, chunk_overlap=self._chunk_overlap)


    def split(self, documents: list[Document], source_kind: str) -> list[Document]:
        return self.splitter_for(source_kind).split_documents(documents)


    @staticmethod
    def _to_chunk(document: Document, source_name: str | None) -> DocumentChunk:
        metadata = dict(document.metadata)
        if source_name:
            metadata["source"] = source_name
        sanitized, key_mappings = sanitize_metadata_keys(metadata)
        if key_mappings:
            logger.debug("Renamed metadata keys: %s", key_mappings)
        return DocumentChunk(content=document.page_content, source_metadata=sanitized, key_mappings=key_mappings or None)
