"""
DocChat - Collection Setup & Seeding Script
============================================
CLI entry point that:
    1. Validates configuration (fail-fast on a bad ``.env``).
    2. Ensures the configured collection exists.
    3. Ingests every ``--web`` URL and ``--pdf`` path given.
    4. Prints an execution summary.

Re-running with the same sources stores duplicate chunks; sources are
not deduplicated.

Usage:
    python -m docchat.scripts.setup_db
    python -m docchat.scripts.setup_db --web https://example.com/terms --pdf ./resources/terms.pdf
"""

from __future__ import annotations

import argparse
import sys
import time


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="setup_db", description="DocChat — ensure the vector collection exists and ingest seed sources.")
    parser.add_argument("--web", action="append", default=[], metavar="URL", help="Web page to ingest (repeatable).")
    parser.add_argument("--pdf", action="append", default=[], metavar="PATH", help="PDF file to ingest (repeatable).")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    t_start = time.perf_counter()

    try:
        from docchat.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}")
        print()
        return 1

    from docchat.src.utils.logger import get_logger, quiet_library_loggers
    logger = get_logger(__name__)
    quiet_library_loggers()

    _print_header(settings)

    from docchat.src.core.ingestor import IngestionPipeline
    from docchat.src.core.providers import build_embedder
    from docchat.src.database.vector_store import VectorStore

    store = VectorStore(embedder=build_embedder())
    store.ensure_collection(settings.COLLECTION_NAME, [settings.TEXT_PROPERTY])
    logger.info("Collection '%s' ready (%d existing rows).", settings.COLLECTION_NAME, store.count())

    pipeline = IngestionPipeline(store)
    sources = [(url, "web") for url in args.web] + [(path, "pdf") for path in args.pdf]
    total_chunks = 0
    for locator, kind in sources:
        total_chunks += pipeline.ingest(locator, kind)

    _print_footer(len(sources), total_chunks, store.count(), time.perf_counter() - t_start)
    return 0


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: object) -> None:
    print()
    print("=" * 60)
    print("  DOCCHAT — Collection Setup & Seeding")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")                 # type: ignore[attr-defined]
    print(f"  LanceDB URI  : {settings.LANCEDB_URI}")         # type: ignore[attr-defined]
    print(f"  Collection   : {settings.COLLECTION_NAME}")     # type: ignore[attr-defined]
    print(f"  Text column  : {settings.TEXT_PROPERTY}")       # type: ignore[attr-defined]
    print(f"  Embedding    : {settings.EMBEDDING_MODEL}")     # type: ignore[attr-defined]
    print(f"  Chunking     : {settings.CHUNK_SIZE}/{settings.CHUNK_OVERLAP} chars")  # type: ignore[attr-defined]
    print("=" * 60)
    print()


def _print_footer(sources: int, chunks: int, rows: int, elapsed: float) -> None:
    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    print(f"  Sources ingested     : {sources}")
    print(f"  Chunks stored        : {chunks}")
    print(f"  Collection rows      : {rows}")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    sys.exit(main())
