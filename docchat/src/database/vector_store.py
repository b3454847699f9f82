"""
DocChat - VectorStore
======================
OOP wrapper around LanceDB providing a clean interface for:
  • Idempotent collection (table) creation with a strict PyArrow schema
  • Single-record insert and batched bulk insert of document chunks
  • Top-k similarity retrieval through a ``VectorStoreRetriever``

Design decisions:
  • **Singleton DB connection** — ``_get_connection()`` caches one
    ``lancedb.DBConnection`` per URI.
  • **Dependency Injection** — the embedder is injected, never
    hard-coded, so tests run against a local table with a fake embedder.
  • **Collection config in schema metadata** — the embedding and
    generative model settings live in the table's PyArrow schema
    metadata, written once at creation time.
  • **No locking around check-then-create** — a concurrent creator
    surfaces LanceDB's "already exists" error to the caller.

Usage:
    from docchat.src.core.providers import build_embedder
    from docchat.src.database.vector_store import VectorStore

    store = VectorStore(build_embedder())
    store.ensure_collection()
    store.add_documents(chunks)
    hits = store.as_retriever(k=5)("query text")
"""

from __future__ import annotations

import json
import threading
import uuid
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

import lancedb
import pyarrow as pa

from docchat.config.settings import settings
from docchat.src.core.schemas import DocumentChunk
from docchat.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type Aliases ──────────────────────────────────────────────────────
StoredRecord = dict[str, str | list[float]]


# ── Embedder Protocol ─────────────────────────────────────────────────

@runtime_checkable
class Embedder(Protocol):
    """Structural type for any LangChain-compatible embedding model."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]: ...

    def embed_query(self, text: str) -> list[float]: ...


# ── Fixed columns (every property column is utf8) ─────────────────────
ID_COLUMN = "id"
VECTOR_COLUMN = "vector"
SOURCE_COLUMN = "source"
METADATA_COLUMN = "metadata"
KEY_MAPPINGS_COLUMN = "key_mappings"
RESERVED_COLUMNS = frozenset({ID_COLUMN, VECTOR_COLUMN, SOURCE_COLUMN, METADATA_COLUMN, KEY_MAPPINGS_COLUMN})

# Schema-metadata keys
_META_EMBEDDING = b"docchat.embedding"
_META_GENERATIVE = b"docchat.generative"

# ── Constants ──────────────────────────────────────────────────────────
_EMBED_BATCH_SIZE = 64
_DIMENSION_PROBE = "dimension probe"
_DB_LOCK = threading.Lock()
_db_connection_cache: dict[str, lancedb.DBConnection] = {}


def _get_connection(uri: str, api_key: str | None = None, region: str | None = None) -> lancedb.DBConnection:
    """
    Return a **singleton** ``lancedb.DBConnection`` for *uri*.

    Thread-safe via ``_DB_LOCK``.  ``api_key`` / ``region`` are only
    meaningful for ``db://`` LanceDB Cloud URIs.
    """
    if uri not in _db_connection_cache:
        with _DB_LOCK:
            if uri not in _db_connection_cache:
                logger.info("Opening new LanceDB connection: %s", uri)
                kwargs: dict[str, str] = {}
                if api_key:
                    kwargs["api_key"] = api_key
                if region and uri.startswith("db://"):
                    kwargs["region"] = region
                _db_connection_cache[uri] = lancedb.connect(uri, **kwargs)
    return _db_connection_cache[uri]


def build_schema(properties: Sequence[str], dimension: int, embedding_config: dict[str, object], generative_config: dict[str, object]) -> pa.Schema:
    """Build the collection schema; model configuration goes into schema metadata."""
    clashing = [p for p in properties if p in RESERVED_COLUMNS]
    if clashing:
        raise ValueError(f"Property names clash with reserved columns: {clashing}")

    fields = [
        pa.field(ID_COLUMN, pa.utf8()),
        pa.field(VECTOR_COLUMN, pa.list_(pa.float32(), dimension)),
        *(pa.field(name, pa.utf8()) for name in properties),
        pa.field(SOURCE_COLUMN, pa.utf8()),
        pa.field(METADATA_COLUMN, pa.utf8()),
        pa.field(KEY_MAPPINGS_COLUMN, pa.utf8()),
    ]
    metadata = {
        _META_EMBEDDING: json.dumps(embedding_config).encode("utf-8"),
        _META_GENERATIVE: json.dumps(generative_config).encode("utf-8"),
    }
    return pa.schema(fields, metadata=metadata)


class Collection:
    """
    Handle on one LanceDB table.

    ``properties`` lists the utf8 property columns; ``text_property`` is
    the one holding chunk content.
    """

    __slots__ = ("name", "table", "text_property", "properties")

    def __init__(self, name: str, table: lancedb.table.Table, text_property: str) -> None:
        self.name = name
        self.table = table
        self.text_property = text_property
        self.properties: list[str] = [n for n in table.schema.names if n not in RESERVED_COLUMNS]


    def _schema_config(self, key: bytes) -> dict[str, object]:
        raw = (self.table.schema.metadata or {}).get(key)
        return json.loads(raw) if raw else {}


    @property
    def embedding_config(self) -> dict[str, object]:
        return self._schema_config(_META_EMBEDDING)


    @property
    def generative_config(self) -> dict[str, object]:
        return self._schema_config(_META_GENERATIVE)


    def count(self) -> int:
        return self.table.count_rows()


    def __repr__(self) -> str:
        return f"Collection(name='{self.name}', text_property='{self.text_property}')"


class VectorStore:
    """
    High-level abstraction over a LanceDB database.

    Parameters
    ----------
    embedder : Embedder
        Any object satisfying the ``Embedder`` protocol.
    uri
        Database URI.  Defaults to ``settings.LANCEDB_URI``.
    collection_name
        Defaults to ``settings.COLLECTION_NAME``.
    text_property
        Defaults to ``settings.TEXT_PROPERTY``.
    dimension
        Embedding width.  Defaults to ``settings.EMBEDDING_DIMENSIONS``;
        probed from the embedder when neither is set.
    """

    __slots__ = ("embedder", "_uri", "_collection_name", "_text_property", "_dimension", "db", "collection")

    def __init__(self, embedder: Embedder, uri: str | None = None, collection_name: str | None = None, text_property: str | None = None, dimension: int | None = None) -> None:
        self.embedder: Embedder = embedder
        self._uri: str = str(uri or settings.LANCEDB_URI)
        self._collection_name: str = collection_name or settings.COLLECTION_NAME
        self._text_property: str = text_property or settings.TEXT_PROPERTY
        self._dimension: int | None = dimension or settings.EMBEDDING_DIMENSIONS
        self.collection: Collection | None = None

        api_key = settings.LANCEDB_API_KEY.get_secret_value() if settings.LANCEDB_API_KEY else None
        self.db: lancedb.DBConnection = _get_connection(self._uri, api_key=api_key, region=settings.LANCEDB_REGION)

    # ══════════════════════════════════════════════════════════════════
    #  COLLECTIONS
    # ══════════════════════════════════════════════════════════════════

    def table_names(self) -> list[str]:
        """All table names in the database, following ``list_tables`` pagination."""
        names: list[str] = []
        page_token: str | None = None
        while True:
            response = self.db.list_tables(page_token=page_token)
            # Newer lancedb returns a paged response object, older ones a plain list
            if isinstance(response, list):
                return names + response
            names.extend(response.tables)
            page_token = getattr(response, "page_token", None)
            if not page_token:
                return names


    def collection_exists(self, name: str | None = None) -> bool:
        return (name or self._collection_name) in self.table_names()


    def ensure_collection(self, name: str | None = None, properties: Sequence[str] | None = None) -> Collection:
        """
        Return the named collection, creating it only if it does not exist.

        Raises
        ------
        ValueError
            If the configured text property is missing from *properties*,
            or an existing collection lacks one of them.
        """
        name = name or self._collection_name
        properties = list(properties or [self._text_property])
        if self._text_property not in properties:
            raise ValueError(f"Properties {properties} must include the text property '{self._text_property}'.")

        try:
            if self.collection_exists(name):
                table = self.db.open_table(name)
                missing = [p for p in properties if p not in table.schema.names]
                if missing:
                    raise ValueError(f"Collection '{name}' exists but lacks properties {missing}.")
                logger.info("Opened existing collection '%s' (%d rows).", name, table.count_rows())
            else:
                schema = build_schema(properties, self._resolve_dimension(), self._embedding_config(), self._generative_config())
                table = self.db.create_table(name, schema=schema)
                logger.info("Created new collection '%s' with properties %s.", name, properties)
        except OSError as exc:
            logger.error("LanceDB error while ensuring collection '%s': %s", name, exc)
            raise

        collection = Collection(name, table, self._text_property)
        if name == self._collection_name:
            self.collection = collection
        return collection


    def _require_collection(self) -> Collection:
        """Return the configured collection, opening it if it already exists."""
        if self.collection is None:
            if not self.collection_exists():
                raise RuntimeError(f"Collection '{self._collection_name}' does not exist. Call ensure_collection() first.")
            self.collection = Collection(self._collection_name, self.db.open_table(self._collection_name), self._text_property)
        return self.collection


    def _resolve_dimension(self) -> int:
        if self._dimension is None:
            self._dimension = len(self.embedder.embed_query(_DIMENSION_PROBE))
            logger.info("Probed embedding dimension: %d", self._dimension)
        return self._dimension


    def _embedding_config(self) -> dict[str, object]:
        return {"model": settings.EMBEDDING_MODEL, "dimension": self._resolve_dimension()}


    @staticmethod
    def _generative_config() -> dict[str, object]:
        return {"model": settings.LLM_MODEL, "temperature": settings.LLM_TEMPERATURE, "top_p": settings.LLM_TOP_P, "max_tokens": settings.LLM_MAX_TOKENS}

    # ══════════════════════════════════════════════════════════════════
    #  WRITES
    # ══════════════════════════════════════════════════════════════════

    def insert(self, collection: Collection, chunk: DocumentChunk) -> str:
        """Embed and write a single chunk.  Returns the new record id."""
        try:
            vector = self.embedder.embed_documents([chunk.content])[0]
        except Exception as exc:
            logger.error("Embedding failed for chunk from '%s': %s", chunk.source, exc)
            raise

        record = self._to_record(collection, chunk, vector)
        collection.table.add([record])
        logger.debug("Inserted record %s into '%s'.", record[ID_COLUMN], collection.name)
        return str(record[ID_COLUMN])


    def add_documents(self, chunks: Sequence[DocumentChunk], collection: Collection | None = None) -> int:
        """
        Embed a list of chunks and persist them in one table write.

        Embedding is done in batches of ``_EMBED_BATCH_SIZE``; a failure
        in any batch aborts the whole call before anything is written.

        Returns
        -------
        int
            Number of rows added.
        """
        collection = collection or self._require_collection()
        if not chunks:
            return 0

        texts = [c.content for c in chunks]
        logger.info("Embedding %d chunks in batches of %d …", len(texts), _EMBED_BATCH_SIZE)

        vectors: list[list[float]] = []
        for i in range(0, len(texts), _EMBED_BATCH_SIZE):
            batch = texts[i : i + _EMBED_BATCH_SIZE]
            try:
                vectors.extend(self.embedder.embed_documents(batch))
            except Exception as exc:
                logger.error("Embedding batch %d–%d failed: %s", i, i + len(batch) - 1, exc)
                raise

        if len(vectors) != len(chunks):
            raise ValueError(f"Length mismatch: {len(chunks)} chunks vs {len(vectors)} vectors.")

        records = [self._to_record(collection, chunk, vec) for chunk, vec in zip(chunks, vectors)]
        try:
            collection.table.add(records)
        except OSError as exc:
            logger.error("Failed to write records to LanceDB: %s", exc)
            raise

        logger.info("Added %d chunks. Collection '%s' now has %d total rows.", len(records), collection.name, collection.count())
        return len(records)


    @staticmethod
    def _to_record(collection: Collection, chunk: DocumentChunk, vector: list[float]) -> StoredRecord:
        record: StoredRecord = {name: "" for name in collection.properties}
        record.update({
            ID_COLUMN: str(uuid.uuid4()),
            VECTOR_COLUMN: vector,
            collection.text_property: chunk.content,
            SOURCE_COLUMN: chunk.source,
            METADATA_COLUMN: json.dumps(chunk.source_metadata, ensure_ascii=False),
            KEY_MAPPINGS_COLUMN: json.dumps(chunk.key_mappings, ensure_ascii=False) if chunk.key_mappings is not None else "",
        })
        return record

    # ══════════════════════════════════════════════════════════════════
    #  READS
    # ══════════════════════════════════════════════════════════════════

    def search(self, query_text: str, k: int, collection: Collection | None = None) -> list[DocumentChunk]:
        """Return the *k* chunks nearest to *query_text*."""
        collection = collection or self._require_collection()
        if collection.count() == 0:
            logger.info("Collection '%s' is empty — skipping search.", collection.name)
            return []

        try:
            query_vector = self.embedder.embed_query(query_text)
        except Exception as exc:
            logger.error("Failed to embed query: %s", exc)
            raise

        rows = collection.table.search(query_vector, vector_column_name=VECTOR_COLUMN).limit(k).to_list()
        logger.info("Search returned %d results (k=%d).", len(rows), k)
        return [self._to_chunk(row, collection.text_property) for row in rows]


    @staticmethod
    def _to_chunk(row: dict[str, object], text_property: str) -> DocumentChunk:
        raw_mappings = row.get(KEY_MAPPINGS_COLUMN) or ""
        return DocumentChunk(
            content=str(row.get(text_property) or ""),
            source_metadata=json.loads(row.get(METADATA_COLUMN) or "{}"),
            key_mappings=json.loads(raw_mappings) if raw_mappings else None,
        )


    def as_retriever(self, k: int | None = None, collection: Collection | None = None) -> VectorStoreRetriever:
        return VectorStoreRetriever(self, k or settings.RETRIEVAL_K, collection)


    def count(self) -> int:
        """Return the number of rows in the configured collection (0 if absent)."""
        if self.collection is None and not self.collection_exists():
            return 0
        return self._require_collection().count()


    def __repr__(self) -> str:
        return f"VectorStore(uri='{self._uri}', collection='{self._collection_name}', rows={self.count()})"


class VectorStoreRetriever:
    """Callable top-k similarity search bound to one store and ``k``."""

    __slots__ = ("_store", "_collection", "k")

    def __init__(self, store: VectorStore, k: int, collection: Collection | None = None) -> None:
        self._store = store
        self._collection = collection
        self.k = k


    def __call__(self, query: str) -> list[DocumentChunk]:
        return self._store.search(query, self.k, self._collection)

    invoke = __call__
