from types import SimpleNamespace

import pytest

from docchat.src.core.schemas import DocumentChunk
from docchat.src.database.vector_store import VectorStore
from tests.fakes import EMBED_DIM, FakeEmbedder


def _chunk(text, source="https://example.com", **extra):
    return DocumentChunk(content=text, source_metadata={"source": source, **extra})


def test_ensure_collection_is_idempotent(store):
    first = store.ensure_collection("test_docs", ["content"])
    second = store.ensure_collection("test_docs", ["content"])

    assert store.table_names().count("test_docs") == 1
    assert first.name == second.name == "test_docs"
    assert second.text_property == "content"


def test_existing_collection_is_returned_not_recreated(store):
    collection = store.ensure_collection()
    store.add_documents([_chunk("keep me")])

    reopened = store.ensure_collection()

    assert reopened.count() == 1
    assert collection.count() == 1


def test_text_property_must_be_in_properties(store):
    with pytest.raises(ValueError):
        store.ensure_collection("test_docs", ["body"])


def test_existing_collection_with_other_text_property_is_rejected(tmp_path):
    uri = str(tmp_path / "lancedb")
    VectorStore(FakeEmbedder(), uri=uri, collection_name="docs", text_property="content", dimension=EMBED_DIM).ensure_collection()

    other = VectorStore(FakeEmbedder(), uri=uri, collection_name="docs", text_property="body", dimension=EMBED_DIM)
    with pytest.raises(ValueError):
        other.ensure_collection()


def test_reserved_property_name_is_rejected(store):
    with pytest.raises(ValueError):
        store.ensure_collection("test_docs", ["content", "vector"])


def test_dimension_is_probed_when_unset(tmp_path, embedder):
    store = VectorStore(embedder, uri=str(tmp_path / "db"), collection_name="probe", text_property="content")

    store.ensure_collection()

    assert embedder.query_calls == 1
    store.add_documents([_chunk("probed")])
    assert store.count() == 1


def test_insert_returns_distinct_ids_without_dedup(store):
    collection = store.ensure_collection()

    first = store.insert(collection, _chunk("same text"))
    second = store.insert(collection, _chunk("same text"))

    assert first != second
    assert collection.count() == 2


def test_add_documents_requires_collection(store):
    with pytest.raises(RuntimeError):
        store.add_documents([_chunk("orphan")])


def test_add_documents_failure_writes_nothing(store):
    store.ensure_collection()

    def boom(texts):
        raise ConnectionError("embedding service down")

    store.embedder.embed_documents = boom
    with pytest.raises(ConnectionError):
        store.add_documents([_chunk("a"), _chunk("b")])

    assert store.count() == 0


def test_retriever_returns_nearest_chunks_with_metadata(store):
    store.ensure_collection()
    chunk = DocumentChunk(content="home loan eligibility", source_metadata={"source": "https://example.com/loans", "og_title": "Loans"}, key_mappings={"og:title": "og_title"})
    store.add_documents([chunk, _chunk("personal loan documents"), _chunk("unrelated text")])

    results = store.as_retriever(k=2)("home loan eligibility")

    assert len(results) == 2
    assert results[0] == chunk
    assert results[0].source == "https://example.com/loans"


def test_retriever_uses_configured_k_by_default(store):
    from docchat.config.settings import settings

    assert store.as_retriever().k == settings.RETRIEVAL_K


def test_search_on_empty_collection_skips_embedding(store, embedder):
    store.ensure_collection()

    assert store.as_retriever(k=3)("anything") == []
    assert embedder.query_calls == 0


def test_count_without_collection_is_zero(store):
    assert store.count() == 0


def test_collection_found_among_many_tables(store):
    for i in range(12):
        store.ensure_collection(f"extra_{i:02d}")
    store.ensure_collection()

    assert store.collection_exists("test_docs")
    assert store.collection_exists("extra_11")
    assert len(store.table_names()) == 13


def test_table_listing_follows_page_tokens(store):
    pages = {
        None: SimpleNamespace(tables=["a", "b"], page_token="p2"),
        "p2": SimpleNamespace(tables=["test_docs"], page_token=None),
    }
    store.db = SimpleNamespace(list_tables=lambda page_token=None: pages[page_token])

    assert store.table_names() == ["a", "b", "test_docs"]
    assert store.collection_exists()
