"""Pytest fixtures: deterministic embedder, dummy LLM and a local LanceDB store."""

import os

# Settings are loaded at import time; seed the required values first.
os.environ.setdefault("GOOGLE_API_KEY", "test-key")
os.environ.setdefault("ENV", "prod")

import pytest

from docchat.src.database.vector_store import VectorStore
from tests.fakes import EMBED_DIM, DummyLLM, FakeEmbedder


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def store(tmp_path, embedder):
    """A VectorStore over a throwaway LanceDB directory (collection not yet created)."""
    return VectorStore(embedder, uri=str(tmp_path / "lancedb"), collection_name="test_docs", text_property="content", dimension=EMBED_DIM)


@pytest.fixture
def dummy_llm():
    return DummyLLM()
