from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from docchat.config.prompt_templates import ANSWER_FAILED, EMPTY_REQUEST, INGEST_FAILED, UPLOAD_CONFIRMATION
from docchat.src.core.sessions import InMemorySessionStore
from docchat.src.core.schemas import Turn
from docchat.src.main import create_app

PDF_BYTES = b"%PDF-1.4\n% test document\n"


class FakePipeline:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def ingest(self, source_locator, source_kind, source_name=None):
        path = Path(source_locator)
        self.calls.append({"path": path, "kind": source_kind, "name": source_name, "existed": path.exists(), "data": path.read_bytes()})
        if self.error is not None:
            raise self.error
        return 3


class FakeRAG:
    def __init__(self, error=None):
        self.calls = []
        self.error = error
        self.sessions = InMemorySessionStore()

    async def answer(self, query, session_id=None):
        self.calls.append((query, session_id))
        if self.error is not None:
            raise self.error
        return f"answer to {query}"


@pytest.fixture
def pipeline():
    return FakePipeline()


@pytest.fixture
def rag():
    return FakeRAG()


@pytest.fixture
def client(pipeline, rag):
    vector_store = SimpleNamespace(count=lambda: 7, collection=SimpleNamespace(name="test_docs"))
    app = create_app(vector_store=vector_store, ingestion_pipeline=pipeline, rag_manager=rag)
    with TestClient(app) as test_client:
        yield test_client


def test_message_only_form_is_answered(client, rag):
    resp = client.post("/api/chat", data={"message": "hello", "uuid": "s1"})

    assert resp.status_code == 200
    assert resp.json() == {"response": "answer to hello"}
    assert rag.calls == [("hello", "s1")]


def test_message_only_json_is_answered(client, rag):
    resp = client.post("/api/chat", json={"message": "hello", "uuid": "s2"})

    assert resp.json() == {"response": "answer to hello"}
    assert rag.calls == [("hello", "s2")]


def test_missing_session_id_is_passed_as_none(client, rag):
    client.post("/api/chat", json={"message": "hello"})

    assert rag.calls == [("hello", None)]


def test_file_only_is_ingested_as_pdf_and_confirmed(client, pipeline, rag):
    resp = client.post("/api/chat", files={"files": ("loan-terms.pdf", PDF_BYTES, "application/pdf")})

    assert resp.status_code == 200
    assert resp.json() == {"response": UPLOAD_CONFIRMATION}
    [call] = pipeline.calls
    assert call["kind"] == "pdf"
    assert call["name"] == "loan-terms.pdf"
    assert call["data"] == PDF_BYTES
    assert rag.calls == []


def test_uploaded_temp_file_is_deleted_after_ingestion(client, pipeline):
    client.post("/api/chat", files={"files": ("loan-terms.pdf", PDF_BYTES, "application/pdf")})

    [call] = pipeline.calls
    assert call["existed"] is True
    assert not call["path"].exists()


def test_temp_file_is_deleted_even_when_ingestion_fails(rag):
    pipeline = FakePipeline(error=ValueError("not a pdf"))
    app = create_app(vector_store=SimpleNamespace(), ingestion_pipeline=pipeline, rag_manager=rag)

    with TestClient(app) as client:
        resp = client.post("/api/chat", files={"files": ("broken.pdf", b"garbage", "application/pdf")})

    assert resp.status_code == 500
    assert resp.json() == {"error": INGEST_FAILED}
    assert not pipeline.calls[0]["path"].exists()


def test_every_uploaded_file_is_ingested(client, pipeline):
    client.post(
        "/api/chat",
        files=[("files", ("a.pdf", PDF_BYTES, "application/pdf")), ("files", ("b.pdf", PDF_BYTES, "application/pdf"))],
    )

    assert [c["name"] for c in pipeline.calls] == ["a.pdf", "b.pdf"]


def test_file_and_message_ingests_then_answers_with_session(client, pipeline, rag):
    resp = client.post(
        "/api/chat",
        data={"message": "what are the fees?", "uuid": "s3"},
        files={"files": ("fees.pdf", PDF_BYTES, "application/pdf")},
    )

    assert resp.json() == {"response": "answer to what are the fees?"}
    assert len(pipeline.calls) == 1
    assert rag.calls == [("what are the fees?", "s3")]


@pytest.mark.parametrize("kwargs", [{"json": {}}, {"data": {"message": "   "}}, {"content": b"not json", "headers": {"content-type": "application/json"}}])
def test_request_without_message_or_file_is_rejected(client, rag, kwargs):
    resp = client.post("/api/chat", **kwargs)

    assert resp.status_code == 400
    assert resp.json() == {"error": EMPTY_REQUEST}
    assert rag.calls == []


def test_answer_failure_returns_500(pipeline):
    rag = FakeRAG(error=RuntimeError("LLM unavailable"))
    app = create_app(vector_store=SimpleNamespace(), ingestion_pipeline=pipeline, rag_manager=rag)

    with TestClient(app) as client:
        resp = client.post("/api/chat", json={"message": "hello"})

    assert resp.status_code == 500
    assert resp.json() == {"error": ANSWER_FAILED}


def test_clear_session(client, rag):
    import asyncio

    asyncio.run(rag.sessions.append("s1", Turn(question="q", answer="a")))

    assert client.delete("/api/chat/sessions/s1").json() == {"cleared": True}
    assert client.delete("/api/chat/sessions/s1").json() == {"cleared": False}


def test_health_reports_collection(client):
    assert client.get("/health").json() == {"status": "ok", "collection": "test_docs", "records": 7}
