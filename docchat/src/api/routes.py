"""
DocChat - API Routes
=====================
``POST /api/chat`` branches on what the request carries:

    message only    → answer the message
    file(s) only    → ingest each PDF, reply with a confirmation
    file(s) + text  → ingest, then answer
    neither         → 400

The body may be ``multipart/form-data`` (``message``, ``uuid``, files) or
JSON (``{"message": ..., "uuid": ...}``).  Handlers stay thin: services
hang off ``request.app.state`` and are built in ``docchat.src.main``.
"""

from __future__ import annotations

import tempfile
from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from docchat.config.prompt_templates import ANSWER_FAILED, EMPTY_REQUEST, INGEST_FAILED, UPLOAD_CONFIRMATION
from docchat.src.core.ingestor import IngestionPipeline
from docchat.src.utils.logger import get_logger

logger = get_logger(__name__)

chat_router = APIRouter(prefix="/api/chat", tags=["Chat"])
health_router = APIRouter(tags=["Health"])


class ChatRequest:
    """Normalised view of a chat request, whatever its encoding."""

    __slots__ = ("message", "session_id", "files")

    def __init__(self, message: str | None, session_id: str | None, files: list[UploadFile]) -> None:
        self.message = message.strip() if isinstance(message, str) and message.strip() else None
        self.session_id = session_id if isinstance(session_id, str) and session_id else None
        self.files = files


async def parse_chat_request(request: Request) -> ChatRequest:
    """Read message, session id and uploads from a JSON or form body."""
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            logger.warning("Malformed JSON body on /api/chat.")
            return ChatRequest(None, None, [])
        if not isinstance(body, dict):
            return ChatRequest(None, None, [])
        return ChatRequest(body.get("message"), body.get("uuid") or body.get("session_id"), [])

    form = await request.form()
    files = [value for _, value in form.multi_items() if isinstance(value, UploadFile) and value.filename]
    message = form.get("message")
    session_id = form.get("uuid") or form.get("session_id")
    return ChatRequest(message if isinstance(message, str) else None, session_id if isinstance(session_id, str) else None, files)


async def ingest_upload(pipeline: IngestionPipeline, upload: UploadFile) -> int:
    """
    Save *upload* to a temporary file, ingest it as a PDF, then delete it.

    The temporary file is removed even when ingestion fails.
    """
    suffix = Path(upload.filename or "").suffix or ".pdf"
    data = await upload.read()

    with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp:
        tmp.write(data)
        tmp_path = Path(tmp.name)

    logger.info("Saved upload '%s' (%d bytes) to %s", upload.filename, len(data), tmp_path)
    try:
        return await run_in_threadpool(pipeline.ingest, str(tmp_path), "pdf", upload.filename)
    finally:
        tmp_path.unlink(missing_ok=True)
        logger.debug("Removed temporary upload %s", tmp_path)


@chat_router.post("")
async def handle_chat(request: Request) -> JSONResponse:
    """Answer a message, ingest uploaded PDFs, or both."""
    chat = await parse_chat_request(request)
    state = request.app.state

    if not chat.files and chat.message is None:
        return JSONResponse(status_code=400, content={"error": EMPTY_REQUEST})

    if chat.files:
        try:
            for upload in chat.files:
                added = await ingest_upload(state.ingestion_pipeline, upload)
                logger.info("Upload '%s' ingested — %d chunk(s).", upload.filename, added)
        except Exception:
            logger.exception("Ingestion of uploaded file(s) failed.")
            return JSONResponse(status_code=500, content={"error": INGEST_FAILED})

        if chat.message is None:
            return JSONResponse(content={"response": UPLOAD_CONFIRMATION})

    try:
        answer = await state.rag_manager.answer(chat.message, chat.session_id)
    except Exception:
        logger.exception("Answering failed for session %r.", chat.session_id)
        return JSONResponse(status_code=500, content={"error": ANSWER_FAILED})

    return JSONResponse(content={"response": answer})


@chat_router.delete("/sessions/{session_id}")
async def clear_session(request: Request, session_id: str) -> JSONResponse:
    """Forget a session's conversation history."""
    cleared = await request.app.state.rag_manager.sessions.clear(session_id)
    return JSONResponse(content={"cleared": cleared})


@health_router.get("/health")
async def health(request: Request) -> JSONResponse:
    store = request.app.state.vector_store
    records = await run_in_threadpool(store.count)
    return JSONResponse(content={"status": "ok", "collection": store.collection.name if store.collection else None, "records": records})
