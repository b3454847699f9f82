"""
DocChat - Conversation History Stores
======================================
Session history sits behind the ``SessionStore`` protocol and is injected
into the ``RAGManager``, so call sites never touch a global map.

``InMemorySessionStore``
    Default.  A dict owned by the store instance; lost on restart, no
    expiry, no size bound.

``MongoSessionStore``
    Same protocol backed by ``motor``.  Selected with
    ``SESSION_BACKEND=mongo``.

Both keep messages oldest-first: every appended ``Turn`` adds a
``human`` message followed by an ``assistant`` message.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

import motor.motor_asyncio

from docchat.config.settings import settings
from docchat.src.core.schemas import ChatMessage, Turn
from docchat.src.utils.logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class SessionStore(Protocol):
    async def get(self, session_id: str) -> list[ChatMessage]: ...

    async def append(self, session_id: str, turn: Turn) -> None: ...

    async def clear(self, session_id: str) -> bool: ...


# ══════════════════════════════════════════════════════════════════════
#  IN-MEMORY
# ══════════════════════════════════════════════════════════════════════


class InMemorySessionStore:
    """Process-local history keyed by session id."""

    __slots__ = ("_sessions",)

    def __init__(self) -> None:
        self._sessions: dict[str, list[ChatMessage]] = {}


    async def get(self, session_id: str) -> list[ChatMessage]:
        """Return a copy of the session's messages, creating it on first access."""
        return list(self._sessions.setdefault(session_id, []))


    async def append(self, session_id: str, turn: Turn) -> None:
        self._sessions.setdefault(session_id, []).extend(turn.messages())


    async def clear(self, session_id: str) -> bool:
        removed = self._sessions.pop(session_id, None) is not None
        if removed:
            logger.info("[SESSION] Cleared session '%s'.", session_id)
        return removed


    def __len__(self) -> int:
        return len(self._sessions)


# ══════════════════════════════════════════════════════════════════════
#  MONGODB
# ══════════════════════════════════════════════════════════════════════

_mongo_client: motor.motor_asyncio.AsyncIOMotorClient | None = None


def _get_mongo_client() -> motor.motor_asyncio.AsyncIOMotorClient:
    """Return (or create) the module-level async MongoDB client."""
    global _mongo_client
    if _mongo_client is None:
        if settings.MONGO_URI is None:
            raise RuntimeError("MONGO_URI is not configured.")
        _mongo_client = motor.motor_asyncio.AsyncIOMotorClient(settings.MONGO_URI.get_secret_value())
        logger.info("MongoDB async client created (singleton).")
    return _mongo_client


class MongoSessionStore:
    """
    Async chat-history store backed by MongoDB via ``motor``.

    Collection schema (``sessions``)::

        {
            "session_id": str,
            "messages": [{"role": str, "content": str}, ...],
            "created_at": datetime,
            "updated_at": datetime
        }
    """

    __slots__ = ("_collection",)

    def __init__(self, collection: object | None = None, collection_name: str = "sessions") -> None:
        if collection is None:
            collection = _get_mongo_client()[settings.MONGO_DB_NAME][collection_name]
        self._collection = collection


    async def get(self, session_id: str) -> list[ChatMessage]:
        doc = await self._collection.find_one({"session_id": session_id}, {"messages": 1})
        if doc is None:
            return []
        return [ChatMessage(**m) for m in doc.get("messages", [])]


    async def append(self, session_id: str, turn: Turn) -> None:
        """Append a turn (upsert on first write)."""
        now = datetime.now(timezone.utc)
        messages = [m.model_dump() for m in turn.messages()]
        await self._collection.update_one({"session_id": session_id}, {"$push": {"messages": {"$each": messages}}, "$set": {"updated_at": now}, "$setOnInsert": {"created_at": now}}, upsert=True)


    async def clear(self, session_id: str) -> bool:
        result = await self._collection.delete_one({"session_id": session_id})
        removed = result.deleted_count > 0
        if removed:
            logger.info("[SESSION] Cleared session '%s'.", session_id)
        return removed


def build_session_store() -> SessionStore:
    """Pick the history backend from ``settings.SESSION_BACKEND``."""
    if settings.SESSION_BACKEND == "mongo":
        logger.info("Using MongoDB session store (db: %s).", settings.MONGO_DB_NAME)
        return MongoSessionStore()
    logger.info("Using in-memory session store.")
    return InMemorySessionStore()
