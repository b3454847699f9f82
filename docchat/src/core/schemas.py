"""
DocChat - Record Types
=======================
Fixed, immutable record types shared by the vector store, the ingestion
pipeline and the RAG engine.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["human", "assistant"]


class DocumentChunk(BaseModel):
    """One window of source text, the unit of storage and retrieval."""

    model_config = ConfigDict(frozen=True)

    content: str
    source_metadata: dict[str, str] = Field(default_factory=dict)
    key_mappings: dict[str, str] | None = None

    @property
    def source(self) -> str:
        return self.source_metadata.get("source", "")


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class Turn(BaseModel):
    """A question/answer pair appended to a session."""

    model_config = ConfigDict(frozen=True)

    question: str
    answer: str

    def messages(self) -> list[ChatMessage]:
        return [ChatMessage(role="human", content=self.question), ChatMessage(role="assistant", content=self.answer)]
