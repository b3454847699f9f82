"""
DocChat - Centralized Configuration
====================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``GOOGLE_API_KEY`` is typed as ``SecretStr`` and has **no default value**.
  If the key is missing at startup, Pydantic will raise a ``ValidationError``
  with a clear error message.  It authenticates both the embedding model
  and the chat model.
- ``LANCEDB_API_KEY`` and ``MONGO_URI`` are also ``SecretStr`` and are only
  needed for LanceDB Cloud and the Mongo session backend respectively.

Vector Store
------------
``LANCEDB_URI`` is either a local directory or a ``db://`` LanceDB Cloud
URI.  ``COLLECTION_NAME`` and ``TEXT_PROPERTY`` must stay the same between
the run that created the collection and every later read or write.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required**.

    Attributes
    ----------
    GOOGLE_API_KEY : SecretStr
        API key for Google AI Studio (Gemini).  **Required.**
    LANCEDB_URI : str
        Local path or ``db://`` URI of the vector database.
    COLLECTION_NAME : str
        Name of the LanceDB table holding document chunks.
    TEXT_PROPERTY : str
        Column that stores the chunk text.
    CHUNK_SIZE, CHUNK_OVERLAP : int
        Splitter window and overlap, in characters.
    RETRIEVAL_K : int
        Number of chunks retrieved per query.
    SESSION_BACKEND : Literal["memory", "mongo"]
        Where conversation history lives.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    LANCEDB_URI: str = str(BASE_DIR / "data" / "lancedb")

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"
    # Overrides the ENV-derived level for docchat loggers
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None
    # Level applied to HTTP-client / SDK / server loggers
    LIBRARY_LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"

    # ── API Keys (REQUIRED — no default) ───────────────────────────────
    GOOGLE_API_KEY: SecretStr

    # ── Vector Store ───────────────────────────────────────────────────
    LANCEDB_API_KEY: SecretStr | None = None
    LANCEDB_REGION: str = "us-east-1"
    COLLECTION_NAME: str = "documents"
    TEXT_PROPERTY: str = "text"

    # ── Model Configuration ────────────────────────────────────────────
    EMBEDDING_MODEL: str = "models/gemini-embedding-001"
    EMBEDDING_DIMENSIONS: int | None = None
    LLM_MODEL: str = "gemini-2.0-flash"
    LLM_TEMPERATURE: float = 0.2
    LLM_TOP_P: float = 0.5
    LLM_MAX_TOKENS: int | None = None

    # ── Ingestion / Retrieval Parameters ───────────────────────────────
    CHUNK_SIZE: int = 1000
    CHUNK_OVERLAP: int = 100
    RETRIEVAL_K: int = 10

    # ── Conversation History ───────────────────────────────────────────
    SESSION_BACKEND: Literal["memory", "mongo"] = "memory"
    MONGO_URI: SecretStr | None = None
    MONGO_DB_NAME: str = "docchat"
    DEFAULT_SESSION_ID: str = "default"

    # ── HTTP Server ────────────────────────────────────────────────────
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    CORS_ORIGINS: list[str] = ["*"]

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("CHUNK_SIZE")
    @classmethod
    def _chunk_size_positive(cls, v: int) -> int:
        if v < 50:
            raise ValueError(f"CHUNK_SIZE must be ≥ 50, got {v}")
        return v


    @field_validator("RETRIEVAL_K")
    @classmethod
    def _k_range(cls, v: int) -> int:
        if not 1 <= v <= 100:
            raise ValueError(f"RETRIEVAL_K must be 1–100, got {v}")
        return v


    @field_validator("TEXT_PROPERTY")
    @classmethod
    def _text_property_identifier(cls, v: str) -> str:
        if not v.isidentifier():
            raise ValueError(f"TEXT_PROPERTY must be a valid identifier, got {v!r}")
        return v


    @model_validator(mode="after")
    def _cross_field_checks(self) -> Settings:
        if self.CHUNK_OVERLAP >= self.CHUNK_SIZE:
            raise ValueError(f"CHUNK_OVERLAP ({self.CHUNK_OVERLAP}) must be smaller than CHUNK_SIZE ({self.CHUNK_SIZE})")
        if self.SESSION_BACKEND == "mongo" and self.MONGO_URI is None:
            raise ValueError("MONGO_URI is required when SESSION_BACKEND is 'mongo'")
        return self

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from docchat.config.settings import settings
settings = Settings()
