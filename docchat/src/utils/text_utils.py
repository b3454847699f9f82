"""
DocChat - Metadata Key Utilities
=================================
Loader metadata arrives with arbitrary keys (``"pdf.info.Title"``,
``"og:description"``, ``"2nd-author"`` …).  Before a chunk is stored, its
metadata is flattened to ``str → str`` and every key is rewritten to match
``^[A-Za-z_][A-Za-z0-9_]{0,230}$``.

Renamed keys are recorded as ``{original: sanitized}`` so the original
metadata can always be rebuilt with ``restore_metadata_keys``.

These helpers are stateless and side-effect-free.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping

# ── Key patterns ───────────────────────────────────────────────────────
VALID_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,230}$")
_INVALID_CHAR_RE = re.compile(r"[^A-Za-z0-9_]")
_LEADING_CHAR_RE = re.compile(r"[A-Za-z_]")
_MAX_KEY_LENGTH = 231

# Separator used when flattening nested mappings
_NESTED_SEPARATOR = "."


def flatten_metadata(metadata: Mapping[str, object], prefix: str = "") -> dict[str, str]:
    """
    Flatten nested mappings into dotted keys and stringify every value.

    Lists, tuples and empty mappings are JSON-encoded, ``None`` becomes an
    empty string.  Flattening never overwrites a value: when a nested
    mapping would expand onto a key that is already used (``{"a.b": 1,
    "a": {"b": 2}}``), the whole mapping is kept JSON-encoded under its own
    key instead.

    Examples::

        {"pdf": {"title": "T"}, "page": 3}  →  {"pdf.title": "T", "page": "3"}
        {"a.b": "x", "a": {"b": "y"}}      →  {"a.b": "x", "a": '{"b": "y"}'}
    """
    full_keys = {key: f"{prefix}{_NESTED_SEPARATOR}{key}" if prefix else str(key) for key in metadata}
    # Every sibling key is reserved up front, so a JSON fallback key is always free
    reserved = set(full_keys.values())

    flat: dict[str, str] = {}
    for key, value in metadata.items():
        full_key = full_keys[key]
        if isinstance(value, Mapping):
            nested = flatten_metadata(value, full_key) if value else {}
            if nested and not any(k in reserved or k in flat for k in nested):
                flat.update(nested)
            else:
                flat[full_key] = json.dumps(dict(value), ensure_ascii=False, default=str)
        elif isinstance(value, (list, tuple)):
            flat[full_key] = json.dumps(list(value), ensure_ascii=False, default=str)
        elif value is None:
            flat[full_key] = ""
        else:
            flat[full_key] = str(value)
    return flat


def sanitize_key(key: str) -> str:
    """Rewrite *key* into a storage-safe identifier (no uniqueness check)."""
    safe = _INVALID_CHAR_RE.sub("_", key)
    if not safe or not _LEADING_CHAR_RE.match(safe[0]):
        safe = "_" + safe
    return safe[:_MAX_KEY_LENGTH]


def _unique_key(candidate: str, taken: set[str]) -> str:
    """Append ``_<n>`` to *candidate* until it no longer collides."""
    if candidate not in taken:
        return candidate
    n = 2
    while True:
        suffix = f"_{n}"
        unique = candidate[: _MAX_KEY_LENGTH - len(suffix)] + suffix
        if unique not in taken:
            return unique
        n += 1


def sanitize_metadata_keys(metadata: Mapping[str, object]) -> tuple[dict[str, str], dict[str, str]]:
    """
    Flatten *metadata* and make every key storage-safe.

    Already-valid keys are kept verbatim and reserved first, so a renamed
    key can never shadow one that did not need renaming.

    Returns
    -------
    tuple[dict[str, str], dict[str, str]]
        ``(sanitized_metadata, key_mappings)`` where ``key_mappings`` maps
        each *renamed* original key to its sanitized form.
    """
    flat = flatten_metadata(metadata)

    taken: set[str] = {k for k in flat if VALID_KEY_RE.fullmatch(k)}
    sanitized: dict[str, str] = {}
    key_mappings: dict[str, str] = {}

    for key, value in flat.items():
        if VALID_KEY_RE.fullmatch(key):
            sanitized[key] = value
            continue
        new_key = _unique_key(sanitize_key(key), taken)
        taken.add(new_key)
        sanitized[new_key] = value
        key_mappings[key] = new_key

    return sanitized, key_mappings


def restore_metadata_keys(metadata: Mapping[str, str], key_mappings: Mapping[str, str] | None) -> dict[str, str]:
    """Invert ``sanitize_metadata_keys`` using the recorded *key_mappings*."""
    if not key_mappings:
        return dict(metadata)
    reverse = {sanitized: original for original, sanitized in key_mappings.items()}
    return {reverse.get(key, key): value for key, value in metadata.items()}
