import pytest
from pydantic import ValidationError

from docchat.config.settings import Settings


def _settings(**overrides):
    return Settings(_env_file=None, GOOGLE_API_KEY="key", **overrides)


def test_defaults_match_documented_values():
    s = _settings()

    assert (s.CHUNK_SIZE, s.CHUNK_OVERLAP, s.RETRIEVAL_K) == (1000, 100, 10)
    assert s.DEFAULT_SESSION_ID == "default"
    assert s.SESSION_BACKEND == "memory"


def test_api_key_is_secret():
    assert "key" not in repr(_settings().GOOGLE_API_KEY)


@pytest.mark.parametrize(
    "overrides",
    [
        {"CHUNK_SIZE": 10},
        {"CHUNK_SIZE": 100, "CHUNK_OVERLAP": 100},
        {"RETRIEVAL_K": 0},
        {"TEXT_PROPERTY": "chunk-text"},
        {"SESSION_BACKEND": "mongo"},
    ],
)
def test_invalid_configuration_is_rejected(overrides):
    with pytest.raises(ValidationError):
        _settings(**overrides)


def test_mongo_backend_with_uri_is_accepted():
    s = _settings(SESSION_BACKEND="mongo", MONGO_URI="mongodb://localhost:27017")

    assert s.MONGO_URI.get_secret_value() == "mongodb://localhost:27017"
