import json

import pytest
import responses

from mnemos.embedding import (
    EmbeddingError,
    NoopEmbedder,
    OllamaEmbedder,
    OpenAIEmbedder,
    probe_ollama,
)

OLLAMA_URL = "http://ollama.test"
OPENAI_URL = "http://openai.test/v1"


@pytest.fixture
def http():
    with responses.RequestsMock() as mock:
        yield mock


def test_noop_embedder():
    e = NoopEmbedder()
    assert e.embed("anything") is None
    assert e.dimension() == 0
    assert e.model() == "none"


def test_ollama_model_identity_and_default_dimension():
    e = OllamaEmbedder(model="abc")
    assert e.dimension() == 768
    assert e.model() == "ollama/abc"


def test_ollama_defaults():
    e = OllamaEmbedder()
    assert e.model() == "ollama/nomic-embed-text"


def test_openai_model_identity_and_default_dimension():
    e = OpenAIEmbedder(model="xyz")
    assert e.dimension() == 1536
    assert e.model() == "openai/xyz"


def test_openai_defaults():
    e = OpenAIEmbedder()
    assert e.model() == "openai/text-embedding-3-small"


def test_openai_empty_input_returns_none():
    e = OpenAIEmbedder(base_url="http://nope.invalid")
    assert e.embed("") is None


def test_ollama_empty_input_returns_none():
    e = OllamaEmbedder(base_url="http://nowhere.invalid")
    assert e.embed("") is None


def test_ollama_embed(http):
    http.add(
        responses.POST,
        OLLAMA_URL + "/api/embed",
        json={"embeddings": [[0.1, 0.2, 0.3, 0.4]]},
    )
    e = OllamaEmbedder(base_url=OLLAMA_URL, model="test-model", dimension=4)
    v = e.embed("hi")
    assert v == [0.1, 0.2, 0.3, 0.4]
    assert e.model() == "ollama/test-model"
    assert e.dimension() == 4
    body = json.loads(http.calls[0].request.body)
    assert body == {"model": "test-model", "input": "hi"}


def test_ollama_bad_status(http):
    http.add(responses.POST, OLLAMA_URL + "/api/embed", status=500)
    e = OllamaEmbedder(base_url=OLLAMA_URL)
    with pytest.raises(EmbeddingError, match="status 500"):
        e.embed("text")


def test_ollama_empty_embeddings_is_error(http):
    http.add(responses.POST, OLLAMA_URL + "/api/embed", json={"embeddings": []})
    e = OllamaEmbedder(base_url=OLLAMA_URL)
    with pytest.raises(EmbeddingError, match="empty embeddings"):
        e.embed("text")


def test_ollama_undecodable_body_is_error(http):
    http.add(responses.POST, OLLAMA_URL + "/api/embed", body="not json")
    e = OllamaEmbedder(base_url=OLLAMA_URL)
    with pytest.raises(EmbeddingError, match="decode"):
        e.embed("text")


def test_ollama_unreachable_is_error(http):
    e = OllamaEmbedder(base_url=OLLAMA_URL)
    with pytest.raises(EmbeddingError, match="call"):
        e.embed("text")


def test_openai_embed(http):
    http.add(
        responses.POST,
        OPENAI_URL + "/embeddings",
        json={"data": [{"embedding": [1, 2, 3, 4]}]},
    )
    e = OpenAIEmbedder(base_url=OPENAI_URL, api_key="token", model="x", dimension=4)
    v = e.embed("hi")
    assert v == [1.0, 2.0, 3.0, 4.0]
    request = http.calls[0].request
    assert request.headers["Authorization"] == "Bearer token"
    assert json.loads(request.body) == {"model": "x", "input": "hi", "dimensions": 4}


def test_openai_without_key_sends_no_authorization(http):
    http.add(
        responses.POST,
        OPENAI_URL + "/embeddings",
        json={"data": [{"embedding": [0.5]}]},
    )
    e = OpenAIEmbedder(base_url=OPENAI_URL)
    assert e.embed("hi") == [0.5]
    assert "Authorization" not in http.calls[0].request.headers


def test_openai_bad_status(http):
    http.add(responses.POST, OPENAI_URL + "/embeddings", status=429)
    e = OpenAIEmbedder(base_url=OPENAI_URL, api_key="token")
    with pytest.raises(EmbeddingError, match="status 429"):
        e.embed("text")


def test_openai_empty_data_is_error(http):
    http.add(responses.POST, OPENAI_URL + "/embeddings", json={"data": []})
    e = OpenAIEmbedder(base_url=OPENAI_URL)
    with pytest.raises(EmbeddingError, match="empty data"):
        e.embed("text")


def test_probe_ollama_not_running(http):
    assert probe_ollama("http://127.0.0.1:1") is False


def test_probe_ollama_success(http):
    http.add(responses.GET, OLLAMA_URL + "/", status=200)
    assert probe_ollama(OLLAMA_URL) is True


def test_probe_ollama_non_ok_status(http):
    http.add(responses.GET, OLLAMA_URL + "/", status=404)
    assert probe_ollama(OLLAMA_URL) is False


def test_probe_ollama_default_url(http):
    http.add(responses.GET, "http://localhost:11434/", status=200)
    assert probe_ollama() is True