"""Embedding providers used for hybrid retrieval.

Three providers share one small interface (``embed``, ``dimension``,
``model``):

* :class:`NoopEmbedder` returns no vectors and disables vector search.
* :class:`OllamaEmbedder` talks to a local Ollama daemon.
* :class:`OpenAIEmbedder` talks to any OpenAI-compatible ``/embeddings``
  endpoint.
"""

from __future__ import annotations

from typing import Any

import requests

DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "nomic-embed-text"
DEFAULT_OLLAMA_DIMENSION = 768

DEFAULT_OPENAI_URL = "https://api.openai.com/v1"
DEFAULT_OPENAI_MODEL = "text-embedding-3-small"
DEFAULT_OPENAI_DIMENSION = 1536

DEFAULT_TIMEOUT = 30.0
PROBE_TIMEOUT = 0.5


class EmbeddingError(RuntimeError):
    """Raised when an embedding provider cannot produce a vector."""


class NoopEmbedder:
    """Embedder that never produces vectors."""

    def embed(self, text: str) -> list[float] | None:
        """Always return ``None``: no embedding is available."""
        return None

    def dimension(self) -> int:
        return 0

    def model(self) -> str:
        return "none"


def _post_json(
    prefix: str,
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str],
    timeout: float,
) -> Any:
    try:
        resp = requests.post(url, json=payload, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        raise EmbeddingError(f"{prefix}: call: {exc}") from exc
    with resp:
        if resp.status_code // 100 != 2:
            raise EmbeddingError(f"{prefix}: status {resp.status_code}")
        try:
            return resp.json()
        except ValueError as exc:
            raise EmbeddingError(f"{prefix}: decode: {exc}") from exc


def _as_vector(prefix: str, raw: Any) -> list[float]:
    if not isinstance(raw, list) or not all(
        isinstance(x, (int, float)) and not isinstance(x, bool) for x in raw
    ):
        raise EmbeddingError(f"{prefix}: decode: embedding is not a list of numbers")
    return [float(x) for x in raw]


class OllamaEmbedder:
    """Embedder backed by a local Ollama daemon's ``/api/embed`` endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        dimension: int | None = None,
        timeout: float | None = None,
    ) -> None:
        self._base_url = base_url or DEFAULT_OLLAMA_URL
        self._model = model or DEFAULT_OLLAMA_MODEL
        self._dimension = dimension or DEFAULT_OLLAMA_DIMENSION
        self._timeout = timeout or DEFAULT_TIMEOUT

    def embed(self, text: str) -> list[float] | None:
        """Return the embedding for ``text``; ``None`` for empty input."""
        if text == "":
            return None
        body = _post_json(
            "ollama",
            self._base_url + "/api/embed",
            {"model": self._model, "input": text},
            {"Content-Type": "application/json"},
            self._timeout,
        )
        if not isinstance(body, dict):
            raise EmbeddingError("ollama: decode: response is not an object")
        embeddings = body.get("embeddings") or []
        if not isinstance(embeddings, list):
            raise EmbeddingError("ollama: decode: embeddings is not a list")
        if not embeddings:
            raise EmbeddingError("ollama: empty embeddings response")
        return _as_vector("ollama", embeddings[0])

    def dimension(self) -> int:
        return self._dimension

    def model(self) -> str:
        return "ollama/" + self._model


class OpenAIEmbedder:
    """Embedder for OpenAI-compatible ``/embeddings`` endpoints."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        dimension: int | None = None,
        timeout: float | None = None,
    ) -> None:
        self._base_url = base_url or DEFAULT_OPENAI_URL
        self._api_key = api_key or ""
        self._model = model or DEFAULT_OPENAI_MODEL
        self._dimension = dimension or DEFAULT_OPENAI_DIMENSION
        self._timeout = timeout or DEFAULT_TIMEOUT

    def embed(self, text: str) -> list[float] | None:
        """Return the first embedding for ``text``; ``None`` for empty input."""
        if text == "":
            return None
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = "Bearer " + self._api_key
        body = _post_json(
            "openai",
            self._base_url + "/embeddings",
            {"model": self._model, "input": text, "dimensions": self._dimension},
            headers,
            self._timeout,
        )
        if not isinstance(body, dict):
            raise EmbeddingError("openai: decode: response is not an object")
        data = body.get("data") or []
        if not isinstance(data, list):
            raise EmbeddingError("openai: decode: data is not a list")
        if not data:
            raise EmbeddingError("openai: empty data array")
        first = data[0]
        if not isinstance(first, dict):
            raise EmbeddingError("openai: decode: data entry is not an object")
        return _as_vector("openai", first.get("embedding") or [])

    def dimension(self) -> int:
        return self._dimension

    def model(self) -> str:
        return "openai/" + self._model


def probe_ollama(base_url: str | None = None, timeout: float = PROBE_TIMEOUT) -> bool:
    """Report whether an Ollama daemon answers with 200 at ``base_url``."""
    url = (base_url or DEFAULT_OLLAMA_URL) + "/"
    try:
        resp = requests.get(url, timeout=timeout)
    except requests.RequestException:
        return False
    with resp:
        return resp.status_code == 200