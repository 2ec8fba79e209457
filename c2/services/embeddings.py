"""
Embedding provider client and contact embedding text.

The client never raises to its callers: every outcome is an
``EmbeddingResult`` so the fallback boundary is visible at the call site.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Any, List, Optional
from urllib.parse import urlparse

import httpx

import c2.config as config
from c2.errors import EmbeddingProviderError

DEFAULT_OLLAMA_HOST = "http://localhost:11434"
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


@dataclass(frozen=True)
class EmbeddingResult:
    vector: Optional[List[float]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return bool(self.vector)

    @classmethod
    def success(cls, vector: List[float]) -> "EmbeddingResult":
        return cls(vector=vector)

    @classmethod
    def failure(cls, error: str) -> "EmbeddingResult":
        return cls(error=error)


class EmbeddingCircuitBreaker:
    def __init__(self, failure_threshold: int, cooldown_seconds: int):
        self._failure_threshold = max(1, failure_threshold)
        self._cooldown_seconds = max(1, cooldown_seconds)
        self._lock = threading.Lock()
        self._consecutive_failures = 0
        self._cooldown_until = 0.0
        self._last_error: Optional[str] = None
        self._last_failure_ts: Optional[float] = None
        self._last_success_ts: Optional[float] = None

    def is_open(self) -> bool:
        with self._lock:
            return time.time() < self._cooldown_until

    def record_success(self) -> None:
        with self._lock:
            self._consecutive_failures = 0
            self._cooldown_until = 0.0
            self._last_success_ts = time.time()

    def record_failure(self, error: str) -> None:
        with self._lock:
            self._consecutive_failures += 1
            self._last_error = error
            self._last_failure_ts = time.time()
            if self._consecutive_failures >= self._failure_threshold:
                self._cooldown_until = time.time() + self._cooldown_seconds

    def status(self) -> dict:
        with self._lock:
            return {
                "open": time.time() < self._cooldown_until,
                "consecutive_failures": self._consecutive_failures,
                "cooldown_until_epoch": int(self._cooldown_until) if self._cooldown_until else None,
                "last_error": self._last_error,
                "last_failure_epoch": int(self._last_failure_ts) if self._last_failure_ts else None,
                "last_success_epoch": int(self._last_success_ts) if self._last_success_ts else None,
            }


def ollama_host_from_base_url(base_url: Optional[str], logger: logging.Logger = config.logger) -> str:
    """Reduce an OpenAI-style base URL (``http://host:11434/v1``) to the Ollama host."""
    if not base_url:
        return DEFAULT_OLLAMA_HOST
    parsed = urlparse(base_url)
    if not parsed.scheme or not parsed.netloc:
        logger.error(f"Invalid AI base URL: {base_url}, using default: {DEFAULT_OLLAMA_HOST}")
        return DEFAULT_OLLAMA_HOST
    return f"{parsed.scheme}://{parsed.netloc}"


class EmbeddingClient:
    """Turns text into a fixed-length vector through Ollama or an OpenAI-compatible API."""

    def __init__(
        self,
        *,
        provider: str = config.EMBEDDING_PROVIDER,
        base_url: Optional[str] = config.AI_BASE_URL,
        model: str = config.EMBEDDINGS_MODEL,
        dimensions: int = config.EMBEDDING_DIM,
        api_key: Optional[str] = config.OPENAI_API_KEY,
        timeout_seconds: float = config.EMBEDDING_TIMEOUT_SECONDS,
        retry_max: int = config.EMBEDDING_RETRY_MAX,
        backoff_seconds: float = config.EMBEDDING_RETRY_BACKOFF_SECONDS,
        jitter_seconds: float = config.EMBEDDING_RETRY_JITTER_SECONDS,
        circuit_breaker: Optional[EmbeddingCircuitBreaker] = None,
        transport: Optional[httpx.BaseTransport] = None,
        logger: logging.Logger = config.logger,
    ):
        self.provider = provider
        self.base_url = base_url
        self.model = model
        self.dimensions = dimensions
        self.retry_max = max(0, retry_max)
        self.backoff_seconds = backoff_seconds
        self.jitter_seconds = jitter_seconds
        self.logger = logger
        self.circuit_breaker = circuit_breaker or EmbeddingCircuitBreaker(
            failure_threshold=config.EMBEDDING_FAILURE_THRESHOLD,
            cooldown_seconds=config.EMBEDDING_COOLDOWN_SECONDS,
        )
        headers = {"Content-Type": "application/json"}
        if provider == "openai" and api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._http_client = httpx.Client(
            timeout=httpx.Timeout(timeout_seconds),
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=100),
            headers=headers,
            transport=transport,
        )

    @property
    def enabled(self) -> bool:
        return self.provider != "none"

    @property
    def endpoint(self) -> str:
        if self.provider == "openai":
            return f"{(self.base_url or '').rstrip('/')}/embeddings"
        return f"{ollama_host_from_base_url(self.base_url, self.logger)}/api/embeddings"

    def close(self) -> None:
        self._http_client.close()

    def embed(self, text: str) -> EmbeddingResult:
        """Embed ``text``; failures and empty vectors come back as a failed result."""
        if not self.enabled:
            return EmbeddingResult.failure("embedding provider disabled")
        if not isinstance(text, str):
            return EmbeddingResult.failure("embedding input must be a string")
        if self.circuit_breaker.is_open():
            return EmbeddingResult.failure("circuit breaker open")
        try:
            vector = self._request_embedding(text)
        except EmbeddingProviderError as exc:
            self.logger.warning(
                "embedding_request_failed",
                extra={"provider": self.provider, "model": self.model, "detail": str(exc)},
            )
            return EmbeddingResult.failure(str(exc))
        if not vector:
            return EmbeddingResult.failure("empty embedding")
        return EmbeddingResult.success(vector)

    def _payload(self, text: str) -> dict:
        if self.provider == "openai":
            return {"model": self.model, "input": text}
        return {"model": self.model, "prompt": text}

    def _parse_vector(self, data: Any) -> List[float]:
        try:
            if self.provider == "openai":
                raw = data["data"][0]["embedding"]
            else:
                raw = data["embedding"]
            vector = [float(value) for value in raw]
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise EmbeddingProviderError("malformed embedding response") from exc
        if vector and len(vector) != self.dimensions:
            raise EmbeddingProviderError(
                f"embedding dimension {len(vector)} does not match expected {self.dimensions}"
            )
        return vector

    def _request_embedding(self, text: str) -> List[float]:
        for attempt in range(self.retry_max + 1):
            try:
                response = self._http_client.post(self.endpoint, json=self._payload(text))
            except httpx.HTTPError as exc:
                if attempt >= self.retry_max:
                    self.circuit_breaker.record_failure(str(exc))
                    raise EmbeddingProviderError(f"request error: {exc}") from exc
                self._sleep_backoff(attempt)
                continue

            if response.status_code in RETRYABLE_STATUS_CODES:
                if attempt >= self.retry_max:
                    self.circuit_breaker.record_failure(f"status {response.status_code}")
                    raise EmbeddingProviderError(f"status {response.status_code}")
                self._sleep_backoff(attempt)
                continue
            if response.status_code >= 400:
                self.circuit_breaker.record_failure(f"status {response.status_code}")
                raise EmbeddingProviderError(f"status {response.status_code}")

            try:
                data = response.json()
            except ValueError as exc:
                self.circuit_breaker.record_failure("invalid json")
                raise EmbeddingProviderError("invalid json in embedding response") from exc
            try:
                vector = self._parse_vector(data)
            except EmbeddingProviderError as exc:
                self.circuit_breaker.record_failure(str(exc))
                raise
            self.circuit_breaker.record_success()
            return vector
        raise EmbeddingProviderError("embedding retries exhausted")

    def _sleep_backoff(self, attempt: int) -> None:
        base = self.backoff_seconds * (2 ** attempt)
        jitter = random.uniform(0, self.jitter_seconds) if self.jitter_seconds > 0 else 0.0
        time.sleep(base + jitter)


def _field(contact: Any, name: str) -> Any:
    if isinstance(contact, dict):
        return contact.get(name)
    return getattr(contact, name, None)


def build_contact_embedding_text(contact: Any) -> str:
    parts = [
        _field(contact, "name"),
        _field(contact, "title"),
        _field(contact, "company"),
        _field(contact, "location"),
        _field(contact, "notes"),
    ]
    for field in ("email", "phone", "links", "tags"):
        parts.extend(_field(contact, field) or [])
    return " ".join(part for part in parts if part)
