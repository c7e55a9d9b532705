"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Requests are sent in sequential batches of at most 100 texts.  Each
response item carries an ``index`` and is placed by that index, never by
its position in the response array.
"""

from __future__ import annotations

import openai
import structlog

from manual_rag.config.settings import Settings
from manual_rag.interfaces.embedding_provider import IEmbeddingProvider
from manual_rag.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_MAX_BATCH_SIZE = 100
_DEFAULT_MODEL = "text-embedding-3-small"

# Models that accept the ``dimensions`` parameter (Matryoshka truncation).
_SHORTENABLE_MODELS = frozenset({"text-embedding-3-small", "text-embedding-3-large"})


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Uses ``text-embedding-3-small`` shortened to ``embedding_dimensions``
    (768 by default).  A custom ``openai_base_url`` points the client at an
    OpenAI-compatible host.
    """

    def __init__(self, settings: Settings, client: openai.AsyncOpenAI | None = None) -> None:
        self._api_key = settings.openai_api_key
        if client is None:
            client_kwargs: dict = {
                "api_key": self._api_key,
                "timeout": openai.Timeout(30.0, connect=5.0),
            }
            if settings.openai_base_url:
                client_kwargs["base_url"] = settings.openai_base_url
            client = openai.AsyncOpenAI(**client_kwargs)
        self._client = client
        self._model = settings.openai_embedding_model or _DEFAULT_MODEL
        self._dimension = settings.embedding_dimensions
        self._batch_size = max(1, min(settings.embedding_batch_size, _MAX_BATCH_SIZE))
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts*, returning vectors in input order.

        Any failed batch aborts the whole call with :class:`EmbeddingError`.
        """
        if not texts:
            return []

        vectors: list[list[float] | None] = [None] * len(texts)
        for start in range(0, len(texts), self._batch_size):
            batch = texts[start : start + self._batch_size]
            batch_vectors = await self._embed_batch(batch)
            vectors[start : start + len(batch)] = batch_vectors

        return [vector for vector in vectors if vector is not None]

    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _embed_batch(self, batch: list[str]) -> list[list[float]]:
        kwargs: dict = {"input": batch, "model": self._model}
        if self._model in _SHORTENABLE_MODELS:
            kwargs["dimensions"] = self._dimension

        try:
            response = await self._client.embeddings.create(**kwargs)
        except openai.APIError as exc:
            logger.error(
                "embedding_batch_failed",
                provider=self._provider_label,
                batch_size=len(batch),
                error=str(exc),
            )
            raise EmbeddingError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        ordered: list[list[float] | None] = [None] * len(batch)
        for item in response.data:
            if not 0 <= item.index < len(batch) or ordered[item.index] is not None:
                raise EmbeddingError(
                    message=f"Unexpected embedding index {item.index} for batch of {len(batch)}",
                    provider_name=self.get_provider_name(),
                )
            ordered[item.index] = list(item.embedding)

        if any(vector is None for vector in ordered):
            raise EmbeddingError(
                message=f"Embedding response covered {len(response.data)} of {len(batch)} inputs",
                provider_name=self.get_provider_name(),
            )

        for vector in ordered:
            if len(vector) != self._dimension:
                raise EmbeddingError(
                    message=(
                        f"Model {self._model} returned {len(vector)}-dim vectors, "
                        f"expected {self._dimension}"
                    ),
                    provider_name=self.get_provider_name(),
                )

        logger.info(
            "openai_embedding_batch",
            model=self._model,
            provider=self._provider_label,
            batch_size=len(batch),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return ordered  # type: ignore[return-value]
