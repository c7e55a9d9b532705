"""Abstract base class for text-embedding providers.

Embeddings are produced once per chunk at indexing time and once per
query at search time; both must come from the same model, so a provider
reports a fixed :meth:`IEmbeddingProvider.get_dimension`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider - text-embedding-3-small at 768 dimensions
# Located in: manual_rag/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by indexing and retrieval."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            Text strings to embed.  Implementations batch internally when
            the upstream API has a per-call limit.

        Returns
        -------
        list[list[float]]
            One vector per input, in input order, regardless of the order
            the upstream API answered in.

        Raises
        ------
        manual_rag.utils.errors.EmbeddingError
            If any batch fails.  No partial result is returned.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Embed one text (typically a search query)."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the length of every vector this provider produces."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return an identifier such as ``"openai_embedding"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured."""
