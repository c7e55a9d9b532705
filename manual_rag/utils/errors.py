"""Exception hierarchy for the manual retrieval library.

Every exception derives from :class:`ManualRagError`, which carries an
optional ``provider_name`` naming the external service involved
(e.g. "openai", "chromadb", "vehicledatabases").

    ManualRagError  (base)
    +-- ConfigurationError        (startup / missing config)
    +-- InvalidVehicleError       (malformed vehicle descriptor or VIN)
    +-- ManualTextTooShortError   (extracted text below minimum length)
    +-- ContentMismatchError      (manual text does not mention the vehicle)
    +-- TextExtractionError       (PDF-to-text failure)
    +-- PdfVerificationError      (byte stream is not a PDF)
    +-- ProviderUnavailableError  (external service down / unreachable)
    +-- BlobStoreError            (object storage upload failure)
    +-- LLMError                  (completion call failure)
    +-- RAGError                  (embedding or chunk-store failure)
        +-- EmbeddingError        (embedding batch failed, retryable)
        +-- EmbeddingDimensionError

Malformed-input errors are raised early and never retried.  Transient
upstream failures are caught by the stage that made the call; only
:class:`EmbeddingError` is allowed to abort an indexing run.
"""


class ManualRagError(Exception):
    """Base exception for all library errors.

    ``__str__`` prefixes the provider name in brackets for log scanning,
    e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------

class ConfigurationError(ManualRagError):
    """Raised when required configuration is missing or invalid."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class InvalidVehicleError(ManualRagError):
    """Raised when a vehicle descriptor or VIN cannot be used."""

    def __init__(
        self,
        message: str = "Invalid vehicle description",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ManualTextTooShortError(ManualRagError):
    """Raised when extracted manual text is too short to index."""

    def __init__(
        self,
        message: str = "Manual text is too short to index",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ContentMismatchError(ManualRagError):
    """Raised when a manual's text never mentions the vehicle it was fetched for."""

    def __init__(
        self,
        message: str = "Manual content does not match the vehicle",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Document errors
# ---------------------------------------------------------------------------

class TextExtractionError(ManualRagError):
    """Raised when text cannot be extracted from a PDF."""

    def __init__(
        self,
        message: str = "PDF text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PdfVerificationError(ManualRagError):
    """Raised when downloaded bytes do not start with the PDF signature."""

    def __init__(
        self,
        message: str = "Content is not a PDF document",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Provider errors
# ---------------------------------------------------------------------------

class ProviderUnavailableError(ManualRagError):
    """Raised when an external service is unreachable."""

    def __init__(
        self,
        message: str = "Provider is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class BlobStoreError(ManualRagError):
    """Raised when a manual cannot be written to object storage."""

    def __init__(
        self,
        message: str = "Blob storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(ManualRagError):
    """Raised when an LLM API call fails."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RAGError(ManualRagError):
    """Raised when embedding generation or the chunk store fails."""

    def __init__(
        self,
        message: str = "RAG operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(RAGError):
    """Raised when any embedding batch fails.

    The whole ``embed()`` call is abandoned; callers may retry the run.
    """

    retryable = True

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingDimensionError(RAGError):
    """Raised when a vector's length differs from the store's dimension."""

    def __init__(
        self,
        message: str = "Embedding dimension mismatch",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
