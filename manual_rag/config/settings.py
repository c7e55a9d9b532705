"""Application settings loaded from environment variables via pydantic-settings.

Field names map to upper-cased environment variables
(``vehicle_databases_api_key`` → ``VEHICLE_DATABASES_API_KEY``).
Environment variables win over ``.env`` entries, which win over the
defaults below.  An empty API key means "not configured": the composition
root in ``manual_rag.main`` skips that provider and the waterfall stage
that depends on it reports a miss.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Manual retrieval settings.

    Environment variables override defaults.  Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === LLM Providers ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint override
    openai_text_model: str = ""
    openai_embedding_model: str = ""  # defaults to text-embedding-3-small
    anthropic_api_key: str = ""
    anthropic_model: str = ""
    llm_timeout_seconds: float = 25.0

    # === Embeddings ===
    embedding_dimensions: int = 768
    embedding_batch_size: int = 100

    # === Manual Sources ===
    vehicle_databases_api_key: str = ""
    vehicle_databases_base_url: str = "https://api.vehicledatabases.com"
    nhtsa_vpic_base_url: str = "https://vpic.nhtsa.dot.gov/api"

    # === HTTP timeouts (seconds) ===
    commercial_api_timeout: float = 15.0
    verify_timeout: float = 8.0
    download_timeout: float = 20.0
    vin_decode_timeout: float = 10.0
    max_pdf_bytes: int = 150 * 1024 * 1024

    # === Chunk Store ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "owner_manual_chunks"
    store_batch_size: int = 50

    # === Retrieval defaults ===
    retrieval_default_limit: int = 8
    retrieval_similarity_threshold: float = 0.65
    retrieval_lexical_weight: float = 0.4
    retrieval_semantic_weight: float = 0.6
    retrieval_rrf_k: int = 60

    # === Manual cache ===
    cache_backend: str = "sqlite"  # "sqlite" or "memory"
    cache_db_path: str = "data/manual_cache.db"
    manual_cache_ttl_days: int = 30

    # === Manual registry ===
    manual_db_path: str = "data/manuals.db"

    # === Blob storage ===
    blob_backend: str = "local"  # "local", "s3" or "none"
    blob_local_dir: str = "./data/blobs"
    blob_public_base_url: str = ""
    s3_bucket: str = ""
    s3_region: str = "us-east-1"
    s3_prefix: str = ""

    # === Indexing ===
    indexing_concurrency: int = 2
    min_manual_text_chars: int = 100

    # === App ===
    app_env: str = "development"
    log_level: str = "INFO"
