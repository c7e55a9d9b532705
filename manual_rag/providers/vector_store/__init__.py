from manual_rag.providers.vector_store.chromadb_provider import ChromaDBChunkStore

__all__ = ["ChromaDBChunkStore"]
