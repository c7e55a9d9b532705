from manual_rag.providers.cache.memory_cache import MemoryCacheProvider
from manual_rag.providers.cache.sqlite_cache import SQLiteCacheProvider

__all__ = ["MemoryCacheProvider", "SQLiteCacheProvider"]
