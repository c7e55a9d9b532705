from manual_rag.providers.repository.sqlite_manual_repository import SQLiteManualRepository

__all__ = ["SQLiteManualRepository"]
