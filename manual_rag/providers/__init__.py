"""Concrete adapters for the interfaces in :mod:`manual_rag.interfaces`."""
