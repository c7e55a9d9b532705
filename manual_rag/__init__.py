"""Owner's-manual acquisition, indexing and hybrid retrieval."""

__version__ = "0.1.0"
