"""Domain services: indexing, retrieval and acquisition."""
