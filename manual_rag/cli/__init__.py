"""Command-line tools for the manual retrieval subsystem.

- ``python -m manual_rag.cli.manuals`` (or ``manual-rag``): acquire,
  index and search owner's manuals from a terminal.
"""
