"""Allow ``python -m manual_rag.cli`` execution."""

from manual_rag.cli.manuals import main

main()
