"""Allow ``python -m sendme_tui``; also the self-invocation target of the TUI."""

from .cli import main

main()
