"""sendme-tui - A terminal front end for ticket-based file transfers."""

try:
    from ._version import __version__
except ImportError:
    try:
        from importlib.metadata import version

        __version__ = version("sendme-tui")
    except Exception:
        __version__ = "0.0.0+unknown"
