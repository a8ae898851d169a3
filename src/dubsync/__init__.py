"""dubsync: synchronized preview and export of dubbed video."""

__version__ = "0.1.0"
