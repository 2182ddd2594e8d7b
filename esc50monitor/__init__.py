"""Live ESC-50 sound classification monitor: ingest, broadcast, query."""

__version__ = "0.1.0"
