"""Steam review ingestion and AI summarization."""

__version__ = "0.1.0"
