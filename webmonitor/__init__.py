"""Web Monitor: source crawling, extraction and classification pipeline."""

__version__ = "0.1.0"
