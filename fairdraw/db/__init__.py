"""Database engine, metadata and URL helpers."""
