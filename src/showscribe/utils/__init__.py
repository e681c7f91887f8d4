"""Shared utilities: logging setup, metrics events, redaction and temp files."""
