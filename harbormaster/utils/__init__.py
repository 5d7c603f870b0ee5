"""Shared helpers: logging and Docker access."""
