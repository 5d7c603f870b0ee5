"""Command-line interface for harbormaster."""
