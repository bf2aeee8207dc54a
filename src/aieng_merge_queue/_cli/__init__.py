"""Command-line interface for the merge queue."""
