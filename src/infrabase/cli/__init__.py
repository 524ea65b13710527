"""Command-line interface for infrabase."""
