"""Command implementations for the gpush CLI."""
