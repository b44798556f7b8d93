"""Command line interface for stack lifecycle utilities."""
