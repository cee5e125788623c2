"""Command line interface for a4c-client."""
