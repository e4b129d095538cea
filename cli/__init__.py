"""Command line interface for scratchnet."""
