"""Command line interface for terrafe."""
