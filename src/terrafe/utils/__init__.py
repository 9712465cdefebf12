"""Shared helpers for terrafe."""
