"""Infrastructure adapters for terrafe ports."""
