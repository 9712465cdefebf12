"""Application services for terrafe."""
