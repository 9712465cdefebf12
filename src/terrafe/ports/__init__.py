"""Port definitions for template acquisition."""
