"""terrafe: scaffold front-end projects from cached templates."""

__version__ = "1.0.0"

__all__ = ["__version__"]
