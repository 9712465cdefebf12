"""Project generation package."""

from .service import GenerateOptions, GeneratorError, ProjectGenerator

__all__ = ["GenerateOptions", "GeneratorError", "ProjectGenerator"]
