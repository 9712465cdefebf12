"""Project creation workflow."""

from .service import CreateProjectService, CreateResult, TemplateSource

__all__ = ["CreateProjectService", "CreateResult", "TemplateSource"]
