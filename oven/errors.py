"""Exceptions raised by Oven.

Key classes:
- BakeError: Base class for errors that abort a bake.
- ProjectNotFoundError: The project directory does not exist.
- ContentIndexError: A page could not be written to the content index.
- OutputPathError: The output root would overwrite the project.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import PageModel


class BakeError(Exception):
    """Error that aborts a bake.

    Attributes:
        message: Human-readable error message.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ProjectNotFoundError(BakeError):
    """The project path does not exist.

    Attributes:
        project_path: The missing path.
    """

    def __init__(self, project_path: Path):
        self.project_path = project_path
        super().__init__(f"Project path {project_path} does not exist.")


class ContentIndexError(BakeError):
    """A page could not be serialised into the content index.

    Attributes:
        page: The page that failed.
        original_error: The original exception that was caught.
    """

    def __init__(self, page: PageModel, original_error: Exception | None = None):
        self.page = page
        self.original_error = original_error
        detail = f": {original_error}" if original_error else ""
        super().__init__(f"Cannot add {page.slug or page.title} to the content index{detail}")


class OutputPathError(BakeError):
    """The output root would overlap the project's sources.

    Attributes:
        project_path: The project root.
        output_root: The rejected output root.
    """

    def __init__(self, project_path: Path, output_root: Path):
        self.project_path = project_path
        self.output_root = output_root
        super().__init__(
            f"Output directory {output_root} must be a folder inside or outside "
            f"the project, not the project root {project_path} or one of its parents."
        )
