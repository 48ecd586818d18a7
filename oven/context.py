"""Build context shared with plugins during a bake.

Key classes:
- BuildContext: State of one bake invocation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .models import GeneratedPage, MarkdownPage
from .renderers import PipelineBuilder


@dataclass
class BuildContext:
    """State of one bake invocation.

    A context is created at the start of a bake and discarded at the end.
    Pre-bake hooks see the discovered documents and may extend the pipeline.
    Post-bake hooks see the generated pages and may edit their metadata.

    Attributes:
        project_path: Root directory of the project.
        project_name: Name of the project directory.
        arguments: Extra invocation arguments, passed through untouched.
        pipeline: Render pipeline configuration, open until pre-bake hooks finish.
        output_path: Root directory for generated files.
        markdown_pages: Documents discovered before the bake.
        generated_pages: Pages rendered by the bake.
    """

    project_path: Path
    arguments: list[str] = field(default_factory=list)
    pipeline: PipelineBuilder = field(default_factory=PipelineBuilder.default)
    output_path: Path | None = None
    markdown_pages: list[MarkdownPage] = field(default_factory=list)
    generated_pages: list[GeneratedPage] = field(default_factory=list)

    @property
    def project_name(self) -> str:
        return self.project_path.name
