"""Data records shared across Oven.

Key classes:
- PageModel: Typed projection of a document's front matter.
- MarkdownPage: A discovered source document.
- GeneratedPage: The rendered output for one document.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path


@dataclass
class PageModel:
    """Metadata bound from a document's front matter.

    Attributes:
        id: Stable identifier. Assigned from the slug when the header has none.
        title: Human-readable title.
        date: Optional publish date.
        tags: Tags declared in the header.
        description: Short description.
        draft: Whether the page is a draft.
        slug: URL-style identifier derived from folder and filename.
        image: Optional image reference.
        icon_identifier: Optional icon name.
        metadata: Every header key not recognised as a named field.
    """

    id: str = ""
    title: str = "Untitled"
    date: datetime | None = None
    tags: list[str] = field(default_factory=list)
    description: str = ""
    draft: bool = False
    slug: str = ""
    image: str | None = None
    icon_identifier: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class MarkdownPage:
    """A source document discovered in the project tree.

    Attributes:
        path: Absolute path to the Markdown file.
        template_path: Template that governs the document.
        slug: URL-style identifier, e.g. ``/posts/first-post``.
        raw_markdown: File contents, front matter included.
    """

    path: Path
    template_path: Path
    slug: str
    raw_markdown: str


@dataclass
class GeneratedPage:
    """The result of rendering one document.

    Attributes:
        page: Bound page metadata. Plugins may edit its metadata after baking.
        output_path: Destination file.
        output: Template combined with the rendered body.
    """

    page: PageModel
    output_path: Path
    output: str
