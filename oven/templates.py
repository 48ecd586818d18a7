"""Template resolution and placeholder substitution for Oven.

Every content folder may hold a local template, which applies to the
documents directly inside it, or a cascading template, which also applies
to every descendant folder that does not provide its own.

Key classes:
- TemplateResolver: Map documents to the templates that govern them.

Key functions:
- content_folders: List the top-level folders that hold content.
- render_template: Substitute page values into a template.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from pathlib import Path

from .models import PageModel
from .utils import format_published, is_markdown, is_reserved_dir

logger = logging.getLogger(__name__)

LOCAL_TEMPLATE = "template.html"
CASCADING_TEMPLATE = "cascading-template.html"

_PLACEHOLDER_RE = re.compile(r"@(Body|Route|Title|Description|Published|Id)\b")


def content_folders(project_root: Path, output_dir: str | None = None) -> list[Path]:
    """List the top-level folders that may hold content.

    Hidden and underscore-prefixed folders, build artifact folders and the
    output root are excluded.

    Args:
        project_root: Root directory of the project.
        output_dir: Output root, relative to the project or absolute. Its top
            folder is excluded when it lies inside the project.

    Returns:
        Sorted list of folder paths.
    """
    extra: set[str] = set()
    if output_dir:
        root = project_root.resolve()
        output_root = (root / output_dir).resolve()
        if output_root != root and output_root.is_relative_to(root):
            extra.add(output_root.relative_to(root).parts[0])
    return sorted(
        child
        for child in project_root.iterdir()
        if child.is_dir() and not is_reserved_dir(child.name, extra)
    )


class TemplateResolver:
    """Resolve the template governing each document in a project.

    Attributes:
        project_root: Root directory of the project.
        output_dir: Output root, excluded from the walk.
    """

    def __init__(self, project_root: Path, output_dir: str | None = None):
        """Initialize the resolver.

        Args:
            project_root: Root directory of the project.
            output_dir: Output root relative to the project.
        """
        self.project_root = project_root
        self.output_dir = output_dir

    def resolve(self, folders: Iterable[Path] | None = None) -> dict[Path, Path]:
        """Map every document under the content folders to its template.

        Args:
            folders: Top-level folders to walk. Defaults to content_folders().

        Returns:
            Mapping of document path to template path, in discovery order.
        """
        if folders is None:
            folders = content_folders(self.project_root, self.output_dir)
        mapping: dict[Path, Path] = {}
        for folder in folders:
            self._walk(folder, None, mapping)
        return mapping

    def _walk(self, folder: Path, inherited: Path | None, mapping: dict[Path, Path]) -> None:
        local = folder / LOCAL_TEMPLATE
        cascading = folder / CASCADING_TEMPLATE
        has_local = local.is_file()
        has_cascading = cascading.is_file()

        entries = sorted(folder.iterdir())
        documents = [p for p in entries if p.is_file() and is_markdown(p)]

        if has_local and has_cascading:
            logger.warning(
                "Both %s and %s found in %s; skipping its documents",
                LOCAL_TEMPLATE,
                CASCADING_TEMPLATE,
                folder,
            )
            effective = inherited
        else:
            effective = cascading if has_cascading else inherited
            template = local if has_local else effective
            if template is None:
                if documents:
                    logger.warning(
                        "No template found for %s; skipping %d document(s)",
                        folder,
                        len(documents),
                    )
            else:
                for document in documents:
                    mapping[document] = template

        for child in entries:
            if child.is_dir() and not is_reserved_dir(child.name):
                self._walk(child, effective, mapping)


def render_template(template_text: str, body: str, route: str, page: PageModel) -> str:
    """Fill a template's placeholders with page values.

    ``@Body``, ``@Route``, ``@Title``, ``@Description``, ``@Published`` and
    ``@Id`` are replaced in a single pass, so inserted content is never
    scanned for further placeholders.

    Args:
        template_text: Template file contents.
        body: Rendered document body.
        route: The page slug.
        page: Bound page metadata.

    Returns:
        The filled template.
    """
    values = {
        "Body": body,
        "Route": route,
        "Title": page.title,
        "Description": page.description,
        "Published": format_published(page.date),
        "Id": page.id,
    }
    return _PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], template_text)
