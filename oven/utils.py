"""Utility functions for Oven.

This module contains small helpers used throughout the Oven codebase:
string conversion, path classification and output directory handling.

Key functions:
    make_slug: Derive a URL-style slug from a document path.
    output_file_name: Convert a document stem to an output filename.
    heading_id: Convert heading text to an anchor id.
    is_markdown: Check if a path is a Markdown document.
    is_reserved_dir: Check if a directory is hidden or a build artifact.
    ensure_clean_dir: Ensure a directory exists and is empty.
"""

from __future__ import annotations

import re
import shutil
from datetime import datetime
from pathlib import Path

OUTPUT_EXTENSION = ".html"
MARKDOWN_SUFFIXES = (".md", ".markdown")
BUILD_ARTIFACT_DIRS = frozenset(
    {"bin", "obj", "build", "dist", "node_modules", "__pycache__", "venv"}
)


def make_slug(project_root: Path, path: Path) -> str:
    """Derive the slug for a document from its folder and filename.

    Args:
        project_root: Root directory of the project.
        path: Path to the document.

    Returns:
        Slug such as ``/posts/first-post``.

    Examples:
        >>> make_slug(Path("/site"), Path("/site/Posts/First Post.md"))
        '/posts/first-post'
    """
    rel = path.relative_to(project_root)
    parts = [*rel.parent.parts, rel.stem]
    cleaned = [re.sub(r"\s+", "-", part.strip()).lower() for part in parts if part]
    return "/" + "/".join(cleaned)


def output_file_name(stem: str) -> str:
    """Convert a document stem to its output filename.

    Spaces and hyphens are removed and each part is capitalised.

    Args:
        stem: Filename without extension.

    Returns:
        Output filename with the fixed output extension.

    Examples:
        >>> output_file_name("first-post")
        'FirstPost.html'
    """
    parts = [part for part in re.split(r"[ \-]+", stem) if part]
    name = "".join(part[0].upper() + part[1:].lower() for part in parts)
    return f"{name or 'Index'}{OUTPUT_EXTENSION}"


def heading_id(text: str) -> str:
    """Generate a URL-friendly id from heading text.

    Args:
        text: The heading text.

    Returns:
        Slug suitable for anchor links.
    """
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


def format_published(date: datetime | None) -> str:
    """Format a publish date in long form, e.g. ``Monday, January 15, 2024``.

    Args:
        date: Date to format, or None.

    Returns:
        Formatted date, or an empty string when no date is set.
    """
    if date is None:
        return ""
    return f"{date:%A}, {date:%B} {date.day}, {date.year}"


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown document.

    Args:
        path: Path to check.

    Returns:
        True if the file has a Markdown extension (case-insensitive).
    """
    return path.suffix.lower() in MARKDOWN_SUFFIXES


def is_reserved_dir(name: str, extra: frozenset[str] | set[str] = frozenset()) -> bool:
    """Check if a directory is hidden, internal or a build artifact.

    Args:
        name: Directory name.
        extra: Additional names to treat as reserved (e.g. the output root).

    Returns:
        True if the directory should not be scanned for content.
    """
    lowered = name.lower()
    return (
        name.startswith((".", "_"))
        or lowered in BUILD_ARTIFACT_DIRS
        or name in extra
    )


def ensure_clean_dir(path: Path) -> None:
    """Create a directory, or empty it when it already exists.

    Only the contents are removed; the directory itself is kept.

    Args:
        path: Directory path to clean or create.
    """
    if not path.exists():
        path.mkdir(parents=True)
        return
    for child in path.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()
