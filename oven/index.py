"""Content index generation for Oven.

After a bake, the metadata of every generated page is written to an
importable Python module so a site can list its content without parsing
documents at runtime::

    from generated_content_index import get_pages

    for page in get_pages():
        print(page.slug, page.title)

A declaration-only ``.pyi`` stub is written alongside it.

Key functions:
- to_literal: Convert a value to Python source.
- write_index: Write the content index module.
- write_index_stub: Write the index stub.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from jinja2 import Environment

from .errors import ContentIndexError
from .models import PageModel

logger = logging.getLogger(__name__)

INDEX_MODULE = "generated_content_index"
INDEX_FILE = f"{INDEX_MODULE}.py"
INDEX_STUB_FILE = f"{INDEX_MODULE}.pyi"

INDEX_FIELDS = (
    "id",
    "title",
    "slug",
    "description",
    "date",
    "draft",
    "image",
    "icon_identifier",
    "tags",
    "metadata",
)

_INDEX_TEMPLATE = '''\
# Generated by oven. Do not edit.
from __future__ import annotations

import datetime

from oven.models import PageModel


def get_pages() -> list[PageModel]:
    return [
{% for entry in entries %}
        PageModel(
{% for name, value in entry %}
            {{ name }}={{ value }},
{% endfor %}
        ),
{% endfor %}
    ]
'''

_STUB_TEMPLATE = '''\
# Generated by oven. Do not edit.
from oven.models import PageModel

def {{ function }}() -> list[PageModel]: ...
'''

_env = Environment(autoescape=False, trim_blocks=True, lstrip_blocks=True, keep_trailing_newline=True)


def _datetime_literal(value: datetime) -> str:
    parts = [value.year, value.month, value.day]
    tail = [value.hour, value.minute, value.second, value.microsecond]
    while tail and tail[-1] == 0:
        tail.pop()
    args = ", ".join(str(part) for part in [*parts, *tail])
    offset = value.utcoffset()
    if offset is not None:
        args += f", tzinfo=datetime.timezone(datetime.timedelta(seconds={int(offset.total_seconds())}))"
    return f"datetime.datetime({args})"


def to_literal(value: Any) -> str:
    """Convert a value to a Python source literal.

    Args:
        value: A str, int, bool, None, datetime, or a list or string-keyed
            dict of those.

    Returns:
        Source text that evaluates to an equal value.

    Raises:
        TypeError: If the value has an unsupported type.

    Examples:
        >>> to_literal(["a", 1, None])
        "['a', 1, None]"
    """
    if value is None or isinstance(value, (bool, int, str)):
        return repr(value)
    if isinstance(value, datetime):
        return _datetime_literal(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(to_literal(item) for item in value) + "]"
    if isinstance(value, dict):
        items = []
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"Index keys must be strings, not {type(key).__name__}")
            items.append(f"{key!r}: {to_literal(item)}")
        return "{" + ", ".join(items) + "}"
    raise TypeError(f"Cannot write {type(value).__name__} to the content index")


def page_entry(page: PageModel) -> list[tuple[str, str]]:
    """Serialise the indexed fields of a page as (name, literal) pairs."""
    return [(name, to_literal(getattr(page, name))) for name in INDEX_FIELDS]


def render_index(pages: Iterable[PageModel], continue_on_error: bool = False) -> str:
    """Render the content index module source.

    Args:
        pages: Pages in output order.
        continue_on_error: Skip pages that cannot be serialised instead of failing.

    Returns:
        Python source of the index module.

    Raises:
        ContentIndexError: If a page cannot be serialised and
            continue_on_error is False.
    """
    entries = []
    for page in pages:
        try:
            entries.append(page_entry(page))
        except TypeError as e:
            if not continue_on_error:
                raise ContentIndexError(page, e) from e
            logger.warning("Skipping %s in the content index: %s", page.slug or page.title, e)
    return _env.from_string(_INDEX_TEMPLATE).render(entries=entries)


def write_index(
    output_root: Path, pages: Iterable[PageModel], continue_on_error: bool = False
) -> Path:
    """Write the content index module.

    Args:
        output_root: Directory receiving the module.
        pages: Pages in output order.
        continue_on_error: Skip pages that cannot be serialised instead of failing.

    Returns:
        Path of the written module.
    """
    source = render_index(pages, continue_on_error)
    path = output_root / INDEX_FILE
    path.write_text(source, encoding="utf-8")
    return path


def write_index_stub(output_root: Path) -> Path:
    """Write the declaration-only stub for the content index."""
    path = output_root / INDEX_STUB_FILE
    path.write_text(_env.from_string(_STUB_TEMPLATE).render(function="get_pages"), encoding="utf-8")
    return path
