"""Front matter parsing and binding for Oven.

A document may start with a YAML header delimited by two lines consisting
solely of ``---``. The header is parsed into a plain mapping and then bound
onto a typed record through an explicit field table.

Binding is best-effort: a value that cannot be converted leaves its field at
the default, and header keys that match no field are collected into the
record's metadata bag as strings.

Key classes:
- BindingTable: Maps header keys to typed field setters for one record type.

Key functions:
- parse_frontmatter: Split raw text into (header mapping, body).
- bind_page: Bind a header mapping onto a PageModel.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from datetime import date, datetime
from typing import Any, Generic, TypeVar

import yaml

from .models import PageModel

T = TypeVar("T")

FRONTMATTER_RE = re.compile(
    r"\A\s*?^[ \t]*---[ \t]*\r?\n(.*?)^[ \t]*---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)

_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d/%m/%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
)


def parse_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Extract YAML front matter from document text.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (header mapping, body). When no well-formed header exists
        the mapping is empty and the body is the original text.
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return {}, text
    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError:
        return {}, text
    if not isinstance(data, dict):
        return {}, text
    return data, text[match.end() :].strip()


def normalize_key(key: Any) -> str:
    """Normalise a header key or field name for case-insensitive matching.

    ``iconIdentifier``, ``icon-identifier`` and ``Icon_Identifier`` all
    normalise to ``iconidentifier``.
    """
    return re.sub(r"[_\-\s]", "", str(key)).lower()


# Converters raise ValueError or TypeError when a value cannot be used.


def to_str(value: Any) -> str:
    return "" if value is None else str(value)


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "false"):
            return lowered == "true"
    raise ValueError(f"Not a boolean: {value!r}")


def to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("Booleans are not integers")
    return int(value)


def to_datetime(value: Any) -> datetime:
    """Leniently convert a header value to a datetime."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        raise TypeError(f"Not a date: {value!r}")
    text = value.strip()
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    raise ValueError(f"Unrecognised date: {value!r}")


def to_str_list(value: Any) -> list[str]:
    if value is None:
        raise TypeError("Missing list")
    if isinstance(value, (list, tuple, set)):
        return [str(item) for item in value]
    if isinstance(value, Mapping):
        raise TypeError("Mappings are not lists")
    return [str(value)]


class BindingTable(Generic[T]):
    """Explicit table of bindable fields for one record type.

    Each registration maps a field name to a converter. Binding looks up
    header keys case-insensitively, converts the value and assigns it.

    Attributes:
        factory: Callable creating a record with default values.
        metadata_field: Name of the attribute holding unknown keys.
    """

    def __init__(self, factory: Callable[[], T], metadata_field: str = "metadata"):
        """Initialize the table.

        Args:
            factory: Callable creating a default record.
            metadata_field: Attribute receiving unrecognised header keys.
        """
        self.factory = factory
        self.metadata_field = metadata_field
        self._fields: dict[str, tuple[str, Callable[[Any], Any]]] = {}

    def register(self, name: str, converter: Callable[[Any], Any]) -> BindingTable[T]:
        """Register a field.

        Args:
            name: Attribute name on the record.
            converter: Callable converting a header value.

        Returns:
            The table, for chaining.
        """
        self._fields[normalize_key(name)] = (name, converter)
        return self

    def derive(self, factory: Callable[[], Any]) -> BindingTable[Any]:
        """Create a table for a record subclass, keeping current registrations."""
        table: BindingTable[Any] = BindingTable(factory, self.metadata_field)
        table._fields = dict(self._fields)
        return table

    @property
    def field_names(self) -> list[str]:
        return [name for name, _ in self._fields.values()]

    def bind(self, header: Mapping[Any, Any]) -> T:
        """Bind a header mapping onto a new record.

        Args:
            header: Parsed front matter.

        Returns:
            A record with every convertible known field set.
        """
        record = self.factory()
        metadata: dict[str, str] = getattr(record, self.metadata_field)
        reserved = normalize_key(self.metadata_field)
        bound: set[str] = set()

        for key, value in header.items():
            normalized = normalize_key(key)
            entry = self._fields.get(normalized)
            if entry is None:
                if normalized != reserved and value is not None:
                    metadata[str(key)] = str(value)
                continue
            if normalized in bound:
                continue
            bound.add(normalized)
            name, converter = entry
            try:
                setattr(record, name, converter(value))
            except (TypeError, ValueError, OverflowError):
                # Best-effort: the field keeps its default.
                continue
        return record


PAGE_BINDINGS: BindingTable[PageModel] = (
    BindingTable(PageModel)
    .register("id", to_str)
    .register("title", to_str)
    .register("date", to_datetime)
    .register("tags", to_str_list)
    .register("description", to_str)
    .register("draft", to_bool)
    .register("slug", to_str)
    .register("image", to_str)
    .register("icon_identifier", to_str)
)


def bind_page(header: Mapping[Any, Any], table: BindingTable[Any] | None = None) -> Any:
    """Bind front matter onto a PageModel (or the table's record type)."""
    return (table or PAGE_BINDINGS).bind(header)

