"""Image caption extension for the Oven render pipeline.

Every image renders as a captioned figure whose caption is the image label.
An attribute block may follow the image to set HTML attributes on the
``<img>`` tag::

    ![A cat](cat.png){width=200 .rounded #hero}

Dimensions can also be given as a URL shorthand, ``![A cat](<cat.png =200x100>)``.

Key functions:
- image_attributes_plugin: mistune plugin registering the attribute-aware image rule.
- parse_attribute_block: Parse ``{...}`` attribute text into a mapping.
- split_dimensions: Strip ``=WxH`` shorthand from an image URL.
- render_figure: Build the figure markup for one image.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from mistune.util import escape, escape_url, striptags, unescape

if TYPE_CHECKING:
    from mistune import Markdown
    from mistune.core import InlineState
    from mistune.inline_parser import InlineParser

IMAGE_RULE = "figure_image"

IMAGE_PATTERN = (
    r"!\[(?P<figimg_label>[^\[\]\n]*)\]"
    r"\((?P<figimg_src><[^<>\n]*>|[^\s()<>]+)"
    r"(?:[ \t]+\"(?P<figimg_title>[^\"\n]*)\")?[ \t]*\)"
    r"\{(?P<figimg_attrs>[^{}\n]*)\}"
)

FALLBACK_STYLE = "max-width:100%;height:auto;"
CAPTION_STYLE = "margin-left:auto;margin-right:auto;font-style:italic;text-align:center;"

_ATTRIBUTE_RE = re.compile(
    r"""\.(?P<cls>[\w-]+)"""
    r"""|\#(?P<id>[\w-]+)"""
    r"""|(?P<key>[\w:-]+)=(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'|(?P<bare>[^\s"']+))"""
    r"""|(?P<flag>[\w:-]+)"""
)
_DIMENSIONS_RE = re.compile(r"(?:\s|%20)*=(\d*)x(\d*)(?:\s|%20)*$")


def parse_attribute_block(text: str) -> dict[str, str]:
    """Parse the body of an attribute block.

    ``.name`` adds a class, ``#name`` sets the id, ``key=value`` sets an
    attribute (values may be quoted) and a bare word sets an empty attribute.

    Args:
        text: Attribute text without the surrounding braces.

    Returns:
        Attributes in declaration order. Classes are joined with spaces.

    Examples:
        >>> parse_attribute_block('.a .b width=200 title="Big cat"')
        {'class': 'a b', 'width': '200', 'title': 'Big cat'}
    """
    attrs: dict[str, str] = {}
    for m in _ATTRIBUTE_RE.finditer(text):
        if m.group("cls"):
            existing = attrs.get("class")
            attrs["class"] = f"{existing} {m.group('cls')}" if existing else m.group("cls")
        elif m.group("id"):
            attrs["id"] = m.group("id")
        elif m.group("key"):
            value = m.group("dq")
            if value is None:
                value = m.group("sq")
            if value is None:
                value = m.group("bare")
            attrs[m.group("key")] = value
        elif m.group("flag"):
            attrs[m.group("flag")] = ""
    return attrs


def split_dimensions(url: str) -> tuple[str, str | None, str | None]:
    """Split ``=WxH`` shorthand off an image URL.

    Args:
        url: Image URL, possibly ending in shorthand dimensions.

    Returns:
        Tuple of (clean url, width, height). Missing dimensions are None.

    Examples:
        >>> split_dimensions("cat.png =200x")
        ('cat.png', '200', None)
    """
    m = _DIMENSIONS_RE.search(url)
    if not m:
        return url, None, None
    return url[: m.start()].strip(), m.group(1) or None, m.group(2) or None


def parse_figure_image(inline: InlineParser, m: re.Match[str], state: InlineState) -> int:
    """Parse an image followed by an attribute block into an ``image`` token."""
    src = m.group("figimg_src")
    if src.startswith("<"):
        src = src[1:-1]

    new_state = state.copy()
    new_state.src = m.group("figimg_label")
    new_state.in_image = True
    new_state.image_depth += 1

    attrs: dict[str, Any] = {
        "url": escape_url(src),
        "attributes": parse_attribute_block(m.group("figimg_attrs")),
    }
    if m.group("figimg_title"):
        attrs["title"] = m.group("figimg_title")

    state.append_token(
        {"type": "image", "children": inline.render(new_state), "attrs": attrs}
    )
    return m.end()


def image_attributes_plugin(md: Markdown) -> None:
    """Register the attribute-aware image rule ahead of mistune's link rule."""
    md.inline.register(IMAGE_RULE, IMAGE_PATTERN, parse_figure_image, before="link")


def render_figure(
    src: str,
    caption: str,
    title: str | None = None,
    attributes: dict[str, str] | None = None,
) -> str:
    """Render an image as a captioned figure.

    Args:
        src: Image URL, already made safe for output.
        caption: Rendered label. Its plain text, markup removed, becomes the
            caption and the alt text.
        title: Optional title attribute.
        attributes: Extra attributes for the ``<img>`` tag.

    Returns:
        ``<figure>`` markup.
    """
    src, width, height = split_dimensions(src)
    attrs = dict(attributes or {})
    if width and "width" not in attrs:
        attrs["width"] = width
    if height and "height" not in attrs:
        attrs["height"] = height
    if title and "title" not in attrs:
        attrs["title"] = unescape(title)
    if "width" not in attrs and "style" not in attrs:
        attrs["style"] = FALLBACK_STYLE

    label = escape(unescape(striptags(caption)))
    rendered = "".join(f' {escape(name)}="{escape(value)}"' for name, value in attrs.items())
    return (
        "<figure>"
        f'<img src="{src}" alt="{label}"{rendered} />'
        f'<figcaption style="{CAPTION_STYLE}">{label}</figcaption>'
        "</figure>"
    )
