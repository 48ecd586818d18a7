"""Container block extension for the Oven render pipeline.

A container is a fenced, named block::

    :::tip
    Body text, parsed as regular **markdown**.
    :::

The opening fence is three or more colons followed by the container name and
optional arguments. The block runs until a line holding only at least as many
colons, or the end of input. Colon lines inside fenced code never close a
container, and nested containers need a shorter fence than their parent.

Key classes:
- ContainerStyle: Presentation of one alert-style container.
- DefaultContainerRenderer: Bootstrap alert and reveal markup for a fixed vocabulary.
- NativeContainerRenderer: Framework component wrappers such as ``<TipContainer>``.
- PassthroughContainerRenderer: Emits the rendered children unchanged.

Key functions:
- container_plugin: mistune plugin registering the block rule.
- build_container_chain: Assemble renderers in dispatch order.
- render_container: Dispatch one container through a chain.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .protocols import ContainerRenderer

if TYPE_CHECKING:
    from mistune import Markdown
    from mistune.block_parser import BlockParser
    from mistune.core import BlockState

CONTAINER_RULE = "container"

CONTAINER_PATTERN = (
    r"^(?P<container_mark> {0,3}:{3,})[ \t]*"
    r"(?P<container_name>[A-Za-z][\w-]*)(?P<container_args>[^\n]*)$"
)

_CLOSE_RE = re.compile(r"^ {0,3}(:{3,})[ \t]*$")
_CODE_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})(.*)$")


def _find_closing_fence(src: str, start: int, width: int) -> tuple[int, int]:
    """Locate the line closing a container.

    Args:
        src: Source being parsed.
        start: Offset of the first body line.
        width: Number of colons in the opening fence.

    Returns:
        Tuple of (body end, position after the closing line). Both equal
        ``len(src)`` when the container runs to the end of input.
    """
    code_fence: str | None = None
    pos = start
    while pos < len(src):
        newline = src.find("\n", pos)
        line_end = len(src) if newline == -1 else newline + 1
        line = src[pos:line_end].rstrip("\n")

        fence = _CODE_FENCE_RE.match(line)
        if code_fence is not None:
            if (
                fence
                and fence.group(1)[0] == code_fence[0]
                and len(fence.group(1)) >= len(code_fence)
                and not fence.group(2).strip()
            ):
                code_fence = None
        elif fence:
            code_fence = fence.group(1)
        else:
            close = _CLOSE_RE.match(line)
            if close and len(close.group(1)) >= width:
                return pos, line_end
        pos = line_end
    return len(src), len(src)


def parse_container(block: BlockParser, m: re.Match[str], state: BlockState) -> int | None:
    """Parse a container block into a ``container`` token."""
    if state.depth() >= block.max_nested_level:
        return None

    width = m.group("container_mark").count(":")
    body_start = min(m.end() + 1, state.cursor_max)
    body_end, end_pos = _find_closing_fence(state.src, body_start, width)

    text = state.src[body_start:body_end]
    if text and not text.endswith("\n"):
        text += "\n"

    rules = list(block.rules)
    if state.depth() >= block.max_nested_level - 1 and CONTAINER_RULE in rules:
        rules.remove(CONTAINER_RULE)
    child = state.child_state(text)
    block.parse(child, rules)

    state.append_token(
        {
            "type": CONTAINER_RULE,
            "children": child.tokens,
            "attrs": {
                "name": m.group("container_name"),
                "args": m.group("container_args").strip(),
            },
        }
    )
    return end_pos


def container_plugin(md: Markdown) -> None:
    """Register the container block rule on a mistune instance.

    Rendering is handled by the pipeline's renderer, which dispatches
    ``container`` tokens through its container chain.
    """
    md.block.register(CONTAINER_RULE, CONTAINER_PATTERN, parse_container, before="list")


@dataclass(frozen=True)
class ContainerStyle:
    """Presentation of an alert-style container.

    Attributes:
        alert_class: Bootstrap alert modifier, e.g. ``alert-warning``.
        icon_class: Bootstrap icon class.
        title: Heading text shown above the body.
    """

    alert_class: str
    icon_class: str
    title: str


DEFAULT_STYLES: dict[str, ContainerStyle] = {
    "exercise": ContainerStyle("alert-success", "bi-check-circle-fill", "Exercise:"),
    "warning": ContainerStyle("alert-warning", "bi-exclamation-triangle-fill", "Warning:"),
    "tip": ContainerStyle("alert-secondary", "bi-lightbulb-fill", "Tip:"),
    "note": ContainerStyle("alert-primary", "bi-pencil-fill", "Note:"),
    "info": ContainerStyle("alert-info", "bi-info-circle-fill", "Info:"),
}

ANSWER_CONTAINER = "answer"


class DefaultContainerRenderer:
    """Render the built-in container vocabulary as semantic markup.

    Alert names become Bootstrap alert boxes with an icon and heading, and
    ``answer`` becomes a ``<details>`` reveal. Any other name is declined.
    """

    def __init__(self, styles: dict[str, ContainerStyle] | None = None):
        self.styles = dict(DEFAULT_STYLES if styles is None else styles)

    def render(self, name: str, args: str, body: str) -> str | None:
        key = name.lower()
        style = self.styles.get(key)
        if style is not None:
            return (
                f'<div class="alert {style.alert_class}" role="alert">\n'
                '<div class="d-flex align-items-center">\n'
                f'<i class="{style.icon_class} flex-shrink-0 me-2" '
                f'aria-label="{style.title}"></i>\n'
                f"<h5>{style.title}</h5>\n"
                "</div>\n"
                f"{body}"
                "</div>\n"
            )
        if key == ANSWER_CONTAINER:
            return (
                "<details>\n"
                "<summary>Reveal answer:</summary>\n"
                '<div class="px-4 pb-2">\n'
                f"{body}"
                "</div>\n"
                "</details>\n"
            )
        return None


def native_container_name(name: str) -> str:
    """Convert a container name to its component tag name.

    Examples:
        >>> native_container_name("tip")
        'TipContainer'
        >>> native_container_name("CODE")
        'CodeContainer'
    """
    return f"{name[0].upper()}{name[1:].lower()}Container"


class NativeContainerRenderer:
    """Wrap the body in a framework component named after the container."""

    def render(self, name: str, args: str, body: str) -> str | None:
        if not name:
            return None
        tag = native_container_name(name)
        return f"<{tag}>\n{body}</{tag}>\n"


class PassthroughContainerRenderer:
    """Fallback that emits the rendered children without a wrapper."""

    def render(self, name: str, args: str, body: str) -> str | None:
        return body


def build_container_chain(
    use_default_renderers: bool = True, use_native_containers: bool = True
) -> list[ContainerRenderer]:
    """Assemble container renderers in dispatch order.

    Args:
        use_default_renderers: Include the default vocabulary.
        use_native_containers: Include component wrappers.

    Returns:
        Renderers to try in order. The passthrough renderer is always last.
    """
    chain: list[ContainerRenderer] = []
    if use_default_renderers:
        chain.append(DefaultContainerRenderer())
    if use_native_containers:
        chain.append(NativeContainerRenderer())
    chain.append(PassthroughContainerRenderer())
    return chain


def render_container(
    chain: Sequence[ContainerRenderer], name: str, args: str, body: str
) -> str:
    """Render a container with the first renderer that claims it."""
    for renderer in chain:
        html = renderer.render(name, args, body)
        if html is not None:
            return html
    return ""


def container_attrs(token: dict[str, Any]) -> tuple[str, str]:
    attrs = token.get("attrs") or {}
    return attrs.get("name", ""), attrs.get("args", "")
