"""Markdown render pipeline for Oven.

The pipeline is assembled from a mutable builder that plugins may extend
before the bake finalizes it. Rendering uses mistune with a custom HTML
renderer that adds heading anchors, Pygments highlighting, container
dispatch and captioned figures.

Key classes:
- CodeOptions: Fenced code rendering options.
- PipelineBuilder: Mutable pipeline configuration.
- MarkdownPipeline: A finalized, reusable markdown-to-HTML transformer.
- OvenRenderer: mistune HTML renderer used by the pipeline.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, cast

import mistune
from mistune.core import BlockState
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .containers import build_container_chain, container_attrs, container_plugin, render_container
from .images import image_attributes_plugin, render_figure
from .protocols import ContainerRenderer, MarkdownExtension
from .utils import heading_id

BASE_EXTENSIONS: tuple[str, ...] = ("strikethrough", "footnotes", "table", "url", "task_lists")

HEADING_IDS_ENV = "oven_heading_ids"
RENDERED_CONTAINERS_ENV = "oven_rendered_containers"

_LINE_RANGE_RE = re.compile(r"^(\d+)(?:-(\d+))?$")


@dataclass
class CodeOptions:
    """Options for fenced code blocks.

    Attributes:
        highlight: Highlight code with Pygments when the language is known.
        line_numbers: Emit line numbers for every highlighted block.
    """

    highlight: bool = True
    line_numbers: bool = False


def parse_line_ranges(text: str) -> list[int]:
    """Parse a line selection such as ``2,4-6`` into line numbers.

    Invalid parts are ignored.

    Examples:
        >>> parse_line_ranges("2,4-6")
        [2, 4, 5, 6]
    """
    lines: list[int] = []
    for part in text.split(","):
        m = _LINE_RANGE_RE.match(part.strip())
        if not m:
            continue
        start = int(m.group(1))
        end = int(m.group(2) or start)
        lines.extend(range(start, end + 1))
    return lines


def parse_code_info(info: str | None) -> tuple[str, dict[str, str]]:
    """Split a fence info string into language and options.

    Args:
        info: Text after the opening fence, e.g. ``python marked=2 linenos``.

    Returns:
        Tuple of (language, options). Flags map to an empty string.
    """
    if not info or not info.strip():
        return "", {}
    lang, *rest = info.split()
    options: dict[str, str] = {}
    for item in rest:
        key, _, value = item.partition("=")
        options[key.lower()] = value
    return lang, options


class OvenRenderer(mistune.HTMLRenderer):
    """HTML renderer for the Oven pipeline.

    Raw HTML in documents passes through unescaped. Per-render state (heading
    ids, rendered containers) lives in the parser state's ``env`` so one
    renderer instance can be reused across documents.

    Attributes:
        container_renderers: Renderers tried in order for each container.
        code_options: Options for fenced code.
    """

    def __init__(
        self,
        container_renderers: list[ContainerRenderer] | None = None,
        code_options: CodeOptions | None = None,
    ):
        super().__init__(escape=False)
        self.container_renderers = (
            container_renderers if container_renderers is not None else build_container_chain()
        )
        self.code_options = code_options or CodeOptions()

    def render_token(self, token: dict[str, Any], state: BlockState) -> str:
        kind = token["type"]
        if kind == "container":
            return self._render_container(token, state)
        if kind == "heading":
            return self._render_heading(token, state)
        return super().render_token(token, state)

    def _render_container(self, token: dict[str, Any], state: BlockState) -> str:
        rendered = state.env.setdefault(RENDERED_CONTAINERS_ENV, set())
        key = id(token)
        if key in rendered:
            return ""
        rendered.add(key)

        name, args = container_attrs(token)
        body = self.render_tokens(token.get("children", []), state)
        return render_container(self.container_renderers, name, args, body)

    def _render_heading(self, token: dict[str, Any], state: BlockState) -> str:
        if "children" in token:
            text = self.render_tokens(token["children"], state)
        else:
            text = token.get("text", "")
        attrs = dict(token.get("attrs") or {})
        if not attrs.get("id"):
            attrs["id"] = self._unique_heading_id(text, state)
        return self.heading(text, **attrs)

    @staticmethod
    def _unique_heading_id(text: str, state: BlockState) -> str:
        counts: dict[str, int] = state.env.setdefault(HEADING_IDS_ENV, {})
        base_id = heading_id(text) or "section"
        if base_id in counts:
            counts[base_id] += 1
            return f"{base_id}-{counts[base_id]}"
        counts[base_id] = 0
        return base_id

    def image(
        self,
        text: str,
        url: str,
        title: str | None = None,
        attributes: dict[str, str] | None = None,
    ) -> str:
        """Render an image as a captioned figure.

        Args:
            text: Rendered label. Its plain text is the caption and alt text.
            url: Image source.
            title: Optional title.
            attributes: Attributes from a trailing ``{...}`` block.

        Returns:
            Figure markup.
        """
        return render_figure(self.safe_url(url), text, title, attributes)

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a fenced code block.

        Known languages are highlighted with Pygments. ``marked=2,4-5``
        highlights lines and ``linenos`` adds line numbers to one block.

        Args:
            code: The code content.
            info: Fence info string.

        Returns:
            HTML string with highlighted or escaped code.
        """
        lang, options = parse_code_info(info)
        if lang and self.code_options.highlight:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                line_numbers = self.code_options.line_numbers or "linenos" in options
                formatter = HtmlFormatter(
                    cssclass="highlight",
                    linenos="table" if line_numbers else False,
                    hl_lines=parse_line_ranges(options.get("marked", "")),
                )
                return highlight(code, lexer, formatter)
        escaped = mistune.escape(code)
        lang_class = f' class="language-{mistune.escape(lang)}"' if lang else ""
        return f"<pre><code{lang_class}>{escaped}</code></pre>\n"


class MarkdownPipeline:
    """A finalized markdown-to-HTML transformer.

    Built by PipelineBuilder; later changes to the builder do not affect it.
    """

    def __init__(
        self,
        extensions: list[str | MarkdownExtension],
        container_renderers: list[ContainerRenderer],
        code_options: CodeOptions,
    ):
        self.extensions = list(extensions)
        self.renderer = OvenRenderer(list(container_renderers), code_options)
        self._markdown = mistune.create_markdown(
            escape=False, renderer=self.renderer, plugins=self.extensions
        )

    def render(self, markdown: str) -> str:
        """Render a document body.

        Args:
            markdown: Markdown text without front matter.

        Returns:
            Rendered HTML.
        """
        return cast(str, self._markdown(markdown))


@dataclass
class PipelineBuilder:
    """Mutable configuration for the render pipeline.

    Plugins receive the builder through the build context and may add
    extensions or container renderers before the bake finalizes it.

    Attributes:
        extensions: mistune plugins, as callables or built-in plugin names.
        use_default_renderers: Render the default container vocabulary.
        use_native_containers: Render unknown containers as components.
        code_options: Fenced code options.
        container_renderers: Extra renderers tried before the built-in chain.
    """

    extensions: list[str | MarkdownExtension] = field(default_factory=list)
    use_default_renderers: bool = True
    use_native_containers: bool = True
    code_options: CodeOptions = field(default_factory=CodeOptions)
    container_renderers: list[ContainerRenderer] = field(default_factory=list)

    @classmethod
    def default(
        cls,
        use_default_renderers: bool = True,
        use_native_containers: bool = True,
        code_options: CodeOptions | None = None,
    ) -> PipelineBuilder:
        """Create a builder with the base extensions installed."""
        builder = cls(
            use_default_renderers=use_default_renderers,
            use_native_containers=use_native_containers,
            code_options=code_options or CodeOptions(),
        )
        for extension in (*BASE_EXTENSIONS, container_plugin, image_attributes_plugin):
            builder.use(extension)
        return builder

    def use(self, extension: str | MarkdownExtension) -> PipelineBuilder:
        """Add an extension unless it is already installed.

        Args:
            extension: mistune plugin callable or built-in plugin name.

        Returns:
            The builder, for chaining.
        """
        if extension not in self.extensions:
            self.extensions.append(extension)
        return self

    def add_container_renderer(self, renderer: ContainerRenderer) -> PipelineBuilder:
        self.container_renderers.append(renderer)
        return self

    def build(self) -> MarkdownPipeline:
        chain = [
            *self.container_renderers,
            *build_container_chain(self.use_default_renderers, self.use_native_containers),
        ]
        return MarkdownPipeline(self.extensions, chain, self.code_options)
