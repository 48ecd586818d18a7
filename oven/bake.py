"""Bake orchestration for Oven.

A bake discovers documents, lets plugins extend the render pipeline,
renders every document into its template, lets plugins inspect the
results, then writes the pages and the content index.

Key classes:
- BakeOptions: Settings for one bake, merged from ``oven.yaml`` and overrides.
- BakeResult: Outcome of a bake.

Key functions:
- load_config: Load ``oven.yaml`` over the defaults.
- bake: Run a bake to completion.
- bake_async: Coroutine form of bake.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .context import BuildContext
from .errors import BakeError, ContentIndexError, OutputPathError, ProjectNotFoundError
from .frontmatter import bind_page, parse_frontmatter
from .index import write_index, write_index_stub
from .models import GeneratedPage, MarkdownPage
from .plugins import discover_plugins, load_plugins, run_after_bake, run_before_bake
from .renderers import CodeOptions, MarkdownPipeline, PipelineBuilder
from .templates import TemplateResolver, render_template
from .utils import ensure_clean_dir, make_slug, output_file_name

__all__ = [
    "DEFAULT_CONFIG",
    "BakeError",
    "BakeOptions",
    "BakeResult",
    "ContentIndexError",
    "OutputPathError",
    "ProjectNotFoundError",
    "bake",
    "bake_async",
    "load_config",
]

logger = logging.getLogger(__name__)

CONFIG_FILE = "oven.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "output_dir": ".generated",
    "include_drafts": False,
    "use_default_renderers": True,
    "use_native_containers": True,
    "continue_on_error": False,
    "clean": False,
    "configuration": "release",
    "code_highlighting": True,
    "line_numbers": False,
}


def load_config(project_root: Path) -> dict[str, Any]:
    """Load bake configuration from oven.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.
    """
    config_path = project_root / CONFIG_FILE
    config = DEFAULT_CONFIG.copy()
    if not config_path.exists():
        return config
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        logger.warning("Ignoring invalid %s: %s", config_path, e)
        return config
    if isinstance(loaded, dict):
        config.update(loaded)
    else:
        logger.warning("Ignoring %s: expected a mapping", config_path)
    return config


@dataclass
class BakeOptions:
    """Settings for one bake.

    Attributes:
        project_path: Root directory of the project.
        output_dir: Output root, relative to the project.
        include_drafts: Render documents marked as drafts.
        use_default_renderers: Render the default container vocabulary.
        use_native_containers: Render other containers as components.
        continue_on_error: Skip pages the content index cannot hold.
        clean: Empty the output root before baking.
        configuration: Build configuration of local plugin projects.
        code_highlighting: Highlight fenced code with Pygments.
        line_numbers: Add line numbers to highlighted code.
        arguments: Extra invocation arguments passed to plugins.
        packages_root: Plugin package cache override.
    """

    project_path: Path
    output_dir: str = DEFAULT_CONFIG["output_dir"]
    include_drafts: bool = DEFAULT_CONFIG["include_drafts"]
    use_default_renderers: bool = DEFAULT_CONFIG["use_default_renderers"]
    use_native_containers: bool = DEFAULT_CONFIG["use_native_containers"]
    continue_on_error: bool = DEFAULT_CONFIG["continue_on_error"]
    clean: bool = DEFAULT_CONFIG["clean"]
    configuration: str = DEFAULT_CONFIG["configuration"]
    code_highlighting: bool = DEFAULT_CONFIG["code_highlighting"]
    line_numbers: bool = DEFAULT_CONFIG["line_numbers"]
    arguments: list[str] = field(default_factory=list)
    packages_root: Path | None = None

    @classmethod
    def from_config(cls, project_root: Path, **overrides: Any) -> BakeOptions:
        """Build options from oven.yaml and explicit overrides.

        Args:
            project_root: Root directory of the project.
            **overrides: Option values taking precedence over the config
                file. None values are ignored.

        Returns:
            Merged options.
        """
        names = {f.name for f in fields(cls)} - {"project_path"}
        values = {key: value for key, value in load_config(project_root).items() if key in names}
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(project_path=project_root, **values)

    @property
    def output_path(self) -> Path:
        return self.project_path / self.output_dir


@dataclass
class BakeResult:
    """Outcome of a bake.

    Attributes:
        context: The build context, including every generated page.
        written: Output files written.
        skipped: Documents that produced no output.
    """

    context: BuildContext
    written: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)


def resolve_output_root(project_path: Path, output_dir: str) -> Path:
    """Resolve the output root and make sure it cannot overwrite the project.

    Args:
        project_path: Resolved project root.
        output_dir: Output root, relative to the project or absolute.

    Returns:
        The resolved output root.

    Raises:
        OutputPathError: If the output root is the project root or one of
            its parents.
    """
    output_root = (project_path / output_dir).resolve()
    if output_root == project_path or output_root in project_path.parents:
        raise OutputPathError(project_path, output_root)
    return output_root


def create_context(
    options: BakeOptions, project_path: Path, output_root: Path | None = None
) -> BuildContext:
    """Create the build context and read every discovered document.

    Args:
        options: Bake options.
        project_path: Resolved project root.
        output_root: Resolved output root. Defaults to the configured one.

    Returns:
        A context with markdown_pages populated in discovery order.
    """
    if output_root is None:
        output_root = resolve_output_root(project_path, options.output_dir)
    pipeline = PipelineBuilder.default(
        use_default_renderers=options.use_default_renderers,
        use_native_containers=options.use_native_containers,
        code_options=CodeOptions(options.code_highlighting, options.line_numbers),
    )
    context = BuildContext(
        project_path=project_path,
        arguments=list(options.arguments),
        pipeline=pipeline,
        output_path=output_root,
    )

    logger.info("Scanning content folders...")
    mapping = TemplateResolver(project_path, options.output_dir).resolve()
    for document, template in mapping.items():
        try:
            raw = document.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Cannot read %s: %s", document, e)
            continue
        context.markdown_pages.append(
            MarkdownPage(document, template, make_slug(project_path, document), raw)
        )
    return context


def output_path_for(document: MarkdownPage, project_path: Path, output_root: Path) -> Path:
    """Compute the output file for a document.

    The document's folder is mirrored in lower case under the output root
    and the filename is converted by output_file_name().
    """
    rel = document.path.relative_to(project_path)
    folder = [part.lower() for part in rel.parent.parts]
    return output_root.joinpath(*folder, output_file_name(document.path.stem))


def bake_page(
    document: MarkdownPage,
    pipeline: MarkdownPipeline,
    options: BakeOptions,
    project_path: Path,
    output_root: Path,
    templates: dict[Path, str],
) -> GeneratedPage | None:
    """Render one document.

    Args:
        document: The document to render.
        pipeline: Finalized render pipeline.
        options: Bake options.
        project_path: Resolved project root.
        output_root: Output root directory.
        templates: Cache of template contents by path.

    Returns:
        The generated page, or None when the document is skipped.
    """
    header, body = parse_frontmatter(document.raw_markdown)
    page = bind_page(header)

    if page.draft and not options.include_drafts:
        logger.warning("Skipping draft page: %s", document.path.relative_to(project_path))
        return None

    page.slug = document.slug
    if not page.id:
        page.id = str(uuid.uuid5(uuid.NAMESPACE_URL, document.slug))

    if not body.strip():
        logger.warning("Skipping empty document: %s", document.path.relative_to(project_path))
        return None

    html = pipeline.render(body)

    if document.template_path not in templates:
        templates[document.template_path] = document.template_path.read_text(
            encoding="utf-8-sig"
        )
    output = render_template(templates[document.template_path], html, document.slug, page)

    return GeneratedPage(page, output_path_for(document, project_path, output_root), output)


async def bake_async(options: BakeOptions) -> BakeResult:
    """Run a bake.

    Args:
        options: Bake options.

    Returns:
        The bake result.

    Raises:
        ProjectNotFoundError: If the project path does not exist.
        OutputPathError: If the output root would overwrite the project.
        ContentIndexError: If a page cannot be written to the content index
            and continue_on_error is False.
    """
    if not options.project_path.is_dir():
        raise ProjectNotFoundError(options.project_path)
    project_path = options.project_path.resolve()
    output_root = resolve_output_root(project_path, options.output_dir)

    logger.info("Building site from project path: %s", project_path)
    if options.clean:
        ensure_clean_dir(output_root)
    elif not output_root.exists():
        output_root.mkdir(parents=True)
        logger.info("Created output directory: %s", output_root)

    context = create_context(options, project_path, output_root)
    result = BakeResult(context)

    plugins = load_plugins(discover_plugins(project_path, options.configuration, options.packages_root))
    if plugins:
        logger.info("Loaded %d plugin(s)", len(plugins))
    else:
        logger.info("No plugins found.")

    await run_before_bake(plugins, context)
    pipeline = context.pipeline.build()

    templates: dict[Path, str] = {}
    for document in context.markdown_pages:
        try:
            generated = bake_page(document, pipeline, options, project_path, output_root, templates)
        except Exception as e:
            logger.error("Failed to render %s: %s", document.path, e)
            logger.debug("Render failure for %s", document.path, exc_info=True)
            generated = None
        if generated is None:
            result.skipped.append(document.path)
            continue
        context.generated_pages.append(generated)

    await run_after_bake(plugins, context)

    for generated in context.generated_pages:
        try:
            generated.output_path.parent.mkdir(parents=True, exist_ok=True)
            generated.output_path.write_text(generated.output, encoding="utf-8")
        except OSError as e:
            logger.error("Failed to write %s: %s", generated.output_path, e)
            continue
        result.written.append(generated.output_path)
        logger.info("Generated page: %s", generated.output_path)

    write_index(output_root, [g.page for g in context.generated_pages], options.continue_on_error)
    write_index_stub(output_root)
    logger.info("Generated content index in %s", output_root)
    return result


def bake(options: BakeOptions) -> BakeResult:
    """Run a bake to completion. See bake_async()."""
    return asyncio.run(bake_async(options))
