"""Plugin discovery, isolated loading and lifecycle hooks.

Plugins are pre-built ``.pyz`` archives referenced from the project's
``pyproject.toml``, either as pinned package dependencies::

    [project]
    dependencies = ["oven-plugin-seo==1.2.0"]

or as local plugin projects::

    [tool.oven]
    plugin-projects = ["../oven-plugin-reading-time"]

Each archive is loaded in its own PluginLoadContext, so modules it bundles
never replace modules of the same name in the host, and ``oven`` itself is
always shared with the host. The archive's top-level module must expose an
``oven_plugins()`` factory returning OvenPlugin instances.

Key classes:
- OvenPlugin: Base class with no-op ``before_bake``/``after_bake`` hooks.
- PluginLoadContext: Module namespace for one plugin archive.
- LoadedPlugin: A plugin instance with its load context.

Key functions:
- discover_plugins: Find plugin archives referenced by a project.
- load_plugins: Load archives and instantiate their plugins.
- run_before_bake / run_after_bake: Invoke lifecycle hooks.
"""

from __future__ import annotations

import importlib
import importlib.abc
import inspect
import logging
import os
import re
import sys
import tomllib
import zipfile
import zipimport
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from importlib.machinery import ModuleSpec
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .context import BuildContext

logger = logging.getLogger(__name__)

PLUGIN_PREFIX = "oven-plugin-"
ENTRY_POINT = "oven_plugins"
HOST_PACKAGE = "oven"
MANIFEST_NAME = "pyproject.toml"
ARCHIVE_SUFFIX = ".pyz"
PACKAGES_ENV = "OVEN_PLUGIN_PACKAGES"
DEFAULT_PACKAGES_ROOT = Path("~/.oven/packages")

_REQUIREMENT_RE = re.compile(
    r"^\s*(?P<name>[A-Za-z0-9][A-Za-z0-9._-]*)\s*(?:\[[^\]]*\])?\s*"
    r"(?:==\s*(?P<version>[^\s;,]+))?"
)


class PluginLoadError(Exception):
    """Raised when a plugin archive does not provide usable plugins."""

    def __init__(self, archive: Path, message: str):
        self.archive = archive
        self.message = message
        super().__init__(f"{archive}: {message}")


class OvenPlugin:
    """Base class for bake plugins.

    Override either hook. Hooks may be coroutines or plain methods; both
    receive the build context and a logger named after the plugin.
    """

    name: str | None = None

    async def before_bake(self, context: BuildContext, logger: logging.Logger | None = None) -> None:
        """Run after documents are discovered and before the pipeline is finalized."""
        pass

    async def after_bake(self, context: BuildContext, logger: logging.Logger | None = None) -> None:
        """Run after every document is rendered and before anything is written."""
        pass


@dataclass(frozen=True)
class PluginReference:
    """A plugin declared in the project manifest.

    Attributes:
        name: Distribution or project name, e.g. ``oven-plugin-seo``.
        archive: Expected location of the built archive.
        version: Pinned version for package references.
    """

    name: str
    archive: Path
    version: str | None = None


def module_name(name: str) -> str:
    """Convert a plugin name to its top-level module name.

    Examples:
        >>> module_name("Oven-Plugin-Reading.Time")
        'oven_plugin_reading_time'
    """
    return re.sub(r"[-.]", "_", name.lower())


def interpreter_target() -> str:
    """Return the tag of the running interpreter, e.g. ``py312``."""
    return f"py{sys.version_info.major}{sys.version_info.minor}"


def plugin_packages_root() -> Path:
    """Return the root of the installed plugin package cache."""
    configured = os.environ.get(PACKAGES_ENV)
    return Path(configured).expanduser() if configured else DEFAULT_PACKAGES_ROOT.expanduser()


def read_manifest(project_root: Path) -> dict[str, Any] | None:
    """Read the project manifest.

    Args:
        project_root: Root directory of the project.

    Returns:
        Parsed TOML, or None when it is missing or unreadable.
    """
    manifest = project_root / MANIFEST_NAME
    if not manifest.is_file():
        logger.warning("No %s found in %s; no plugins will be loaded", MANIFEST_NAME, project_root)
        return None
    try:
        with manifest.open("rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.error("Error loading %s: %s", manifest, e)
        return None


def _oven_table(manifest: dict[str, Any]) -> dict[str, Any]:
    table = manifest.get("tool", {}).get("oven", {})
    return table if isinstance(table, dict) else {}


def package_references(
    manifest: dict[str, Any], packages_root: Path, target: str
) -> list[PluginReference]:
    """Collect pinned ``oven-plugin-*`` dependencies from a manifest.

    Args:
        manifest: Parsed project manifest.
        packages_root: Root of the plugin package cache.
        target: Interpreter tag of the archives to load.

    Returns:
        References in declaration order. Unpinned dependencies are skipped.
    """
    references = []
    for requirement in manifest.get("project", {}).get("dependencies", []) or []:
        m = _REQUIREMENT_RE.match(str(requirement))
        if not m or not m.group("name").lower().startswith(PLUGIN_PREFIX):
            continue
        name, version = m.group("name"), m.group("version")
        if not version:
            logger.debug("Skipping plugin %s without a pinned version", name)
            continue
        archive = (
            packages_root / name.lower() / version / target / f"{module_name(name)}{ARCHIVE_SUFFIX}"
        )
        references.append(PluginReference(name, archive, version))
    return references


def project_references(
    manifest: dict[str, Any], project_root: Path, configuration: str, target: str
) -> list[PluginReference]:
    """Collect local plugin projects listed under ``[tool.oven]``.

    Args:
        manifest: Parsed project manifest.
        project_root: Root directory of the project.
        configuration: Build configuration folder, e.g. ``release``.
        target: Interpreter tag of the archives to load.

    Returns:
        References in declaration order.
    """
    references = []
    for entry in _oven_table(manifest).get("plugin-projects", []) or []:
        plugin_dir = (project_root / str(entry)).resolve()
        if not plugin_dir.name.lower().startswith(PLUGIN_PREFIX):
            continue
        archive = (
            plugin_dir / "build" / configuration / target
            / f"{module_name(plugin_dir.name)}{ARCHIVE_SUFFIX}"
        )
        references.append(PluginReference(plugin_dir.name, archive))
    return references


def discover_plugins(
    project_root: Path,
    configuration: str = "release",
    packages_root: Path | None = None,
) -> list[Path]:
    """Find the plugin archives referenced by a project.

    Args:
        project_root: Root directory of the project.
        configuration: Build configuration of local plugin projects.
        packages_root: Plugin package cache. Defaults to plugin_packages_root().

    Returns:
        Paths of archives that exist, package references first.
    """
    manifest = read_manifest(project_root)
    if manifest is None:
        return []

    target = str(_oven_table(manifest).get("target") or interpreter_target())
    references = [
        *package_references(manifest, packages_root or plugin_packages_root(), target),
        *project_references(manifest, project_root, configuration, target),
    ]

    archives = []
    for reference in references:
        if reference.archive.is_file():
            archives.append(reference.archive)
        else:
            logger.debug("Plugin archive not found for %s: %s", reference.name, reference.archive)
    return archives


def _archive_top_level_names(archive: Path) -> frozenset[str]:
    names = set()
    with zipfile.ZipFile(archive) as zf:
        for entry in zf.namelist():
            head, sep, _ = entry.partition("/")
            if sep:
                if not head.endswith((".dist-info", ".egg-info")) and head != "__pycache__":
                    names.add(head)
            elif entry.endswith((".py", ".pyc")) and entry not in ("__main__.py", "__main__.pyc"):
                names.add(entry.rsplit(".", 1)[0])
    return frozenset(names)


class _ArchiveFinder(importlib.abc.MetaPathFinder):
    """Serve an archive's top-level modules ahead of the host's."""

    def __init__(self, load_context: PluginLoadContext):
        self.load_context = load_context

    def find_spec(
        self, fullname: str, path: Any = None, target: ModuleType | None = None
    ) -> ModuleSpec | None:
        # Submodules resolve through their parent's __path__ inside the archive.
        if "." in fullname or not self.load_context.owns(fullname):
            return None
        return self.load_context.importer.find_spec(fullname)


class PluginLoadContext:
    """Isolated module namespace for one plugin archive.

    While active, the archive's modules are visible under their own names and
    any host modules with the same names are hidden. On exit the archive's
    modules are stashed and the host's restored, so neither side ever sees
    the other's copy. The ``oven`` package always comes from the host.

    Attributes:
        archive: Path to the plugin archive.
        top_level_names: Top-level modules and packages the archive provides.
    """

    def __init__(self, archive: Path):
        """Open a plugin archive.

        Args:
            archive: Path to a ``.pyz`` archive.

        Raises:
            zipimport.ZipImportError: If the archive is not a valid zip file.
        """
        self.archive = archive
        self.importer = zipimport.zipimporter(str(archive))
        self.top_level_names = _archive_top_level_names(archive)
        self._modules: dict[str, ModuleType] = {}
        self._finder = _ArchiveFinder(self)

    def owns(self, fullname: str) -> bool:
        """Check if a module name is served from this archive."""
        top = fullname.partition(".")[0]
        return top != HOST_PACKAGE and top in self.top_level_names

    @contextmanager
    def activate(self) -> Iterator[PluginLoadContext]:
        """Make the archive's modules importable for the duration of the block."""
        hidden = {name: module for name, module in sys.modules.items() if self.owns(name)}
        for name in hidden:
            del sys.modules[name]
        sys.modules.update(self._modules)
        sys.meta_path.insert(0, self._finder)
        try:
            yield self
        finally:
            if self._finder in sys.meta_path:
                sys.meta_path.remove(self._finder)
            self._modules = {name: sys.modules.pop(name) for name in list(sys.modules) if self.owns(name)}
            sys.modules.update(hidden)

    def import_module(self, name: str) -> ModuleType:
        """Import a module from the archive."""
        with self.activate():
            return importlib.import_module(name)

    @property
    def modules(self) -> dict[str, ModuleType]:
        """Modules loaded from the archive so far."""
        return dict(self._modules)


@dataclass
class LoadedPlugin:
    """A plugin instance together with the context it was loaded in.

    Attributes:
        name: Display name used in logs.
        plugin: The plugin instance.
        load_context: Module namespace its hooks run in.
    """

    name: str
    plugin: OvenPlugin
    load_context: PluginLoadContext = field(repr=False)

    @property
    def logger(self) -> logging.Logger:
        return logging.getLogger(f"{__name__}.{self.name}")


def load_plugin(archive: Path) -> list[LoadedPlugin]:
    """Load one plugin archive and instantiate its plugins.

    Args:
        archive: Path to the plugin archive.

    Returns:
        Every plugin the archive's factory returns.

    Raises:
        PluginLoadError: If the archive has no factory or returns non-plugins.
    """
    load_context = PluginLoadContext(archive)
    module = load_context.import_module(archive.stem)
    factory = getattr(module, ENTRY_POINT, None)
    if not callable(factory):
        raise PluginLoadError(archive, f"module {archive.stem!r} has no {ENTRY_POINT}() factory")

    with load_context.activate():
        plugins = list(factory() or [])

    loaded = []
    for plugin in plugins:
        if not isinstance(plugin, OvenPlugin):
            raise PluginLoadError(archive, f"{ENTRY_POINT}() returned {type(plugin).__name__}, not an OvenPlugin")
        name = plugin.name or type(plugin).__name__
        loaded.append(LoadedPlugin(name, plugin, load_context))
    return loaded


def load_plugins(archives: Iterable[Path]) -> list[LoadedPlugin]:
    """Load plugin archives, skipping any that fail.

    Args:
        archives: Archive paths in discovery order.

    Returns:
        Loaded plugins in discovery order.
    """
    loaded: list[LoadedPlugin] = []
    for archive in archives:
        try:
            plugins = load_plugin(archive)
        except Exception as e:
            logger.error("Failed to load plugin %s: %s", archive.name, e)
            logger.debug("Plugin load failure for %s", archive, exc_info=True)
            continue
        for plugin in plugins:
            logger.debug("Loaded plugin %s from %s", plugin.name, archive)
        loaded.extend(plugins)
    return loaded


async def _run_hook(plugins: Iterable[LoadedPlugin], hook_name: str, context: BuildContext) -> None:
    for loaded in plugins:
        hook = getattr(loaded.plugin, hook_name, None)
        if hook is None:
            continue
        try:
            with loaded.load_context.activate():
                result = hook(context, loaded.logger)
                if inspect.isawaitable(result):
                    await result
        except Exception as e:
            logger.warning("Plugin %s failed in %s: %s", loaded.name, hook_name, e)
            logger.debug("Hook failure for %s", loaded.name, exc_info=True)


async def run_before_bake(plugins: Iterable[LoadedPlugin], context: BuildContext) -> None:
    """Invoke every plugin's ``before_bake`` hook in order."""
    await _run_hook(plugins, "before_bake", context)


async def run_after_bake(plugins: Iterable[LoadedPlugin], context: BuildContext) -> None:
    """Invoke every plugin's ``after_bake`` hook in order."""
    await _run_hook(plugins, "after_bake", context)
