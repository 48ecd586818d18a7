"""Oven content-baking engine.

This package discovers Markdown documents in a project tree, resolves the
template that governs each of them through folder inheritance, renders the
bodies through an extensible mistune pipeline and writes one output page per
document plus an aggregate content index.

The main entry point is the CLI module, which exposes the ``bake`` command.
Plugins can observe and mutate the build context before and after rendering.

Architecture:
- frontmatter: header parsing and explicit field binding.
- renderers / containers / images: the Markdown pipeline and its extensions.
- templates: template resolution and placeholder substitution.
- plugins: discovery, isolated loading and lifecycle hooks.
- bake: orchestration of a single bake.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
