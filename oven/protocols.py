"""Protocol definitions for Oven.

This module defines the interfaces shared between the render pipeline and
the code that extends it, so plugins can supply their own implementations
without subclassing anything in Oven.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from mistune import Markdown


@runtime_checkable
class ContainerRenderer(Protocol):
    """Protocol for rendering a container block.

    Renderers are tried in order; the first one returning a string claims
    the container.
    """

    @abstractmethod
    def render(self, name: str, args: str, body: str) -> str | None:
        """Render a container.

        Args:
            name: Container name from the opening fence, e.g. ``tip``.
            args: Remaining text on the opening fence line.
            body: The container's children, already rendered.

        Returns:
            Markup for the container, or None to decline it.
        """
        ...


@runtime_checkable
class MarkdownExtension(Protocol):
    """Protocol for a markdown pipeline extension.

    This is mistune's plugin signature: a callable receiving the Markdown
    instance and registering rules or render methods on it.
    """

    @abstractmethod
    def __call__(self, md: Markdown) -> None: ...
