"""
Side-effect resources plugins attach while enabled.

The host decides what "attaching" means through a ``ResourceHost``. The
bundled ``DocumentHead`` keeps stylesheet links in memory, the way a page
head holds ``<link rel="stylesheet">`` elements.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from cadcam_plugins.logging import get_logger

logger = get_logger("plugins.resources")


@dataclass(frozen=True)
class Stylesheet:
    """A stylesheet link contributed by a plugin."""

    id: str
    href: str


class ResourceHost(ABC):
    """Applies and reverts plugin resources."""

    @abstractmethod
    def apply(self, resource: Stylesheet) -> str:
        """Attach a resource and return a handle for removing it."""
        ...

    @abstractmethod
    def remove(self, handle: str) -> None:
        """Detach a previously applied resource. Unknown handles are ignored."""
        ...


class DocumentHead(ResourceHost):
    """In-memory stylesheet container; element ids are unique."""

    def __init__(self) -> None:
        self._links: dict[str, Stylesheet] = {}

    def apply(self, resource: Stylesheet) -> str:
        if resource.id in self._links:
            raise ValueError(f"Element '{resource.id}' already exists")
        self._links[resource.id] = resource
        logger.debug("Attached stylesheet %s (%s)", resource.id, resource.href)
        return resource.id

    def remove(self, handle: str) -> None:
        if self._links.pop(handle, None) is not None:
            logger.debug("Removed stylesheet %s", handle)

    def get(self, handle: str) -> Stylesheet | None:
        return self._links.get(handle)

    @property
    def stylesheets(self) -> list[Stylesheet]:
        return list(self._links.values())

    def __contains__(self, handle: str) -> bool:
        return handle in self._links

    def __len__(self) -> int:
        return len(self._links)
