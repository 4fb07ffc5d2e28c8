"""
Extension point resolution.

Turns the registry's view of one surface into the controls a UI draws:
toolbar contributions are grouped into standalone buttons or disclosure
controls, every other surface gets its renderables instantiated in order.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from cadcam_plugins.bus import ToolBus
from cadcam_plugins.extensions.models import (
    DEFAULT_GROUP,
    ExtensionDefinition,
    Position,
    SurfaceType,
    ToolbarButton,
)
from cadcam_plugins.extensions.registry import ExtensionRegistry
from cadcam_plugins.logging import get_logger
from cadcam_plugins.tools import ActiveToolState

logger = get_logger("extensions.resolver")

ExtensionFilter = Callable[[ExtensionDefinition], bool]


@dataclass(frozen=True)
class ActivationControl:
    """A button that activates one extension."""

    extension_id: str
    label: str
    tooltip: str = ""
    icon: Any = None
    active: bool = False


@dataclass(frozen=True)
class DisclosureControl:
    """A single control standing for a group of toolbar extensions."""

    group: str
    members: tuple[ActivationControl, ...]

    @property
    def label(self) -> str:
        return self.group

    @property
    def active(self) -> bool:
        return any(member.active for member in self.members)


@dataclass(frozen=True)
class PanelContent:
    """The rendered output of a non-toolbar extension."""

    extension_id: str
    content: Any


ResolvedControl = ActivationControl | DisclosureControl | PanelContent


class ExtensionPointResolver:
    """
    Resolves a surface into renderable controls.

    The resolver only reads the registry and the tool state. Activation
    goes out through the bus.
    """

    def __init__(
        self,
        registry: ExtensionRegistry,
        bus: ToolBus | None = None,
        tool_state: ActiveToolState | None = None,
    ) -> None:
        self.registry = registry
        self.bus = bus
        self.tool_state = tool_state
        # running coroutine handlers; the loop only keeps weak references
        self._handler_tasks: set[asyncio.Task[Any]] = set()

    def resolve_extensions(
        self,
        surface: SurfaceType | str,
        filter: ExtensionFilter | None = None,
        position: Position | str | None = None,
    ) -> list[ExtensionDefinition]:
        """
        Fetch a surface's extensions and apply the predicate and position filter.

        A definition without a position matches every position filter.
        """
        extensions = self.registry.query_by_surface(surface)

        if filter is not None:
            extensions = [ext for ext in extensions if filter(ext)]

        if position is not None:
            wanted = Position(position)
            extensions = [
                ext for ext in extensions
                if ext.position is None or ext.position is wanted
            ]

        return extensions

    @staticmethod
    def group_extensions(
        extensions: list[ExtensionDefinition],
    ) -> dict[str, list[ExtensionDefinition]]:
        """Partition by group name, keeping first-seen group order."""
        groups: dict[str, list[ExtensionDefinition]] = {}
        for ext in extensions:
            groups.setdefault(ext.group or DEFAULT_GROUP, []).append(ext)
        return groups

    def resolve(
        self,
        surface: SurfaceType | str,
        filter: ExtensionFilter | None = None,
        position: Position | str | None = None,
    ) -> list[ResolvedControl]:
        """
        Resolve a surface into controls.

        Returns:
            For the toolbar, one ActivationControl per single-member group
            and one DisclosureControl per larger group. For other surfaces,
            one PanelContent per extension with a renderable. Unknown
            surfaces give an empty list.
        """
        surface_type = SurfaceType.parse(surface)
        if surface_type is None:
            return []

        extensions = self.resolve_extensions(surface_type, filter, position)

        if surface_type is SurfaceType.TOOLBAR:
            controls: list[ResolvedControl] = []
            for group, members in self.group_extensions(extensions).items():
                if len(members) == 1:
                    controls.append(self._activation_control(members[0]))
                else:
                    controls.append(
                        DisclosureControl(
                            group=group,
                            members=tuple(self._activation_control(m) for m in members),
                        )
                    )
            return controls

        panels: list[ResolvedControl] = []
        for ext in extensions:
            if ext.renderable is None:
                continue
            try:
                content = ext.renderable(ext.metadata)
            except Exception as e:
                logger.warning("Renderable for extension %s failed: %s", ext.id, e)
                continue
            panels.append(PanelContent(extension_id=ext.id, content=content))
        return panels

    def _activation_control(self, ext: ExtensionDefinition) -> ActivationControl:
        metadata = ext.metadata
        label = metadata.display_label if isinstance(metadata, ToolbarButton) else metadata.name
        return ActivationControl(
            extension_id=ext.id,
            label=label,
            tooltip=metadata.tooltip,
            icon=metadata.icon,
            active=self.tool_state is not None and self.tool_state.is_active(ext.id),
        )

    def activate(self, tool_id: str) -> bool:
        """
        Engage an activation control.

        Calls the extension's handler when the registry has one, and
        always publishes an activation message, so host-native tools
        can use the same path. Coroutine handlers are scheduled as tasks.

        Must be called from code running inside the event loop.

        Returns:
            True if a handler ran (or was scheduled) without raising

        Raises:
            RuntimeError: If no event loop is running; nothing is called
        """
        loop = asyncio.get_running_loop()

        handled = False
        ext = self.registry.get(tool_id)
        if ext is not None and ext.handler is not None:
            try:
                result = ext.handler()
                if asyncio.iscoroutine(result):
                    task = loop.create_task(result)
                    self._handler_tasks.add(task)
                    task.add_done_callback(lambda t: self._handler_done(tool_id, t))
                handled = True
            except Exception as e:
                logger.warning("Handler for extension %s failed: %s", tool_id, e)

        if self.bus is not None:
            self.bus.publish_activation(tool_id)
        return handled

    @property
    def pending_handlers(self) -> int:
        """Number of coroutine handlers still running."""
        return len(self._handler_tasks)

    def _handler_done(self, tool_id: str, task: asyncio.Task[Any]) -> None:
        self._handler_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("Handler for extension %s failed: %s", tool_id, error)
