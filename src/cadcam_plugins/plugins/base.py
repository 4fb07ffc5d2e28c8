"""
Convenience base class for plugins.

Plugins do not have to inherit from it: the manager only looks up the hook
methods by name, and each may be sync or async.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from cadcam_plugins.extensions.models import ExtensionDefinition
    from cadcam_plugins.plugins.api import PluginAPI


class Plugin:
    """
    Base plugin with no-op lifecycle hooks.

    Example plugin module (``plugin.py``)::

        from cadcam_plugins import ExtensionDefinition, Plugin, ToolbarButton

        class CircleTools(Plugin):
            async def on_load(self):
                return [
                    ExtensionDefinition(
                        id="circle-tool-button",
                        surface="toolbar",
                        metadata=ToolbarButton(label="Circle", group="geometry"),
                    )
                ]

        def plugin(api):
            return CircleTools(api)
    """

    def __init__(self, api: PluginAPI) -> None:
        self.api = api

    async def on_load(self) -> Iterable[ExtensionDefinition | dict[str, Any]] | None:
        """Declare extensions, by returning them or via ``api.register_extension``."""
        return None

    async def on_enable(self) -> None:
        """Declare resources to apply (``api.add_stylesheet``)."""

    async def on_disable(self) -> None:
        """Teardown notification; registry and resources are cleaned by the host."""

    async def on_uninstall(self) -> None:
        """Final teardown notification."""

    def on_settings_change(self, settings: dict[str, Any]) -> None:
        """Informational; called after host-managed settings change."""
