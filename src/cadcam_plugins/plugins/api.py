"""
Plugin API - the host surface passed to plugin factory functions.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from cadcam_plugins.bus import Channel
from cadcam_plugins.extensions.models import ExtensionDefinition
from cadcam_plugins.logging import plugin_logger
from cadcam_plugins.plugins.resources import Stylesheet
from cadcam_plugins.plugins.sandbox import PluginStorage

if TYPE_CHECKING:
    from cadcam_plugins.config import HostConfig
    from cadcam_plugins.plugins.manager import PluginManager
    from cadcam_plugins.plugins.models import PluginManifest


class PluginAPI:
    """
    API object passed to plugin factory functions.

    Plugins use this to contribute extensions and resources, read their
    settings and talk on the tool bus. Everything goes through the
    manager, which tracks what the plugin owns.

    Example plugin:
        def plugin(api: PluginAPI):
            api.register_extension({
                "id": "measure-button",
                "type": "toolbar",
                "metadata": {"label": "Measure", "group": "measure"},
            })
            return MyPlugin(api)
    """

    def __init__(self, manager: PluginManager, plugin_id: str) -> None:
        self._manager = manager
        self._plugin_id = plugin_id
        self._logger = plugin_logger(plugin_id)
        self._storage: PluginStorage | None = None

    @property
    def plugin_id(self) -> str:
        return self._plugin_id

    @property
    def manifest(self) -> PluginManifest:
        """This plugin's manifest."""
        return self._manager.require(self._plugin_id).manifest

    @property
    def config(self) -> HostConfig:
        """Access the host configuration."""
        return self._manager.config

    @property
    def logger(self) -> logging.Logger:
        """Logger named after the plugin."""
        return self._logger

    @property
    def storage(self) -> PluginStorage:
        """Key-value storage namespaced to this plugin."""
        if self._storage is None:
            self._storage = PluginStorage(
                self._plugin_id,
                self._manager.storage,
                self.manifest.permissions,
            )
        return self._storage

    # ------------------------------------------------------------------
    # Extensions and resources
    # ------------------------------------------------------------------

    def register_extension(self, definition: ExtensionDefinition | Mapping[str, Any]) -> str:
        """
        Contribute an extension to a UI surface.

        Returns:
            The extension id

        Raises:
            DuplicateIdError: If the id is taken
            PermissionDeniedError: If the surface permission is missing
        """
        if not isinstance(definition, ExtensionDefinition):
            definition = ExtensionDefinition.from_dict(definition)
        self._manager._register_extension(self._plugin_id, definition)
        return definition.id

    def unregister_extension(self, extension_id: str) -> None:
        """Withdraw one of this plugin's extensions."""
        self._manager._unregister_extension(self._plugin_id, extension_id)

    def add_stylesheet(self, resource_id: str, href: str) -> None:
        """Declare a stylesheet, applied while the plugin is enabled."""
        self._manager._declare_resource(self._plugin_id, Stylesheet(id=resource_id, href=href))

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_settings(self) -> dict[str, Any]:
        return dict(self._manager.require(self._plugin_id).settings)

    def update_settings(self, settings: Mapping[str, Any]) -> None:
        self._manager.update_settings(self._plugin_id, settings)

    # ------------------------------------------------------------------
    # Tool bus
    # ------------------------------------------------------------------

    def subscribe(self, channel: Channel | str, handler: Callable[[Any], Any]) -> Callable[[], None]:
        """Listen on a bus channel; listeners are dropped on uninstall."""
        return self._manager.bus.subscribe(channel, handler, source=self._plugin_id)

    def publish_activation(self, tool_id: str) -> None:
        self._manager.bus.publish_activation(tool_id)

    def publish_result(self, tool_id: str, result: str) -> None:
        self._manager.bus.publish_result(tool_id, result)
