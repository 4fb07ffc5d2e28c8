"""
Plugin host - wires the registry, bus, manager, loader and resolver together.
"""

from __future__ import annotations

from cadcam_plugins.bus import ToolBus
from cadcam_plugins.config import HostConfig
from cadcam_plugins.errors import PluginHostError
from cadcam_plugins.extensions.registry import ExtensionRegistry
from cadcam_plugins.extensions.resolver import ExtensionPointResolver
from cadcam_plugins.logging import get_logger
from cadcam_plugins.plugins.loader import DiscoveredPlugin, PluginLoader
from cadcam_plugins.plugins.manager import PluginManager
from cadcam_plugins.plugins.models import PluginRecord, PluginState
from cadcam_plugins.plugins.resources import DocumentHead, ResourceHost
from cadcam_plugins.tools import ActiveToolState

logger = get_logger("host")


class PluginHost:
    """
    One isolated plugin host.

    Every host owns its registry, bus and tool state, so several hosts can
    live in one process without seeing each other.

    Example:
        host = PluginHost(HostConfig(plugin_dirs=[Path("./plugins")]))
        await host.start()

        controls = host.resolver.resolve("toolbar")
        host.resolver.activate(controls[0].extension_id)

        await host.shutdown()
    """

    def __init__(
        self,
        config: HostConfig | None = None,
        resources: ResourceHost | None = None,
    ) -> None:
        self.config = config if config is not None else HostConfig()
        self.registry = ExtensionRegistry()
        self.bus = ToolBus()
        self.tool_state = ActiveToolState()
        self._detach_tool_state = self.tool_state.attach(self.bus)
        self.resources = resources if resources is not None else DocumentHead()
        self.manager = PluginManager(
            self.registry,
            bus=self.bus,
            resources=self.resources,
            config=self.config,
        )
        self.loader = PluginLoader(self.config)
        self.resolver = ExtensionPointResolver(
            self.registry,
            bus=self.bus,
            tool_state=self.tool_state,
        )

    def install(self, discovered: DiscoveredPlugin) -> PluginRecord:
        """
        Check a discovered plugin and install it.

        Raises:
            IncompatiblePluginError: If the app version is out of range
            PermissionDeniedError: If a permission is not granted
        """
        self.loader.check(discovered.manifest)
        return self.manager.install(discovered.manifest, discovered.factory)

    async def start(self) -> list[PluginRecord]:
        """
        Discover, install and enable plugins.

        A plugin that fails is logged and left behind; the others still start.

        Returns:
            The records of plugins that ended up enabled
        """
        enabled: list[PluginRecord] = []
        for discovered in self.loader.discover():
            plugin_id = discovered.manifest.id
            entry = self.config.get_plugin_config(plugin_id)
            try:
                existing = self.manager.get(plugin_id)
                if existing is None or existing.state is PluginState.UNINSTALLED:
                    self.install(discovered)
                if not entry.enabled:
                    logger.info("Plugin %s is disabled in config", plugin_id)
                    continue
                enabled.append(await self.manager.enable(plugin_id))
            except PluginHostError as e:
                logger.warning("Failed to start plugin %s: %s", plugin_id, e)

        logger.info("Host started with %d enabled plugins", len(enabled))
        return enabled

    async def shutdown(self) -> None:
        """Disable every enabled plugin and stop the bus."""
        for record in self.manager.list_by_state(PluginState.ENABLED):
            await self.manager.disable(record.id)
        self._detach_tool_state()
        await self.bus.close()
        logger.info("Host stopped")
