"""
Plugin manager - installation, lifecycle transitions and ownership tracking.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from typing import Any

from cadcam_plugins.bus import ToolBus
from cadcam_plugins.config import HostConfig
from cadcam_plugins.errors import (
    InvalidTransitionError,
    LifecycleHookError,
    PermissionDeniedError,
    PluginError,
    PluginHostError,
    PluginNotFoundError,
    ResourceApplyError,
)
from cadcam_plugins.extensions.models import ExtensionDefinition
from cadcam_plugins.extensions.registry import ExtensionRegistry
from cadcam_plugins.logging import get_logger
from cadcam_plugins.plugins.api import PluginAPI
from cadcam_plugins.plugins.models import (
    SURFACE_PERMISSIONS,
    PluginManifest,
    PluginRecord,
    PluginState,
)
from cadcam_plugins.plugins.resources import DocumentHead, ResourceHost, Stylesheet

logger = get_logger("plugins.manager")

# (api) -> plugin instance
PluginFactory = Callable[[PluginAPI], Any]


async def _call_hook(instance: Any, name: str, *args: Any) -> Any:
    """Call an optional sync or async hook on a plugin instance."""
    hook = getattr(instance, name, None)
    if hook is None:
        return None
    result = hook(*args)
    if asyncio.iscoroutine(result) or asyncio.isfuture(result):
        result = await result
    return result


def _as_definitions(declared: Any) -> list[ExtensionDefinition]:
    """Normalize what a load hook returned into definitions."""
    if declared is None:
        return []
    if isinstance(declared, (ExtensionDefinition, Mapping)):
        declared = [declared]
    return [
        item if isinstance(item, ExtensionDefinition) else ExtensionDefinition.from_dict(item)
        for item in declared
    ]


class PluginManager:
    """
    Drives plugins through their lifecycle.

    States: installed -> loaded -> enabled <-> disabled -> uninstalled.

    - ``load`` runs ``on_load`` and registers what it declares; any failure
      rolls back every registration made during that load.
    - ``enable`` runs ``on_enable`` and applies declared resources;
      from disabled, the load-time definitions are registered again first.
    - ``disable`` and ``uninstall`` run their hooks but always finish the
      cleanup, even when the hook raises.

    Transitions of one plugin are serialized; different plugins may
    transition concurrently.
    """

    def __init__(
        self,
        registry: ExtensionRegistry,
        bus: ToolBus | None = None,
        resources: ResourceHost | None = None,
        config: HostConfig | None = None,
        storage: dict[str, str] | None = None,
    ) -> None:
        self.registry = registry
        self.bus: ToolBus = bus if bus is not None else ToolBus()
        self.resources: ResourceHost = resources if resources is not None else DocumentHead()
        self.config: HostConfig = config if config is not None else HostConfig()
        self.storage: dict[str, str] = storage if storage is not None else {}

        self._records: dict[str, PluginRecord] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        # plugin id -> extension ids registered by the load or enable in progress
        self._tracking: dict[str, list[str]] = {}
        # plugins whose on_disable or on_uninstall hook is running
        self._tearing_down: set[str] = set()

    # ------------------------------------------------------------------
    # Installation and queries
    # ------------------------------------------------------------------

    def install(
        self,
        manifest: PluginManifest,
        factory: PluginFactory,
        settings: Mapping[str, Any] | None = None,
    ) -> PluginRecord:
        """
        Install a plugin and instantiate it with its API handle.

        Args:
            manifest: The plugin's manifest
            factory: Callable ``(api) -> plugin instance``
            settings: Initial settings (defaults to the host config entry)

        Raises:
            PluginError: If the id is already installed
            LifecycleHookError: If the factory raises; nothing is installed
        """
        existing = self._records.get(manifest.id)
        if existing is not None and existing.state is not PluginState.UNINSTALLED:
            raise PluginError(f"Plugin '{manifest.id}' is already installed")

        if settings is None:
            settings = self.config.get_plugin_config(manifest.id).settings

        record = PluginRecord(manifest=manifest, settings=dict(settings))
        for stylesheet in manifest.stylesheets:
            record.declared_resources[stylesheet.id] = stylesheet
        self._records[manifest.id] = record

        try:
            record.instance = factory(PluginAPI(self, manifest.id))
        except Exception as e:
            del self._records[manifest.id]
            raise LifecycleHookError(manifest.id, "factory", e) from e

        if record.instance is None:
            del self._records[manifest.id]
            raise PluginError(f"Plugin '{manifest.id}' factory returned no instance")

        logger.info("Installed plugin: %s %s", manifest.id, manifest.version)
        return record

    def get(self, plugin_id: str) -> PluginRecord | None:
        """Get a plugin record, including uninstalled ones."""
        return self._records.get(plugin_id)

    def require(self, plugin_id: str) -> PluginRecord:
        """Get a plugin record or raise PluginNotFoundError."""
        record = self._records.get(plugin_id)
        if record is None:
            raise PluginNotFoundError(plugin_id)
        return record

    def list_plugins(self) -> list[PluginRecord]:
        """Return every plugin that is not uninstalled, in install order."""
        return [r for r in self._records.values() if r.state is not PluginState.UNINSTALLED]

    def list_by_state(self, state: PluginState) -> list[PluginRecord]:
        return [r for r in self._records.values() if r.state is state]

    def _lock(self, plugin_id: str) -> asyncio.Lock:
        lock = self._locks.get(plugin_id)
        if lock is None:
            lock = self._locks[plugin_id] = asyncio.Lock()
        return lock

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def load(self, plugin_id: str) -> PluginRecord:
        """
        Installed -> Loaded.

        Raises:
            LifecycleHookError: If ``on_load`` raises
            DuplicateIdError: If a declared id is already taken
        """
        async with self._lock(plugin_id):
            record = self.require(plugin_id)
            await self._load(record)
            return record

    async def enable(self, plugin_id: str) -> PluginRecord:
        """
        Loaded or Disabled -> Enabled. An installed plugin is loaded first,
        and that load is undone again if enabling fails.

        Raises:
            LifecycleHookError: If ``on_enable`` raises
            ResourceApplyError: If a resource cannot be attached
            DuplicateIdError: If re-registration collides
        """
        async with self._lock(plugin_id):
            record = self.require(plugin_id)
            loaded_here = record.state is PluginState.INSTALLED
            if loaded_here:
                await self._load(record)
            try:
                await self._enable(record)
            except Exception:
                if loaded_here:
                    self._unload(record)
                raise
            return record

    async def disable(self, plugin_id: str) -> PluginRecord:
        """Enabled -> Disabled. Never fails because of the plugin's own hook."""
        async with self._lock(plugin_id):
            record = self.require(plugin_id)
            await self._disable(record)
            return record

    async def uninstall(self, plugin_id: str) -> PluginRecord:
        """Any state -> Uninstalled. An enabled plugin is disabled first."""
        async with self._lock(plugin_id):
            record = self.require(plugin_id)
            if record.state is PluginState.UNINSTALLED:
                return record
            if record.state is PluginState.ENABLED:
                await self._disable(record)

            self._tearing_down.add(plugin_id)
            try:
                await _call_hook(record.instance, "on_uninstall")
            except Exception as e:
                record.error = str(e)
                logger.warning("Plugin %s failed in on_uninstall: %s", plugin_id, e)
            finally:
                self._tearing_down.discard(plugin_id)
                self._unregister_owned(record)
                self._remove_resources(record)
                record.definitions.clear()
                record.declared_resources.clear()
                self.bus.unsubscribe_source(plugin_id)
                record.instance = None
                record.state = PluginState.UNINSTALLED

            logger.info("Uninstalled plugin: %s", plugin_id)
            return record

    async def _load(self, record: PluginRecord) -> None:
        if record.state in (PluginState.LOADED, PluginState.ENABLED, PluginState.DISABLED):
            return
        self._check(record, "load", PluginState.INSTALLED)

        registered: list[str] = []
        self._tracking[record.id] = registered
        try:
            declared = await _call_hook(record.instance, "on_load")
            for definition in _as_definitions(declared):
                self._register_owned(record, definition)
            extra = await _call_hook(record.instance, "get_extensions")
            for definition in _as_definitions(extra):
                self._register_owned(record, definition)
        except PluginHostError:
            self._rollback_registrations(record, registered)
            raise
        except Exception as e:
            self._rollback_registrations(record, registered)
            record.error = str(e)
            raise LifecycleHookError(record.id, "on_load", e) from e
        finally:
            self._tracking.pop(record.id, None)

        record.state = PluginState.LOADED
        record.error = None
        logger.info("Loaded plugin: %s (%d extensions)", record.id, len(record.definitions))

    def _rollback_registrations(self, record: PluginRecord, registered: list[str]) -> None:
        for extension_id in registered:
            self.registry.unregister(extension_id)
            record.owned_extension_ids.discard(extension_id)
            record.definitions.pop(extension_id, None)
        if registered:
            logger.debug("Rolled back %d registrations of %s", len(registered), record.id)

    def _unload(self, record: PluginRecord) -> None:
        """Loaded -> Installed, dropping every load-time registration."""
        self._unregister_owned(record)
        record.definitions.clear()
        record.state = PluginState.INSTALLED
        logger.debug("Unloaded plugin %s after failed enable", record.id)

    async def _enable(self, record: PluginRecord) -> None:
        if record.state is PluginState.ENABLED:
            return
        self._check(record, "enable", PluginState.LOADED, PluginState.DISABLED)

        reregistered: list[str] = []
        # registrations made through the API by on_enable
        added: list[str] = []
        self._tracking[record.id] = added
        try:
            if record.state is PluginState.DISABLED:
                for definition in record.definitions.values():
                    self.registry.register(definition, source=record.id)
                    record.owned_extension_ids.add(definition.id)
                    reregistered.append(definition.id)
            await _call_hook(record.instance, "on_enable")
            self._apply_resources(record)
        except Exception as e:
            self._remove_resources(record)
            for extension_id in reregistered:
                self.registry.unregister(extension_id)
                record.owned_extension_ids.discard(extension_id)
            self._rollback_registrations(record, added)
            record.error = str(e)
            if isinstance(e, PluginHostError):
                raise
            raise LifecycleHookError(record.id, "on_enable", e) from e
        finally:
            self._tracking.pop(record.id, None)

        record.state = PluginState.ENABLED
        record.error = None
        logger.info("Enabled plugin: %s", record.id)

    async def _disable(self, record: PluginRecord) -> None:
        if record.state is PluginState.DISABLED:
            return
        self._check(record, "disable", PluginState.ENABLED)

        self._tearing_down.add(record.id)
        try:
            await _call_hook(record.instance, "on_disable")
        except Exception as e:
            record.error = str(e)
            logger.warning("Plugin %s failed in on_disable: %s", record.id, e)
        finally:
            self._tearing_down.discard(record.id)
            self._unregister_owned(record)
            self._remove_resources(record)
            record.state = PluginState.DISABLED

        logger.info("Disabled plugin: %s", record.id)

    def _check(self, record: PluginRecord, transition: str, *allowed: PluginState) -> None:
        if record.state not in allowed:
            raise InvalidTransitionError(record.id, transition, record.state.value)

    # ------------------------------------------------------------------
    # Ownership helpers
    # ------------------------------------------------------------------

    def _register_owned(self, record: PluginRecord, definition: ExtensionDefinition) -> None:
        if self.config.enforce_permissions:
            permission = SURFACE_PERMISSIONS[definition.surface]
            if permission not in record.manifest.permissions:
                raise PermissionDeniedError(record.id, permission)

        self.registry.register(definition, source=record.id)
        record.definitions[definition.id] = definition
        record.owned_extension_ids.add(definition.id)
        registered = self._tracking.get(record.id)
        if registered is not None:
            registered.append(definition.id)

    def _unregister_owned(self, record: PluginRecord) -> None:
        for extension_id in list(record.owned_extension_ids):
            self.registry.unregister(extension_id)
        record.owned_extension_ids.clear()

    def _apply_resources(self, record: PluginRecord) -> None:
        applied = set(record.applied_resources.values())
        for resource in record.declared_resources.values():
            if resource in applied:
                continue
            self._apply_resource(record, resource)

    def _apply_resource(self, record: PluginRecord, resource: Stylesheet) -> None:
        try:
            handle = self.resources.apply(resource)
        except Exception as e:
            raise ResourceApplyError(record.id, resource.id, e) from e
        record.applied_resources[handle] = resource

    def _remove_resources(self, record: PluginRecord) -> None:
        for handle in list(record.applied_resources):
            try:
                self.resources.remove(handle)
            except Exception as e:
                logger.warning("Failed to remove resource %s of %s: %s", handle, record.id, e)
        record.applied_resources.clear()

    # ------------------------------------------------------------------
    # Internal registration methods (called by PluginAPI)
    # ------------------------------------------------------------------

    def _register_extension(self, plugin_id: str, definition: ExtensionDefinition) -> None:
        record = self.require(plugin_id)
        if plugin_id not in self._tracking and record.state not in (
            PluginState.LOADED,
            PluginState.ENABLED,
        ):
            raise InvalidTransitionError(plugin_id, "register extensions for", record.state.value)
        self._register_owned(record, definition)

    def _unregister_extension(self, plugin_id: str, extension_id: str) -> None:
        record = self.require(plugin_id)
        if extension_id not in record.definitions:
            logger.debug("Plugin %s does not own extension %s", plugin_id, extension_id)
            return
        if extension_id in record.owned_extension_ids:
            self.registry.unregister(extension_id)
            record.owned_extension_ids.discard(extension_id)
        # Teardown only takes the extension off the surface; the definition
        # is registered again on the next enable.
        if plugin_id in self._tearing_down or record.state is PluginState.DISABLED:
            return
        del record.definitions[extension_id]

    def _declare_resource(self, plugin_id: str, resource: Stylesheet) -> None:
        record = self.require(plugin_id)
        record.declared_resources[resource.id] = resource
        if record.state is PluginState.ENABLED and resource not in record.applied_resources.values():
            self._apply_resource(record, resource)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def update_settings(self, plugin_id: str, settings: Mapping[str, Any]) -> dict[str, Any]:
        """
        Merge new settings and notify the plugin.

        Returns:
            The merged settings
        """
        record = self.require(plugin_id)
        record.settings = {**record.settings, **settings}

        hook = getattr(record.instance, "on_settings_change", None)
        if hook is not None:
            try:
                hook(dict(record.settings))
            except Exception as e:
                logger.warning("Plugin %s failed in on_settings_change: %s", plugin_id, e)

        return dict(record.settings)
