"""
CAD/CAM Plugins - a plugin host for extending a CAD/CAM application's UI.

Third-party plugins contribute toolbar buttons, sidebar panels, modals and
context-menu entries. The host tracks what every plugin owns, drives plugins
through their lifecycle, resolves each UI surface into controls, and carries
tool activation and result messages between UI and tools on a typed bus.

Example:
    from cadcam_plugins import HostConfig, PluginHost

    host = PluginHost(HostConfig(plugin_dirs=["./plugins"]))
    await host.start()

    # Toolbar buttons and grouped disclosure controls
    for control in host.resolver.resolve("toolbar", position="left"):
        print(control.label)

    # Activate a tool; listeners hear about it on the bus
    host.resolver.activate("measure-distance")
    await host.bus.drain()
    print(host.tool_state.active_tool)

    await host.shutdown()
"""

from cadcam_plugins.bus import (
    Channel,
    ToolActivation,
    ToolBus,
    ToolMessage,
    ToolResult,
    message_from_payload,
)
from cadcam_plugins.config import ALL_PERMISSIONS, HostConfig, PluginEntryConfig
from cadcam_plugins.errors import (
    DuplicateIdError,
    IncompatiblePluginError,
    InvalidTransitionError,
    LifecycleHookError,
    ManifestError,
    PermissionDeniedError,
    PluginError,
    PluginHostError,
    PluginNotFoundError,
    ResourceApplyError,
)
from cadcam_plugins.extensions import (
    DEFAULT_GROUP,
    ActivationControl,
    DisclosureControl,
    ExtensionDefinition,
    ExtensionMetadata,
    ExtensionPointResolver,
    ExtensionRegistry,
    PanelContent,
    PanelOptions,
    Position,
    SurfaceType,
    ToolbarButton,
)
from cadcam_plugins.host import PluginHost
from cadcam_plugins.logging import get_logger, setup_logging
from cadcam_plugins.plugins import (
    DiscoveredPlugin,
    DocumentHead,
    Plugin,
    PluginAPI,
    PluginLoader,
    PluginManager,
    PluginManifest,
    PluginRecord,
    PluginState,
    PluginStorage,
    ResourceHost,
    Stylesheet,
)
from cadcam_plugins.rendering import render_controls
from cadcam_plugins.tools import ActiveToolState

__version__ = "0.1.0"

__all__ = [
    # Host
    "PluginHost",
    "HostConfig",
    "PluginEntryConfig",
    "ALL_PERMISSIONS",
    # Extensions
    "DEFAULT_GROUP",
    "ExtensionDefinition",
    "ExtensionMetadata",
    "ExtensionRegistry",
    "PanelOptions",
    "Position",
    "SurfaceType",
    "ToolbarButton",
    # Resolution
    "ActivationControl",
    "DisclosureControl",
    "ExtensionPointResolver",
    "PanelContent",
    "render_controls",
    # Plugins
    "DiscoveredPlugin",
    "DocumentHead",
    "Plugin",
    "PluginAPI",
    "PluginLoader",
    "PluginManager",
    "PluginManifest",
    "PluginRecord",
    "PluginState",
    "PluginStorage",
    "ResourceHost",
    "Stylesheet",
    # Bus
    "ActiveToolState",
    "Channel",
    "ToolActivation",
    "ToolBus",
    "ToolMessage",
    "ToolResult",
    "message_from_payload",
    # Errors
    "DuplicateIdError",
    "IncompatiblePluginError",
    "InvalidTransitionError",
    "LifecycleHookError",
    "ManifestError",
    "PermissionDeniedError",
    "PluginError",
    "PluginHostError",
    "PluginNotFoundError",
    "ResourceApplyError",
    # Logging
    "get_logger",
    "setup_logging",
]
