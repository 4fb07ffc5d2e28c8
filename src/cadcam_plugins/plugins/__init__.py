"""
Plugin system for the CAD/CAM host.

Plugins are Python modules exposing a ``plugin(api)`` factory. The manager
drives the returned instance through its lifecycle and tracks every
extension and resource it contributes.
"""

from cadcam_plugins.plugins.api import PluginAPI
from cadcam_plugins.plugins.base import Plugin
from cadcam_plugins.plugins.loader import DiscoveredPlugin, PluginLoader, parse_semver
from cadcam_plugins.plugins.manager import PluginFactory, PluginManager
from cadcam_plugins.plugins.models import (
    SURFACE_PERMISSIONS,
    PluginManifest,
    PluginRecord,
    PluginState,
)
from cadcam_plugins.plugins.resources import DocumentHead, ResourceHost, Stylesheet
from cadcam_plugins.plugins.sandbox import PluginStorage

__all__ = [
    "SURFACE_PERMISSIONS",
    "DiscoveredPlugin",
    "DocumentHead",
    "Plugin",
    "PluginAPI",
    "PluginFactory",
    "PluginLoader",
    "PluginManager",
    "PluginManifest",
    "PluginRecord",
    "PluginState",
    "PluginStorage",
    "ResourceHost",
    "Stylesheet",
    "parse_semver",
]
