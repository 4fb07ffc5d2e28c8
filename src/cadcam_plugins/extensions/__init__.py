"""
UI extension points for the plugin host.

Provides the extension data model, the registry plugins contribute to, and
the resolver UI surfaces read from.
"""

from cadcam_plugins.extensions.models import (
    DEFAULT_GROUP,
    ExtensionDefinition,
    ExtensionMetadata,
    PanelOptions,
    Position,
    SurfaceType,
    ToolbarButton,
)
from cadcam_plugins.extensions.registry import ExtensionRegistry
from cadcam_plugins.extensions.resolver import (
    ActivationControl,
    DisclosureControl,
    ExtensionPointResolver,
    PanelContent,
)

__all__ = [
    "DEFAULT_GROUP",
    "ActivationControl",
    "DisclosureControl",
    "ExtensionDefinition",
    "ExtensionMetadata",
    "ExtensionPointResolver",
    "ExtensionRegistry",
    "PanelContent",
    "PanelOptions",
    "Position",
    "SurfaceType",
    "ToolbarButton",
]
