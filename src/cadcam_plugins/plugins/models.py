"""
Data models for the plugin system.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cadcam_plugins.errors import ManifestError
from cadcam_plugins.extensions.models import ExtensionDefinition, SurfaceType
from cadcam_plugins.plugins.resources import Stylesheet

# Surface -> permission a plugin needs to contribute there
SURFACE_PERMISSIONS: dict[SurfaceType, str] = {
    SurfaceType.TOOLBAR: "ui:addToolbar",
    SurfaceType.SIDEBAR: "ui:addSidebar",
    SurfaceType.MODAL: "ui:addModal",
    SurfaceType.CONTEXT_MENU: "ui:addContextMenu",
}

# camelCase manifest keys -> field names
_MANIFEST_ALIASES = {
    "entryPoint": "entry_point",
    "extensionPoints": "extension_points",
    "minAppVersion": "min_app_version",
    "maxAppVersion": "max_app_version",
}


class PluginState(str, Enum):
    """Lifecycle states of an installed plugin."""

    INSTALLED = "installed"
    LOADED = "loaded"
    ENABLED = "enabled"
    DISABLED = "disabled"
    UNINSTALLED = "uninstalled"


@dataclass
class PluginManifest:
    """
    Describes a plugin package.

    Example manifest.yaml::

        id: cad-helper-tools
        name: CAD Helper Tools
        version: 1.0.0
        entry_point: plugin.py
        permissions: [ui:addToolbar, ui:addSidebar]
        min_app_version: 1.0.0
        stylesheets:
          - id: cad-helper-tools-styles
            href: /plugins/cad-helper-tools/styles.css
    """

    id: str
    name: str = ""
    version: str = "0.0.0"
    description: str = ""
    author: str = ""
    entry_point: str = "plugin.py"
    icon: str | None = None
    homepage: str | None = None
    repository: str | None = None
    dependencies: dict[str, str] = field(default_factory=dict)
    permissions: list[str] = field(default_factory=list)
    extension_points: list[str] = field(default_factory=list)
    min_app_version: str | None = None
    max_app_version: str | None = None
    stylesheets: list[Stylesheet] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PluginManifest:
        """
        Create a manifest from a dictionary.

        Raises:
            ManifestError: If id, name or version is missing
        """
        data = {_MANIFEST_ALIASES.get(k, k): v for k, v in data.items()}

        missing = [key for key in ("id", "name", "version") if not data.get(key)]
        if missing:
            raise ManifestError(f"Invalid plugin manifest, missing: {', '.join(missing)}")

        stylesheets = []
        for item in data.get("stylesheets") or []:
            if isinstance(item, str):
                item = {"id": f"{data['id']}-styles", "href": item}
            stylesheets.append(Stylesheet(id=item["id"], href=item["href"]))

        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            version=str(data["version"]),
            description=data.get("description", ""),
            author=data.get("author", ""),
            entry_point=data.get("entry_point") or "plugin.py",
            icon=data.get("icon"),
            homepage=data.get("homepage"),
            repository=data.get("repository"),
            dependencies=dict(data.get("dependencies") or {}),
            permissions=list(data.get("permissions") or []),
            extension_points=list(data.get("extension_points") or []),
            min_app_version=data.get("min_app_version"),
            max_app_version=data.get("max_app_version"),
            stylesheets=stylesheets,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert manifest to a dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "author": self.author,
            "entry_point": self.entry_point,
            "icon": self.icon,
            "homepage": self.homepage,
            "repository": self.repository,
            "dependencies": dict(self.dependencies),
            "permissions": list(self.permissions),
            "extension_points": list(self.extension_points),
            "min_app_version": self.min_app_version,
            "max_app_version": self.max_app_version,
            "stylesheets": [{"id": s.id, "href": s.href} for s in self.stylesheets],
        }


@dataclass
class PluginRecord:
    """
    Host-side state of one installed plugin.

    ``definitions`` holds what the plugin declared at load time and is
    reused when a disabled plugin is enabled again. ``owned_extension_ids``
    is the subset currently in the registry.
    """

    manifest: PluginManifest
    instance: Any = None
    state: PluginState = PluginState.INSTALLED
    settings: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    definitions: dict[str, ExtensionDefinition] = field(default_factory=dict)
    owned_extension_ids: set[str] = field(default_factory=set)
    declared_resources: dict[str, Stylesheet] = field(default_factory=dict)
    applied_resources: dict[str, Stylesheet] = field(default_factory=dict)  # handle -> resource

    @property
    def id(self) -> str:
        return self.manifest.id

    @property
    def applied_resource_ids(self) -> set[str]:
        """Handles of resources currently applied."""
        return set(self.applied_resources)

    @property
    def enabled(self) -> bool:
        return self.state is PluginState.ENABLED
