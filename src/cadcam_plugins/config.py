"""
Configuration models for the plugin host.

Provides a flexible configuration system that can be loaded from
YAML files or constructed programmatically.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------------

ALL_PERMISSIONS: tuple[str, ...] = (
    "storage:read",
    "storage:write",
    "network:fetch",
    "ui:addToolbar",
    "ui:addSidebar",
    "ui:addModal",
    "ui:addContextMenu",
    "cad:read",
    "cad:write",
    "cam:read",
    "cam:write",
)

DEFAULT_APP_VERSION = "1.0.0"


def get_app_version() -> str:
    """Get the host version from the environment, defaulting to 1.0.0."""
    return os.environ.get("CADCAM_APP_VERSION", DEFAULT_APP_VERSION)


@dataclass
class PluginEntryConfig:
    """Per-plugin configuration overrides."""

    enabled: bool = True  # Enable the plugin on host start
    settings: dict[str, Any] = field(default_factory=dict)  # Initial plugin settings


@dataclass
class HostConfig:
    """
    Main configuration for the plugin host.

    Example YAML:
        app_version: "1.2.0"
        plugin_dirs:
          - ./plugins
          - ~/.cadcam/plugins
        use_entry_points: true
        enforce_permissions: true
        granted_permissions:
          - ui:addToolbar
          - ui:addSidebar
        plugins:
          cad-helper-tools:
            enabled: true
            settings:
              precision: 2
          legacy-plugin:
            enabled: false
    """

    app_version: str = field(default_factory=get_app_version)

    # Discovery
    plugin_dirs: list[Path] = field(default_factory=list)  # Directories to scan
    use_entry_points: bool = True  # Also scan installed distributions

    # Permissions
    granted_permissions: list[str] = field(default_factory=lambda: list(ALL_PERMISSIONS))
    enforce_permissions: bool = True  # Check surface permissions on register

    # Per-plugin config
    plugins: dict[str, PluginEntryConfig] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HostConfig:
        """Create config from a dictionary."""
        plugins = {}
        for plugin_id, entry_data in (data.get("plugins") or {}).items():
            entry_data = entry_data or {}
            plugins[plugin_id] = PluginEntryConfig(
                enabled=entry_data.get("enabled", True),
                settings=dict(entry_data.get("settings") or {}),
            )

        granted = data.get("granted_permissions")
        return cls(
            app_version=str(data.get("app_version") or get_app_version()),
            plugin_dirs=[Path(p).expanduser() for p in data.get("plugin_dirs", [])],
            use_entry_points=data.get("use_entry_points", True),
            granted_permissions=list(granted) if granted is not None else list(ALL_PERMISSIONS),
            enforce_permissions=data.get("enforce_permissions", True),
            plugins=plugins,
        )

    @classmethod
    def from_yaml(cls, path: Path) -> HostConfig:
        """Load config from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_yaml_string(cls, content: str) -> HostConfig:
        """Load config from a YAML string."""
        data = yaml.safe_load(content)
        return cls.from_dict(data or {})

    def to_dict(self) -> dict[str, Any]:
        """Convert config to a dictionary."""
        return {
            "app_version": self.app_version,
            "plugin_dirs": [str(p) for p in self.plugin_dirs],
            "use_entry_points": self.use_entry_points,
            "granted_permissions": list(self.granted_permissions),
            "enforce_permissions": self.enforce_permissions,
            "plugins": {
                plugin_id: {
                    "enabled": entry.enabled,
                    "settings": entry.settings,
                }
                for plugin_id, entry in self.plugins.items()
            },
        }

    def get_plugin_config(self, plugin_id: str) -> PluginEntryConfig:
        """Get config for a specific plugin, with defaults."""
        return self.plugins.get(plugin_id, PluginEntryConfig())
