"""
Plugin loader - discovery, manifest parsing, compatibility and code loading.
"""

from __future__ import annotations

import importlib.util
import json
import re
import sys
import types
from dataclasses import dataclass
from importlib.metadata import entry_points
from pathlib import Path
from typing import Any

import httpx
import yaml

from cadcam_plugins.config import HostConfig
from cadcam_plugins.errors import (
    IncompatiblePluginError,
    ManifestError,
    PermissionDeniedError,
)
from cadcam_plugins.logging import get_logger
from cadcam_plugins.plugins.manager import PluginFactory
from cadcam_plugins.plugins.models import PluginManifest

logger = get_logger("plugins.loader")

ENTRY_POINT_GROUP = "cadcam_plugins.plugins"
MANIFEST_FILES = ("manifest.yaml", "manifest.yml", "manifest.json")
FACTORY_NAME = "plugin"


def parse_semver(version: str | None) -> tuple[int, int, int]:
    """Parse a semantic version string into (major, minor, patch)."""
    if not version:
        return (0, 0, 0)
    match = re.match(r"^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?", version.strip())
    if not match:
        raise ValueError(f"Invalid version: {version!r}")
    return tuple(int(part or 0) for part in match.groups())  # type: ignore[return-value]


@dataclass
class DiscoveredPlugin:
    """A plugin found by the loader, ready to install."""

    manifest: PluginManifest
    factory: PluginFactory
    source: str = "explicit"  # "explicit", "entrypoint", "directory", "url"
    path: Path | str | None = None


class PluginLoader:
    """
    Finds plugins and turns them into (manifest, factory) pairs.

    Plugins are discovered from:
    1. Explicit ``register_factory`` calls
    2. Python entry points (group: cadcam_plugins.plugins)
    3. Each configured plugin directory: ``<dir>/<plugin>/manifest.yaml``
       next to the module named by the manifest's ``entry_point``

    Each plugin module must expose a ``plugin(api)`` callable.
    """

    def __init__(self, config: HostConfig | None = None) -> None:
        self.config = config if config is not None else HostConfig()
        self._explicit: dict[str, DiscoveredPlugin] = {}

    def register_factory(
        self,
        manifest: PluginManifest | dict[str, Any],
        factory: PluginFactory,
    ) -> DiscoveredPlugin:
        """Make a plugin available without going through the filesystem."""
        if not isinstance(manifest, PluginManifest):
            manifest = PluginManifest.from_dict(manifest)
        discovered = DiscoveredPlugin(manifest=manifest, factory=factory)
        self._explicit[manifest.id] = discovered
        return discovered

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def discover(self) -> list[DiscoveredPlugin]:
        """
        Find plugins from all sources. Broken plugins are logged and skipped.

        When the same id is found twice, the first source wins.
        """
        found: list[DiscoveredPlugin] = list(self._explicit.values())

        if self.config.use_entry_points:
            found.extend(self._discover_entry_points())

        for directory in self.config.plugin_dirs:
            found.extend(self.discover_directory(directory))

        unique: dict[str, DiscoveredPlugin] = {}
        for plugin in found:
            if plugin.manifest.id in unique:
                logger.warning(
                    "Plugin %s found again in %s, keeping %s",
                    plugin.manifest.id,
                    plugin.path or plugin.source,
                    unique[plugin.manifest.id].path or unique[plugin.manifest.id].source,
                )
                continue
            unique[plugin.manifest.id] = plugin
        return list(unique.values())

    def _discover_entry_points(self) -> list[DiscoveredPlugin]:
        found: list[DiscoveredPlugin] = []
        try:
            eps = entry_points(group=ENTRY_POINT_GROUP)
        except Exception as e:
            logger.debug("Entry point discovery failed: %s", e)
            return found

        for ep in eps:
            try:
                target = ep.load()
                found.append(self._from_object(ep.name, target, source="entrypoint"))
                logger.debug("Discovered entry point plugin: %s", ep.name)
            except Exception as e:
                logger.warning("Failed to load entry point plugin %s: %s", ep.name, e)
        return found

    def _from_object(self, name: str, target: Any, source: str) -> DiscoveredPlugin:
        """Build a plugin from a loaded module or factory callable."""
        factory = target
        if isinstance(target, types.ModuleType):
            factory = getattr(target, FACTORY_NAME, None)
        if factory is None or not callable(factory):
            raise ManifestError(f"Plugin {name} has no '{FACTORY_NAME}' callable")

        manifest_data = getattr(target, "manifest", None) or getattr(factory, "manifest", None)
        if isinstance(manifest_data, PluginManifest):
            manifest = manifest_data
        else:
            data = {"id": name, "name": name, "version": "0.0.0"}
            data.update(manifest_data or {})
            manifest = PluginManifest.from_dict(data)
        return DiscoveredPlugin(manifest=manifest, factory=factory, source=source)

    def discover_directory(self, directory: Path) -> list[DiscoveredPlugin]:
        """Discover plugins in the subdirectories of a directory."""
        found: list[DiscoveredPlugin] = []
        if not directory.is_dir():
            return found

        for plugin_dir in sorted(directory.iterdir()):
            if not plugin_dir.is_dir() or plugin_dir.name.startswith(("_", ".")):
                continue
            if self.find_manifest(plugin_dir) is None:
                continue
            try:
                manifest = self.load_manifest(plugin_dir)
                factory = self.load_factory(manifest, plugin_dir)
            except Exception as e:
                logger.warning("Skipping plugin in %s: %s", plugin_dir, e)
                continue
            found.append(
                DiscoveredPlugin(manifest=manifest, factory=factory, source="directory", path=plugin_dir)
            )
            logger.debug("Discovered directory plugin: %s (%s)", manifest.id, plugin_dir)
        return found

    # ------------------------------------------------------------------
    # Manifests and code
    # ------------------------------------------------------------------

    @staticmethod
    def find_manifest(plugin_dir: Path) -> Path | None:
        for filename in MANIFEST_FILES:
            candidate = plugin_dir / filename
            if candidate.is_file():
                return candidate
        return None

    def load_manifest(self, path: Path) -> PluginManifest:
        """
        Load a manifest from a file or a plugin directory.

        Raises:
            ManifestError: If no manifest is found or it cannot be parsed
        """
        manifest_path = self.find_manifest(path) if path.is_dir() else path
        if manifest_path is None or not manifest_path.is_file():
            raise ManifestError(f"No manifest found in {path}")

        try:
            text = manifest_path.read_text()
            if manifest_path.suffix == ".json":
                data = json.loads(text)
            else:
                data = yaml.safe_load(text)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ManifestError(f"Cannot parse {manifest_path}: {e}") from e

        if not isinstance(data, dict):
            raise ManifestError(f"Manifest {manifest_path} is not a mapping")
        return PluginManifest.from_dict(data)

    def load_factory(self, manifest: PluginManifest, base_dir: Path) -> PluginFactory:
        """Import the manifest's entry point module and return its factory."""
        entry = (base_dir / manifest.entry_point).resolve()
        if not entry.is_file():
            raise ManifestError(f"Entry point {entry} does not exist")

        module_name = f"cadcam_plugin_{_module_suffix(manifest.id)}"
        spec = importlib.util.spec_from_file_location(module_name, entry)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot load module from {entry}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(module_name, None)
            raise
        return self._from_object(manifest.id, module, source="directory").factory

    async def fetch(self, url: str, client: httpx.AsyncClient | None = None) -> DiscoveredPlugin:
        """
        Download a plugin from a URL.

        Fetches ``<url>/manifest.json`` and then the manifest's entry point
        module relative to the same base URL.

        Raises:
            httpx.HTTPStatusError: On a non-success response
            ManifestError: If the manifest or the module is invalid
        """
        base = url.rstrip("/")
        owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(timeout=30.0)

        try:
            response = await client.get(f"{base}/manifest.json")
            response.raise_for_status()
            try:
                manifest = PluginManifest.from_dict(response.json())
            except ValueError as e:
                raise ManifestError(f"Invalid manifest at {base}: {e}") from e

            response = await client.get(f"{base}/{manifest.entry_point.lstrip('./')}")
            response.raise_for_status()
            source = response.text
        finally:
            if owns_client:
                await client.aclose()

        module_name = f"cadcam_plugin_{_module_suffix(manifest.id)}"
        module = types.ModuleType(module_name)
        module.__file__ = f"{base}/{manifest.entry_point}"
        exec(compile(source, module.__file__, "exec"), module.__dict__)

        factory = self._from_object(manifest.id, module, source="url").factory
        logger.info("Fetched plugin %s from %s", manifest.id, base)
        return DiscoveredPlugin(manifest=manifest, factory=factory, source="url", path=base)

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def is_compatible(self, manifest: PluginManifest) -> bool:
        """Check the manifest's app version bounds against the host version."""
        current = parse_semver(self.config.app_version)
        if manifest.min_app_version and current < parse_semver(manifest.min_app_version):
            logger.warning(
                "Plugin %s requires app version %s or higher, current is %s",
                manifest.id,
                manifest.min_app_version,
                self.config.app_version,
            )
            return False
        if manifest.max_app_version and current > parse_semver(manifest.max_app_version):
            logger.warning(
                "Plugin %s requires app version %s or lower, current is %s",
                manifest.id,
                manifest.max_app_version,
                self.config.app_version,
            )
            return False
        return True

    def missing_permissions(self, manifest: PluginManifest) -> list[str]:
        """Permissions the manifest asks for that the host has not granted."""
        granted = set(self.config.granted_permissions)
        return [p for p in manifest.permissions if p not in granted]

    def check(self, manifest: PluginManifest) -> None:
        """
        Raise if a plugin must not be installed.

        Raises:
            IncompatiblePluginError: If the app version is out of range
            PermissionDeniedError: If a required permission is not granted
        """
        if not self.is_compatible(manifest):
            raise IncompatiblePluginError(
                f"Plugin {manifest.id} is not compatible with app version {self.config.app_version}"
            )
        missing = self.missing_permissions(manifest)
        if missing:
            raise PermissionDeniedError(manifest.id, missing[0])


def _module_suffix(plugin_id: str) -> str:
    return re.sub(r"\W", "_", plugin_id)
