"""Shared pytest fixtures for cadcam-plugins tests."""

from pathlib import Path
from textwrap import dedent
from typing import Any

import pytest

from cadcam_plugins import (
    ALL_PERMISSIONS,
    DocumentHead,
    ExtensionDefinition,
    ExtensionRegistry,
    HostConfig,
    PanelOptions,
    PluginManager,
    PluginManifest,
    ToolBus,
    ToolbarButton,
)


class RecordingPlugin:
    """
    Test plugin that records hook calls and can be told to fail.

    ``fail`` maps a hook name to the exception it should raise.
    """

    def __init__(
        self,
        api: Any,
        definitions: list[ExtensionDefinition] | None = None,
        stylesheets: list[tuple[str, str]] | None = None,
        fail: dict[str, Exception] | None = None,
    ) -> None:
        self.api = api
        self.definitions = list(definitions or [])
        self.stylesheets = list(stylesheets or [])
        self.fail = dict(fail or {})
        self.calls: list[str] = []
        self.settings_seen: list[dict] = []

    def _hook(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise self.fail[name]

    async def on_load(self):
        self._hook("on_load")
        return self.definitions

    async def on_enable(self):
        for resource_id, href in self.stylesheets:
            self.api.add_stylesheet(resource_id, href)
        self._hook("on_enable")

    async def on_disable(self):
        self._hook("on_disable")

    async def on_uninstall(self):
        self._hook("on_uninstall")

    def on_settings_change(self, settings):
        self.settings_seen.append(settings)
        self._hook("on_settings_change")


def toolbar(ext_id: str, group: str = "default", position: str | None = None, **kwargs) -> ExtensionDefinition:
    """Build a toolbar definition."""
    return ExtensionDefinition(
        id=ext_id,
        surface="toolbar",
        metadata=ToolbarButton(group=group, position=position, **kwargs),
    )


def sidebar(ext_id: str, renderable=None, **kwargs) -> ExtensionDefinition:
    """Build a sidebar definition."""
    return ExtensionDefinition(
        id=ext_id,
        surface="sidebar",
        metadata=PanelOptions(**kwargs),
        renderable=renderable,
    )


def make_manifest(plugin_id: str = "test-plugin", **kwargs) -> PluginManifest:
    data = {
        "id": plugin_id,
        "name": plugin_id.replace("-", " ").title(),
        "version": "1.0.0",
        "permissions": list(ALL_PERMISSIONS),
    }
    data.update(kwargs)
    return PluginManifest.from_dict(data)


@pytest.fixture
def registry() -> ExtensionRegistry:
    return ExtensionRegistry()


@pytest.fixture
def bus() -> ToolBus:
    return ToolBus()


@pytest.fixture
def head() -> DocumentHead:
    return DocumentHead()


@pytest.fixture
def manager(registry: ExtensionRegistry, bus: ToolBus, head: DocumentHead) -> PluginManager:
    return PluginManager(registry, bus=bus, resources=head, config=HostConfig(use_entry_points=False))


@pytest.fixture
def install(manager: PluginManager):
    """Install a RecordingPlugin and return its instance."""

    def _install(plugin_id: str = "test-plugin", manifest: dict | None = None, **plugin_kwargs):
        record = manager.install(
            make_manifest(plugin_id, **(manifest or {})),
            lambda api: RecordingPlugin(api, **plugin_kwargs),
        )
        return record.instance

    return _install


@pytest.fixture
def plugin_dir(tmp_path: Path) -> Path:
    """Create a temporary plugin directory with sample plugins."""
    plugins_dir = tmp_path / "plugins"
    plugins_dir.mkdir()

    # A plugin with a YAML manifest and one toolbar button
    measure_dir = plugins_dir / "measure"
    measure_dir.mkdir()
    (measure_dir / "manifest.yaml").write_text(
        dedent("""
        id: measure-tools
        name: Measure Tools
        version: 1.2.0
        description: Measuring helpers
        permissions:
          - ui:addToolbar
        stylesheets:
          - /plugins/measure/styles.css
    """).strip()
    )
    (measure_dir / "plugin.py").write_text(
        dedent("""
        from cadcam_plugins import ExtensionDefinition, Plugin, ToolbarButton


        class MeasureTools(Plugin):
            async def on_load(self):
                return [
                    ExtensionDefinition(
                        id="measure-distance",
                        surface="toolbar",
                        metadata=ToolbarButton(label="Measure", group="measure"),
                    )
                ]


        def plugin(api):
            return MeasureTools(api)
    """).strip()
    )

    # A plugin with a JSON manifest registering through the API
    panel_dir = plugins_dir / "panel"
    panel_dir.mkdir()
    (panel_dir / "manifest.json").write_text(
        '{"id": "layers-panel", "name": "Layers", "version": "0.3.0", '
        '"entryPoint": "main.py", "permissions": ["ui:addSidebar"]}'
    )
    (panel_dir / "main.py").write_text(
        dedent("""
        class LayersPanel:
            def __init__(self, api):
                self.api = api

            def on_load(self):
                self.api.register_extension({
                    "id": "layers",
                    "type": "sidebar",
                    "component": lambda metadata: "Layer list",
                    "metadata": {"title": "Layers"},
                })


        def plugin(api):
            return LayersPanel(api)
    """).strip()
    )

    # A broken plugin: manifest without version
    broken_dir = plugins_dir / "broken"
    broken_dir.mkdir()
    (broken_dir / "manifest.yaml").write_text("id: broken\nname: Broken\n")

    # Not a plugin at all
    (plugins_dir / "notes").mkdir()
    (plugins_dir / "README.md").write_text("# Plugins\n")

    return plugins_dir
