"""
CAD Helper Tools - example plugin.

Adds grouped circle and symmetry tools plus a measurement button to the
toolbar, and a sidebar panel listing recently used tools. Measurements are
faked: the plugin answers a ``measure-distance`` activation with a fixed
result after a short delay.
"""

import asyncio

from rich.text import Text

from cadcam_plugins import (
    Channel,
    ExtensionDefinition,
    PanelOptions,
    Plugin,
    ToolbarButton,
)

CIRCLE_TOOLS = [
    ("circle-by-3-points", "Circle by 3 Points"),
    ("circle-by-diameter", "Circle by Diameter"),
    ("circle-by-center-radius", "Circle by Center & Radius"),
]

SYMMETRY_TOOLS = [
    ("symmetry-tool", "Symmetry Across Axis"),
    ("mirror-tool", "Mirror Across Line"),
    ("polar-array", "Polar Array"),
]

MAX_RECENT = 5


class CadHelperTools(Plugin):
    def __init__(self, api):
        super().__init__(api)
        self.recent: list[str] = []
        api.subscribe(Channel.TOOL_ACTIVATE, self.on_tool_activate)

    async def on_load(self):
        definitions = []
        for group, tools in (("circle", CIRCLE_TOOLS), ("symmetry", SYMMETRY_TOOLS)):
            for tool_id, label in tools:
                definitions.append(
                    ExtensionDefinition(
                        id=tool_id,
                        surface="toolbar",
                        metadata=ToolbarButton(label=label, tooltip=label, group=group, position="left"),
                    )
                )
        definitions.append(
            ExtensionDefinition(
                id="measure-distance",
                surface="toolbar",
                metadata=ToolbarButton(
                    label="Measure",
                    tooltip="Measure the distance between two points",
                    group="measure",
                    position="right",
                ),
            )
        )
        definitions.append(
            ExtensionDefinition(
                id="cad-helper-tools-panel",
                surface="sidebar",
                metadata=PanelOptions(title="CAD Helper Tools", position="right"),
                renderable=self.render_panel,
            )
        )
        return definitions

    async def on_enable(self):
        self.api.logger.info("CAD Helper Tools enabled")

    async def on_disable(self):
        self.recent.clear()

    async def on_tool_activate(self, message):
        if message.tool_id in self.recent:
            self.recent.remove(message.tool_id)
        self.recent = [message.tool_id, *self.recent][:MAX_RECENT]

        if message.tool_id == "measure-distance":
            await asyncio.sleep(self.api.get_settings().get("result_delay", 0.5))
            precision = self.api.get_settings().get("precision", 2)
            self.api.publish_result(message.tool_id, f"Distance: {42.1:.{precision}f} mm")

    def render_panel(self, metadata):
        text = Text(metadata.title, style="bold")
        if not self.recent:
            text.append("\nNo tools used yet", style="dim")
        for tool_id in self.recent:
            text.append(f"\n- {tool_id}")
        return text


def plugin(api):
    return CadHelperTools(api)
