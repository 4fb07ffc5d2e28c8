"""
Plugin host demo.

Boots a host on the example plugins, renders the toolbar and sidebar,
activates a tool and waits for its result.

Run with:
    python examples/host_demo.py
"""

import asyncio
from pathlib import Path

from rich.console import Console

from cadcam_plugins import Channel, HostConfig, PluginHost, render_controls, setup_logging

console = Console()


async def main() -> None:
    setup_logging("INFO")

    config = HostConfig(
        plugin_dirs=[Path(__file__).parent / "plugins"],
        use_entry_points=False,
    )
    host = PluginHost(config)

    @host.bus.subscribe(Channel.TOOL_RESULT)
    def show_result(message):
        console.print(f"[green]{message.tool_id}[/green]: {message.result}")

    await host.start()

    console.rule("Toolbar")
    console.print(render_controls(host.resolver.resolve("toolbar"), expand=True))

    host.resolver.activate("measure-distance")
    await asyncio.sleep(0.6)
    await host.bus.drain()

    console.rule("Toolbar (after activation)")
    console.print(render_controls(host.resolver.resolve("toolbar", position="right")))

    console.rule("Sidebar")
    console.print(render_controls(host.resolver.resolve("sidebar")))

    console.print(f"\nActive tool: {host.tool_state.active_tool}")
    console.print(f"Last result: {host.tool_state.last_result('measure-distance')}")

    await host.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
