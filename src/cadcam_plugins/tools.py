"""
Host-side active tool state.

Tracks which tool is active and the latest result each tool reported.
Renderers read it; the bus writes it.
"""

from __future__ import annotations

from collections.abc import Callable

from cadcam_plugins.bus import Channel, ToolActivation, ToolBus, ToolResult
from cadcam_plugins.logging import get_logger

logger = get_logger("tools")


class ActiveToolState:
    """The currently active tool and the last result of each tool."""

    def __init__(self) -> None:
        self._active_tool: str | None = None
        self._results: dict[str, str] = {}

    @property
    def active_tool(self) -> str | None:
        return self._active_tool

    @property
    def results(self) -> dict[str, str]:
        """Latest result per tool id (copy)."""
        return dict(self._results)

    def set_active(self, tool_id: str | None) -> None:
        if tool_id != self._active_tool:
            logger.debug("Active tool: %s -> %s", self._active_tool, tool_id)
        self._active_tool = tool_id

    def clear(self) -> None:
        self._active_tool = None
        self._results.clear()

    def is_active(self, tool_id: str) -> bool:
        return self._active_tool == tool_id

    def last_result(self, tool_id: str) -> str | None:
        return self._results.get(tool_id)

    def attach(self, bus: ToolBus, source: str = "host") -> Callable[[], None]:
        """
        Follow the bus: activations set the active tool, results are kept.

        Returns:
            A function that detaches both listeners
        """

        def on_activate(message: ToolActivation) -> None:
            self.set_active(message.tool_id)

        def on_result(message: ToolResult) -> None:
            self._results[message.tool_id] = message.result

        unsubs = [
            bus.subscribe(Channel.TOOL_ACTIVATE, on_activate, source=source),
            bus.subscribe(Channel.TOOL_RESULT, on_result, source=source),
        ]

        def detach() -> None:
            for unsub in unsubs:
                unsub()

        return detach
