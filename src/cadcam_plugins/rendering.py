"""
Terminal rendering of resolved surfaces with rich.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.protocol import is_renderable
from rich.text import Text

from cadcam_plugins.extensions.resolver import (
    ActivationControl,
    DisclosureControl,
    PanelContent,
    ResolvedControl,
)

ACTIVE_STYLE = "bold reverse cyan"
DISCLOSURE_MARK = "▾"


def render_button(control: ActivationControl) -> Text:
    """Render one activation control as ``[label]``."""
    text = Text(f"[{control.label}]", style=ACTIVE_STYLE if control.active else "cyan")
    if control.tooltip:
        text.append(f" {control.tooltip}", style="dim")
    return text


def render_disclosure(control: DisclosureControl, expand: bool = False) -> RenderableType:
    """Render a group as ``[group ▾]``, listing its members when expanded."""
    header = Text(
        f"[{control.label} {DISCLOSURE_MARK}]",
        style=ACTIVE_STYLE if control.active else "magenta",
    )
    if not expand:
        return header

    lines: list[RenderableType] = [header]
    for member in control.members:
        line = Text("  ")
        line.append_text(render_button(member))
        lines.append(line)
    return Group(*lines)


def render_panel(panel: PanelContent) -> Panel:
    content: Any = panel.content
    if not (isinstance(content, str) or is_renderable(content)):
        content = repr(content)
    return Panel(content, title=panel.extension_id, title_align="left")


def render_controls(controls: Sequence[ResolvedControl], expand: bool = False) -> Group:
    """
    Turn a resolved surface into a single rich renderable.

    Args:
        controls: Output of ``ExtensionPointResolver.resolve``
        expand: Show the members of disclosure controls
    """
    parts: list[RenderableType] = []
    for control in controls:
        if isinstance(control, ActivationControl):
            parts.append(render_button(control))
        elif isinstance(control, DisclosureControl):
            parts.append(render_disclosure(control, expand=expand))
        elif isinstance(control, PanelContent):
            parts.append(render_panel(control))
    return Group(*parts)
