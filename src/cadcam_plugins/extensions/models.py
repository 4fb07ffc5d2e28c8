"""
Data models for UI extensions.

An extension is one contribution to a fixed UI surface. Its metadata is a
closed variant per surface: toolbar contributions carry a ``ToolbarButton``,
every other surface carries ``PanelOptions``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

DEFAULT_GROUP = "default"


class SurfaceType(str, Enum):
    """Fixed UI locations extensions can target."""

    TOOLBAR = "toolbar"
    SIDEBAR = "sidebar"
    MODAL = "modal"
    CONTEXT_MENU = "contextMenu"

    @classmethod
    def parse(cls, value: SurfaceType | str) -> SurfaceType | None:
        """Return the matching surface, or None for an unknown value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class Position(str, Enum):
    """Horizontal placement hint within a surface."""

    LEFT = "left"
    RIGHT = "right"
    CENTER = "center"


# Given the extension's metadata, produce a renderable unit.
Renderable = Callable[[Any], Any]
Handler = Callable[[], Any]


@dataclass(frozen=True)
class ExtensionMetadata:
    """Options shared by every metadata variant."""

    name: str = ""
    tooltip: str = ""
    icon: str | Renderable | None = None
    position: Position | None = None
    group: str = DEFAULT_GROUP
    extra: dict[str, Any] = field(default_factory=dict)  # unrecognized options

    _FIELDS = ("name", "tooltip", "icon", "position", "group")

    def __post_init__(self) -> None:
        if self.position is not None and not isinstance(self.position, Position):
            object.__setattr__(self, "position", Position(self.position))
        if not self.group:
            object.__setattr__(self, "group", DEFAULT_GROUP)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]):
        """Build the variant from a loose options mapping."""
        known = cls._FIELDS
        kwargs = {key: data[key] for key in known if data.get(key) is not None}
        extra = {key: value for key, value in data.items() if key not in known}
        return cls(**kwargs, extra=extra)

    def to_dict(self) -> dict[str, Any]:
        """Flatten into the option mapping handed to renderables and UIs."""
        data: dict[str, Any] = dict(self.extra)
        for key in self._FIELDS:
            value = getattr(self, key)
            if isinstance(value, Position):
                value = value.value
            if value is not None:
                data[key] = value
        return data


@dataclass(frozen=True)
class ToolbarButton(ExtensionMetadata):
    """Metadata for a toolbar activation button."""

    label: str = ""

    _FIELDS = ExtensionMetadata._FIELDS + ("label",)

    @property
    def display_label(self) -> str:
        """Label, falling back to name, falling back to empty."""
        return self.label or self.name or ""


@dataclass(frozen=True)
class PanelOptions(ExtensionMetadata):
    """Metadata for sidebar, modal and context-menu contributions."""

    title: str = ""

    _FIELDS = ExtensionMetadata._FIELDS + ("title",)


def metadata_type_for(surface: SurfaceType) -> type[ExtensionMetadata]:
    """Return the metadata variant a surface requires."""
    if surface is SurfaceType.TOOLBAR:
        return ToolbarButton
    return PanelOptions


@dataclass(frozen=True)
class ExtensionDefinition:
    """
    One contribution to a UI surface.

    Example:
        ExtensionDefinition(
            id="circle-tool-button",
            surface=SurfaceType.TOOLBAR,
            metadata=ToolbarButton(label="Circle", group="geometry"),
            handler=lambda: print("circle"),
        )
    """

    id: str
    surface: SurfaceType
    metadata: ExtensionMetadata | None = None
    renderable: Renderable | None = None
    handler: Handler | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Extension id must not be empty")

        surface = SurfaceType.parse(self.surface)
        if surface is None:
            raise ValueError(f"Unknown surface type: {self.surface!r}")
        object.__setattr__(self, "surface", surface)

        expected = metadata_type_for(surface)
        if self.metadata is None:
            object.__setattr__(self, "metadata", expected())
        elif not isinstance(self.metadata, expected):
            raise TypeError(
                f"Extension '{self.id}' on {surface.value} needs {expected.__name__} "
                f"metadata, got {type(self.metadata).__name__}"
            )

        if self.handler is not None and not callable(self.handler):
            raise TypeError(f"Extension '{self.id}' handler is not callable")
        if self.renderable is not None and not callable(self.renderable):
            raise TypeError(f"Extension '{self.id}' renderable is not callable")

    @property
    def group(self) -> str:
        return self.metadata.group

    @property
    def position(self) -> Position | None:
        return self.metadata.position

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ExtensionDefinition:
        """
        Create a definition from the loose dict shape plugins declare.

        Accepts ``surface`` or ``type`` for the surface, and ``renderable``
        or ``component`` for the renderable.
        """
        surface_value = data.get("surface", data.get("type"))
        surface = SurfaceType.parse(surface_value) if surface_value is not None else None
        if surface is None:
            raise ValueError(f"Unknown surface type: {surface_value!r}")

        metadata = data.get("metadata")
        if not isinstance(metadata, ExtensionMetadata):
            metadata = metadata_type_for(surface).from_dict(metadata or {})

        return cls(
            id=data.get("id", ""),
            surface=surface,
            metadata=metadata,
            renderable=data.get("renderable", data.get("component")),
            handler=data.get("handler"),
        )
