"""
Extension registry for UI contributions.

Keeps every live extension definition keyed by its id, in registration
order, and answers "what is on this surface right now".

Example:
    from cadcam_plugins.extensions.registry import ExtensionRegistry

    registry = ExtensionRegistry()
    registry.register(definition, source="cad-helper-tools")

    for ext in registry.query_by_surface("toolbar"):
        print(ext.id)

    registry.unregister("circle-tool-button")
    registry.unregister("circle-tool-button")  # no-op
"""

from __future__ import annotations

from collections.abc import Callable

from cadcam_plugins.errors import DuplicateIdError
from cadcam_plugins.extensions.models import ExtensionDefinition, SurfaceType
from cadcam_plugins.logging import get_logger

logger = get_logger("extensions.registry")

ChangeListener = Callable[["ExtensionRegistry"], None]


class _ExtensionEntry:
    """Internal entry pairing a definition with who registered it."""

    __slots__ = ("definition", "source")

    def __init__(self, definition: ExtensionDefinition, source: str = "") -> None:
        self.definition = definition
        self.source = source


class ExtensionRegistry:
    """
    An in-memory table of extension definitions.

    Ids are unique at any point in time. Iteration and surface queries
    follow registration order, which is the presentation order absent
    other criteria.

    Thread Safety:
        The registry is designed for single-threaded async usage.
        Mutations are not protected by locks; every mutation completes
        before change listeners run, so readers never see a partial state.
    """

    def __init__(self) -> None:
        self._entries: dict[str, _ExtensionEntry] = {}
        self._listeners: list[ChangeListener] = []
        self._revision = 0

    def register(self, definition: ExtensionDefinition, source: str = "") -> None:
        """
        Register an extension definition.

        Args:
            definition: The definition to index
            source: Who registered it (plugin id, "host", ...)

        Raises:
            DuplicateIdError: If the id is already registered; the
                registry is left untouched
            TypeError: If ``definition`` is not an ExtensionDefinition
        """
        if not isinstance(definition, ExtensionDefinition):
            raise TypeError(
                f"Expected ExtensionDefinition, got {type(definition).__name__}"
            )

        existing = self._entries.get(definition.id)
        if existing is not None:
            raise DuplicateIdError(definition.id, owner=existing.source)

        self._entries[definition.id] = _ExtensionEntry(definition, source)
        logger.debug(
            "Registered extension: %s on %s (source=%s)",
            definition.id,
            definition.surface.value,
            source or "manual",
        )
        self._changed()

    def unregister(self, extension_id: str) -> bool:
        """
        Remove an extension. Removing an absent id is a no-op.

        Returns:
            True if removed, False if it was not registered
        """
        if self._entries.pop(extension_id, None) is None:
            return False

        logger.debug("Unregistered extension: %s", extension_id)
        self._changed()
        return True

    def unregister_by_source(self, source: str) -> int:
        """
        Remove all extensions registered by a given source.

        Returns:
            Number of extensions removed
        """
        to_remove = self.list_by_source(source)
        for extension_id in to_remove:
            self.unregister(extension_id)
        return len(to_remove)

    def query_by_surface(self, surface: SurfaceType | str) -> list[ExtensionDefinition]:
        """
        Return every extension on a surface, in registration order.

        The returned list is a snapshot; later registry mutations do not
        affect it. Unknown surfaces yield an empty list.
        """
        surface_type = SurfaceType.parse(surface)
        if surface_type is None:
            logger.debug("Query for unknown surface type: %r", surface)
            return []
        return [
            entry.definition
            for entry in self._entries.values()
            if entry.definition.surface is surface_type
        ]

    def get(self, extension_id: str) -> ExtensionDefinition | None:
        """Get a definition by id."""
        entry = self._entries.get(extension_id)
        return entry.definition if entry is not None else None

    def get_source(self, extension_id: str) -> str | None:
        """Get who registered an extension."""
        entry = self._entries.get(extension_id)
        return entry.source if entry is not None else None

    def has(self, extension_id: str) -> bool:
        """Check if an extension is registered."""
        return extension_id in self._entries

    def list_extensions(self) -> list[ExtensionDefinition]:
        """List all registered definitions in registration order."""
        return [entry.definition for entry in self._entries.values()]

    def list_by_source(self, source: str) -> list[str]:
        """List extension ids registered by a given source."""
        return [
            extension_id
            for extension_id, entry in self._entries.items()
            if entry.source == source
        ]

    def clear(self) -> None:
        """Remove all registered extensions."""
        if not self._entries:
            return
        self._entries.clear()
        self._changed()

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    @property
    def revision(self) -> int:
        """Monotonic counter bumped on every mutation."""
        return self._revision

    def on_change(self, listener: ChangeListener) -> Callable[[], None]:
        """
        Register a listener called after every mutation.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def _changed(self) -> None:
        self._revision += 1
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.warning("Registry change listener error: %s", e)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, extension_id: str) -> bool:
        return extension_id in self._entries

    def __repr__(self) -> str:
        ids = ", ".join(self._entries.keys())
        return f"ExtensionRegistry([{ids}])"
