"""
Per-plugin restricted capabilities.
"""

from __future__ import annotations

from collections.abc import Iterator, MutableMapping

from cadcam_plugins.errors import PermissionDeniedError


class PluginStorage:
    """
    Key-value storage scoped to one plugin.

    Keys are stored as ``plugin:<id>:<key>`` in a backing mapping shared by
    every plugin of a host. Reads need ``storage:read``, writes need
    ``storage:write``.
    """

    def __init__(
        self,
        plugin_id: str,
        backing: MutableMapping[str, str],
        permissions: list[str] | tuple[str, ...] = (),
    ) -> None:
        self._plugin_id = plugin_id
        self._backing = backing
        self._can_read = "storage:read" in permissions
        self._can_write = "storage:write" in permissions
        self._prefix = f"plugin:{plugin_id}:"

    def _require(self, allowed: bool, permission: str) -> None:
        if not allowed:
            raise PermissionDeniedError(self._plugin_id, permission)

    def get_item(self, key: str) -> str | None:
        self._require(self._can_read, "storage:read")
        return self._backing.get(self._prefix + key)

    def set_item(self, key: str, value: str) -> None:
        self._require(self._can_write, "storage:write")
        self._backing[self._prefix + key] = value

    def remove_item(self, key: str) -> None:
        self._require(self._can_write, "storage:write")
        self._backing.pop(self._prefix + key, None)

    def keys(self) -> Iterator[str]:
        self._require(self._can_read, "storage:read")
        for key in list(self._backing):
            if key.startswith(self._prefix):
                yield key[len(self._prefix):]

    def clear(self) -> None:
        """Remove every key this plugin owns."""
        self._require(self._can_write, "storage:write")
        for key in [k for k in self._backing if k.startswith(self._prefix)]:
            del self._backing[key]
