"""
Exception hierarchy for the plugin host.

Load and enable failures propagate to whoever orchestrates installation.
Teardown failures (disable/uninstall hooks) are logged by the manager and
never raised, so they have no dedicated type here.
"""

from __future__ import annotations


class PluginHostError(Exception):
    """Base class for every error raised by the plugin host."""

    pass


class DuplicateIdError(PluginHostError):
    """Raised when an extension id is already present in the registry."""

    def __init__(self, extension_id: str, owner: str = "") -> None:
        self.extension_id = extension_id
        self.owner = owner
        detail = f" (registered by {owner})" if owner else ""
        super().__init__(f"Extension '{extension_id}' is already registered{detail}")


class PluginError(PluginHostError):
    """Generic plugin management failure."""

    pass


class PluginNotFoundError(PluginError):
    """Raised when an operation names a plugin that is not installed."""

    def __init__(self, plugin_id: str) -> None:
        self.plugin_id = plugin_id
        super().__init__(f"Plugin '{plugin_id}' is not installed")


class InvalidTransitionError(PluginError):
    """Raised when a lifecycle transition is not allowed from the current state."""

    def __init__(self, plugin_id: str, transition: str, state: str) -> None:
        self.plugin_id = plugin_id
        self.transition = transition
        self.state = state
        super().__init__(f"Cannot {transition} plugin '{plugin_id}' while {state}")


class LifecycleHookError(PluginError):
    """A plugin hook (or the install factory) raised during a transition."""

    def __init__(self, plugin_id: str, hook: str, cause: BaseException | None = None) -> None:
        self.plugin_id = plugin_id
        self.hook = hook
        self.cause = cause
        message = f"Plugin '{plugin_id}' failed in {hook}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class ResourceApplyError(LifecycleHookError):
    """A declared resource could not be attached while enabling a plugin."""

    def __init__(self, plugin_id: str, resource_id: str, cause: BaseException | None = None) -> None:
        self.resource_id = resource_id
        super().__init__(plugin_id, f"apply_resource({resource_id})", cause)


class ManifestError(PluginError):
    """Raised when a plugin manifest is missing or malformed."""

    pass


class IncompatiblePluginError(PluginError):
    """Raised when a plugin does not support the running host version."""

    pass


class PermissionDeniedError(PluginError):
    """Raised when a plugin uses a capability it was not granted."""

    def __init__(self, plugin_id: str, permission: str) -> None:
        self.plugin_id = plugin_id
        self.permission = permission
        super().__init__(f"Plugin '{plugin_id}' requires permission '{permission}'")
