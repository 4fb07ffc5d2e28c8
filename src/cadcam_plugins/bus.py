"""
Tool activation bus.

Provides a typed publish/subscribe channel that host UI, plugin UI and tools
use to announce "a tool was activated" and "a tool produced a result".

Example:
    from cadcam_plugins.bus import Channel, ToolBus

    bus = ToolBus()

    @bus.subscribe(Channel.TOOL_RESULT)
    async def show(message):
        print(f"{message.tool_id}: {message.result}")

    bus.publish_activation("circle-by-3-points")
    bus.publish_result("circle-by-3-points", "Distance: 42.10 mm")
    await bus.drain()

Delivery is fire-and-forget: ``publish`` only enqueues. Listeners that share
a ``source`` share one FIFO lane drained by its own task, so they see both
channels in publish order; a listener without a source gets a lane of its
own. Listeners run on a later loop turn. A slow lane only delays itself, and
a raising listener is logged and skipped.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

from cadcam_plugins.logging import get_logger

logger = get_logger("bus")


# ---------------------------------------------------------------------------
# Channels and messages
# ---------------------------------------------------------------------------


class Channel(str, Enum):
    """Named channels; the values are the stable wire names."""

    TOOL_ACTIVATE = "tool-activate"
    TOOL_RESULT = "tool-result"


@dataclass(frozen=True)
class ToolActivation:
    """Published whenever an activation control is engaged."""

    tool_id: str

    channel: ClassVar[Channel] = Channel.TOOL_ACTIVATE

    def to_payload(self) -> dict[str, str]:
        return {"toolId": self.tool_id}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ToolActivation:
        return cls(tool_id=_require_str(payload, "toolId"))


@dataclass(frozen=True)
class ToolResult:
    """Published by a tool's own logic once it completes."""

    tool_id: str
    result: str

    channel: ClassVar[Channel] = Channel.TOOL_RESULT

    def to_payload(self) -> dict[str, str]:
        return {"toolId": self.tool_id, "result": self.result}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ToolResult:
        return cls(
            tool_id=_require_str(payload, "toolId"),
            result=_require_str(payload, "result"),
        )


ToolMessage = ToolActivation | ToolResult

_MESSAGE_TYPES: dict[Channel, type[ToolActivation] | type[ToolResult]] = {
    Channel.TOOL_ACTIVATE: ToolActivation,
    Channel.TOOL_RESULT: ToolResult,
}


def _require_str(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str):
        raise ValueError(f"Payload field '{key}' must be a string, got {value!r}")
    return value


def message_from_payload(channel: Channel | str, payload: Mapping[str, Any]) -> ToolMessage:
    """
    Parse a wire payload for a named channel.

    Raises:
        ValueError: If the channel is unknown or a field is missing
    """
    return _MESSAGE_TYPES[Channel(channel)].from_payload(payload)


# ---------------------------------------------------------------------------
# Bus
# ---------------------------------------------------------------------------

# Listeners can be sync or async.
MessageHandler = Callable[[Any], Any]


class _Lane:
    """Internal: one delivery queue and the worker task draining it."""

    __slots__ = ("key", "queue", "task")

    def __init__(self, key: object) -> None:
        self.key = key
        self.queue: asyncio.Queue[tuple[_Subscription, ToolMessage]] = asyncio.Queue()
        self.task: asyncio.Task[None] | None = None


class _Subscription:
    """Internal: a listener bound to the lane it is delivered on."""

    __slots__ = ("channel", "handler", "source", "lane", "active")

    def __init__(self, channel: Channel, handler: MessageHandler, source: str, lane: _Lane) -> None:
        self.channel = channel
        self.handler = handler
        self.source = source
        self.lane = lane
        self.active = True


class ToolBus:
    """
    Many-to-many broadcast channel for tool activation and results.

    Construct one per host; nothing here is process-global, so isolated
    hosts (for example in tests) never see each other's messages.

    ``publish`` must be called from code running inside the event loop.
    """

    def __init__(self) -> None:
        self._subscriptions: list[_Subscription] = []
        # source (or a private key for anonymous listeners) -> lane
        self._lanes: dict[object, _Lane] = {}
        self._published = 0

    def subscribe(
        self,
        channel: Channel | str,
        handler: MessageHandler | None = None,
        source: str = "",
    ) -> Callable[[], None] | Callable[[MessageHandler], MessageHandler]:
        """
        Register a listener for a channel.

        Listeners registered under the same ``source`` are delivered on one
        lane, in publish order across both channels.

        Can be used as a method call or as a decorator:

            # Method call, returns unsubscribe function
            unsub = bus.subscribe(Channel.TOOL_ACTIVATE, on_activate)
            unsub()

            # Decorator, returns the original function
            @bus.subscribe(Channel.TOOL_RESULT)
            def on_result(message):
                ...
        """
        channel = Channel(channel)
        if handler is not None:
            key: object = source if source else object()
            lane = self._lanes.get(key)
            if lane is None:
                lane = self._lanes[key] = _Lane(key)
            subscription = _Subscription(channel, handler, source, lane)
            self._subscriptions.append(subscription)

            def unsubscribe() -> None:
                self._remove(subscription)

            return unsubscribe

        def decorator(fn: MessageHandler) -> MessageHandler:
            self.subscribe(channel, fn, source=source)
            return fn

        return decorator

    def unsubscribe_source(self, source: str) -> int:
        """Remove all listeners registered by a given source. Returns count removed."""
        matching = [s for s in self._subscriptions if s.source == source]
        for subscription in matching:
            self._remove(subscription)
        return len(matching)

    def _remove(self, subscription: _Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            return
        # Messages still queued for it are skipped by the lane worker.
        subscription.active = False

        lane = subscription.lane
        if any(s.lane is lane for s in self._subscriptions):
            return
        self._lanes.pop(lane.key, None)
        if lane.task is not None:
            lane.task.cancel()
        # Pending messages are dropped so drain() cannot wait on them.
        while not lane.queue.empty():
            lane.queue.get_nowait()
            lane.queue.task_done()

    def publish(self, message: ToolMessage) -> None:
        """
        Enqueue a message for every listener on its channel.

        Never waits for listeners. Messages reach each listener in the
        order they were published.
        """
        if not isinstance(message, (ToolActivation, ToolResult)):
            raise TypeError(f"Unsupported message type: {type(message).__name__}")

        self._published += 1
        for subscription in list(self._subscriptions):
            if subscription.channel is not message.channel:
                continue
            subscription.lane.queue.put_nowait((subscription, message))
            self._ensure_worker(subscription.lane)

    def publish_activation(self, tool_id: str) -> None:
        """Announce that a tool was activated."""
        self.publish(ToolActivation(tool_id=tool_id))

    def publish_result(self, tool_id: str, result: str) -> None:
        """Announce that a tool produced a result."""
        self.publish(ToolResult(tool_id=tool_id, result=result))

    def _ensure_worker(self, lane: _Lane) -> None:
        if lane.task is None or lane.task.done():
            loop = asyncio.get_running_loop()
            lane.task = loop.create_task(self._deliver(lane))

    async def _deliver(self, lane: _Lane) -> None:
        while True:
            subscription, message = await lane.queue.get()
            try:
                if subscription.active:
                    result = subscription.handler(message)
                    if asyncio.iscoroutine(result) or asyncio.isfuture(result):
                        await result
            except Exception as e:
                logger.warning(
                    "Bus listener error (channel=%s, source=%s): %s",
                    subscription.channel.value,
                    subscription.source,
                    e,
                )
            finally:
                lane.queue.task_done()

    async def drain(self) -> None:
        """Wait until every message published so far has been delivered."""
        for lane in list(self._lanes.values()):
            await lane.queue.join()

    async def close(self) -> None:
        """Stop all delivery tasks and drop every listener."""
        tasks = [lane.task for lane in self._lanes.values() if lane.task is not None]
        for task in tasks:
            task.cancel()
        for subscription in self._subscriptions:
            subscription.active = False
        self._subscriptions.clear()
        self._lanes.clear()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    @property
    def subscriber_count(self) -> int:
        """Total number of registered listeners."""
        return len(self._subscriptions)

    @property
    def published_count(self) -> int:
        """Number of messages published since construction."""
        return self._published

    def has_subscribers(self, channel: Channel | str) -> bool:
        """Check if any listener is registered for a channel."""
        channel = Channel(channel)
        return any(s.channel is channel for s in self._subscriptions)
