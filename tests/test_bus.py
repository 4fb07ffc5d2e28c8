"""Tests for the tool activation bus."""

from __future__ import annotations

import asyncio

import pytest

from cadcam_plugins import (
    ActiveToolState,
    Channel,
    ToolActivation,
    ToolBus,
    ToolResult,
    message_from_payload,
)


# ---------------------------------------------------------------------------
# Messages and payloads
# ---------------------------------------------------------------------------


class TestMessages:
    def test_channel_wire_names(self) -> None:
        assert Channel.TOOL_ACTIVATE.value == "tool-activate"
        assert Channel.TOOL_RESULT.value == "tool-result"

    def test_payload_shapes(self) -> None:
        assert ToolActivation("circle").to_payload() == {"toolId": "circle"}
        assert ToolResult("measure", "Distance: 42.10 mm").to_payload() == {
            "toolId": "measure",
            "result": "Distance: 42.10 mm",
        }

    def test_message_from_payload(self) -> None:
        message = message_from_payload("tool-result", {"toolId": "m", "result": "ok"})
        assert message == ToolResult(tool_id="m", result="ok")

        message = message_from_payload(Channel.TOOL_ACTIVATE, {"toolId": "c"})
        assert message == ToolActivation(tool_id="c")

    def test_invalid_payloads(self) -> None:
        with pytest.raises(ValueError):
            message_from_payload("tool-result", {"toolId": "m"})
        with pytest.raises(ValueError):
            message_from_payload("tool-activate", {"toolId": 7})
        with pytest.raises(ValueError):
            message_from_payload("tool-progress", {"toolId": "m"})


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------


class TestToolBus:
    @pytest.mark.asyncio
    async def test_publish_does_not_run_listeners_synchronously(self, bus: ToolBus) -> None:
        received: list[str] = []
        bus.subscribe(Channel.TOOL_ACTIVATE, lambda m: received.append(m.tool_id))

        bus.publish_activation("circle")
        assert received == []

        await bus.drain()
        assert received == ["circle"]

    @pytest.mark.asyncio
    async def test_channels_are_separate(self, bus: ToolBus) -> None:
        activations: list[ToolActivation] = []
        results: list[ToolResult] = []
        bus.subscribe(Channel.TOOL_ACTIVATE, activations.append)
        bus.subscribe("tool-result", results.append)

        bus.publish_activation("circle")
        bus.publish_result("circle", "done")
        await bus.drain()

        assert activations == [ToolActivation("circle")]
        assert results == [ToolResult("circle", "done")]

    @pytest.mark.asyncio
    async def test_fifo_per_subscriber(self, bus: ToolBus) -> None:
        received: list[str] = []

        async def slow(message: ToolActivation) -> None:
            await asyncio.sleep(0.001)
            received.append(message.tool_id)

        bus.subscribe(Channel.TOOL_ACTIVATE, slow)
        for i in range(10):
            bus.publish_activation(f"tool-{i}")
        await bus.drain()

        assert received == [f"tool-{i}" for i in range(10)]

    @pytest.mark.asyncio
    async def test_same_source_sees_both_channels_in_publish_order(self, bus: ToolBus) -> None:
        seen: list[str] = []

        async def on_activate(message: ToolActivation) -> None:
            await asyncio.sleep(0.01)
            seen.append("activate")

        bus.subscribe(Channel.TOOL_ACTIVATE, on_activate, source="panel")
        bus.subscribe(Channel.TOOL_RESULT, lambda m: seen.append("result"), source="panel")

        bus.publish_activation("circle-by-3-points")
        bus.publish_result("circle-by-3-points", "Distance: 42.10 mm")
        await bus.drain()

        assert seen == ["activate", "result"]

    @pytest.mark.asyncio
    async def test_unsubscribe_in_shared_lane_skips_pending(self, bus: ToolBus) -> None:
        seen: list[str] = []
        unsubscribe = bus.subscribe(Channel.TOOL_ACTIVATE, lambda m: seen.append("gone"), source="panel")
        bus.subscribe(Channel.TOOL_ACTIVATE, lambda m: seen.append("kept"), source="panel")

        bus.publish_activation("circle")
        unsubscribe()
        await bus.drain()

        assert seen == ["kept"]

    @pytest.mark.asyncio
    async def test_raising_listener_does_not_affect_others(self, bus: ToolBus, caplog) -> None:
        received: list[str] = []

        def broken(message: ToolActivation) -> None:
            raise RuntimeError("listener exploded")

        bus.subscribe(Channel.TOOL_ACTIVATE, broken)
        bus.subscribe(Channel.TOOL_ACTIVATE, lambda m: received.append(m.tool_id))

        bus.publish_activation("a")
        bus.publish_activation("b")
        await bus.drain()

        assert received == ["a", "b"]
        assert "listener exploded" in caplog.text

    @pytest.mark.asyncio
    async def test_slow_listener_does_not_block_others(self, bus: ToolBus) -> None:
        gate = asyncio.Event()
        fast: list[str] = []

        async def blocked(message: ToolActivation) -> None:
            await gate.wait()

        bus.subscribe(Channel.TOOL_ACTIVATE, blocked)
        bus.subscribe(Channel.TOOL_ACTIVATE, lambda m: fast.append(m.tool_id))

        bus.publish_activation("a")
        for _ in range(5):
            await asyncio.sleep(0)

        assert fast == ["a"]
        gate.set()
        await bus.drain()

    @pytest.mark.asyncio
    async def test_unsubscribe(self, bus: ToolBus) -> None:
        received: list[str] = []
        unsubscribe = bus.subscribe(Channel.TOOL_ACTIVATE, lambda m: received.append(m.tool_id))

        bus.publish_activation("a")
        await bus.drain()
        unsubscribe()
        unsubscribe()
        bus.publish_activation("b")
        await bus.drain()

        assert received == ["a"]
        assert bus.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_unsubscribe_drops_pending_messages(self, bus: ToolBus) -> None:
        received: list[str] = []
        unsubscribe = bus.subscribe(Channel.TOOL_ACTIVATE, lambda m: received.append(m.tool_id))

        bus.publish_activation("a")
        unsubscribe()
        await bus.drain()
        await asyncio.sleep(0)

        assert received == []

    @pytest.mark.asyncio
    async def test_decorator_subscription(self, bus: ToolBus) -> None:
        received: list[str] = []

        @bus.subscribe(Channel.TOOL_RESULT)
        async def on_result(message: ToolResult) -> None:
            received.append(message.result)

        bus.publish_result("measure", "42")
        await bus.drain()

        assert received == ["42"]
        assert on_result.__name__ == "on_result"

    @pytest.mark.asyncio
    async def test_unsubscribe_source(self, bus: ToolBus) -> None:
        bus.subscribe(Channel.TOOL_ACTIVATE, lambda m: None, source="plugin-a")
        bus.subscribe(Channel.TOOL_RESULT, lambda m: None, source="plugin-a")
        bus.subscribe(Channel.TOOL_RESULT, lambda m: None, source="host")

        assert bus.unsubscribe_source("plugin-a") == 2
        assert bus.subscriber_count == 1
        assert not bus.has_subscribers(Channel.TOOL_ACTIVATE)
        assert bus.has_subscribers("tool-result")

    @pytest.mark.asyncio
    async def test_publish_rejects_unknown_messages(self, bus: ToolBus) -> None:
        with pytest.raises(TypeError):
            bus.publish({"toolId": "circle"})  # type: ignore[arg-type]
        assert bus.published_count == 0

    @pytest.mark.asyncio
    async def test_publish_without_subscribers(self, bus: ToolBus) -> None:
        bus.publish_activation("nobody-listens")
        await bus.drain()
        assert bus.published_count == 1

    @pytest.mark.asyncio
    async def test_buses_are_isolated(self) -> None:
        first, second = ToolBus(), ToolBus()
        received: list[str] = []
        second.subscribe(Channel.TOOL_ACTIVATE, lambda m: received.append(m.tool_id))

        first.publish_activation("circle")
        await first.drain()
        await second.drain()

        assert received == []

    @pytest.mark.asyncio
    async def test_close_cancels_listeners(self, bus: ToolBus) -> None:
        bus.subscribe(Channel.TOOL_ACTIVATE, lambda m: None)
        bus.publish_activation("a")
        await bus.close()

        assert bus.subscriber_count == 0


class TestRoundTrip:
    @pytest.mark.asyncio
    async def test_activation_then_result(self, bus: ToolBus) -> None:
        """A tool answers its own activation; a listener sees both in order."""
        seen: list[tuple[str, dict]] = []

        async def measure_tool(message: ToolActivation) -> None:
            if message.tool_id == "measure-distance":
                await asyncio.sleep(0.01)
                bus.publish_result(message.tool_id, "Distance: 42.10 mm")

        bus.subscribe(Channel.TOOL_ACTIVATE, measure_tool)
        bus.subscribe(Channel.TOOL_ACTIVATE, lambda m: seen.append((m.channel.value, m.to_payload())))
        bus.subscribe(Channel.TOOL_RESULT, lambda m: seen.append((m.channel.value, m.to_payload())))

        bus.publish_activation("measure-distance")
        await bus.drain()
        await bus.drain()

        assert seen == [
            ("tool-activate", {"toolId": "measure-distance"}),
            ("tool-result", {"toolId": "measure-distance", "result": "Distance: 42.10 mm"}),
        ]


class TestActiveToolState:
    @pytest.mark.asyncio
    async def test_attach_tracks_activations_and_results(self, bus: ToolBus) -> None:
        state = ActiveToolState()
        detach = state.attach(bus)

        bus.publish_activation("circle")
        bus.publish_result("circle", "r=5")
        await bus.drain()

        assert state.active_tool == "circle"
        assert state.is_active("circle")
        assert state.last_result("circle") == "r=5"
        assert state.results == {"circle": "r=5"}

        detach()
        bus.publish_activation("mirror")
        await bus.drain()
        assert state.active_tool == "circle"

    def test_set_active_and_clear(self) -> None:
        state = ActiveToolState()
        state.set_active("mirror")
        assert state.is_active("mirror")

        state.clear()
        assert state.active_tool is None
        assert state.last_result("mirror") is None

    def test_results_is_a_copy(self) -> None:
        state = ActiveToolState()
        state.results["x"] = "y"
        assert state.results == {}
