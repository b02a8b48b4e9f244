"""
Signal Bus Unit Tests
=====================
Subscribers receive strategy events; history is bounded.
"""

import asyncio

import pytest

from src.shared.system.signal_bus import Signal, SignalBus, SignalType


@pytest.mark.unit
class TestSignalBus:

    def test_sync_subscriber_receives_signal(self):
        bus = SignalBus()
        received = []
        bus.subscribe(SignalType.CYCLE, received.append)

        bus.emit(Signal(SignalType.CYCLE, "test", {"total_value": "1"}))
        bus.emit(Signal(SignalType.STAKE, "test", {}))

        assert [s.type for s in received] == [SignalType.CYCLE]

    def test_unsubscribe(self):
        bus = SignalBus()
        received = []
        bus.subscribe(SignalType.SWAP, received.append)
        bus.unsubscribe(SignalType.SWAP, received.append)

        bus.emit(Signal(SignalType.SWAP, "test", {}))
        assert received == []

    def test_history_is_bounded(self):
        bus = SignalBus(max_history=3)
        for i in range(5):
            bus.emit(Signal(SignalType.CONFIG_CHANGE, "test", {"i": i}))

        assert [s.data["i"] for s in bus.history()] == [2, 3, 4]

    @pytest.mark.asyncio
    async def test_async_subscriber_scheduled(self):
        bus = SignalBus()
        received = []

        async def on_emergency(signal):
            received.append(signal.data["action"])

        bus.subscribe(SignalType.EMERGENCY, on_emergency)
        bus.emit(Signal(SignalType.EMERGENCY, "test", {"action": "shutdown"}))
        await asyncio.sleep(0)

        assert received == ["shutdown"]
