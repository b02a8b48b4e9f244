import asyncio
import inspect
from typing import Dict, List, Callable, Any
from dataclasses import dataclass, field
from enum import Enum
import time


class SignalType(Enum):
    CONFIG_CHANGE = "CONFIG_CHANGE"          # Governance mutator applied
    STAKE = "STAKE"                          # Liquid capital converted to LST
    SWAP = "SWAP"                            # LST converted back to liquid capital
    WITHDRAWAL_INITIATED = "WITHDRAWAL_INITIATED"
    WITHDRAWAL_CLAIMED = "WITHDRAWAL_CLAIMED"
    CYCLE = "CYCLE"                          # Valuation/harvest cycle finished
    EMERGENCY = "EMERGENCY"                  # Shutdown or emergency exit


@dataclass
class Signal:
    type: SignalType
    source: str
    data: Dict[str, Any]
    timestamp: float = field(default_factory=time.time)


class SignalBus:
    """
    Reactive signal bus.
    Lets dashboards and alerting subscribe to strategy events without coupling.
    """
    def __init__(self, max_history: int = 100):
        self._subscribers: Dict[SignalType, List[Callable]] = {t: [] for t in SignalType}
        self._history: List[Signal] = []
        self._max_history = max_history
        self._tasks = set()

    def subscribe(self, signal_type: SignalType, callback: Callable[[Signal], None]):
        """Register a callback for a specific signal type."""
        if callback not in self._subscribers[signal_type]:
            self._subscribers[signal_type].append(callback)

    def unsubscribe(self, signal_type: SignalType, callback: Callable[[Signal], None]):
        if callback in self._subscribers[signal_type]:
            self._subscribers[signal_type].remove(callback)

    def emit(self, signal: Signal):
        """Emit a signal to all subscribers."""
        self._history.append(signal)
        if len(self._history) > self._max_history:
            self._history.pop(0)

        for callback in self._subscribers.get(signal.type, []):
            if inspect.iscoroutinefunction(callback):
                task = asyncio.get_running_loop().create_task(callback(signal))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
            else:
                callback(signal)

    def history(self, signal_type: SignalType = None) -> List[Signal]:
        if signal_type is None:
            return list(self._history)
        return [s for s in self._history if s.type == signal_type]


# Global Hub Accessor
signal_bus = SignalBus()
