"""
Strategy State Store
====================
Durable storage of `StrategyState` on top of the shared SQLite layer.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from src.lst_strategy.types import StrategyState
from src.shared.system.persistence import PersistenceDB, get_db


class StrategyStateStore:
    def __init__(self, db: Optional[PersistenceDB] = None):
        self.db = db or get_db()

    def load(self, name: str) -> Optional[StrategyState]:
        data = self.db.load_strategy_state(name)
        if data is None:
            return None
        return StrategyState.from_dict(data)

    def save(self, name: str, state: StrategyState) -> None:
        self.db.save_strategy_state(name, state.to_dict())

    def record(self, name: str, event_type: str, payload: Dict[str, Any]) -> None:
        self.db.log_event(name, event_type, payload)

    def history(self, name: str, limit: int = 20) -> List[Dict[str, Any]]:
        return self.db.get_events(name, limit)
