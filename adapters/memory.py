"""
In-memory адаптеры: подключение и источник состояний без Home Assistant.

Используются в demo.py и тестах.
"""

import asyncio
from typing import Any, Callable, Optional

from core.state import EntityState, StateQueryError


class InMemoryConnection:
    """Подключение, которое запоминает отправленные сообщения вместо отправки."""

    def __init__(self):
        self.on_message: Optional[Callable[[dict[str, Any]], Any]] = None
        self.sent: list[dict[str, Any]] = []
        self.started = False
        self._next_id = 1

    @property
    def is_connected(self) -> bool:
        return self.started

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False

    async def send(self, payload: dict[str, Any]) -> int:
        msg_id = self._next_id
        self._next_id += 1
        message = dict(payload)
        message["id"] = msg_id
        self.sent.append(message)
        return msg_id

    async def receive(self, message: dict[str, Any]) -> None:
        """Имитировать входящее сообщение от Home Assistant."""
        if self.on_message is not None:
            await self.on_message(message)


class StaticStateOracle:
    """
    Источник состояний поверх словаря entity_id -> state.

    failing — сущности, запрос которых падает с StateQueryError;
    delay — искусственная задержка ответа (для проверки timeout).
    """

    def __init__(self, states: Optional[dict[str, str]] = None, delay: float = 0.0):
        self.states: dict[str, str] = dict(states or {})
        self.failing: set[str] = set()
        self.delay = delay
        self.calls: list[str] = []

    def set(self, entity_id: str, state: str) -> None:
        self.states[entity_id] = state

    async def get(self, entity_id: str) -> EntityState:
        self.calls.append(entity_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if entity_id in self.failing:
            raise StateQueryError(entity_id, "simulated failure")
        if entity_id not in self.states:
            raise StateQueryError(entity_id, "HTTP 404: entity not found")
        return EntityState(entity_id=entity_id, state=self.states[entity_id])
