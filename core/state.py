"""
External State Oracle — контракт получения текущего состояния сущности.

Используется только gate'ами enabled_when / disabled_when и запуском
listener'ов с run_on_startup. Реальная реализация поверх REST API
Home Assistant находится в adapters/home_assistant_rest.py.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol

from core.time_utils import parse_timestamp


class StateQueryError(Exception):
    """Не удалось получить состояние сущности (сеть, timeout, неожиданный ответ)."""

    def __init__(self, entity_id: str, reason: str):
        super().__init__(f"failed to get state of {entity_id!r}: {reason}")
        self.entity_id = entity_id
        self.reason = reason


@dataclass(frozen=True)
class EntityState:
    """Снимок состояния сущности Home Assistant."""

    entity_id: str
    state: str
    attributes: dict[str, Any] = field(default_factory=dict)
    last_changed: Optional[datetime] = None
    last_updated: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], entity_id: str = "") -> "EntityState":
        """Собрать EntityState из JSON объекта состояния Home Assistant."""
        attributes = data.get("attributes")
        return cls(
            entity_id=str(data.get("entity_id") or entity_id),
            state=str(data.get("state") or ""),
            attributes=attributes if isinstance(attributes, dict) else {},
            last_changed=parse_timestamp(data.get("last_changed")),
            last_updated=parse_timestamp(data.get("last_updated")),
        )


class StateOracle(Protocol):
    """
    Источник живого состояния сущностей.

    get() должен бросать StateQueryError при любой ошибке получения.
    Timeout накладывается вызывающей стороной.
    """

    async def get(self, entity_id: str) -> EntityState:
        ...
