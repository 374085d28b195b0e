"""
ListenerRegistry — реестр listener'ов по ключу срабатывания.

Ключ — entity_id для EntityListener и тип события для EventListener.
Порядок регистрации сохраняется и определяет порядок проверки listener'ов
с общим ключом.

Реестр заполняется только до старта диспетчеризации. После freeze()
регистрация запрещена, поэтому во время dispatch синхронизация не нужна.
"""

from collections import defaultdict

from core.listeners import EntityListener, EventListener


class RegistryFrozenError(RuntimeError):
    """Регистрация listener'а после старта диспетчеризации."""


class ListenerRegistry:
    """Реестр listener'ов: ключ -> список listener'ов в порядке регистрации."""

    def __init__(self):
        # entity_id -> list[EntityListener]
        self._entity_listeners: dict[str, list[EntityListener]] = defaultdict(list)
        # event_type -> list[EventListener]
        self._event_listeners: dict[str, list[EventListener]] = defaultdict(list)
        # Все entity listener'ы без дублей (listener может слушать несколько сущностей)
        self._all_entity_listeners: list[EntityListener] = []
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Закрыть реестр для регистрации (вызывается при старте диспетчеризации)."""
        self._frozen = True

    def _ensure_open(self) -> None:
        if self._frozen:
            raise RegistryFrozenError(
                "listeners must be registered before the runtime starts dispatching"
            )

    def register_entity_listener(self, listener: EntityListener) -> None:
        """
        Зарегистрировать EntityListener для каждого из его entity_id.

        Raises:
            RegistryFrozenError: если диспетчеризация уже запущена
            TypeError: если передан не EntityListener
        """
        self._ensure_open()
        if not isinstance(listener, EntityListener):
            raise TypeError(f"expected EntityListener, got {type(listener).__name__}")
        for entity_id in listener.entity_ids:
            self._entity_listeners[entity_id].append(listener)
        self._all_entity_listeners.append(listener)

    def register_event_listener(self, listener: EventListener) -> None:
        """
        Зарегистрировать EventListener для каждого из его типов событий.

        Raises:
            RegistryFrozenError: если диспетчеризация уже запущена
            TypeError: если передан не EventListener
        """
        self._ensure_open()
        if not isinstance(listener, EventListener):
            raise TypeError(f"expected EventListener, got {type(listener).__name__}")
        for event_type in listener.event_types:
            self._event_listeners[event_type].append(listener)

    def entity_listeners(self, entity_id: str) -> tuple[EntityListener, ...]:
        # .get() — чтобы не плодить пустые ключи в defaultdict
        return tuple(self._entity_listeners.get(entity_id, ()))

    def event_listeners(self, event_type: str) -> tuple[EventListener, ...]:
        return tuple(self._event_listeners.get(event_type, ()))

    def all_entity_listeners(self) -> tuple[EntityListener, ...]:
        return tuple(self._all_entity_listeners)

    def entity_keys(self) -> list[str]:
        return list(self._entity_listeners.keys())

    def event_keys(self) -> list[str]:
        return list(self._event_listeners.keys())

    def get_listeners_count(self, key: str) -> int:
        """Количество listener'ов (entity + event) на ключ."""
        return len(self._entity_listeners.get(key, ())) + len(self._event_listeners.get(key, ()))
