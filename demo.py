"""
Пример использования Core Runtime.

Демонстрирует работу listener'ов без Home Assistant: сообщения подаются
через InMemoryConnection, состояния берутся из StaticStateOracle.
"""

import asyncio

from adapters.memory import InMemoryConnection, StaticStateOracle
from core.config import Config
from core.listeners import EntityData, EntityListenerBuilder, EventData, EventListenerBuilder
from core.runtime import CoreRuntime


def state_changed(entity_id: str, old: str, new: str) -> dict:
    return {
        "type": "event",
        "event": {
            "event_type": "state_changed",
            "data": {
                "entity_id": entity_id,
                "old_state": {"entity_id": entity_id, "state": old},
                "new_state": {"entity_id": entity_id, "state": new},
            },
        },
    }


async def demo():
    """Демонстрация работы Core Runtime."""

    print("=" * 60)
    print("ДЕМОНСТРАЦИЯ CORE RUNTIME")
    print("=" * 60)

    # 1. Создание Runtime
    print("\n[1] Создание Runtime...")
    connection = InMemoryConnection()
    state = StaticStateOracle({"input_boolean.guests": "off"})
    runtime = CoreRuntime(Config(metrics_enabled=False), state=state, connection=connection)
    print("✓ Runtime создан")

    # 2. Регистрация listener'ов
    print("\n[2] Регистрация listener'ов...")

    async def pantry_lights(sensor: EntityData) -> None:
        print(f"   → дверь кладовки: {sensor.from_state} -> {sensor.to_state}")
        if sensor.to_state == "on":
            await runtime.services.light.turn_on("light.pantry", {"brightness_pct": 60})
        else:
            await runtime.services.light.turn_off("light.pantry")

    def on_button(event: EventData) -> None:
        print(f"   → нажата кнопка: {event.data}")

    runtime.register_entity_listener(
        EntityListenerBuilder()
        .entity_ids("binary_sensor.pantry_door")
        .call(pantry_lights)
        .disabled_when("input_boolean.guests", "on", True)
        .build()
    )
    runtime.register_event_listener(
        EventListenerBuilder()
        .event_types("zha_event")
        .call(on_button)
        .throttle("2s")
        .build()
    )
    print("✓ Listener'ы зарегистрированы")

    # 3. Запуск Runtime
    print("\n[3] Запуск Runtime...")
    await runtime.start()
    print("✓ Runtime запущен")

    # 4. Уведомления
    print("\n[4] Подаём уведомления...")
    await connection.receive(state_changed("binary_sensor.pantry_door", "off", "on"))
    await connection.receive(state_changed("binary_sensor.pantry_door", "on", "on"))
    await connection.receive(state_changed("binary_sensor.pantry_door", "on", "off"))
    button = {"type": "event", "event": {"event_type": "zha_event", "data": {"command": "toggle"}}}
    await connection.receive(button)
    # Второе нажатие попадает под throttle
    await connection.receive(button)
    await runtime.join()
    await runtime.dispatcher.wait_idle(timeout=1)

    # 5. Отправленные вызовы сервисов
    print("\n[5] Отправленные call_service...")
    for message in connection.sent:
        print(f"   {message}")

    # 6. Остановка Runtime
    print("\n[6] Остановка Runtime...")
    await runtime.shutdown()
    print("✓ Runtime остановлен")

    print("\n" + "=" * 60)
    print("ДЕМОНСТРАЦИЯ ЗАВЕРШЕНА")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(demo())
