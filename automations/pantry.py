"""
Пример автоматизации: свет в кладовке по датчику двери и лог событий Z-Wave.
"""

from core import logger_helper
from core.listeners import EntityData, EntityListenerBuilder, EventData, EventListenerBuilder


PANTRY_LIGHT = "light.pantry"


def register(runtime) -> None:
    async def pantry_lights(sensor: EntityData) -> None:
        if sensor.to_state == "on":
            await runtime.services.home_assistant.turn_on(PANTRY_LIGHT)
        else:
            await runtime.services.home_assistant.turn_off(PANTRY_LIGHT)

    async def on_zwave_event(event: EventData) -> None:
        # Структура data зависит от типа события — разбираем по месту
        await logger_helper.info(
            runtime,
            "zwave value notification",
            module="automations.pantry",
            node_id=event.data.get("node_id"),
            value=event.data.get("value"),
        )

    runtime.register_entity_listener(
        EntityListenerBuilder()
        .entity_ids("binary_sensor.pantry_door")
        .call(pantry_lights)
        .build()
    )
    runtime.register_event_listener(
        EventListenerBuilder()
        .event_types("zwave_js_value_notification")
        .call(on_zwave_event)
        .throttle("1s")
        .build()
    )
