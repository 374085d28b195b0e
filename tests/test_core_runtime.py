import pytest

from adapters.memory import StaticStateOracle
from core.config import Config
from core.listener_registry import RegistryFrozenError
from core.listeners import EntityListenerBuilder, EventListenerBuilder
from core.runtime import CoreRuntime

from conftest import event, state_changed


def make_runtime(connection, clock, states=None, **config):
    return CoreRuntime(
        Config(**config),
        state=StaticStateOracle(states or {}),
        connection=connection,
        clock=clock,
    )


@pytest.mark.asyncio
async def test_core_start_stop_shutdown(connection, clock):
    runtime = make_runtime(connection, clock)
    assert runtime.is_running is False

    await runtime.start()
    assert runtime.is_running is True
    assert connection.started
    assert runtime.registry.frozen
    assert await runtime.service_registry.has_service("logger.log")
    assert await runtime.service_registry.has_service("light.turn_on")

    await runtime.stop()
    assert runtime.is_running is False
    assert not connection.started
    assert not await runtime.service_registry.has_service("light.turn_on")

    await runtime.shutdown()
    assert await runtime.service_registry.list_services() == []


@pytest.mark.asyncio
async def test_registration_after_start_fails(connection, clock):
    runtime = make_runtime(connection, clock)
    await runtime.start()
    try:
        with pytest.raises(RegistryFrozenError):
            runtime.register_entity_listener(
                EntityListenerBuilder().entity_ids("light.a").call(lambda d: None).build()
            )
    finally:
        await runtime.shutdown()


@pytest.mark.asyncio
async def test_messages_flow_from_connection_to_callbacks(connection, clock):
    runtime = make_runtime(connection, clock)
    seen = []

    async def door(data):
        seen.append(("door", data.to_state))
        await runtime.services.light.turn_on("light.pantry")

    async def button(data):
        seen.append(("button", data.data["command"]))

    runtime.register_entity_listener(
        EntityListenerBuilder().entity_ids("binary_sensor.pantry_door").call(door).to_state("on").build()
    )
    runtime.register_event_listener(EventListenerBuilder().event_types("zha_event").call(button).build())

    await runtime.start()
    await connection.receive(state_changed("binary_sensor.pantry_door", "off", "on"))
    await connection.receive({"type": "result", "id": 3, "success": True})
    await connection.receive(event("zha_event", command="toggle"))
    await runtime.join()
    await runtime.dispatcher.wait_idle(1)
    await runtime.shutdown()

    assert seen == [("door", "on"), ("button", "toggle")]
    assert connection.sent == [
        {
            "type": "call_service",
            "domain": "light",
            "service": "turn_on",
            "target": {"entity_id": "light.pantry"},
            "id": 1,
        }
    ]


@pytest.mark.asyncio
async def test_messages_processed_in_order(connection, clock):
    runtime = make_runtime(connection, clock)
    order = []

    def record(data):
        order.append(data.to_state)

    runtime.register_entity_listener(EntityListenerBuilder().entity_ids("sensor.counter").call(record).build())
    await runtime.start()
    for i in range(5):
        await runtime.feed(state_changed("sensor.counter", str(i), str(i + 1)))
    await runtime.join()
    await runtime.dispatcher.wait_idle(1)
    await runtime.shutdown()

    assert sorted(order) == ["1", "2", "3", "4", "5"]
    assert runtime.monitoring.registry.get_sample_value(
        "hc_notifications_total", {"kind": "state_changed"}
    ) == 5


@pytest.mark.asyncio
async def test_run_on_startup_fires_during_start(connection, clock):
    runtime = make_runtime(connection, clock, states={"input_boolean.away": "on"})
    seen = []

    async def away(data):
        seen.append(data.to_state)

    runtime.register_entity_listener(
        EntityListenerBuilder().entity_ids("input_boolean.away").call(away).run_on_startup().build()
    )
    await runtime.start()
    await runtime.dispatcher.wait_idle(1)
    await runtime.shutdown()

    assert seen == ["on"]


@pytest.mark.asyncio
async def test_notifications_wait_for_startup_listeners(connection, clock):
    runtime = None

    class FeedingOracle(StaticStateOracle):
        async def get(self, entity_id):
            # Уведомление приходит, пока run_on_startup ещё ждёт состояние
            await runtime.feed(state_changed(entity_id, "off", "on"))
            return await super().get(entity_id)

    runtime = CoreRuntime(
        Config(),
        state=FeedingOracle({"input_boolean.away": "on"}, delay=0.05),
        connection=connection,
        clock=clock,
    )
    seen = []

    async def away(data):
        seen.append(data.from_state)

    runtime.register_entity_listener(
        EntityListenerBuilder().entity_ids("input_boolean.away").call(away).throttle("1h").run_on_startup().build()
    )
    await runtime.start()
    await runtime.join()
    await runtime.dispatcher.wait_idle(1)
    await runtime.shutdown()

    # Сработал только startup-вызов, уведомление отсечено throttle
    assert seen == ["on"]


@pytest.mark.asyncio
async def test_stop_cancels_pending_delay(connection, clock):
    runtime = make_runtime(connection, clock)
    seen = []
    listener = (
        EntityListenerBuilder().entity_ids("binary_sensor.door").call(lambda d: seen.append(d)).duration("1s").build()
    )
    runtime.register_entity_listener(listener)

    await runtime.start()
    await connection.receive(state_changed("binary_sensor.door", "off", "on"))
    await runtime.join()
    assert listener.delay_timer is not None

    await runtime.shutdown()
    assert listener.delay_timer is None
    assert seen == []


@pytest.mark.asyncio
async def test_metrics_disabled(connection, clock):
    runtime = make_runtime(connection, clock, metrics_enabled=False)
    assert runtime.monitoring is None
    assert runtime.get_module("monitoring") is None
    assert runtime.get_module("logger") is not None


@pytest.mark.asyncio
async def test_feed_before_start_is_ignored(connection, clock):
    runtime = make_runtime(connection, clock)
    await runtime.feed(state_changed("light.a", "off", "on"))
    await runtime.join()


@pytest.mark.asyncio
async def test_load_automations_registers_pantry(connection, clock):
    from main import load_automations

    runtime = make_runtime(connection, clock)
    loaded = load_automations(runtime)

    assert "pantry" in loaded
    assert runtime.registry.entity_listeners("binary_sensor.pantry_door")
    assert runtime.registry.event_listeners("zwave_js_value_notification")

    await runtime.start()
    await connection.receive(state_changed("binary_sensor.pantry_door", "off", "on"))
    await connection.receive(state_changed("binary_sensor.pantry_door", "on", "off"))
    await runtime.join()
    await runtime.dispatcher.wait_idle(1)
    await runtime.shutdown()

    assert [(m["service"], m["target"]["entity_id"]) for m in connection.sent] == [
        ("turn_on", "light.pantry"),
        ("turn_off", "light.pantry"),
    ]
