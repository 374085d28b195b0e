import pytest

from adapters.memory import StaticStateOracle
from core.config import Config
from core.listeners import EntityListenerBuilder, EventListenerBuilder
from core.runtime import CoreRuntime
from modules.api import ApiModule


def make_runtime(connection, clock, **config):
    return CoreRuntime(Config(**config), state=StaticStateOracle(), connection=connection, clock=clock)


def test_api_module_added_only_when_enabled(connection, clock):
    assert make_runtime(connection, clock).get_module("api") is None
    runtime = make_runtime(connection, clock, http_enabled=True, http_port=8123)
    api = runtime.get_module("api")
    assert isinstance(api, ApiModule)
    assert api.port == 8123


@pytest.mark.asyncio
async def test_routes_include_monitoring(connection, clock):
    runtime = make_runtime(connection, clock)
    api = ApiModule(runtime)
    await api.register()

    paths = {route.path for route in api.app.routes}
    assert {"/metrics", "/health", "/listeners", "/services"} <= paths


@pytest.mark.asyncio
async def test_routes_without_monitoring(connection, clock):
    runtime = make_runtime(connection, clock, metrics_enabled=False)
    api = ApiModule(runtime)
    await api.register()

    paths = {route.path for route in api.app.routes}
    assert "/metrics" not in paths
    assert "/listeners" in paths


@pytest.mark.asyncio
async def test_diagnostic_endpoints(connection, clock):
    runtime = make_runtime(connection, clock)
    runtime.register_entity_listener(
        EntityListenerBuilder().entity_ids("light.a", "light.b").call(lambda d: None).build(),
        EntityListenerBuilder().entity_ids("light.a").call(lambda d: None).build(),
    )
    runtime.register_event_listener(EventListenerBuilder().event_types("zha_event").call(lambda d: None).build())
    api = ApiModule(runtime)
    await api.register()

    listeners = await api.listeners_endpoint()
    assert listeners == {"frozen": False, "entities": {"light.a": 2, "light.b": 1}, "events": {"zha_event": 1}}

    await runtime.start()
    try:
        services = (await api.services_endpoint())["services"]
    finally:
        await runtime.shutdown()
    assert "logger.log" in services
    assert "vacuum.locate" in services


@pytest.mark.asyncio
async def test_stop_without_start_is_safe(connection, clock):
    api = ApiModule(make_runtime(connection, clock))
    await api.stop()
