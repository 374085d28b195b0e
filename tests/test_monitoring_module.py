from types import SimpleNamespace

import pytest

from modules.monitoring import MonitoringModule


def test_recording_hooks_update_counters():
    mod = MonitoringModule()
    mod.notification_received("state_changed")
    mod.notification_received("state_changed")
    mod.notification_dropped("same_state")
    mod.gate_rejected("throttle")
    mod.callback_fired("entity")
    mod.callback_failed()
    mod.timer_armed()
    mod.timer_cancelled()

    value = mod.registry.get_sample_value
    assert value("hc_notifications_total", {"kind": "state_changed"}) == 2
    assert value("hc_notifications_dropped_total", {"reason": "same_state"}) == 1
    assert value("hc_listener_gate_rejections_total", {"gate": "throttle"}) == 1
    assert value("hc_listener_callbacks_total", {"kind": "entity"}) == 1
    assert value("hc_listener_callback_errors_total") == 1
    assert value("hc_listener_delay_timers_armed_total") == 1
    assert value("hc_listener_delay_timers_cancelled_total") == 1


def test_separate_instances_do_not_share_registry():
    a = MonitoringModule()
    b = MonitoringModule()
    a.callback_failed()
    assert b.registry.get_sample_value("hc_listener_callback_errors_total") == 0


@pytest.mark.asyncio
async def test_metrics_endpoint_exposes_text_format():
    mod = MonitoringModule()
    mod.gate_rejected("time_window")

    response = await mod.metrics_endpoint()
    body = response.body.decode()

    assert response.media_type.startswith("text/plain")
    assert 'hc_listener_gate_rejections_total{gate="time_window"} 1.0' in body
    assert "hc_uptime_seconds" in body


@pytest.mark.asyncio
async def test_health_reports_disconnected_connection():
    runtime = SimpleNamespace(is_running=True, connection=SimpleNamespace(is_connected=False))
    mod = MonitoringModule(runtime)

    health = await mod.health_endpoint()

    assert health["status"] == "degraded"
    assert health["running"] is True
    assert health["connection"] == "disconnected"


@pytest.mark.asyncio
async def test_health_ok_without_runtime():
    health = await MonitoringModule().health_endpoint()
    assert health["status"] == "ok"


def test_router_routes():
    paths = {route.path for route in MonitoringModule().router.routes}
    assert {"/metrics", "/health"} <= paths
