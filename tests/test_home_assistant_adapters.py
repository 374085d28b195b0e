import asyncio
import json

import pytest
from aiohttp import WSMsgType, web
from aiohttp.test_utils import TestServer as LocalServer

from adapters.home_assistant_rest import HomeAssistantStateClient
from adapters.home_assistant_ws import ConnectionAuthError, ConnectionClosedError, HomeAssistantWS
from core.state import StateQueryError


# ---------------------------------------------------------------------------
# REST
# ---------------------------------------------------------------------------


def make_rest_app():
    async def get_state(request):
        if request.headers.get("Authorization") != "Bearer secret":
            return web.json_response({"message": "unauthorized"}, status=401)
        entity_id = request.match_info["entity_id"]
        if entity_id == "sensor.slow":
            await asyncio.sleep(0.5)
        if entity_id == "sensor.broken":
            return web.Response(text="not json", content_type="text/plain")
        if entity_id != "input_boolean.guests":
            return web.json_response({"message": "Entity not found."}, status=404)
        return web.json_response(
            {
                "entity_id": entity_id,
                "state": "on",
                "attributes": {"friendly_name": "Guests"},
                "last_changed": "2024-06-01T12:00:00+00:00",
                "last_updated": "2024-06-01T12:00:00+00:00",
            }
        )

    app = web.Application()
    app.router.add_get("/api/states/{entity_id}", get_state)
    return app


@pytest.mark.asyncio
async def test_rest_client_reads_state():
    async with LocalServer(make_rest_app()) as server:
        client = HomeAssistantStateClient(str(server.make_url("/")), "secret", timeout=0.5)
        try:
            state = await client.get("input_boolean.guests")
        finally:
            await client.close()

    assert state.entity_id == "input_boolean.guests"
    assert state.state == "on"
    assert state.attributes["friendly_name"] == "Guests"
    assert state.last_changed is not None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "token, entity_id, reason",
    [
        ("secret", "sensor.unknown", "HTTP 404"),
        ("wrong", "input_boolean.guests", "HTTP 401"),
        ("secret", "sensor.slow", "timeout"),
        ("secret", "sensor.broken", "ContentTypeError"),
    ],
)
async def test_rest_client_errors_become_state_query_error(token, entity_id, reason):
    async with LocalServer(make_rest_app()) as server:
        client = HomeAssistantStateClient(str(server.make_url("/")), token, timeout=0.1)
        try:
            with pytest.raises(StateQueryError) as exc_info:
                await client.get(entity_id)
        finally:
            await client.close()

    assert exc_info.value.entity_id == entity_id
    assert reason in exc_info.value.reason


# ---------------------------------------------------------------------------
# WebSocket
# ---------------------------------------------------------------------------


def make_ws_app(server_seen, accept_token="secret"):
    async def websocket(request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        await ws.send_json({"type": "auth_required", "ha_version": "2024.6.0"})
        auth = await ws.receive_json()
        server_seen.append(auth)
        if auth.get("access_token") != accept_token:
            await ws.send_json({"type": "auth_invalid", "message": "Invalid access token"})
            await ws.close()
            return ws
        await ws.send_json({"type": "auth_ok"})

        subscribe = await ws.receive_json()
        server_seen.append(subscribe)
        await ws.send_json({"id": subscribe["id"], "type": "result", "success": True, "result": None})
        await ws.send_json(
            {
                "id": subscribe["id"],
                "type": "event",
                "event": {
                    "event_type": "state_changed",
                    "data": {
                        "entity_id": "binary_sensor.door",
                        "old_state": {"state": "off"},
                        "new_state": {"state": "on"},
                    },
                },
            }
        )

        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                server_seen.append(json.loads(msg.data))
        return ws

    app = web.Application()
    app.router.add_get("/api/websocket", websocket)
    return app


@pytest.mark.asyncio
async def test_ws_authenticates_subscribes_and_delivers_events():
    server_seen = []
    received = []
    got_event = asyncio.Event()

    async def on_message(message):
        received.append(message)
        got_event.set()

    async with LocalServer(make_ws_app(server_seen)) as server:
        client = HomeAssistantWS(str(server.make_url("/api/websocket")), "secret", on_message=on_message)
        await client.start()
        try:
            await client.wait_connected(timeout=2)
            await asyncio.wait_for(got_event.wait(), timeout=2)

            msg_id = await client.send(
                {"type": "call_service", "domain": "light", "service": "turn_on", "target": {"entity_id": "light.a"}}
            )
            for _ in range(100):
                if len(server_seen) >= 3:
                    break
                await asyncio.sleep(0.01)
        finally:
            await client.stop()

    assert server_seen[0] == {"type": "auth", "access_token": "secret"}
    assert server_seen[1] == {"type": "subscribe_events", "id": 1}
    assert msg_id == 2
    assert server_seen[2]["type"] == "call_service"
    assert server_seen[2]["id"] == 2
    assert received[0]["event"]["data"]["entity_id"] == "binary_sensor.door"
    assert not client.is_connected


@pytest.mark.asyncio
async def test_ws_invalid_token_stops_client():
    async with LocalServer(make_ws_app([], accept_token="secret")) as server:
        client = HomeAssistantWS(str(server.make_url("/api/websocket")), "wrong")
        await client.start()
        with pytest.raises(ConnectionAuthError):
            await asyncio.wait_for(client.runner, timeout=2)
        await client.stop()


@pytest.mark.asyncio
async def test_ws_send_without_connection_fails():
    client = HomeAssistantWS("ws://localhost:1/api/websocket", "secret")
    with pytest.raises(ConnectionClosedError):
        await client.send({"type": "call_service"})


@pytest.mark.asyncio
async def test_ws_handle_text_filters_messages():
    received = []
    client = HomeAssistantWS("ws://localhost:1/api/websocket", "secret", on_message=received.append)

    await client._handle_text("not json")
    await client._handle_text(json.dumps({"id": 5, "type": "result", "success": False, "error": {"code": "x"}}))
    await client._handle_text(
        json.dumps(
            [
                {"id": 1, "type": "event", "event": {"event_type": "zha_event", "data": {}}},
                {"id": 1, "type": "pong"},
                {"id": 1, "type": "event", "event": {"event_type": "call_service", "data": {}}},
            ]
        )
    )

    assert [m["event"]["event_type"] for m in received] == ["zha_event", "call_service"]
