"""
WebSocket клиент Home Assistant (/api/websocket).

Протокол:
    сервер: {"type": "auth_required"}
    клиент: {"type": "auth", "access_token": ...}
    сервер: {"type": "auth_ok"} | {"type": "auth_invalid", "message": ...}
    клиент: {"id": N, "type": "subscribe_events"}
    сервер: {"id": N, "type": "event", "event": {"event_type": ..., "data": ...}}

Каждое сообщение с type == "event" передаётся в on_message (в runtime это
постановка в очередь intake loop'а). Исходящие команды (call_service)
отправляются через send(), который присваивает возрастающие id.

При обрыве соединения клиент переподключается с экспоненциальной паузой
(1s → 30s, с jitter). Неверный токен останавливает клиент.
"""
from __future__ import annotations

from typing import Any, Callable, Optional
import asyncio
import contextlib
import inspect
import json
import random

import aiohttp

from core import logger_helper


class ConnectionAuthError(Exception):
    """Home Assistant отклонил токен (auth_invalid)."""


class ConnectionClosedError(RuntimeError):
    """Попытка отправить сообщение без активного соединения."""


MessageHandler = Callable[[dict[str, Any]], Any]


class HomeAssistantWS:
    """
    WebSocket подключение к Home Assistant.

    Не разбирает payload событий — это делает диспетчер.
    """

    MAX_CONSECUTIVE_ERRORS = 10
    MAX_BACKOFF = 30.0

    def __init__(
        self,
        ws_url: str,
        token: str,
        on_message: Optional[MessageHandler] = None,
        runtime: Any = None,
        heartbeat: float = 30.0,
    ):
        self.ws_url = ws_url
        self._token = token
        self.on_message = on_message
        self.runtime = runtime
        self._heartbeat = heartbeat
        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._runner: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._send_lock = asyncio.Lock()
        self._next_id = 1
        self._connected = asyncio.Event()

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    @property
    def runner(self) -> Optional[asyncio.Task]:
        return self._runner

    async def start(self) -> None:
        if self._runner and not self._runner.done():
            return
        self._stop_event.clear()
        self._runner = asyncio.create_task(self._run_loop())

    async def wait_connected(self, timeout: Optional[float] = None) -> None:
        await asyncio.wait_for(self._connected.wait(), timeout=timeout)

    async def stop(self) -> None:
        self._stop_event.set()
        if self._runner:
            self._runner.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await self._runner
            self._runner = None
        if self._ws:
            with contextlib.suppress(Exception):
                await self._ws.close()
            self._ws = None
        if self._session:
            with contextlib.suppress(Exception):
                await self._session.close()
            self._session = None
        self._connected.clear()

    async def send(self, payload: dict[str, Any]) -> int:
        """
        Отправить сообщение, присвоив ему следующий id.

        Returns:
            id отправленного сообщения

        Raises:
            ConnectionClosedError: если соединение не установлено
        """
        async with self._send_lock:
            if not self.is_connected:
                raise ConnectionClosedError("Home Assistant websocket is not connected")
            msg_id = self._next_id
            self._next_id += 1
            message = dict(payload)
            message["id"] = msg_id
            await self._ws.send_json(message)
            return msg_id

    async def _run_loop(self) -> None:
        backoff = 1.0
        consecutive_errors = 0

        while not self._stop_event.is_set():
            try:
                await self._connect_and_listen()
                backoff = 1.0
                consecutive_errors = 0
            except asyncio.CancelledError:
                raise
            except ConnectionAuthError as e:
                await self._log("error", f"Home Assistant rejected the access token: {e}")
                raise
            except Exception as e:
                consecutive_errors += 1
                await self._log(
                    "warning",
                    f"Home Assistant websocket error: {type(e).__name__}: {e}",
                    backoff=round(backoff, 2),
                    consecutive_errors=consecutive_errors,
                )
                if consecutive_errors >= self.MAX_CONSECUTIVE_ERRORS:
                    await self._log(
                        "error",
                        f"Home Assistant websocket: too many consecutive errors ({consecutive_errors}), giving up",
                    )
                    raise
            finally:
                self._connected.clear()
                self._ws = None

            if self._stop_event.is_set():
                break
            await asyncio.sleep(backoff + random.random())
            backoff = min(backoff * 2, self.MAX_BACKOFF)

    async def _connect_and_listen(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()

        async with self._session.ws_connect(self.ws_url, heartbeat=self._heartbeat) as ws:
            await self._authenticate(ws)
            self._ws = ws
            # Новое соединение — нумерация id начинается заново
            async with self._send_lock:
                self._next_id = 1
            await self.send({"type": "subscribe_events"})
            self._connected.set()
            await self._log("info", "Home Assistant websocket connected", url=self.ws_url)

            async for msg in ws:
                if self._stop_event.is_set():
                    break
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self._handle_text(msg.data)
                elif msg.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                    exc = ws.exception()
                    raise exc or ConnectionError("websocket closed")
            if not self._stop_event.is_set():
                raise ConnectionError("websocket closed by server")

    async def _authenticate(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        first = await ws.receive_json()
        if first.get("type") != "auth_required":
            raise ConnectionError(f"unexpected first message: {first.get('type')!r}")
        await ws.send_json({"type": "auth", "access_token": self._token})
        reply = await ws.receive_json()
        if reply.get("type") == "auth_invalid":
            raise ConnectionAuthError(reply.get("message") or "auth_invalid")
        if reply.get("type") != "auth_ok":
            raise ConnectionError(f"unexpected auth reply: {reply.get('type')!r}")

    async def _handle_text(self, raw: str) -> None:
        try:
            obj = json.loads(raw)
        except ValueError:
            await self._log("debug", "Dropping non-JSON websocket frame")
            return
        # Home Assistant может присылать пачку сообщений списком
        messages = obj if isinstance(obj, list) else [obj]
        for message in messages:
            if not isinstance(message, dict):
                continue
            msg_type = message.get("type")
            if msg_type == "event":
                await self._deliver(message)
            elif msg_type == "result" and not message.get("success", True):
                await self._log(
                    "warning",
                    "Home Assistant command failed",
                    id=message.get("id"),
                    error=str(message.get("error")),
                )

    async def _deliver(self, message: dict[str, Any]) -> None:
        if self.on_message is None:
            return
        result = self.on_message(message)
        if inspect.isawaitable(result):
            await result

    async def _log(self, level: str, message: str, **context: Any) -> None:
        await logger_helper.log(self.runtime, level, message, module="home_assistant_ws", **context)
