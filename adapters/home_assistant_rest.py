"""
REST клиент Home Assistant — реализация External State Oracle.

GET /api/states/<entity_id> с long-lived токеном.
Любая ошибка (сеть, timeout, не-200, битый JSON) превращается в StateQueryError,
чтобы gate'ы enabled_when/disabled_when применили политику run_on_network_error.
"""
from __future__ import annotations

from typing import Any, Optional
import asyncio

import aiohttp

from core.state import EntityState, StateQueryError


class HomeAssistantStateClient:
    """Клиент для чтения текущих состояний сущностей."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 5.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Args:
            base_url: адрес Home Assistant (http://host:8123)
            token: long-lived access token
            timeout: общий timeout одного запроса (секунды)
            session: внешняя aiohttp сессия (если None — создаётся лениво и закрывается в close())
        """
        self.base_url = base_url.strip().rstrip("/")
        self._token = token
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def get(self, entity_id: str) -> EntityState:
        """
        Получить состояние сущности.

        Raises:
            StateQueryError: при любой ошибке получения
        """
        url = f"{self.base_url}/api/states/{entity_id}"
        try:
            session = self._get_session()
            async with session.get(url, headers=self._headers(), timeout=self._timeout) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise StateQueryError(entity_id, f"HTTP {resp.status}: {text[:200]}")
                data: Any = await resp.json()
        except StateQueryError:
            raise
        except asyncio.TimeoutError as e:
            raise StateQueryError(entity_id, "timeout") from e
        except (aiohttp.ClientError, ValueError) as e:
            raise StateQueryError(entity_id, f"{type(e).__name__}: {e}") from e

        if not isinstance(data, dict):
            raise StateQueryError(entity_id, "unexpected response body")
        return EntityState.from_dict(data, entity_id=entity_id)

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
