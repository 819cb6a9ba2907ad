from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from console_core import config

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """A backend call failed.

    ``payload`` is the decoded error body when the server sent one
    (usually ``{"success": false, "error": "..."}``).
    """

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    @property
    def detail(self) -> Optional[str]:
        return error_detail(self.payload)


def error_detail(payload: Any) -> Optional[str]:
    if isinstance(payload, Mapping):
        error = payload.get("error")
        if isinstance(error, str) and error.strip():
            return error
    return None


def _decode(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _clean_params(params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    if not params:
        return {}
    out: Dict[str, Any] = {}
    for key, value in params.items():
        if value is None:
            continue
        out[key] = str(value).lower() if isinstance(value, bool) else value
    return out


class ApiClient:
    """Thin JSON client over ``httpx.AsyncClient`` for the console backend."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or config.API_BASE_URL).rstrip("/")
        self.timeout = config.API_TIMEOUT if timeout is None else timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        query = _clean_params(params)
        logger.debug("%s %s params=%s", method, path, query)
        try:
            response = await self._client.request(method, path, params=query or None, json=json)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            payload = _decode(exc.response)
            status = exc.response.status_code
            logger.error("%s %s -> HTTP %s", method, path, status)
            message = error_detail(payload) or f"HTTP {status} from {path}"
            raise TransportError(message, status_code=status, payload=payload) from exc
        except httpx.RequestError as exc:
            logger.error("%s %s request error: %s", method, path, exc)
            raise TransportError(str(exc) or f"Request to {path} failed") from exc
        logger.debug("%s %s -> %s", method, path, response.status_code)
        return _decode(response)

    async def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)
