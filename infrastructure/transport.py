"""
MINERVA TRANSPORT - Engines that carry a batch to the gateway

Two engines with one contract:
- SyncEngine.fetch(url, payload) blocks and returns a response (requests)
- AsyncEngine.start(url, payload) is awaited for a response (httpx)

Both expose register()/unregister() for two lifecycle events:
    "success"  - the reply carries a usable envelope (response.okay())
    "error"    - network failure, undecodable body, or missing envelope

Callbacks receive (response, engine). A callback may return a replacement
response; the last non-None return value is what fetch()/start() hand
back to the caller.

Non-goals: retries, rate limiting, pooling beyond what the underlying
HTTP client already does.
"""
import logging
from collections import defaultdict
from typing import Callable, Dict, Any, List, Optional, Type, Union

import httpx
import requests

from core.ontology import TransportEvent
from core.response import BaristaResponse


logger = logging.getLogger("minerva.transport")

DEFAULT_TIMEOUT = 30.0
SUPPORTED_METHODS = ("GET", "POST")


def encode_payload(payload: Dict[str, Any]) -> Dict[str, str]:
    """Flatten a payload to form/query values; booleans as "true"/"false"."""
    out = {}
    for key, value in payload.items():
        if value is None:
            continue
        if isinstance(value, bool):
            out[key] = "true" if value else "false"
        else:
            out[key] = str(value)
    return out


# =============================================================================
# BASE ENGINE
# =============================================================================

class TransportEngine:
    """Shared callback bookkeeping and outcome routing."""

    def __init__(
        self,
        response_class: Type[BaristaResponse] = BaristaResponse,
        method: str = "POST",
        timeout: float = DEFAULT_TIMEOUT,
        headers: Optional[Dict[str, str]] = None,
    ):
        self._response_class = response_class
        self._method = "POST"
        self.method(method)
        self._timeout = timeout
        self._headers = dict(headers or {})
        self._callbacks: Dict[TransportEvent, List[Callable]] = defaultdict(list)

    @property
    def response_class(self) -> Type[BaristaResponse]:
        return self._response_class

    def method(self, method: Optional[str] = None) -> str:
        """Get/set the HTTP method."""
        if method is not None:
            method = method.upper()
            if method not in SUPPORTED_METHODS:
                raise ValueError(f"Unsupported HTTP method: {method}")
            self._method = method
        return self._method

    def register(self, event: Union[TransportEvent, str], callback: Callable) -> None:
        event = TransportEvent(event)
        if callback not in self._callbacks[event]:
            self._callbacks[event].append(callback)

    def unregister(self, event: Union[TransportEvent, str], callback: Callable) -> None:
        event = TransportEvent(event)
        if callback in self._callbacks[event]:
            self._callbacks[event].remove(callback)

    def _finish(self, response: BaristaResponse) -> BaristaResponse:
        """Route a response to its lifecycle callbacks."""
        event = TransportEvent.SUCCESS if response.okay() else TransportEvent.ERROR
        result = response
        for callback in list(self._callbacks[event]):
            replacement = callback(response, self)
            if replacement is not None:
                result = replacement
        return result

    def _to_response(self, body: Optional[bytes], status: Optional[int], url: str) -> BaristaResponse:
        if status is not None and status >= 400:
            logger.warning(f"HTTP {status} from {url}")
        return self._response_class(body)


# =============================================================================
# BLOCKING ENGINE
# =============================================================================

class SyncEngine(TransportEngine):
    """Blocking engine built on requests."""

    def __init__(self, response_class: Type[BaristaResponse] = BaristaResponse,
                 method: str = "POST", timeout: float = DEFAULT_TIMEOUT,
                 headers: Optional[Dict[str, str]] = None,
                 session: Optional[requests.Session] = None):
        super().__init__(response_class, method, timeout, headers)
        self._session = session or requests.Session()

    def fetch(self, url: str, payload: Dict[str, Any]) -> BaristaResponse:
        data = encode_payload(payload)
        body = None
        status = None
        logger.debug(f"{self._method} {url}")
        try:
            if self._method == "GET":
                resp = self._session.get(url, params=data, headers=self._headers, timeout=self._timeout)
            else:
                resp = self._session.post(url, data=data, headers=self._headers, timeout=self._timeout)
            body = resp.content
            status = resp.status_code
        except requests.RequestException as e:
            logger.warning(f"Transport failure on {url}: {e}")
        return self._finish(self._to_response(body, status, url))

    def close(self) -> None:
        self._session.close()


# =============================================================================
# DEFERRED ENGINE
# =============================================================================

class AsyncEngine(TransportEngine):
    """
    Awaitable engine built on httpx.

    Without an injected client, each call opens a short-lived
    AsyncClient; pass client= to share a connection pool.
    """

    def __init__(self, response_class: Type[BaristaResponse] = BaristaResponse,
                 method: str = "POST", timeout: float = DEFAULT_TIMEOUT,
                 headers: Optional[Dict[str, str]] = None,
                 client: Optional[httpx.AsyncClient] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(response_class, method, timeout, headers)
        self._client = client
        self._transport = transport

    async def start(self, url: str, payload: Dict[str, Any]) -> BaristaResponse:
        data = encode_payload(payload)
        body = None
        status = None
        logger.debug(f"{self._method} {url} (async)")
        try:
            if self._client is not None:
                resp = await self._send(self._client, url, data)
            else:
                async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                    resp = await self._send(client, url, data)
            body = resp.content
            status = resp.status_code
        except httpx.HTTPError as e:
            logger.warning(f"Transport failure on {url}: {e}")
        return self._finish(self._to_response(body, status, url))

    async def _send(self, client: httpx.AsyncClient, url: str, data: Dict[str, str]) -> httpx.Response:
        if self._method == "GET":
            return await client.get(url, params=data, headers=self._headers, timeout=self._timeout)
        return await client.post(url, data=data, headers=self._headers, timeout=self._timeout)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
