"""
core.api.kv_gateway

Thin clients for the remote key/value JSON store backing the content
record log.

The store only offers get/set of opaque JSON documents by string key:
no listing, no transactions. Some deployments additionally honour HTTP
preconditions (ETag / If-Match), which is what the versioned calls use.

Used by:
  - core/log/write_modes.py
  - runtime/agents/content_record_agent.py
"""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple
from urllib.parse import quote

import httpx

from exceptions.exceptions import StoreError, WriteConflictError


logger = logging.getLogger(__name__)


@dataclass
class Versioned:
    """A document as read from the store, with the version it was read at.

    `value` is None when the key does not exist; `version` is None when the
    key does not exist or the store does not track versions.
    """
    value: Any
    version: Optional[str] = None


class KVGateway(Protocol):
    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def aclose(self) -> None: ...


class VersionedKVGateway(KVGateway, Protocol):
    async def get_versioned(self, key: str) -> Versioned: ...

    async def set_if(self, key: str, value: Any, expected_version: Optional[str]) -> str:
        """Write only if the stored version still equals `expected_version`.

        `expected_version=None` means the key must not exist yet.
        Raises WriteConflictError otherwise.
        """
        ...


# -------------------------------------------------------------------
# HTTP store
# -------------------------------------------------------------------


class HttpKVGateway:
    """Key/value gateway over a REST-style JSON store.

    GET  {base_url}/{key}  -> 200 + JSON body, 404 when absent
    PUT  {base_url}/{key}  <- JSON body

    Conditional writes send `If-Match: <etag>` (or `If-None-Match: *` to
    create) and expect 412 when the precondition fails.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @staticmethod
    def _url(key: str) -> str:
        return "/" + quote(key, safe="/")

    async def _request(self, method: str, key: str, **kwargs: Any) -> httpx.Response:
        operation = "get" if method == "GET" else "set"
        try:
            return await self._client.request(method, self._url(key), **kwargs)
        except httpx.TimeoutException as e:
            raise StoreError(key, operation, f"timed out: {e}") from e
        except httpx.HTTPError as e:
            raise StoreError(key, operation, f"{type(e).__name__}: {e}") from e

    async def get_versioned(self, key: str) -> Versioned:
        response = await self._request("GET", key)
        if response.status_code == 404:
            return Versioned(value=None)
        if response.status_code != 200:
            raise StoreError(key, "get", f"HTTP {response.status_code}")
        try:
            value = response.json()
        except ValueError as e:
            raise StoreError(key, "get", f"invalid JSON body: {e}") from e
        return Versioned(value=value, version=response.headers.get("ETag"))

    async def get(self, key: str) -> Any:
        return (await self.get_versioned(key)).value

    async def set(self, key: str, value: Any) -> None:
        response = await self._request("PUT", key, json=value)
        if not response.is_success:
            raise StoreError(key, "set", f"HTTP {response.status_code}")

    async def set_if(self, key: str, value: Any, expected_version: Optional[str]) -> str:
        if expected_version is None:
            headers = {"If-None-Match": "*"}
        else:
            headers = {"If-Match": expected_version}

        response = await self._request("PUT", key, json=value, headers=headers)
        if response.status_code == 412:
            raise WriteConflictError(key, expected_version)
        if not response.is_success:
            raise StoreError(key, "set", f"HTTP {response.status_code}")

        etag = response.headers.get("ETag")
        if etag is None:
            raise StoreError(key, "set", "store did not return an ETag for a conditional write")
        return etag

    async def aclose(self) -> None:
        await self._client.aclose()


# -------------------------------------------------------------------
# In-memory store
# -------------------------------------------------------------------


class InMemoryKVGateway:
    """Dict-backed gateway used for local development and tests.

    Every call suspends once before touching the data, so concurrent
    callers interleave at the granularity of individual get/set calls,
    the way independent network round trips would. All calls are
    recorded in `calls` as (operation, key) tuples.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Tuple[Any, int]] = {}
        self.calls: List[Tuple[str, str]] = []
        for key, value in (initial or {}).items():
            self._data[key] = (copy.deepcopy(value), 1)

    @property
    def writes(self) -> List[str]:
        """Keys written so far, in order."""
        return [key for operation, key in self.calls if operation == "set"]

    def snapshot(self, key: str) -> Any:
        """Current value of `key` without recording a call."""
        value, _ = self._data.get(key, (None, 0))
        return copy.deepcopy(value)

    async def get_versioned(self, key: str) -> Versioned:
        await asyncio.sleep(0)
        self.calls.append(("get", key))
        if key not in self._data:
            return Versioned(value=None)
        value, version = self._data[key]
        return Versioned(value=copy.deepcopy(value), version=str(version))

    async def get(self, key: str) -> Any:
        return (await self.get_versioned(key)).value

    async def set(self, key: str, value: Any) -> None:
        await asyncio.sleep(0)
        self.calls.append(("set", key))
        _, version = self._data.get(key, (None, 0))
        self._data[key] = (copy.deepcopy(value), version + 1)

    async def set_if(self, key: str, value: Any, expected_version: Optional[str]) -> str:
        await asyncio.sleep(0)
        self.calls.append(("set", key))
        current = self._data.get(key)
        current_version = str(current[1]) if current is not None else None
        if current_version != expected_version:
            raise WriteConflictError(key, expected_version)

        version = (current[1] if current is not None else 0) + 1
        self._data[key] = (copy.deepcopy(value), version)
        return str(version)

    async def aclose(self) -> None:
        return None


def gateway_from_settings(settings) -> KVGateway:
    """Build the gateway selected by CONTENT_RECORD_STORE_BACKEND."""
    if settings.store_backend == "memory":
        logger.info("Using in-memory key/value store")
        return InMemoryKVGateway()

    logger.info("Using key/value store at %s", settings.store_url)
    return HttpKVGateway(
        settings.store_url,
        token=settings.store_token,
        timeout=settings.store_timeout,
    )
