"""
core.log.write_modes

How documents are read and written back.

The log engine is agnostic to which mode it is given:

- UnconditionalWrites: plain get/set. Overwrites whatever is stored, so two
  concurrent read-modify-write sequences on the same key lose one update.
  This is the only option on stores without conditional puts.
- OptimisticWrites: versioned reads and write-if-unchanged. A concurrent
  write surfaces as WriteConflictError, and the engine re-reads and
  retries up to `max_attempts` times.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from core.api.kv_gateway import KVGateway, Versioned, VersionedKVGateway


logger = logging.getLogger(__name__)


class WriteMode(Protocol):
    conditional: bool
    max_attempts: int

    async def read(self, key: str) -> Versioned: ...

    async def write(self, key: str, value: Any, version: Optional[str]) -> Optional[str]: ...


class UnconditionalWrites:
    conditional = False
    max_attempts = 1

    def __init__(self, gateway: KVGateway) -> None:
        self.gateway = gateway

    async def read(self, key: str) -> Versioned:
        logger.debug("downloading file at path %s", key)
        value = await self.gateway.get(key)
        if value is None:
            logger.debug("no data found at path %s", key)
        return Versioned(value=value)

    async def write(self, key: str, value: Any, version: Optional[str]) -> Optional[str]:
        logger.debug("updating file at path %s", key)
        await self.gateway.set(key, value)
        return None


class OptimisticWrites:
    conditional = True

    def __init__(self, gateway: VersionedKVGateway, max_attempts: int = 5) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.gateway = gateway
        self.max_attempts = max_attempts

    async def read(self, key: str) -> Versioned:
        logger.debug("downloading file at path %s", key)
        snapshot = await self.gateway.get_versioned(key)
        if snapshot.value is None:
            logger.debug("no data found at path %s", key)
        return snapshot

    async def write(self, key: str, value: Any, version: Optional[str]) -> Optional[str]:
        logger.debug("updating file at path %s (expected version %s)", key, version)
        return await self.gateway.set_if(key, value, version)


def build_write_mode(name: str, gateway: KVGateway, max_attempts: int = 5) -> WriteMode:
    if name == "unconditional":
        return UnconditionalWrites(gateway)
    if name == "optimistic":
        return OptimisticWrites(gateway, max_attempts=max_attempts)
    raise ValueError(f"Unknown write mode: {name!r}")
