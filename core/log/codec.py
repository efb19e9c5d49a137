"""
core.log.codec

Turns caller payloads into persisted entries: copies the caller fields,
stamps the server timestamp and enforces the entry size ceiling.
"""

from __future__ import annotations

import json
import math
import time
from typing import Any, Callable, Dict, Mapping, Union

from pydantic import BaseModel

from exceptions.exceptions import EntryTooLargeError

from .models import Entry


ENTRY_MAX_SIZE = 1 << 12  # 4kib

RawEntry = Union[Mapping[str, Any], BaseModel]


def encoded_size(data: Mapping[str, Any]) -> int:
    """Byte size of the compact JSON encoding of `data`."""
    return len(json.dumps(data, separators=(",", ":"), ensure_ascii=False).encode("utf-8"))


class EntryCodec:
    def __init__(
        self,
        max_size: int = ENTRY_MAX_SIZE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_size = max_size
        self._clock = clock

    def to_persistence(self, raw: RawEntry) -> Entry:
        """Stamp `raw` with the current time and validate its size.

        Raises
        ------
        EntryTooLargeError
            If the serialized entry exceeds `max_size` bytes.
        """
        if isinstance(raw, BaseModel):
            data: Dict[str, Any] = raw.model_dump()
        else:
            data = dict(raw)
        data["timestamp"] = math.floor(self._clock())

        size = encoded_size(data)
        if size > self.max_size:
            raise EntryTooLargeError(size, self.max_size)

        return Entry.model_validate(data)
