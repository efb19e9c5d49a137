"""
Fetch-or-default and persist for the two document types of a log.

Absence is the normal state of an unused log: fetching a key that does
not exist returns a freshly built default document instead of failing.
"""

from __future__ import annotations

import logging
from typing import Any, Type, TypeVar

from pydantic import BaseModel, ValidationError

from exceptions.exceptions import StoreError

from .models import INDEX_VERSION, Index, Page
from .paths import LogKind, PathScheme
from .write_modes import WriteMode


logger = logging.getLogger(__name__)

DocumentT = TypeVar("DocumentT", bound=BaseModel)


def _parse(model: Type[DocumentT], key: str, value: Any) -> DocumentT:
    try:
        return model.model_validate(value)
    except ValidationError as e:
        raise StoreError(key, "get", f"malformed {model.__name__} document: {e}") from e


class IndexStore:
    def __init__(self, writes: WriteMode, paths: PathScheme) -> None:
        self.writes = writes
        self.paths = paths

    def default_index(self, kind: LogKind) -> Index:
        config = self.paths.config(kind)
        return Index(
            version=INDEX_VERSION,
            current_page_number=0,
            current_page_entry_count=0,
            page_paths=[config.page_path(0)],
            page_size=config.page_size,
        )

    async def fetch_index(self, kind: LogKind) -> Index:
        """Download the index, or return the default index if it does not exist yet."""
        key = self.paths.index_path(kind)
        snapshot = await self.writes.read(key)
        if snapshot.value is None:
            index = self.default_index(kind)
        else:
            index = _parse(Index, key, snapshot.value)
        index.revision = snapshot.version
        return index

    async def persist_index(self, kind: LogKind, index: Index) -> None:
        key = self.paths.index_path(kind)
        index.revision = await self.writes.write(key, index.to_document(), index.revision)


class PageStore:
    def __init__(self, writes: WriteMode, paths: PathScheme) -> None:
        self.writes = writes
        self.paths = paths

    def default_page(self, kind: LogKind, page_number: int) -> Page:
        config = self.paths.config(kind)
        return Page(
            version=INDEX_VERSION,
            index_path=config.index_path,
            page_path=config.page_path(page_number),
            entries=[],
        )

    async def fetch_page(self, kind: LogKind, page_number: int) -> Page:
        """Download page `page_number`, or return an empty page if it does not exist yet."""
        key = self.paths.page_path(kind, page_number)
        snapshot = await self.writes.read(key)
        if snapshot.value is None:
            page = self.default_page(kind, page_number)
        else:
            page = _parse(Page, key, snapshot.value)
        page.revision = snapshot.version
        return page

    async def persist_page(self, kind: LogKind, page: Page) -> None:
        page.revision = await self.writes.write(page.page_path, page.to_document(), page.revision)
