"""
Warms the index and current page of every log kind.

A get against a key that does not exist in the remote store only returns
after a slow negative lookup. Touching each kind's index and current page
at session start moves that cost out of the first user-triggered append.
Failures are logged and swallowed; appends work without warming.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from exceptions.exceptions import ContentRecordError

from .paths import LogKind
from .stores import IndexStore, PageStore


logger = logging.getLogger(__name__)


class HierarchyPrecreator:
    def __init__(
        self,
        index_store: IndexStore,
        page_store: PageStore,
        kinds: Optional[Iterable[LogKind]] = None,
    ) -> None:
        self.index_store = index_store
        self.page_store = page_store
        self.kinds = tuple(kinds) if kinds is not None else index_store.paths.kinds

    async def ensure_hierarchy(self) -> List[LogKind]:
        """Fetch index + current page for every kind; return the kinds warmed."""
        warmed: List[LogKind] = []
        for kind in self.kinds:
            try:
                index = await self.index_store.fetch_index(kind)
                await self.page_store.fetch_page(kind, index.current_page_number)
            except ContentRecordError as e:
                logger.warning("Failed to ensure %s hierarchy, err: %s", kind.value, e)
                continue
            warmed.append(kind)
        return warmed
