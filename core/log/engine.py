"""
core.log.engine

The fanout log: an index document that names the current page, and a
chain of page documents each holding at most `page_size` entries.

Appending:

1. stamp and size-check the entry; an oversized entry aborts here,
   before anything is read or written
2. fetch the index
3. fetch the current page (an absent page is an empty page)
4. add the entry to the page
5. persist the page
6. set the index entry count to the page length
7. if the count reached `page_size`, advance to the next page number and
   reserve its path (the page itself is created by the next append)
8. persist the index

No step is rolled back when a later one fails. If (5) succeeds and (8)
fails, the index lags the page until the next successful append
recomputes the count from the page.

Concurrency depends on the injected write mode. With UnconditionalWrites
two appends racing on the same kind can read the same page and the later
page write drops the earlier entry. With OptimisticWrites a conflicting
page write restarts the append and a conflicting index write is
reconciled against the re-read index.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Callable, Optional, Set

from exceptions.exceptions import (
    ConflictRetriesExhaustedError,
    InconsistencyError,
    WriteConflictError,
)

from .codec import EntryCodec, RawEntry
from .models import AppendResult, ConsistencyReport, EntryRef, Index, Page
from .paths import LogKind, PathScheme
from .stores import IndexStore, PageStore
from .write_modes import WriteMode


logger = logging.getLogger(__name__)

ErrorObserver = Callable[[LogKind, BaseException], None]


def log_detached_failure(kind: LogKind, exc: BaseException) -> None:
    logger.warning(
        "Detached append to %s log failed: %s",
        LogKind(kind).value,
        exc,
        exc_info=(type(exc), exc, exc.__traceback__),
    )


class LogEngine:
    """Append-only paginated log over a key/value store.

    Parameters
    ----------
    paths:
        Key layout and page size of every log kind.
    writes:
        Read/write strategy (UnconditionalWrites or OptimisticWrites).
    codec:
        Entry codec; defaults to the 4 KiB ceiling and wall clock time.
    on_error:
        Receives failures of detached appends started with `submit`.
        Defaults to logging a warning.
    """

    def __init__(
        self,
        paths: PathScheme,
        writes: WriteMode,
        codec: Optional[EntryCodec] = None,
        on_error: Optional[ErrorObserver] = None,
    ) -> None:
        self.paths = paths
        self.writes = writes
        self.codec = codec or EntryCodec()
        self.index_store = IndexStore(writes, paths)
        self.page_store = PageStore(writes, paths)
        self._on_error = on_error or log_detached_failure
        self._pending: Set["asyncio.Task[AppendResult]"] = set()

    # ------------------------------------------------------------------
    # Append
    # ------------------------------------------------------------------

    async def append(self, kind: LogKind, raw: RawEntry) -> AppendResult:
        """Append one entry to the `kind` log and return where it landed.

        Raises
        ------
        EntryTooLargeError
            The entry exceeds the codec ceiling; nothing was written.
        StoreError
            A get/set round trip failed; earlier writes are not rolled back.
        ConflictRetriesExhaustedError
            Optimistic writes kept conflicting past `max_attempts`.
        """
        kind = LogKind(kind)
        entry = self.codec.to_persistence(raw)

        for attempt in range(1, self.writes.max_attempts + 1):
            index = await self.index_store.fetch_index(kind)
            try:
                page = await self._fetch_writable_page(kind, index)
            except WriteConflictError:
                logger.debug(
                    "Index for %s changed while skipping a full page (attempt %d), retrying",
                    kind.value,
                    attempt,
                )
                continue

            page.entries.append(entry)
            try:
                await self.page_store.persist_page(kind, page)
            except WriteConflictError:
                logger.debug(
                    "Page %s changed while appending (attempt %d), retrying",
                    page.page_path,
                    attempt,
                )
                continue

            await self._update_index(kind, index, page, entry.timestamp)
            return AppendResult(
                success=True,
                ref=EntryRef(page_path=page.page_path, position=len(page.entries) - 1),
            )

        raise ConflictRetriesExhaustedError(
            self.paths.page_path(kind, index.current_page_number),
            self.writes.max_attempts,
        )

    async def _fetch_writable_page(self, kind: LogKind, index: Index) -> Page:
        page = await self.page_store.fetch_page(kind, index.current_page_number)

        # The index lags a full page after a partial failure or a race.
        while len(page.entries) >= index.page_size:
            logger.warning(
                "Page %s already holds %d/%d entries, advancing the %s index",
                page.page_path,
                len(page.entries),
                index.page_size,
                kind.value,
            )
            self._rotate(kind, index)
            await self.index_store.persist_index(kind, index)
            page = await self.page_store.fetch_page(kind, index.current_page_number)

        return page

    async def _update_index(
        self,
        kind: LogKind,
        index: Index,
        page: Page,
        timestamp: int,
    ) -> None:
        page_number = index.current_page_number
        written = len(page.entries)

        index.current_page_entry_count = written
        self._record_timestamp(index, timestamp)
        self._rotate_if_full(kind, index)

        for attempt in range(1, self.writes.max_attempts + 1):
            try:
                await self.index_store.persist_index(kind, index)
                return
            except WriteConflictError:
                logger.debug(
                    "Index for %s changed while appending (attempt %d), reconciling",
                    kind.value,
                    attempt,
                )

            index = await self.index_store.fetch_index(kind)
            self._record_timestamp(index, timestamp)
            if index.current_page_number == page_number:
                index.current_page_entry_count = max(index.current_page_entry_count, written)
                self._rotate_if_full(kind, index)

        raise ConflictRetriesExhaustedError(
            self.paths.index_path(kind), self.writes.max_attempts
        )

    def _rotate_if_full(self, kind: LogKind, index: Index) -> None:
        # TODO: switch to >= if batch appends are ever added.
        if index.current_page_entry_count == index.page_size:
            self._rotate(kind, index)

    def _rotate(self, kind: LogKind, index: Index) -> None:
        index.current_page_number += 1
        index.current_page_entry_count = 0
        new_page_path = self.paths.page_path(kind, index.current_page_number)
        if new_page_path not in index.page_paths:
            index.page_paths.append(new_page_path)
        logger.info("Rotated %s log to page %d", kind.value, index.current_page_number)

    @staticmethod
    def _record_timestamp(index: Index, timestamp: int) -> None:
        if index.latest_item_timestamp is None or timestamp > index.latest_item_timestamp:
            index.latest_item_timestamp = timestamp

    # ------------------------------------------------------------------
    # Detached appends
    # ------------------------------------------------------------------

    def submit(self, kind: LogKind, raw: RawEntry) -> "asyncio.Task[AppendResult]":
        """Start an append without waiting for it.

        Failures are handed to the `on_error` observer. Must be called from
        a running event loop.
        """
        kind = LogKind(kind)
        task = asyncio.get_running_loop().create_task(self.append(kind, raw))
        self._pending.add(task)
        task.add_done_callback(functools.partial(self._detached_done, kind))
        return task

    def _detached_done(self, kind: LogKind, task: "asyncio.Task[AppendResult]") -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._on_error(kind, exc)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every detached append started so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def read_index(self, kind: LogKind) -> Index:
        return await self.index_store.fetch_index(LogKind(kind))

    async def read_page(self, kind: LogKind, page_number: int) -> Page:
        return await self.page_store.fetch_page(LogKind(kind), page_number)

    async def verify(self, kind: LogKind, strict: bool = False) -> ConsistencyReport:
        """Compare the index entry count with the current page.

        With `strict`, a mismatch raises InconsistencyError instead of being
        reported.
        """
        kind = LogKind(kind)
        index = await self.index_store.fetch_index(kind)
        page = await self.page_store.fetch_page(kind, index.current_page_number)
        report = ConsistencyReport(
            kind=kind.value,
            current_page_number=index.current_page_number,
            index_entry_count=index.current_page_entry_count,
            page_entry_count=len(page.entries),
        )
        if strict and not report.consistent:
            raise InconsistencyError(kind.value, report.index_entry_count, report.page_entry_count)
        return report
