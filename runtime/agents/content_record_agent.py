"""ContentRecordAgent implementation.

Responsible for:
- turning the caller's referrer into a per-session LogContext (paths,
  engine, precreator, name registry); no module-level state
- exposing the operations a host page calls:
    init, on_user_login, record_new_content, record_interaction
- running best-effort background work (hierarchy warm-up, name
  registration) and logging its outcome

Recording behavior:
- wait=False (default) starts a detached append and answers
  {"submitted": true} right away; failures go to the engine's
  error observer
- wait=True awaits the append and answers {success, ref, error}
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Optional, Set, Union

from core.api.kv_gateway import KVGateway, gateway_from_settings
from core.log.codec import ENTRY_MAX_SIZE, EntryCodec, RawEntry
from core.log.engine import ErrorObserver, LogEngine
from core.log.models import AppendResult
from core.log.paths import DEFAULT_PAGE_SIZE, LogKind, PathScheme, extract_domain
from core.log.precreator import HierarchyPrecreator
from core.log.write_modes import WriteMode, build_write_mode
from exceptions.exceptions import ContentRecordError, NotInitializedError

from ..models.api_models import SubmitResponse
from ..store.name_registry import NameRegistry


logger = logging.getLogger(__name__)


@dataclass
class LogContext:
    """Everything bound to one caller domain, built once by init()."""
    domain: str
    paths: PathScheme
    engine: LogEngine
    precreator: HierarchyPrecreator
    registry: NameRegistry


class ContentRecordAgent:
    """Records content creation and content interactions for a skapp.

    Parameters
    ----------
    gateway:
        Key/value store gateway. Closed by close().
    data_domain:
        Prefix shared by every store key.
    portal_domain:
        Suffix stripped from referrer hostnames to get the skapp domain.
    write_mode:
        "unconditional" or "optimistic".
    max_attempts:
        Retry bound of optimistic writes.
    page_size / entry_max_size:
        Rotation threshold and entry byte ceiling.
    on_error:
        Observer for failed detached appends; defaults to a warning log.
    """

    def __init__(
        self,
        gateway: KVGateway,
        *,
        data_domain: str = "crqa.hns",
        portal_domain: str = "siasky.net",
        write_mode: str = "unconditional",
        max_attempts: int = 5,
        page_size: int = DEFAULT_PAGE_SIZE,
        entry_max_size: int = ENTRY_MAX_SIZE,
        on_error: Optional[ErrorObserver] = None,
    ) -> None:
        self.gateway = gateway
        self.data_domain = data_domain
        self.portal_domain = portal_domain
        self.writes: WriteMode = build_write_mode(write_mode, gateway, max_attempts)
        self.page_size = page_size
        self.entry_max_size = entry_max_size
        self.on_error = on_error
        self._context: Optional[LogContext] = None
        self._background: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        settings,
        *,
        write_mode: Optional[str] = None,
        on_error: Optional[ErrorObserver] = None,
    ) -> "ContentRecordAgent":
        return cls(
            gateway_from_settings(settings),
            data_domain=settings.data_domain,
            portal_domain=settings.portal_domain,
            write_mode=write_mode or settings.write_mode,
            max_attempts=settings.max_attempts,
            page_size=settings.page_size,
            entry_max_size=settings.entry_max_size,
            on_error=on_error,
        )

    @property
    def context(self) -> LogContext:
        if self._context is None:
            raise NotInitializedError()
        return self._context

    @property
    def initialized(self) -> bool:
        return self._context is not None

    # ------------------------------------------------------------------
    # Host-facing operations
    # ------------------------------------------------------------------

    async def init(self, referrer: str) -> LogContext:
        """Bind the agent to the skapp the referrer belongs to.

        Reads the shared name dictionary once to make sure the store is
        reachable; any failure is logged and re-raised.
        """
        try:
            domain = extract_domain(referrer, self.portal_domain)
            paths = PathScheme(self.data_domain, domain, page_size=self.page_size)
            engine = LogEngine(
                paths,
                self.writes,
                codec=EntryCodec(max_size=self.entry_max_size),
                on_error=self.on_error,
            )
            registry = NameRegistry(self.writes, paths.names_path)
            await registry.names()
        except (ValueError, ContentRecordError) as e:
            logger.error("Failed to initialize content record, err: %s", e)
            raise

        self._context = LogContext(
            domain=domain,
            paths=paths,
            engine=engine,
            precreator=HierarchyPrecreator(engine.index_store, engine.page_store),
            registry=registry,
        )
        logger.info("Content record initialized for %s", domain)
        return self._context

    async def on_user_login(self) -> None:
        """Warm every log and register the skapp name, in the background."""
        context = self.context
        self._spawn(context.precreator.ensure_hierarchy(), "ensure file hierarchy")
        self._spawn(context.registry.register(context.domain), "register skapp name")

    async def record_new_content(
        self, data: RawEntry, wait: bool = False
    ) -> Union[SubmitResponse, AppendResult]:
        return await self.record(LogKind.NEWCONTENT, data, wait=wait)

    async def record_interaction(
        self, data: RawEntry, wait: bool = False
    ) -> Union[SubmitResponse, AppendResult]:
        return await self.record(LogKind.INTERACTIONS, data, wait=wait)

    async def record(
        self, kind: LogKind, data: RawEntry, wait: bool = False
    ) -> Union[SubmitResponse, AppendResult]:
        engine = self.context.engine
        if not wait:
            engine.submit(kind, data)
            return SubmitResponse(submitted=True)

        try:
            return await engine.append(kind, data)
        except ContentRecordError as e:
            logger.debug("Error occurred trying to record %s entry, err: %s", LogKind(kind).value, e)
            return AppendResult(success=False, error=str(e))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def drain(self) -> None:
        """Wait for background work and detached appends to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        if self._context is not None:
            await self._context.engine.drain()

    async def close(self) -> None:
        await self.drain()
        await self.gateway.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _spawn(self, work: Awaitable, description: str) -> None:
        task = asyncio.ensure_future(self._best_effort(work, description))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    @staticmethod
    async def _best_effort(work: Awaitable, description: str) -> None:
        try:
            await work
        except ContentRecordError as e:
            logger.warning("Failed to %s, err: %s", description, e)
            return
        except Exception:
            logger.exception("Unexpected error trying to %s", description)
            return
        logger.debug("Successfully completed: %s", description)
