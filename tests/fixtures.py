"""
Test helpers shared across the content record tests.
"""

from core.log.codec import EntryCodec
from core.log.engine import LogEngine
from core.log.paths import PathScheme
from core.log.write_modes import OptimisticWrites, UnconditionalWrites


DATA_DOMAIN = "crqa.hns"
DOMAIN = "skapp.hns"
NOW = 1_700_000_000


class FixedClock:
    """Clock returning a fixed time that tests can advance."""

    def __init__(self, now: float = NOW + 0.75):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_paths(page_size: int = 2) -> PathScheme:
    return PathScheme(DATA_DOMAIN, DOMAIN, page_size=page_size)


def make_engine(gateway, page_size=2, optimistic=False, max_attempts=5, codec=None, on_error=None):
    if optimistic:
        writes = OptimisticWrites(gateway, max_attempts=max_attempts)
    else:
        writes = UnconditionalWrites(gateway)
    return LogEngine(
        make_paths(page_size),
        writes,
        codec=codec or EntryCodec(clock=FixedClock()),
        on_error=on_error,
    )


def entry(content: str, **metadata) -> dict:
    return {"content": content, "metadata": metadata}
