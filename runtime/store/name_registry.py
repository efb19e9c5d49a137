"""NameRegistry: the shared dictionary of skapp names that own a log.

Layout:

    <data_domain>/skapps.json   ->   {"skapp.hns": true, ...}

The dictionary is shared by every skapp and is read-modify-written
without any lock. With unconditional writes, two skapps registering at
the same moment can drop one of the names; with optimistic writes a
conflicting registration re-reads the dictionary and retries.
"""

import logging
from typing import Dict

from core.log.write_modes import WriteMode
from exceptions.exceptions import (
    ConflictRetriesExhaustedError,
    StoreError,
    WriteConflictError,
)


logger = logging.getLogger(__name__)


class NameRegistry:
    """Registers skapp names in the shared name dictionary.

    Parameters
    ----------
    writes:
        Read/write strategy shared with the log engine.
    path:
        Store key of the dictionary, usually PathScheme.names_path.
    """

    def __init__(self, writes: WriteMode, path: str) -> None:
        self.writes = writes
        self.path = path

    async def names(self) -> Dict[str, bool]:
        """Return the current dictionary ({} when it does not exist yet)."""
        snapshot = await self.writes.read(self.path)
        return self._as_dict(snapshot.value)

    async def register(self, name: str) -> bool:
        """Ensure `name` is in the dictionary.

        Returns True if the dictionary was written, False if the name was
        already registered.
        """
        for attempt in range(1, self.writes.max_attempts + 1):
            snapshot = await self.writes.read(self.path)
            names = self._as_dict(snapshot.value)
            if names.get(name) is True:
                return False

            names[name] = True
            try:
                await self.writes.write(self.path, names, snapshot.version)
                return True
            except WriteConflictError:
                logger.debug(
                    "Name dictionary changed while registering %s (attempt %d)",
                    name,
                    attempt,
                )

        raise ConflictRetriesExhaustedError(self.path, self.writes.max_attempts)

    def _as_dict(self, value) -> Dict[str, bool]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise StoreError(
                self.path,
                "get",
                f"name dictionary must be a JSON object, got {type(value).__name__}",
            )
        return dict(value)
