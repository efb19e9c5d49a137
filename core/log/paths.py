"""
core.log.paths

Deterministic mapping from (log kind, page number) to store keys.

For a caller domain `skapp.hns` under the data domain `crqa.hns` the
layout is:

    crqa.hns/skapps.json
    crqa.hns/skapp.hns/newcontent/index.json
    crqa.hns/skapp.hns/newcontent/page_0.json
    crqa.hns/skapp.hns/interactions/index.json
    crqa.hns/skapp.hns/interactions/page_0.json
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple
from urllib.parse import urlsplit


PAGE_REF = "[NUM]"
DEFAULT_PAGE_SIZE = 1000


class LogKind(str, Enum):
    NEWCONTENT = "newcontent"
    INTERACTIONS = "interactions"


@dataclass(frozen=True)
class LogKindConfig:
    """Immutable per-kind configuration, fixed when the log kind is created."""

    kind: LogKind
    index_path: str
    page_path_template: str
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        if PAGE_REF not in self.page_path_template:
            raise ValueError(
                f"Page path template for {self.kind.value} lacks {PAGE_REF}: "
                f"{self.page_path_template}"
            )
        if self.page_size <= 0:
            raise ValueError(f"page_size must be positive, got {self.page_size}")

    def page_path(self, page_number: int) -> str:
        return self.page_path_template.replace(PAGE_REF, str(page_number))


class PathScheme:
    """Store keys for every log kind of one caller domain.

    Parameters
    ----------
    data_domain:
        Prefix shared by every key, e.g. "crqa.hns".
    domain:
        The caller (skapp) domain owning the logs, e.g. "skapp.hns".
    page_size:
        Rotation threshold applied to every kind.
    kinds:
        Log kinds to lay out; defaults to every LogKind.
    """

    def __init__(
        self,
        data_domain: str,
        domain: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        kinds: Optional[Iterable[LogKind]] = None,
    ) -> None:
        self.data_domain = data_domain
        self.domain = domain
        self._configs: Dict[LogKind, LogKindConfig] = {}
        for kind in kinds or tuple(LogKind):
            base = f"{data_domain}/{domain}/{kind.value}"
            self._configs[kind] = LogKindConfig(
                kind=kind,
                index_path=f"{base}/index.json",
                page_path_template=f"{base}/page_{PAGE_REF}.json",
                page_size=page_size,
            )

    @property
    def kinds(self) -> Tuple[LogKind, ...]:
        return tuple(self._configs)

    @property
    def names_path(self) -> str:
        """Key of the kind-independent skapp name dictionary."""
        return f"{self.data_domain}/skapps.json"

    def config(self, kind: LogKind) -> LogKindConfig:
        try:
            return self._configs[LogKind(kind)]
        except KeyError:
            raise ValueError(f"Unknown log kind for this scheme: {kind!r}")

    def index_path(self, kind: LogKind) -> str:
        return self.config(kind).index_path

    def page_path(self, kind: LogKind, page_number: int) -> str:
        return self.config(kind).page_path(page_number)


def strip_prefix(value: str, prefix: str) -> str:
    if prefix and value.startswith(prefix):
        return value[len(prefix):]
    return value


def strip_suffix(value: str, suffix: str) -> str:
    if suffix and value.endswith(suffix):
        return value[: -len(suffix)]
    return value


def extract_domain(referrer: str, portal_domain: str = "") -> str:
    """Return the skapp domain a referrer URL was served from.

    "https://skapp.hns.siasky.net/" with portal "siasky.net" gives
    "skapp.hns". A bare domain is returned as is, minus a trailing "/".
    """
    referrer = referrer.strip()
    if not referrer:
        raise ValueError("Referrer must not be empty")
    if "://" not in referrer:
        return strip_suffix(referrer, "/")

    hostname = urlsplit(referrer).hostname
    if not hostname:
        raise ValueError(f"Cannot extract a domain from referrer: {referrer!r}")

    domain = strip_suffix(hostname, "." + portal_domain) if portal_domain else hostname
    return strip_suffix(domain, "/")
