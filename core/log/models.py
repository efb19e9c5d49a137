"""
Documents persisted by the content record log.

Field names on the wire follow the documents already held by deployed
stores (camelCase aliases); python code uses the snake_case names.

- Index:  one per log kind, names the page currently accepting writes
- Page:   a bounded batch of entries, self-describing via back-references
- Entry:  caller payload plus a server-stamped timestamp
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


INDEX_VERSION = 1


class ContentInfo(BaseModel):
    """Payload recorded for a piece of content."""
    content: str                                        # skylink
    metadata: Dict[str, Any] = Field(default_factory=dict)


class Entry(BaseModel):
    """A persisted entry: every caller field plus `timestamp`."""

    model_config = ConfigDict(extra="allow")

    timestamp: int


class Index(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: int = INDEX_VERSION
    current_page_number: int = Field(0, alias="currPageNumber", ge=0)
    current_page_entry_count: int = Field(0, alias="currPageNumEntries", ge=0)
    page_paths: List[str] = Field(default_factory=list, alias="pages")
    page_size: int = Field(..., alias="pageSize", gt=0)
    latest_item_timestamp: Optional[int] = Field(None, alias="latestItemTimestamp")

    # Store version this document was read at; never serialized.
    revision: Optional[str] = Field(None, exclude=True)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Page(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: int = INDEX_VERSION
    index_path: str = Field(..., alias="indexPath")
    page_path: str = Field(..., alias="pagePath")
    entries: List[Entry] = Field(default_factory=list)

    revision: Optional[str] = Field(None, exclude=True)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class EntryRef(BaseModel):
    """Locates a written entry: owning page path + position in that page."""
    page_path: str
    position: int


class AppendResult(BaseModel):
    success: bool
    ref: Optional[EntryRef] = None
    error: Optional[str] = None


class ConsistencyReport(BaseModel):
    kind: str
    current_page_number: int
    index_entry_count: int
    page_entry_count: int

    @property
    def consistent(self) -> bool:
        return self.index_entry_count == self.page_entry_count
