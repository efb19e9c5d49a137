"""Tests for entry stamping and the entry size ceiling."""

import pytest

from core.log.codec import ENTRY_MAX_SIZE, EntryCodec, encoded_size
from core.log.models import ContentInfo
from exceptions.exceptions import EntryTooLargeError

from .fixtures import NOW, FixedClock


class TestToPersistence:

    def test_copies_caller_fields_and_stamps_floored_seconds(self):
        codec = EntryCodec(clock=FixedClock(NOW + 0.99))
        entry = codec.to_persistence({"content": "sia://abc", "metadata": {"a": 1}})
        dumped = entry.model_dump()
        assert dumped == {"timestamp": NOW, "content": "sia://abc", "metadata": {"a": 1}}

    def test_caller_timestamp_is_overwritten(self):
        codec = EntryCodec(clock=FixedClock())
        entry = codec.to_persistence({"content": "x", "timestamp": 1})
        assert entry.timestamp == NOW

    def test_accepts_pydantic_payload(self):
        codec = EntryCodec(clock=FixedClock())
        entry = codec.to_persistence(ContentInfo(content="sia://abc"))
        assert entry.model_dump() == {"timestamp": NOW, "content": "sia://abc", "metadata": {}}

    def test_does_not_mutate_caller_payload(self):
        raw = {"content": "x"}
        EntryCodec(clock=FixedClock()).to_persistence(raw)
        assert raw == {"content": "x"}


class TestSizeCeiling:

    def test_default_ceiling_is_4096_bytes(self):
        assert ENTRY_MAX_SIZE == 4096

    def test_entry_exactly_at_ceiling_is_accepted(self):
        codec = EntryCodec(clock=FixedClock())
        base = {"content": "", "timestamp": NOW}
        padding = ENTRY_MAX_SIZE - encoded_size(base)
        entry = codec.to_persistence({"content": "x" * padding})
        assert encoded_size(entry.model_dump()) == ENTRY_MAX_SIZE

    def test_entry_one_byte_over_is_rejected(self):
        codec = EntryCodec(clock=FixedClock())
        base = {"content": "", "timestamp": NOW}
        padding = ENTRY_MAX_SIZE - encoded_size(base) + 1
        with pytest.raises(EntryTooLargeError) as excinfo:
            codec.to_persistence({"content": "x" * padding})
        assert excinfo.value.size == ENTRY_MAX_SIZE + 1
        assert excinfo.value.limit == ENTRY_MAX_SIZE

    def test_size_counts_utf8_bytes_not_characters(self):
        codec = EntryCodec(max_size=64, clock=FixedClock())
        with pytest.raises(EntryTooLargeError):
            codec.to_persistence({"content": "é" * 30})

    def test_custom_ceiling(self):
        codec = EntryCodec(max_size=10, clock=FixedClock())
        with pytest.raises(EntryTooLargeError):
            codec.to_persistence({"content": "short"})
