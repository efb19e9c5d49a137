"""
Concurrent appends to one log kind.

The in-memory gateway suspends once per get/set, so two appends started
together interleave call by call: both read the index, both read the page,
both write the page, both write the index.

- UnconditionalWrites: the second page write overwrites the first and
  exactly one entry is lost.
- OptimisticWrites: the losing page write is rejected and retried, and
  both entries survive.
"""

import asyncio

import pytest

from core.api.kv_gateway import InMemoryKVGateway
from core.log.paths import LogKind
from exceptions.exceptions import ConflictRetriesExhaustedError, WriteConflictError

from .fixtures import entry, make_engine


NC_INDEX = "crqa.hns/skapp.hns/newcontent/index.json"
NC_PAGE = "crqa.hns/skapp.hns/newcontent/page_{}.json"


def append_concurrently(engine, *contents):
    async def scenario():
        return await asyncio.gather(
            *(engine.append(LogKind.NEWCONTENT, entry(content)) for content in contents)
        )
    return asyncio.run(scenario())


class AlwaysConflictingGateway(InMemoryKVGateway):
    async def set_if(self, key, value, expected_version):
        await asyncio.sleep(0)
        self.calls.append(("set", key))
        raise WriteConflictError(key, expected_version)


class TestUnconditionalWrites:
    """Lost-update race: reproduced as-is on stores without conditional puts."""

    def test_interleaved_appends_lose_exactly_one_entry(self, gateway):
        engine = make_engine(gateway, page_size=10)
        results = append_concurrently(engine, "a", "b")

        # Both callers are told their append succeeded...
        assert [r.success for r in results] == [True, True]
        assert results[0].ref == results[1].ref

        # ...but the later page write replaced the earlier one.
        page = gateway.snapshot(NC_PAGE.format(0))
        assert [e["content"] for e in page["entries"]] == ["b"]
        assert gateway.snapshot(NC_INDEX)["currPageNumEntries"] == 1

    def test_interleaving_is_call_by_call(self, gateway):
        engine = make_engine(gateway, page_size=10)
        append_concurrently(engine, "a", "b")
        assert gateway.calls == [
            ("get", NC_INDEX),
            ("get", NC_INDEX),
            ("get", NC_PAGE.format(0)),
            ("get", NC_PAGE.format(0)),
            ("set", NC_PAGE.format(0)),
            ("set", NC_PAGE.format(0)),
            ("set", NC_INDEX),
            ("set", NC_INDEX),
        ]


class TestOptimisticWrites:

    def test_interleaved_appends_both_survive(self, gateway):
        engine = make_engine(gateway, page_size=10, optimistic=True)
        results = append_concurrently(engine, "a", "b")

        assert [r.success for r in results] == [True, True]
        assert {r.ref.position for r in results} == {0, 1}

        page = gateway.snapshot(NC_PAGE.format(0))
        assert sorted(e["content"] for e in page["entries"]) == ["a", "b"]
        assert gateway.snapshot(NC_INDEX)["currPageNumEntries"] == 2
        assert asyncio.run(engine.verify(LogKind.NEWCONTENT)).consistent

    def test_concurrent_fill_still_rotates(self, gateway):
        engine = make_engine(gateway, page_size=2, optimistic=True)
        append_concurrently(engine, "a", "b")

        index = gateway.snapshot(NC_INDEX)
        assert index["currPageNumber"] == 1
        assert index["currPageNumEntries"] == 0
        assert len(gateway.snapshot(NC_PAGE.format(0))["entries"]) == 2

    def test_many_writers_fill_pages_without_loss_or_overflow(self, gateway):
        engine = make_engine(gateway, page_size=4, optimistic=True, max_attempts=50)
        contents = [f"e{i}" for i in range(6)]
        append_concurrently(engine, *contents)

        page0 = gateway.snapshot(NC_PAGE.format(0))["entries"]
        page1 = gateway.snapshot(NC_PAGE.format(1))["entries"]
        assert len(page0) == 4
        assert sorted(e["content"] for e in page0 + page1) == contents

        index = gateway.snapshot(NC_INDEX)
        assert index["currPageNumber"] == 1
        assert index["currPageNumEntries"] == len(page1)

    def test_sequential_appends_match_unconditional_layout(self):
        plain = InMemoryKVGateway()
        versioned = InMemoryKVGateway()
        for gw, optimistic in ((plain, False), (versioned, True)):
            engine = make_engine(gw, page_size=2, optimistic=optimistic)

            async def scenario():
                for content in "abcde":
                    await engine.append(LogKind.NEWCONTENT, entry(content))

            asyncio.run(scenario())

        for key in (NC_INDEX, NC_PAGE.format(0), NC_PAGE.format(1), NC_PAGE.format(2)):
            assert plain.snapshot(key) == versioned.snapshot(key)

    def test_gives_up_after_bounded_retries(self):
        gateway = AlwaysConflictingGateway()
        engine = make_engine(gateway, optimistic=True, max_attempts=3)

        with pytest.raises(ConflictRetriesExhaustedError) as excinfo:
            asyncio.run(engine.append(LogKind.NEWCONTENT, entry("a")))

        assert excinfo.value.attempts == 3
        assert gateway.writes == [NC_PAGE.format(0)] * 3
        assert gateway.snapshot(NC_PAGE.format(0)) is None


class InterferingGateway(InMemoryKVGateway):
    """Lets another writer replace the index right before our first index write."""

    def __init__(self, rival_index):
        super().__init__()
        self.rival_index = rival_index

    async def set_if(self, key, value, expected_version):
        if key == NC_INDEX and self.rival_index is not None:
            rival, self.rival_index = self.rival_index, None
            await self.set(key, rival)
        return await super().set_if(key, value, expected_version)


def rival_index(page_number, count):
    return {
        "version": 1,
        "currPageNumber": page_number,
        "currPageNumEntries": count,
        "pages": [NC_PAGE.format(n) for n in range(page_number + 1)],
        "pageSize": 10,
    }


class TestIndexReconciliation:

    def test_count_is_never_lowered_by_a_late_writer(self):
        gateway = InterferingGateway(rival_index(0, 5))
        engine = make_engine(gateway, page_size=10, optimistic=True)

        result = asyncio.run(engine.append(LogKind.NEWCONTENT, entry("a")))

        assert result.success
        assert gateway.snapshot(NC_INDEX)["currPageNumEntries"] == 5

    def test_rotation_by_another_writer_is_kept(self):
        gateway = InterferingGateway(rival_index(1, 0))
        engine = make_engine(gateway, page_size=10, optimistic=True)

        asyncio.run(engine.append(LogKind.NEWCONTENT, entry("a")))

        index = gateway.snapshot(NC_INDEX)
        assert (index["currPageNumber"], index["currPageNumEntries"]) == (1, 0)
        assert index["latestItemTimestamp"] is not None
