"""
cachewise — Multi Read-Through Tests

Bulk GET, reduced method calls, write-back and result assembly in the
caller's order.
"""

import pytest

from cachewise.cache import Cache
from cachewise.errors import CacheTimeoutError, InvalidAnnotationError, InvalidKeyError
from cachewise.observability import ObservabilityAdapter
from cachewise.serialization import TOMBSTONE
from cachewise.sites import SiteDispatcher
from recording import RecordingClient


class Loader:
    """Records the lists the decorated method was called with."""

    def __init__(self, missing: set[int] | None = None):
        self.calls: list[list[int | None]] = []
        self.missing = missing or set()

    def __call__(self, ids: list[int | None]) -> list[str | None]:
        self.calls.append(list(ids))
        return [None if i in self.missing else f"v{i}" for i in ids]


class TestReadThroughMulti:
    """One bulk GET, one method call for the missed elements."""

    async def test_all_missed(self, dispatcher: SiteDispatcher, client: RecordingClient) -> None:
        loader = Loader()

        @dispatcher.read_through_multi("U", key="ids", expiration=60)
        async def get_many(ids: list[int]) -> list[str | None]:
            return loader(ids)

        assert await get_many([2, 1]) == ["v2", "v1"]
        assert client.ops("get_bulk") == [(["U:1", "U:2"],)]
        assert loader.calls == [[2, 1]]
        assert client.ops("set") == [("U:2", 60, "v2"), ("U:1", 60, "v1")]

    async def test_partial_hit_calls_with_missed_only(self, dispatcher: SiteDispatcher, cache: Cache, client: RecordingClient) -> None:
        loader = Loader()

        @dispatcher.read_through_multi("U", key="ids")
        async def get_many(ids: list[int]) -> list[str | None]:
            return loader(ids)

        await cache.set("U:2", 0, "cached-2")
        client.reset_calls()

        assert await get_many([1, 2, 3]) == ["v1", "cached-2", "v3"]
        assert loader.calls == [[1, 3]]
        assert [call[0] for call in client.ops("set")] == ["U:1", "U:3"]

    async def test_full_hit_skips_method(self, dispatcher: SiteDispatcher, cache: Cache) -> None:
        loader = Loader()

        @dispatcher.read_through_multi("U", key="ids")
        async def get_many(ids: list[int]) -> list[str | None]:
            return loader(ids)

        await cache.set("U:1", 0, "a")
        await cache.set("U:2", 0, "b")

        assert await get_many([2, 1, 2]) == ["b", "a", "b"]
        assert loader.calls == []

    async def test_duplicates_computed_once(self, dispatcher: SiteDispatcher, client: RecordingClient) -> None:
        loader = Loader()

        @dispatcher.read_through_multi("U", key="ids")
        async def get_many(ids: list[int]) -> list[str | None]:
            return loader(ids)

        assert await get_many([3, 3, 4, 3]) == ["v3", "v3", "v4", "v3"]
        assert loader.calls == [[3, 4]]
        assert client.ops("get_bulk") == [(["U:3", "U:4"],)]

    async def test_tombstone_hit_is_none(self, dispatcher: SiteDispatcher, cache: Cache) -> None:
        loader = Loader()

        @dispatcher.read_through_multi("U", key="ids")
        async def get_many(ids: list[int]) -> list[str | None]:
            return loader(ids)

        await cache.set("U:1", 0, TOMBSTONE)

        assert await get_many([1, 2]) == [None, "v2"]
        assert loader.calls == [[2]]

    async def test_empty_list_calls_method(self, dispatcher: SiteDispatcher, client: RecordingClient) -> None:
        loader = Loader()

        @dispatcher.read_through_multi("U", key="ids")
        async def get_many(ids: list[int]) -> list[str | None]:
            return loader(ids)

        assert await get_many([]) == []
        assert loader.calls == [[]]
        assert client.calls == []

    async def test_shared_components(self, dispatcher: SiteDispatcher, client: RecordingClient) -> None:
        @dispatcher.read_through_multi("U", key=["region", "ids"], fan_out="ids")
        async def get_many(region: str, ids: list[int]) -> list[str]:
            return [f"{region}-{i}" for i in ids]

        assert await get_many("eu", [1, 2]) == ["eu-1", "eu-2"]
        assert client.ops("get_bulk") == [(["U:eu/1", "U:eu/2"],)]

    async def test_element_path(self, dispatcher: SiteDispatcher, client: RecordingClient) -> None:
        from cachewise.sites import KeyParam

        @dispatcher.read_through_multi("U", key=KeyParam("refs", path="id"))
        async def get_many(refs: list[dict]) -> list[int]:
            return [ref["id"] * 10 for ref in refs]

        assert await get_many([{"id": 1}, {"id": 2}]) == [10, 20]
        assert client.ops("get_bulk") == [(["U:1", "U:2"],)]

    async def test_metrics(self, dispatcher: SiteDispatcher, cache: Cache, observability: ObservabilityAdapter) -> None:
        @dispatcher.read_through_multi("U", key="ids")
        async def get_many(ids: list[int]) -> list[str]:
            return [str(i) for i in ids]

        await cache.set("U:1", 0, "a")
        await cache.set("U:2", 0, TOMBSTONE)

        await get_many([1, 2, 3, 4])

        tags = {"namespace": "U", "kind": "read_multi"}
        assert observability.get_count("site.hit", tags) == 1
        assert observability.get_count("site.tombstone", tags) == 1
        assert observability.get_count("site.miss", tags) == 2


class TestNullArguments:
    async def test_invalid_element_fails_by_default(self, dispatcher: SiteDispatcher) -> None:
        loader = Loader()

        @dispatcher.read_through_multi("U", key="ids")
        async def get_many(ids: list[int | None]) -> list[str | None]:
            return loader(ids)

        with pytest.raises(InvalidKeyError):
            await get_many([1, None])
        assert loader.calls == []

    async def test_skip_null_arguments(self, dispatcher: SiteDispatcher, client: RecordingClient) -> None:
        loader = Loader()

        @dispatcher.read_through_multi("U", key="ids", skip_null_arguments=True)
        async def get_many(ids: list[int | None]) -> list[str | None]:
            return loader(ids)

        assert await get_many([1, None, 2]) == ["v1", None, "v2"]
        assert loader.calls == [[1, 2]]
        assert client.ops("get_bulk") == [(["U:1", "U:2"],)]

    async def test_all_skipped(self, dispatcher: SiteDispatcher, client: RecordingClient) -> None:
        loader = Loader()

        @dispatcher.read_through_multi("U", key="ids", skip_null_arguments=True)
        async def get_many(ids: list[int | None]) -> list[str | None]:
            return loader(ids)

        assert await get_many([None, None]) == [None, None]
        assert loader.calls == []
        assert client.calls == []

    async def test_none_list_is_invalid_key(self, dispatcher: SiteDispatcher) -> None:
        @dispatcher.read_through_multi("U", key="ids")
        async def get_many(ids: list[int] | None) -> list[str]:
            return []

        with pytest.raises(InvalidKeyError):
            await get_many(None)


class TestNullResults:
    """Tombstones for None values follow the site options."""

    async def test_nulls_not_cached_by_default(self, dispatcher: SiteDispatcher, client: RecordingClient) -> None:
        loader = Loader(missing={2})

        @dispatcher.read_through_multi("U", key="ids")
        async def get_many(ids: list[int]) -> list[str | None]:
            return loader(ids)

        assert await get_many([1, 2]) == ["v1", None]
        assert client.ops("set") == [("U:1", 0, "v1")]
        assert client.ops("add") == []

    async def test_add_nulls_sets_tombstone(self, dispatcher: SiteDispatcher, client: RecordingClient) -> None:
        loader = Loader(missing={2})

        @dispatcher.read_through_multi("U", key="ids", expiration=5, add_nulls_to_cache=True)
        async def get_many(ids: list[int]) -> list[str | None]:
            return loader(ids)

        await get_many([1, 2])

        assert client.ops("set") == [("U:1", 5, "v1"), ("U:2", 5, TOMBSTONE)]
        assert client.ops("add") == []

        # Second call serves the tombstone without computing
        assert await get_many([2]) == [None]
        assert loader.calls == [[1, 2]]

    async def test_produced_none_overwrites_regardless_of_overwrite_flag(
        self, dispatcher: SiteDispatcher, cache: Cache, client: RecordingClient
    ) -> None:
        @dispatcher.read_through_multi("U", key="ids", add_nulls_to_cache=True, overwrite_no_nulls=False)
        async def get_many(ids: list[int]) -> list[str | None]:
            # Another writer fills U:2 while the method runs
            await cache.set("U:2", 0, "stale")
            return [None for _ in ids]

        assert await get_many([2]) == [None]

        assert ("U:2", 0, TOMBSTONE) in client.ops("set")
        assert client.ops("add") == []
        assert await cache.get("U:2") is TOMBSTONE

    async def test_overwrite_without_add_nulls_writes_nothing(self, dispatcher: SiteDispatcher, client: RecordingClient) -> None:
        loader = Loader(missing={2})

        @dispatcher.read_through_multi("U", key="ids", overwrite_no_nulls=True)
        async def get_many(ids: list[int]) -> list[str | None]:
            return loader(ids)

        await get_many([2])

        assert client.ops("set") == []
        assert client.ops("add") == []


class TestUnproducedElements:
    """Missed elements past the end of a shorter result list."""

    async def test_unproduced_use_add_by_default(self, dispatcher: SiteDispatcher, client: RecordingClient) -> None:
        @dispatcher.read_through_multi("U", key="ids", expiration=7, add_nulls_to_cache=True)
        async def get_many(ids: list[int]) -> list[str]:
            return [f"v{ids[0]}"]

        assert await get_many([3, 1, 2]) == ["v3", None, None]

        assert client.ops("set") == [("U:3", 7, "v3")]
        assert client.ops("add") == [("U:1", 7, TOMBSTONE), ("U:2", 7, TOMBSTONE)]

    async def test_unproduced_use_set_with_overwrite(self, dispatcher: SiteDispatcher, client: RecordingClient) -> None:
        @dispatcher.read_through_multi("U", key="ids", add_nulls_to_cache=True, overwrite_no_nulls=True)
        async def get_many(ids: list[int]) -> list[str]:
            return [f"v{ids[0]}"]

        assert await get_many([3, 1]) == ["v3", None]

        assert client.ops("set") == [("U:3", 0, "v3"), ("U:1", 0, TOMBSTONE)]
        assert client.ops("add") == []

    async def test_add_keeps_concurrent_value(self, dispatcher: SiteDispatcher, cache: Cache) -> None:
        @dispatcher.read_through_multi("U", key="ids", add_nulls_to_cache=True)
        async def get_many(ids: list[int]) -> list[str]:
            await cache.set("U:2", 0, "fresh")
            return ["v1"]

        assert await get_many([1, 2]) == ["v1", None]
        assert await cache.get("U:2") == "fresh"

    async def test_unproduced_not_cached_without_add_nulls(self, dispatcher: SiteDispatcher, client: RecordingClient) -> None:
        @dispatcher.read_through_multi("U", key="ids", overwrite_no_nulls=True)
        async def get_many(ids: list[int]) -> list[str]:
            return []

        assert await get_many([1, 2]) == [None, None]
        assert client.ops("set") == []
        assert client.ops("add") == []

    async def test_duplicates_share_unproduced_slot(self, dispatcher: SiteDispatcher) -> None:
        @dispatcher.read_through_multi("U", key="ids")
        async def get_many(ids: list[int]) -> list[str]:
            return ["v4"]

        assert await get_many([4, 5, 4, 5]) == ["v4", None, "v4", None]


class TestMultiFailures:
    async def test_bulk_read_failure_computes_everything(self, dispatcher: SiteDispatcher, client: RecordingClient) -> None:
        loader = Loader()
        client.fail_on["get_bulk"] = CacheTimeoutError("get_bulk")

        @dispatcher.read_through_multi("U", key="ids")
        async def get_many(ids: list[int]) -> list[str | None]:
            return loader(ids)

        assert await get_many([1, 1, 2]) == ["v1", "v1", "v2"]
        assert loader.calls == [[1, 1, 2]]
        assert client.ops("set") == []

    async def test_write_failure_still_returns(self, dispatcher: SiteDispatcher, client: RecordingClient) -> None:
        client.fail_on["set"] = CacheTimeoutError("set")

        @dispatcher.read_through_multi("U", key="ids")
        async def get_many(ids: list[int]) -> list[str | None]:
            return Loader()(ids)

        assert await get_many([1]) == ["v1"]

    async def test_too_many_results(self, dispatcher: SiteDispatcher, client: RecordingClient) -> None:
        @dispatcher.read_through_multi("U", key="ids", add_nulls_to_cache=True)
        async def get_many(ids: list[int]) -> list[str]:
            return ["a", "b", "c"]

        with pytest.raises(InvalidAnnotationError):
            await get_many([1, 2])
        assert client.ops("add") == []
        assert client.ops("set") == []

    async def test_non_list_result(self, dispatcher: SiteDispatcher) -> None:
        @dispatcher.read_through_multi("U", key="ids")
        async def get_many(ids):  # type: ignore[no-untyped-def]
            return "v1"

        with pytest.raises(InvalidAnnotationError):
            await get_many([1])
