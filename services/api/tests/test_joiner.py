"""
Unit tests for the reference data joiner.
"""

import pytest

from shelffeed.config import settings
from shelffeed.feed.joiner import cap_batch, fetch_papers, fetch_profiles, unique_ids
from shelffeed.models import Paper, Profile
from shelffeed.store import DataStore


class CountingStore(DataStore):
    """Records the models every select() was issued against."""

    def __init__(self, inner: DataStore):
        super().__init__(inner._session_factory)
        self.calls = []

    async def select(self, model, *filters, **kwargs):
        self.calls.append(model)
        return await super().select(model, *filters, **kwargs)


def test_unique_ids_drops_blanks_and_keeps_order():
    assert unique_ids(["b", None, "a", "b", "", "c", "a"]) == ["b", "a", "c"]


def test_cap_batch_truncates_past_cap():
    ids = [f"id{i}" for i in range(5)]

    assert cap_batch(ids, "papers", cap=3) == ["id0", "id1", "id2"]
    assert cap_batch(ids, "papers", cap=5) == ids


@pytest.mark.asyncio
async def test_missing_paper_maps_to_none(store, seed):
    await seed.paper("W1", title="Attention")

    papers = await fetch_papers(store, ["W1", "W404"])

    assert papers["W1"].title == "Attention"
    assert papers["W1"].authors == ["Ada Lovelace"]
    assert papers["W404"] is None


@pytest.mark.asyncio
async def test_one_query_per_reference_kind(store, seed):
    await seed.profile("a", "alice", "Alice")
    await seed.profile("b", "bob", "Bob")
    counting = CountingStore(store)

    profiles = await fetch_profiles(counting, ["a", "b", "a", "a", None, "b"])

    assert counting.calls == [Profile]
    assert set(profiles) == {"a", "b"}
    assert profiles["a"].display_name == "Alice"


@pytest.mark.asyncio
async def test_no_ids_means_no_query(store):
    counting = CountingStore(store)

    assert await fetch_papers(counting, [None, None]) == {}
    assert counting.calls == []


@pytest.mark.asyncio
async def test_batch_overflow_truncates_and_resolves_rest_to_none(store, seed, monkeypatch):
    monkeypatch.setattr(settings, "reference_batch_cap", 2)
    for pid in ("W1", "W2", "W3"):
        await seed.paper(pid)

    papers = await fetch_papers(store, ["W1", "W2", "W3"])

    assert papers["W1"] is not None
    assert papers["W2"] is not None
    assert papers["W3"] is None


@pytest.mark.asyncio
async def test_failed_fetch_degrades_to_empty_mapping(flaky_store, seed):
    await seed.paper("W1")

    papers = await fetch_papers(flaky_store(Paper), ["W1"])

    assert papers == {"W1": None}
