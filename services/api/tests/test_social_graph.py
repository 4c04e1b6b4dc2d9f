"""
Unit tests for the social graph accessor.
"""

import pytest

from shelffeed import social_graph
from shelffeed.models import Follow
from shelffeed.store import UNAVAILABLE, StoreError


@pytest.mark.asyncio
async def test_follow_twice_leaves_one_edge(store):
    before = await social_graph.follow_counts(store, "x")

    await social_graph.follow(store, "me", "x")
    await social_graph.follow(store, "me", "x")

    after = await social_graph.follow_counts(store, "x")
    assert after.followers == before.followers + 1
    assert await store.count(Follow, Follow.follower_id == "me", Follow.followee_id == "x") == 1
    assert await social_graph.is_following(store, "me", "x")


@pytest.mark.asyncio
async def test_self_follow_is_rejected(store):
    with pytest.raises(social_graph.SelfFollowError):
        await social_graph.follow(store, "me", "me")

    assert await store.count(Follow) == 0
    assert (await social_graph.follow_counts(store, "me")).followers == 0


@pytest.mark.asyncio
async def test_unfollow_missing_edge_is_noop(store):
    await social_graph.unfollow(store, "me", "nobody")

    assert not await social_graph.is_following(store, "me", "nobody")


@pytest.mark.asyncio
async def test_unfollow_removes_edge(store, seed):
    await seed.follow("me", "x")

    await social_graph.unfollow(store, "me", "x")

    assert await social_graph.follow_counts(store, "x") == social_graph.FollowCounts(followers=0, following=0)


@pytest.mark.asyncio
async def test_follow_counts_both_directions(store, seed):
    await seed.follow("a", "b")
    await seed.follow("c", "b")
    await seed.follow("b", "a")

    counts = await social_graph.follow_counts(store, "b")

    assert (counts.followers, counts.following) == (2, 1)


@pytest.mark.asyncio
async def test_is_following_without_viewer(store, seed):
    await seed.follow("a", "b")

    assert await social_graph.is_following(store, None, "b") is False


@pytest.mark.asyncio
async def test_follower_lists_join_profiles(store, seed):
    await seed.profile("a", "alice", "Alice")
    await seed.follow("a", "b", t=1)
    await seed.follow("ghost", "b", t=2)

    followers = await social_graph.list_followers(store, "b")

    assert [f.user_id for f in followers] == ["ghost", "a"]
    assert followers[0].profile is None
    assert followers[1].profile.username == "alice"

    following = await social_graph.list_following(store, "a")
    assert [f.user_id for f in following] == ["b"]


@pytest.mark.asyncio
async def test_follow_surfaces_non_duplicate_errors(store, monkeypatch):
    async def down(*rows):
        raise StoreError(UNAVAILABLE, "store down")

    monkeypatch.setattr(store, "insert", down)

    with pytest.raises(StoreError) as info:
        await social_graph.follow(store, "me", "x")
    assert info.value.code == UNAVAILABLE
