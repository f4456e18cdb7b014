"""Tests for ChangeNotifier revisions and its memory bound."""

import pytest

from todoapp.services.ChangeNotifier import TODO_VIEW, ChangeNotifier


@pytest.mark.asyncio
async def test_revisions_grow_per_view():
    notifier = ChangeNotifier()
    assert await notifier.data_changed("alice") == 1
    assert await notifier.data_changed("alice") == 2
    assert notifier.revision("alice", TODO_VIEW) == 2
    assert notifier.revision("alice", "/other") == 0


@pytest.mark.asyncio
async def test_tracked_views_are_capped():
    notifier = ChangeNotifier(max_entries=2)
    for user_id in ("a", "b", "c", "d"):
        await notifier.data_changed(user_id)

    assert len(notifier) == 2
    assert notifier.revision("a") == 0
    assert notifier.revision("b") == 0
    assert notifier.revision("d") == 4


@pytest.mark.asyncio
async def test_recent_changes_survive_eviction():
    notifier = ChangeNotifier(max_entries=2)
    await notifier.data_changed("a")
    await notifier.data_changed("b")
    await notifier.data_changed("a")
    await notifier.data_changed("c")

    assert notifier.revision("a") == 3
    assert notifier.revision("b") == 0


@pytest.mark.asyncio
async def test_evicted_view_never_reuses_an_old_revision():
    notifier = ChangeNotifier(max_entries=1)
    seen_by_client = await notifier.data_changed("alice")
    await notifier.data_changed("bob")

    assert notifier.revision("alice") != seen_by_client
    assert await notifier.data_changed("alice") > seen_by_client
