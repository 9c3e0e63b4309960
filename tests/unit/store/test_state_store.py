"""
Unit tests for PRStateStore.

Why: The store is the single source of truth for PR records; merge rules
     decide what the read endpoints and statistics report
What: Tests pull_request/review/push merge semantics, key creation,
      per-key serialization and failed-persist atomicity
How: Applies validated events to memory-only and file-backed stores
"""

import asyncio
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from pipeline_sync.exceptions import PersistenceError
from pipeline_sync.models.enums import PRState
from pipeline_sync.models.records import Review
from pipeline_sync.store.events import parse_event
from pipeline_sync.store.persistence import JsonStateFile
from pipeline_sync.store.state_store import PRStateStore


def event(**fields: Any) -> Any:
    payload: dict[str, Any] = {"repository": "acme/app", "pr_number": 42}
    payload.update(fields)
    return parse_event(payload)


def pr_opened(**fields: Any) -> Any:
    base: dict[str, Any] = {
        "event_type": "pull_request",
        "action": "opened",
        "pr_title": "Add login",
        "pr_state": "open",
        "author": "alice",
        "created_at": "2024-01-01T10:00:00Z",
    }
    base.update(fields)
    return event(**base)


@pytest.fixture
def store() -> PRStateStore:
    return PRStateStore()


class TestPullRequestMerge:
    """Test merging pull_request and scheduled_update events."""

    @pytest.mark.asyncio
    async def test_unseen_key_creates_record(self, store: PRStateStore) -> None:
        record = await store.apply(pr_opened())

        assert record is not None
        assert record.key == ("acme/app", 42)
        assert record.title == "Add login"
        assert record.state is PRState.OPEN
        assert record.author == "alice"
        assert record.last_action == "opened"
        assert record.created_at == datetime(2024, 1, 1, 10, tzinfo=UTC)
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_absent_fields_do_not_overwrite(self, store: PRStateStore) -> None:
        """
        Why: Partial events (e.g. a label change) must not erase data
        What: An edited event carrying only the title keeps state and author
        How: Applies a full event then a title-only event
        """
        await store.apply(pr_opened())

        record = await store.apply(
            event(event_type="pull_request", action="edited", pr_title="Add SSO")
        )

        assert record is not None
        assert record.title == "Add SSO"
        assert record.author == "alice"
        assert record.state is PRState.OPEN
        assert record.last_action == "edited"

    @pytest.mark.asyncio
    async def test_last_write_wins_by_arrival(self, store: PRStateStore) -> None:
        await store.apply(pr_opened(pr_state="open"))
        await store.apply(event(event_type="pull_request", pr_state="closed"))

        record = store.get("acme/app", 42)
        assert record is not None
        assert record.state is PRState.CLOSED

    @pytest.mark.asyncio
    async def test_merged_flag_wins_over_state(self, store: PRStateStore) -> None:
        record = await store.apply(
            pr_opened(
                action="closed",
                pr_state="closed",
                pr_merged=True,
                merged_at="2024-01-03T10:00:00Z",
            )
        )

        assert record is not None
        assert record.state is PRState.MERGED
        assert record.merged_at == datetime(2024, 1, 3, 10, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_open_draft_is_draft(self, store: PRStateStore) -> None:
        record = await store.apply(pr_opened(draft=True))

        assert record is not None
        assert record.state is PRState.DRAFT

    @pytest.mark.asyncio
    async def test_scheduled_update_merges_like_pull_request(
        self, store: PRStateStore
    ) -> None:
        await store.apply(pr_opened())

        record = await store.apply(
            event(
                event_type="scheduled_update",
                pr_state="merged",
                external_tracking_ref="issue-9",
            )
        )

        assert record is not None
        assert record.state is PRState.MERGED
        assert record.external_tracking_ref == "issue-9"
        assert record.title == "Add login"

    @pytest.mark.asyncio
    async def test_tracking_ref_from_board_data(self, store: PRStateStore) -> None:
        record = await store.apply(pr_opened(zenhub_data={"issueId": "Z_123"}))

        assert record is not None
        assert record.external_tracking_ref == "Z_123"


class TestHistoryEvents:
    """Test review and push events."""

    @pytest.mark.asyncio
    async def test_pr_then_review(self, store: PRStateStore) -> None:
        await store.apply(pr_opened())

        record = await store.apply(
            event(
                event_type="pull_request_review",
                reviewer="bob",
                review_state="approved",
                review_body="LGTM",
                timestamp="2024-01-02T09:00:00Z",
            )
        )

        assert record is not None
        assert record.title == "Add login"
        assert record.state is PRState.OPEN
        assert len(record.reviews) == 1
        review = record.reviews[0]
        assert (review.reviewer, review.state, review.body) == (
            "bob",
            "approved",
            "LGTM",
        )
        assert record.last_event_at == datetime(2024, 1, 2, 9, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_pushes_append_in_order(self, store: PRStateStore) -> None:
        await store.apply(pr_opened())
        await store.apply(event(event_type="push", commit_sha="aaa111"))
        record = await store.apply(
            event(event_type="push", commit_sha="bbb222", commit_message="Fix")
        )

        assert record is not None
        assert [commit.sha for commit in record.commits] == ["aaa111", "bbb222"]
        assert record.commits[1].message == "Fix"

    @pytest.mark.asyncio
    async def test_review_for_unseen_key_creates_record(
        self, store: PRStateStore
    ) -> None:
        record = await store.apply(
            event(
                event_type="pull_request_review",
                pr_number=7,
                reviewer="bob",
                review_state="commented",
            )
        )

        assert record is not None
        assert record.key == ("acme/app", 7)
        assert record.title == ""
        assert record.state is PRState.OPEN
        assert len(record.reviews) == 1

    @pytest.mark.asyncio
    async def test_concurrent_pushes_are_all_kept(self, store: PRStateStore) -> None:
        await asyncio.gather(
            *(
                store.apply(event(event_type="push", commit_sha=f"sha{i}"))
                for i in range(10)
            )
        )

        record = store.get("acme/app", 42)
        assert record is not None
        assert len(record.commits) == 10


class TestStoreBehaviour:
    """Test isolation, unknown events and persistence failures."""

    @pytest.mark.asyncio
    async def test_unknown_event_is_noop(self, store: PRStateStore) -> None:
        assert await store.apply(object()) is None
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, store: PRStateStore) -> None:
        record = await store.apply(pr_opened())
        assert record is not None

        record.title = "mutated"
        record.reviews.append(Review(reviewer="mallory"))

        stored = store.get("acme/app", 42)
        assert stored is not None
        assert stored.title == "Add login"
        assert stored.reviews == []

    @pytest.mark.asyncio
    async def test_failed_persist_leaves_memory_unchanged(
        self, tmp_path: Path
    ) -> None:
        """
        Why: A failed write must not leave memory ahead of disk
        What: The second event fails to persist; the record keeps its
              first-event values and the error surfaces
        How: Replaces JsonStateFile.save with a failing AsyncMock
        """
        state_file = JsonStateFile(tmp_path / "pr-data.json")
        store = PRStateStore(state_file)
        await store.apply(pr_opened())
        last_updated = store.last_updated

        failing_save = AsyncMock(side_effect=PersistenceError("disk full"))
        state_file.save = failing_save  # type: ignore[method-assign]

        with pytest.raises(PersistenceError):
            await store.apply(event(event_type="pull_request", pr_state="closed"))

        record = store.get("acme/app", 42)
        assert record is not None
        assert record.state is PRState.OPEN
        assert store.last_updated == last_updated

    @pytest.mark.asyncio
    async def test_persisted_records_reload(self, tmp_path: Path) -> None:
        path = tmp_path / "pr-data.json"
        store = PRStateStore(JsonStateFile(path))
        await store.apply(pr_opened())
        await store.apply(event(event_type="push", commit_sha="abc"))

        reloaded = PRStateStore(JsonStateFile(path))
        count = await reloaded.load()

        assert count == 1
        record = reloaded.get("acme/app", 42)
        assert record is not None
        assert record.title == "Add login"
        assert [commit.sha for commit in record.commits] == ["abc"]
        assert reloaded.last_updated is not None

    @pytest.mark.asyncio
    async def test_memory_only_store_loads_nothing(self, store: PRStateStore) -> None:
        assert await store.load() == 0

    @pytest.mark.asyncio
    async def test_list_records_keeps_insertion_order(
        self, store: PRStateStore
    ) -> None:
        for number in (3, 1, 2):
            await store.apply(pr_opened(pr_number=number))

        assert [r.pr_number for r in store.list_records()] == [3, 1, 2]

    @pytest.mark.asyncio
    async def test_concurrent_events_for_different_prs_all_persist(
        self, tmp_path: Path
    ) -> None:
        """
        Why: A whole-file write built from a stale snapshot would drop records
             committed by overlapping writes for other PRs
        What: Every PR applied concurrently is present after reloading the file
        How: Slows each save down so the applies overlap, then reloads a fresh
             store from the same path
        """
        path = tmp_path / "pr-data.json"
        state_file = JsonStateFile(path)
        original_save = state_file.save

        async def slow_save(*args: Any) -> None:
            await asyncio.sleep(0.01)
            await original_save(*args)

        state_file.save = slow_save  # type: ignore[method-assign]
        store = PRStateStore(state_file)

        await asyncio.gather(
            *(store.apply(pr_opened(pr_number=number)) for number in range(1, 9))
        )

        reloaded = PRStateStore(JsonStateFile(path))
        assert await reloaded.load() == 8
        assert sorted(r.pr_number for r in reloaded.list_records()) == list(
            range(1, 9)
        )
