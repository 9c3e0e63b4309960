"""PR State Store: one record per (repository, pr_number).

``apply`` merges an event into the record for its key:

- ``pull_request`` / ``scheduled_update``: every field the event carried
  overwrites the stored one (last write wins by arrival order)
- ``pull_request_review``: appends a ``Review``
- ``push``: appends a ``CommitRef``
- anything else: logged and ignored

An event for a key never seen before creates the record. Records are never
deleted. Calls for the same key are serialized. Writes of the whole
document are serialized across keys, so each one includes every record
committed before it. The merged record is only committed to memory after
the whole document was written to disk, so a failed write leaves the store
exactly as it was.
"""

import asyncio
import copy
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from ..models.records import CommitRef, PRRecord, Review
from ..sync.locks import KeyedLock
from .events import PullRequestEvent, PushEvent, ReviewEvent
from .persistence import JsonStateFile

logger = logging.getLogger(__name__)

# Event field -> record attribute for fields copied verbatim
_PR_FIELD_MAP = {
    "pr_title": "title",
    "author": "author",
    "organization": "organization",
    "created_at": "created_at",
    "updated_at": "updated_at",
    "merged_at": "merged_at",
    "html_url": "html_url",
    "action": "last_action",
}
_STATE_FIELDS = frozenset({"pr_state", "pr_merged", "draft"})
_TRACKING_FIELDS = frozenset({"external_tracking_ref", "zenhub_data"})

Key = tuple[str, int]


class PRStateStore:
    """Keyed collection of ``PRRecord`` with field-level merge semantics.

    Without a state file the store is memory-only.
    """

    def __init__(self, state_file: JsonStateFile | None = None):
        self.state_file = state_file
        self._records: dict[Key, PRRecord] = {}
        self._last_updated: datetime | None = None
        self._key_locks = KeyedLock()
        # Snapshot, write and in-memory update form one step across all keys
        self._commit_lock = asyncio.Lock()
        self._handlers: dict[type, Callable[[PRRecord, Any], None]] = {
            PullRequestEvent: self._merge_pull_request,
            ReviewEvent: self._append_review,
            PushEvent: self._append_commit,
        }

    async def load(self) -> int:
        """Replace the in-memory records with the state file's contents.

        Returns:
            Number of records loaded

        Raises:
            PersistenceError: If the state file is unreadable
        """
        if self.state_file is None:
            return 0
        document = await self.state_file.load()
        self._records = {record.key: record for record in document.records}
        self._last_updated = document.last_updated
        return len(self._records)

    async def apply(self, event: Any) -> PRRecord | None:
        """Merge ``event`` into its record and persist the result.

        Returns:
            A copy of the updated record, or None for an unrecognized event

        Raises:
            PersistenceError: If the state file could not be written; the
                in-memory record is left unchanged
        """
        handler = self._handler_for(event)
        if handler is None:
            logger.warning(
                f"Ignoring unrecognized event kind "
                f"{getattr(event, 'event_type', type(event).__name__)}"
            )
            return None

        key: Key = event.key
        async with self._key_locks.hold(key):
            current = self._records.get(key)
            if current is None:
                record = PRRecord(
                    pr_number=event.pr_number, repository=event.repository
                )
                logger.info(f"Creating PR record {event.repository}#{event.pr_number}")
            else:
                record = copy.deepcopy(current)

            handler(record, event)
            record.last_event_at = event.timestamp or datetime.now(UTC)

            await self._commit(record)
            logger.debug(f"Applied {event.event_type} to {record}")
            return copy.deepcopy(record)

    def _handler_for(self, event: Any) -> Callable[[PRRecord, Any], None] | None:
        for event_class, handler in self._handlers.items():
            if isinstance(event, event_class):
                return handler
        return None

    async def _commit(self, record: PRRecord) -> None:
        async with self._commit_lock:
            now = datetime.now(UTC)
            if self.state_file is not None:
                snapshot = dict(self._records)
                snapshot[record.key] = record
                await self.state_file.save(snapshot.values(), now)
            self._records[record.key] = record
            self._last_updated = now

    @staticmethod
    def _merge_pull_request(record: PRRecord, event: PullRequestEvent) -> None:
        provided = event.model_fields_set
        for event_field, attribute in _PR_FIELD_MAP.items():
            if event_field in provided:
                value = getattr(event, event_field)
                if attribute in ("title", "author") and value is None:
                    value = ""
                setattr(record, attribute, value)

        if provided & _STATE_FIELDS:
            state = event.resolved_state()
            if state is not None:
                record.state = state

        if provided & _TRACKING_FIELDS:
            record.external_tracking_ref = event.tracking_ref()

    @staticmethod
    def _append_review(record: PRRecord, event: ReviewEvent) -> None:
        record.reviews.append(
            Review(
                reviewer=event.reviewer,
                state=event.review_state,
                body=event.review_body,
                timestamp=event.timestamp,
            )
        )

    @staticmethod
    def _append_commit(record: PRRecord, event: PushEvent) -> None:
        record.commits.append(
            CommitRef(
                sha=event.commit_sha,
                message=event.commit_message,
                author=event.author,
                timestamp=event.timestamp,
            )
        )

    def get(self, repository: str, pr_number: int) -> PRRecord | None:
        record = self._records.get((repository, pr_number))
        return copy.deepcopy(record) if record else None

    def list_records(self) -> list[PRRecord]:
        """Copies of all records in insertion order."""
        return copy.deepcopy(list(self._records.values()))

    @property
    def last_updated(self) -> datetime | None:
        return self._last_updated

    def __len__(self) -> int:
        return len(self._records)
