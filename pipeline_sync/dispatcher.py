"""Event Dispatcher: validates raw inbound events and routes them to the store."""

import logging
from typing import Any

from pydantic import ValidationError

from .exceptions import DispatchError, DispatchErrorKind
from .models.enums import EventKind
from .models.records import PRRecord
from .store.events import parse_event
from .store.state_store import PRStateStore

logger = logging.getLogger(__name__)

KNOWN_EVENT_TYPES = frozenset(kind.value for kind in EventKind)


class EventDispatcher:
    """Turns a raw JSON payload into a store mutation.

    Validation happens before the store is touched, so a rejected event
    never changes state. Ordering for a single key is provided by the store.
    """

    def __init__(self, store: PRStateStore):
        self.store = store

    async def dispatch(self, raw: Any) -> PRRecord:
        """Validate ``raw`` and apply it.

        Args:
            raw: Decoded JSON payload with an ``event_type`` discriminant

        Returns:
            The record after the event was applied

        Raises:
            DispatchError: If the payload is not a known, well-formed event
            PersistenceError: If the store could not persist the change
        """
        if not isinstance(raw, dict):
            raise DispatchError(
                f"Event payload must be a JSON object, got {type(raw).__name__}"
            )

        event_type = raw.get("event_type")
        if not isinstance(event_type, str) or event_type not in KNOWN_EVENT_TYPES:
            logger.warning(f"Rejected event with unknown kind {event_type!r}")
            raise DispatchError(
                f"Unknown event_type {event_type!r}, expected one of "
                f"{', '.join(sorted(KNOWN_EVENT_TYPES))}"
            )

        try:
            event = parse_event(raw)
        except ValidationError as e:
            details = e.errors(include_url=False, include_context=False)
            fields = ", ".join(
                ".".join(str(part) for part in error["loc"]) or "<root>"
                for error in details
            )
            logger.warning(
                f"Rejected malformed {raw.get('event_type', '<missing>')} event: "
                f"{fields}"
            )
            raise DispatchError(
                f"Malformed event: invalid or missing {fields}",
                kind=DispatchErrorKind.MALFORMED_EVENT,
                details=[
                    {"loc": list(error["loc"]), "msg": error["msg"]}
                    for error in details
                ],
            ) from e

        record = await self.store.apply(event)
        if record is None:
            # parse_event only yields kinds the store handles
            raise DispatchError(f"Event kind {event.event_type} is not handled")
        logger.info(
            f"Applied {event.event_type} event to "
            f"{event.repository}#{event.pr_number}"
        )
        return record
