"""Whole-file JSON persistence for the PR State Store.

Layout: ``{"pullRequests": [PRRecord, ...], "lastUpdated": "<iso-8601>"}``.
Every save rewrites the whole document through a temporary file in the same
directory followed by ``os.replace``, so readers see either the old or the
new document, never a torn one.
"""

import asyncio
import json
import logging
import os
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from ..exceptions import PersistenceError
from ..models.records import PRRecord, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)


@dataclass
class StateDocument:
    """Decoded contents of the state file."""

    records: list[PRRecord] = field(default_factory=list)
    last_updated: datetime | None = None


class JsonStateFile:
    """Reads and atomically replaces the state file.

    Writes are serialized process-wide through an ``asyncio.Lock``; the file
    I/O itself runs in a worker thread.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def load(self) -> StateDocument:
        """Read the document; a missing file is an empty document.

        Raises:
            PersistenceError: If the file cannot be read or decoded
        """
        async with self._lock:
            return await asyncio.to_thread(self._read)

    async def save(self, records: Iterable[PRRecord], last_updated: datetime) -> None:
        """Replace the document with ``records``.

        Raises:
            PersistenceError: If the file cannot be written
        """
        document = {
            "pullRequests": [record.to_dict() for record in records],
            "lastUpdated": format_timestamp(last_updated),
        }
        async with self._lock:
            await asyncio.to_thread(self._write, document)

    def _read(self) -> StateDocument:
        try:
            with open(self.path, encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError:
            logger.info(f"No state file at {self.path}, starting empty")
            return StateDocument()
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(
                f"Failed to read state file {self.path}: {e}", path=str(self.path)
            ) from e

        if not isinstance(raw, dict):
            raise PersistenceError(
                f"State file {self.path} is not a JSON object", path=str(self.path)
            )

        try:
            records = [
                PRRecord.from_dict(item) for item in raw.get("pullRequests") or []
            ]
            last_updated = parse_timestamp(raw.get("lastUpdated"))
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(
                f"Malformed record in state file {self.path}: {e}",
                path=str(self.path),
            ) from e

        logger.info(f"Loaded {len(records)} PR records from {self.path}")
        return StateDocument(records=records, last_updated=last_updated)

    def _write(self, document: dict[str, Any]) -> None:
        tmp_path: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_path = f.name
                json.dump(document, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as e:
            raise PersistenceError(
                f"Failed to write state file {self.path}: {e}", path=str(self.path)
            ) from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
