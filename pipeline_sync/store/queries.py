"""Read-side filtering of PR records."""

from collections.abc import Iterable
from dataclasses import dataclass

from ..models.records import PRRecord

ALL = "all"


def _active(value: str | None) -> str | None:
    """Normalize a filter value; empty and ``all`` mean no filter."""
    if value is None:
        return None
    value = value.strip()
    if not value or value.lower() == ALL:
        return None
    return value


@dataclass(frozen=True)
class PRFilter:
    """Filters accepted by ``GET /api/prs``.

    ``status`` matches a state's value or display label, case-insensitively
    (``merged`` and ``Merged`` are equivalent). ``author`` and ``repository``
    must match exactly; ``search`` is a case-insensitive substring of title
    or author.
    """

    status: str | None = None
    author: str | None = None
    repository: str | None = None
    search: str | None = None

    def matches(self, record: PRRecord) -> bool:
        status = _active(self.status)
        if status is not None and status.lower() != record.state.value:
            return False

        author = _active(self.author)
        if author is not None and record.author != author:
            return False

        repository = _active(self.repository)
        if repository is not None and record.repository != repository:
            return False

        search = _active(self.search)
        if search is not None:
            needle = search.lower()
            haystacks = (record.title.lower(), record.author.lower())
            if not any(needle in haystack for haystack in haystacks):
                return False

        return True

    def apply(self, records: Iterable[PRRecord]) -> list[PRRecord]:
        return [record for record in records if self.matches(record)]


def filter_values(records: Iterable[PRRecord]) -> dict[str, list[str]]:
    """Distinct authors, repositories and status labels, sorted."""
    records = list(records)
    return {
        "authors": sorted({record.author for record in records if record.author}),
        "repositories": sorted({record.repository for record in records}),
        "statuses": sorted({record.state.label for record in records}),
    }

