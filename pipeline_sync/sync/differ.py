"""Commit-set differ between two branch snapshots."""

from collections.abc import Iterable, Sequence

from ..models.records import Commit


def diff(primary: Sequence[Commit], secondary: Iterable[Commit]) -> list[Commit]:
    """Commits of ``primary`` whose hash does not occur in ``secondary``.

    Only hash membership is compared, so rewritten history is not detected.
    The result keeps ``primary``'s order; a hash repeated in ``primary`` is
    reported once, at its first position.

    Args:
        primary: Snapshot of the branch commits originate on
        secondary: Snapshot of the branch they should propagate to

    Returns:
        The unsynced commits
    """
    present = {commit.hash for commit in secondary}
    seen: set[str] = set()
    unsynced: list[Commit] = []
    for commit in primary:
        if commit.hash in present or commit.hash in seen:
            continue
        seen.add(commit.hash)
        unsynced.append(commit)
    return unsynced
