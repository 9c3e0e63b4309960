"""
Unit tests for domain records and enums.

Why: Source unit ids and issue bodies are how tracking issues are found
     again after a restart; PR record serialization is the state file format
What: Tests CommitUnit/PullRequestUnit identity, the body marker, stage
      mapping and PRRecord to_dict/from_dict
How: Builds records directly and inspects the produced values
"""

from datetime import UTC, datetime, timedelta

import pytest

from pipeline_sync.models.enums import PipelineStage, PRState
from pipeline_sync.models.records import (
    Commit,
    CommitRef,
    CommitUnit,
    PRRecord,
    PullRequestUnit,
    Review,
    TrackingIssue,
    extract_source_unit_id,
    parse_timestamp,
    source_unit_marker,
)


class TestEnums:
    """Test PRState and PipelineStage helpers."""

    def test_status_labels(self) -> None:
        assert PRState.MERGED.label == "Merged"
        assert PRState.DRAFT.label == "Draft"

    @pytest.mark.parametrize(
        ("state", "stage"),
        [
            (PRState.DRAFT, PipelineStage.IN_PROGRESS),
            (PRState.OPEN, PipelineStage.REVIEW),
            (PRState.MERGED, PipelineStage.DONE),
            (PRState.CLOSED, PipelineStage.CLOSED),
        ],
    )
    def test_stage_for_pr_state(self, state: PRState, stage: PipelineStage) -> None:
        assert PipelineStage.for_pr_state(state) is stage

    def test_every_stage_has_default_name(self) -> None:
        names = [stage.default_name for stage in PipelineStage]
        assert all(names)
        assert len(set(names)) == len(names)


class TestSourceUnitMarker:
    """Test the hidden marker embedded in issue bodies."""

    def test_marker_round_trips(self) -> None:
        body = f"Some text\n\n{source_unit_marker('acme/app#abc123')}\n"
        assert extract_source_unit_id(body) == "acme/app#abc123"

    @pytest.mark.parametrize("body", [None, "", "no marker here"])
    def test_missing_marker(self, body: str | None) -> None:
        assert extract_source_unit_id(body) is None


class TestUnits:
    """Test units of work."""

    def test_commit_unit_identity_and_title(self) -> None:
        commit = Commit(hash="c1ffee", message="Fix login\n\nLonger body")
        unit = CommitUnit(repository="acme/app", commit=commit)

        assert unit.source_unit_id == "acme/app#c1ffee"
        assert unit.issue_title() == "[SYNC NEEDED] Fix login"
        assert extract_source_unit_id(unit.issue_body()) == unit.source_unit_id
        assert "`practice`" in unit.issue_body()

    def test_pull_request_unit_identity_and_body(self) -> None:
        unit = PullRequestUnit(
            repository="acme/app",
            number=42,
            title="Add feature",
            author="bob",
            url="https://github.com/acme/app/pull/42",
        )

        assert unit.source_unit_id == "acme/app#42"
        assert unit.issue_title() == "[PR #42] Add feature"
        body = unit.issue_body()
        assert "@bob" in body
        assert "No description" in body
        assert "https://github.com/acme/app/pull/42" in body
        assert extract_source_unit_id(body) == "acme/app#42"

    def test_commit_summary_and_short_hash(self) -> None:
        commit = Commit(hash="0123456789abcdef", message="First\nSecond")
        assert commit.short_hash == "0123456"
        assert commit.summary == "First"

    def test_tracking_issue_with_stage_copies(self) -> None:
        issue = TrackingIssue("i-1", "acme/app#1", PipelineStage.NEW_ISSUE)
        moved = issue.with_stage(PipelineStage.REVIEW)

        assert moved.pipeline_stage is PipelineStage.REVIEW
        assert issue.pipeline_stage is PipelineStage.NEW_ISSUE
        assert moved.external_id == issue.external_id


class TestTimestamps:
    """Test timestamp parsing."""

    def test_parses_zulu_suffix(self) -> None:
        assert parse_timestamp("2024-01-02T03:04:05Z") == datetime(
            2024, 1, 2, 3, 4, 5, tzinfo=UTC
        )

    def test_naive_is_treated_as_utc(self) -> None:
        parsed = parse_timestamp("2024-01-02T03:04:05")
        assert parsed is not None
        assert parsed.tzinfo is UTC

    def test_keeps_offset(self) -> None:
        parsed = parse_timestamp("2024-01-02T03:04:05+02:00")
        assert parsed is not None
        assert parsed.utcoffset() == timedelta(hours=2)

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty_is_none(self, value: str | None) -> None:
        assert parse_timestamp(value) is None


class TestPRRecord:
    """Test PRRecord serialization."""

    def test_to_dict_from_dict_preserves_history(self) -> None:
        created = datetime(2024, 1, 1, tzinfo=UTC)
        record = PRRecord(
            pr_number=7,
            repository="acme/app",
            title="Title",
            state=PRState.MERGED,
            author="alice",
            created_at=created,
            merged_at=created + timedelta(days=2),
            external_tracking_ref="issue-7",
            reviews=[Review(reviewer="bob", state="approved", timestamp=created)],
            commits=[CommitRef(sha="a1"), CommitRef(sha="b2", message="second")],
        )

        restored = PRRecord.from_dict(record.to_dict())

        assert restored == record
        assert [commit.sha for commit in restored.commits] == ["a1", "b2"]

    def test_from_dict_defaults(self) -> None:
        record = PRRecord.from_dict({"pr_number": "3", "repository": "acme/app"})

        assert record.pr_number == 3
        assert record.state is PRState.OPEN
        assert record.reviews == []
        assert record.key == ("acme/app", 3)
        assert record.status_label == "Open"
