"""Durable mapping from a source unit to the tracking issue created for it."""

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel
from .enums import PipelineStage
from .records import TrackingIssue


class TrackingIssueRecord(BaseModel):
    """One row per source unit; ``source_unit_id`` is unique.

    The unique constraint is what makes a second create for the same unit
    fail loudly instead of silently recording a duplicate.
    """

    __tablename__ = "tracking_issues"

    source_unit_id: Mapped[str] = mapped_column(
        String(512), nullable=False, unique=True
    )
    external_id: Mapped[str] = mapped_column(String(255), nullable=False)
    issue_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pipeline_stage: Mapped[str | None] = mapped_column(String(50), nullable=True)

    __table_args__ = (Index("idx_tracking_issues_external_id", "external_id"),)

    def __repr__(self) -> str:
        return (
            f"<TrackingIssueRecord(source_unit_id={self.source_unit_id!r}, "
            f"external_id={self.external_id!r})>"
        )

    def to_domain(self) -> TrackingIssue:
        """Convert the row into the domain value the resolver returns."""
        return TrackingIssue(
            external_id=self.external_id,
            source_unit_id=self.source_unit_id,
            pipeline_stage=(
                PipelineStage(self.pipeline_stage) if self.pipeline_stage else None
            ),
            created_at=self.created_at,
            number=self.issue_number,
        )
