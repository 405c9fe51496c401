"""Build ORM models.

This module defines the BuildRecord model storing one row per artifact
build, with the reference it resolved to or the error that aborted it.
"""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from localbuild.db import Base
from localbuild.types import BuildStatus


class BuildRecord(Base):
    """ORM model for artifact build records.

    Attributes:
        id: Primary key.
        image_name: Artifact image name.
        tag: Candidate tag the image was built with.
        kube_context: Kubernetes context of the invocation.
        strategy: Build strategy used (api, cli, buildkit).
        status: Build status (pending, running, succeeded, failed).
        pushed: Whether the image was pushed to a registry.
        final_reference: Deploy-ready reference on success.
        image_id: Content-addressed image ID.
        requested_at: Timestamp when the record was created.
        finished_at: Timestamp when the build finished.
        error_type: Error code if the build failed.
        error_message: Error message if the build failed.
    """

    __tablename__ = "build_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    image_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    tag: Mapped[str] = mapped_column(String(500), nullable=False)
    kube_context: Mapped[str | None] = mapped_column(String(255), nullable=True)
    strategy: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Status and timing
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BuildStatus.PENDING.value, index=True
    )
    requested_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Outcome
    pushed: Mapped[bool] = mapped_column(nullable=False, default=False)
    final_reference: Mapped[str | None] = mapped_column(String(700), nullable=True)
    image_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # Error tracking
    error_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (Index("ix_build_records_image_status", "image_name", "status"),)

    def __repr__(self) -> str:
        """Return string representation of BuildRecord."""
        return (
            f"<BuildRecord(id={self.id}, image_name='{self.image_name}', "
            f"status='{self.status}', reference='{self.final_reference}')>"
        )

    def mark_succeeded(
        self, final_reference: str, image_id: str | None, pushed: bool
    ) -> None:
        """Mark this build as succeeded."""
        self.status = BuildStatus.SUCCEEDED.value
        self.finished_at = datetime.now()
        self.final_reference = final_reference
        self.image_id = image_id or None
        self.pushed = pushed

    def mark_failed(
        self, error_type: str | None = None, message: str | None = None
    ) -> None:
        """Mark this build as failed.

        Args:
            error_type: Type/category of the error.
            message: Error message details.
        """
        self.status = BuildStatus.FAILED.value
        self.finished_at = datetime.now()
        if error_type:
            self.error_type = error_type
        if message:
            self.error_message = message

    def is_succeeded(self) -> bool:
        """Check if this build succeeded."""
        return self.status == BuildStatus.SUCCEEDED.value


__all__ = ["BuildRecord"]
