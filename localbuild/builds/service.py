"""Build history service.

Persists the outcome of each artifact build and answers history queries.
The pipeline reports to it through a recorder callback, so building never
depends on the database.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session

from localbuild.builds.models import BuildRecord
from localbuild.types import BuildStatus

if TYPE_CHECKING:
    from localbuild.builds.pipeline import Recorder
    from localbuild.builds.policy import BuildPolicy
    from localbuild.builds.schema import ArtifactSchema
    from localbuild.errors import LocalBuildError
    from localbuild.types import BuildOutcome

logger = logging.getLogger(__name__)


class BuildNotFoundError(Exception):
    """Raised when a build record is not found."""

    def __init__(self, build_id: int, code: str = "build_not_found") -> None:
        super().__init__(f"Build not found: {build_id}")
        self.build_id = build_id
        self.code = code


def record_outcome(
    session: Session,
    outcome: BuildOutcome,
    policy: BuildPolicy | None = None,
) -> BuildRecord:
    """Persist a successful artifact build.

    Args:
        session: Database session.
        outcome: Outcome produced by the pipeline.
        policy: Policy of the invocation, if known.

    Returns:
        Created BuildRecord.
    """
    record = BuildRecord(
        image_name=outcome.image_name,
        tag=outcome.tag,
        kube_context=policy.kube_context if policy else None,
        strategy=policy.strategy_kind.value if policy else None,
        status=BuildStatus.RUNNING.value,
    )
    record.mark_succeeded(
        outcome.final_reference, outcome.image_id, pushed=outcome.is_digest_form
    )
    session.add(record)
    session.flush()
    return record


def record_failure(
    session: Session,
    image_name: str,
    tag: str | None,
    error: LocalBuildError,
    policy: BuildPolicy | None = None,
) -> BuildRecord:
    """Persist a failed artifact build.

    Args:
        session: Database session.
        image_name: Artifact image name.
        tag: Candidate tag, if one was supplied.
        error: Error that aborted the build.
        policy: Policy of the invocation, if known.

    Returns:
        Created BuildRecord.
    """
    record = BuildRecord(
        image_name=image_name,
        tag=tag or "",
        kube_context=policy.kube_context if policy else None,
        strategy=policy.strategy_kind.value if policy else None,
        status=BuildStatus.RUNNING.value,
    )
    record.mark_failed(error_type=error.code, message=str(error))
    session.add(record)
    session.flush()
    return record


def make_recorder(session: Session, tags: dict[str, str]) -> Recorder:
    """Create a pipeline recorder that writes to the build history.

    Args:
        session: Database session (committed by the caller).
        tags: Candidate tag per image name.

    Returns:
        Recorder callback for LocalBuilder.
    """

    def _record(
        policy: BuildPolicy,
        artifact: ArtifactSchema,
        outcome: BuildOutcome | None,
        error: LocalBuildError | None,
    ) -> None:
        if outcome is not None:
            record = record_outcome(session, outcome, policy)
        elif error is not None:
            record = record_failure(
                session, artifact.image_name, tags.get(artifact.image_name), error, policy
            )
        else:
            return
        logger.debug("Recorded build %d for %s", record.id, artifact.image_name)

    return _record


def get_build(session: Session, build_id: int) -> BuildRecord:
    """Get a build record by ID.

    Raises:
        BuildNotFoundError: If build not found.
    """
    build = session.get(BuildRecord, build_id)
    if build is None:
        raise BuildNotFoundError(build_id)
    return build


def list_builds(
    session: Session,
    image_name: str | None = None,
    status: BuildStatus | None = None,
    limit: int = 100,
) -> list[BuildRecord]:
    """List build records with optional filters, newest first.

    Args:
        session: Database session.
        image_name: Filter by image name.
        status: Filter by status.
        limit: Maximum results to return.

    Returns:
        List of BuildRecord instances.
    """
    stmt = select(BuildRecord)

    if image_name is not None:
        stmt = stmt.where(BuildRecord.image_name == image_name)
    if status is not None:
        stmt = stmt.where(BuildRecord.status == status.value)

    stmt = stmt.order_by(BuildRecord.id.desc()).limit(limit)

    return list(session.execute(stmt).scalars().all())


__all__ = [
    "BuildNotFoundError",
    "get_build",
    "list_builds",
    "make_recorder",
    "record_failure",
    "record_outcome",
]
