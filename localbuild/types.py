"""Shared type definitions for localbuild.

This module contains dataclasses, enums, and type aliases shared across
subpackages to avoid circular imports.
"""

from dataclasses import dataclass, field
from enum import Enum


class BuildStatus(str, Enum):
    """Status of a recorded artifact build."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class StageStatus(str, Enum):
    """Outcome class of a pipeline stage.

    FATAL is never returned: fatal stages raise. It exists so that records
    and reports can name the outcome of a failed stage.
    """

    OK = "ok"
    DEGRADED = "degraded"
    FATAL = "fatal"


class StrategyKind(str, Enum):
    """Build strategy chosen for an invocation."""

    API = "api"
    CLI = "cli"
    BUILDKIT = "buildkit"


@dataclass
class BuildWarning:
    """A non-fatal condition raised during a build.

    Attributes:
        code: Stable warning code (``cache_pull_miss``, ``identifier_lookup``).
        message: Human-readable message.
        image: Image reference the warning relates to.
    """

    code: str
    message: str
    image: str | None = None


@dataclass
class StageResult:
    """Result of a non-raising pipeline stage."""

    status: StageStatus = StageStatus.OK
    warnings: list[BuildWarning] = field(default_factory=list)

    def degrade(self, warning: BuildWarning) -> None:
        """Record a warning and mark the stage as degraded."""
        self.warnings.append(warning)
        self.status = StageStatus.DEGRADED

    @property
    def is_degraded(self) -> bool:
        return self.status == StageStatus.DEGRADED


@dataclass
class BuildOutcome:
    """Deploy-ready result of building one artifact.

    Attributes:
        image_name: Artifact image name.
        tag: Candidate tag the artifact was built with.
        final_reference: Reference to use in deployment manifests.
        is_digest_form: True when final_reference is ``tag@digest``.
        image_id: Content-addressed image ID (empty if it could not be read).
    """

    image_name: str
    tag: str
    final_reference: str
    is_digest_form: bool
    image_id: str = ""


# Ordered image IDs built during one invocation, used for cleanup.
BuiltImages = list[str]


__all__ = [
    "BuildOutcome",
    "BuildStatus",
    "BuildWarning",
    "BuiltImages",
    "StageResult",
    "StageStatus",
    "StrategyKind",
]
