"""Artifact build pipeline.

This module provides the high-level build API:
- LocalBuilder.build(): resolve the policy once, then drive every artifact
  through cache warmup, build, and publish-or-tag, in declaration order
- LocalBuilder.prune(): remove the images built by an invocation

Artifacts are built one at a time. The first fatal error aborts the
invocation and no later artifact is attempted.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from threading import Event
from typing import IO, TYPE_CHECKING, Any

from localbuild.builds.cache import WarningSink, warm_cache
from localbuild.builds.policy import BuildPolicy, ContextProvider, resolve_policy
from localbuild.builds.reference import resolve_reference
from localbuild.builds.runner import run_command
from localbuild.builds.schema import ArtifactSchema
from localbuild.builds.strategy import BuildStrategy, Runner, select_strategy
from localbuild.errors import LocalBuildError, MissingTagError, check_cancelled
from localbuild.types import BuildOutcome, BuildWarning, BuiltImages, StageResult

if TYPE_CHECKING:
    from localbuild.config import Settings
    from localbuild.engine.client import DockerEngine

logger = logging.getLogger(__name__)

# Receives (policy, artifact, outcome, error); exactly one of outcome/error is set.
Recorder = Callable[
    [BuildPolicy, ArtifactSchema, BuildOutcome | None, LocalBuildError | None], None
]


@dataclass
class BuildReport:
    """Result of one build invocation.

    Attributes:
        policy: Policy the invocation ran with.
        outcomes: One outcome per artifact, in declaration order.
        built_images: Image IDs built, for later pruning.
        warnings: Non-fatal conditions raised along the way.
    """

    policy: BuildPolicy
    outcomes: list[BuildOutcome] = field(default_factory=list)
    built_images: BuiltImages = field(default_factory=list)
    warnings: list[BuildWarning] = field(default_factory=list)

    def references(self) -> dict[str, str]:
        """Map each image name to its deploy-ready reference."""
        return {o.image_name: o.final_reference for o in self.outcomes}


class LocalBuilder:
    """Builds artifacts with the local Docker daemon."""

    def __init__(
        self,
        engine: DockerEngine,
        context_provider: ContextProvider,
        settings: Settings,
        runner: Runner = run_command,
        recorder: Recorder | None = None,
        on_warning: WarningSink | None = None,
    ) -> None:
        self.engine = engine
        self.context_provider = context_provider
        self.settings = settings
        self.runner = runner
        self.recorder = recorder
        self.on_warning = on_warning

    def resolve_policy(self, properties: Mapping[str, Any] | None) -> BuildPolicy:
        """Resolve the policy for an invocation."""
        return resolve_policy(properties, self.settings, self.context_provider)

    def build(
        self,
        artifacts: Sequence[ArtifactSchema],
        tags: Mapping[str, str],
        properties: Mapping[str, Any] | None = None,
        out: IO[str] | None = None,
        cancel: Event | None = None,
    ) -> BuildReport:
        """Build every artifact and compute its deploy-ready reference.

        Args:
            artifacts: Artifacts to build, in order.
            tags: Candidate tag per image name.
            properties: Untyped ``build.local`` properties.
            out: Sink for build output (defaults to stdout).
            cancel: Cancellation token observed by every external call.

        Returns:
            BuildReport with one outcome per artifact.

        Raises:
            ConfigDecodeError: If the properties cannot be decoded.
            ContextResolutionError: If the cluster context cannot be resolved.
            LocalBuildError: The first artifact failure, with image_name set.
        """
        if out is None:
            out = sys.stdout

        policy = self.resolve_policy(properties)
        report = BuildReport(policy=policy)
        if policy.is_local_cluster:
            out.write(
                f"Found [{policy.kube_context}] context, using local docker daemon.\n"
            )

        strategy = select_strategy(
            policy,
            self.engine,
            docker_binary=self.settings.docker_binary,
            runner=self.runner,
            timeout=self.settings.build_timeout,
        )

        for artifact in artifacts:
            out.write(f"Building [{artifact.image_name}]...\n")
            try:
                outcome = self._build_artifact(
                    artifact, tags, policy, strategy, report, out, cancel
                )
            except LocalBuildError as e:
                e.image_name = artifact.image_name
                logger.error("Build of %s failed: %s", artifact.image_name, e)
                if self.recorder is not None:
                    self.recorder(policy, artifact, None, e)
                raise

            report.outcomes.append(outcome)
            if self.recorder is not None:
                self.recorder(policy, artifact, outcome, None)
            logger.info("Built %s as %s", artifact.image_name, outcome.final_reference)

        return report

    def _build_artifact(
        self,
        artifact: ArtifactSchema,
        tags: Mapping[str, str],
        policy: BuildPolicy,
        strategy: BuildStrategy,
        report: BuildReport,
        out: IO[str],
        cancel: Event | None,
    ) -> BuildOutcome:
        tag = tags.get(artifact.image_name)
        if not tag:
            raise MissingTagError(artifact.image_name)

        warmup = warm_cache(
            self.engine, artifact, out=out, cancel=cancel, on_warning=self.on_warning
        )
        report.warnings.extend(warmup.warnings)

        check_cancelled(cancel, "building image")
        image_id = strategy.build(artifact, tag, out=out, cancel=cancel)

        check_cancelled(cancel, "publishing image")
        publish = StageResult()
        outcome = resolve_reference(
            self.engine,
            policy,
            artifact,
            tag,
            image_id,
            report.built_images,
            out=out,
            cancel=cancel,
            stage=publish,
        )
        report.warnings.extend(publish.warnings)
        if self.on_warning is not None:
            for warning in publish.warnings:
                self.on_warning(warning)
        return outcome

    def prune(self, built_images: BuiltImages, out: IO[str] | None = None) -> None:
        """Remove the images built by an invocation.

        Empty IDs (images whose ID could not be read after a push) are skipped.

        Raises:
            EngineError: If any image could not be removed.
        """
        image_ids = [image_id for image_id in built_images if image_id]
        if not image_ids:
            logger.debug("No images to prune")
            return
        logger.info("Pruning %d image(s)", len(image_ids))
        self.engine.prune(image_ids, out=out)


__all__ = ["BuildReport", "LocalBuilder", "Recorder"]
