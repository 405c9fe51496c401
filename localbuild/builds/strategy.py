"""Build strategies.

Exactly one strategy is selected per invocation from the BuildPolicy:

- ApiBuildStrategy: builds through the Docker Engine API (default)
- CliBuildStrategy: shells out to ``docker build``, optionally with BuildKit

Every strategy builds one artifact at a given tag and returns the
content-addressed image ID.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from threading import Event
from typing import IO, TYPE_CHECKING

from localbuild.builds.runner import run_command
from localbuild.engine.dockerfile import normalize_dockerfile_path, render_build_args
from localbuild.errors import (
    BuildExecutionError,
    DockerfilePathError,
    EngineError,
)
from localbuild.types import StrategyKind

if TYPE_CHECKING:
    from localbuild.builds.policy import BuildPolicy
    from localbuild.builds.runner import CommandResult
    from localbuild.builds.schema import ArtifactSchema
    from localbuild.engine.client import DockerEngine

logger = logging.getLogger(__name__)

BUILDKIT_ENV = {"DOCKER_BUILDKIT": "1"}

Runner = Callable[..., "CommandResult"]


class BuildStrategy(ABC):
    """Builds a single artifact and returns its image ID."""

    kind: StrategyKind

    def __init__(self, engine: DockerEngine, prune: bool = False) -> None:
        self.engine = engine
        self.prune = prune

    @staticmethod
    def dockerfile_path(artifact: ArtifactSchema) -> str:
        """Return the artifact's Dockerfile path joined onto its workspace.

        Raises:
            DockerfilePathError: If the Dockerfile escapes the workspace.
        """
        try:
            return normalize_dockerfile_path(artifact.workspace, artifact.dockerfile)
        except DockerfilePathError as e:
            raise DockerfilePathError(f"normalizing dockerfile path: {e}") from e

    @abstractmethod
    def build(
        self,
        artifact: ArtifactSchema,
        tag: str,
        out: IO[str] | None = None,
        cancel: Event | None = None,
    ) -> str:
        """Build the artifact.

        Raises:
            BuildExecutionError: If any phase of the build fails.
            DockerfilePathError: If the Dockerfile escapes the workspace.
        """


class ApiBuildStrategy(BuildStrategy):
    """Build through the Docker Engine API."""

    kind = StrategyKind.API

    def build(
        self,
        artifact: ArtifactSchema,
        tag: str,
        out: IO[str] | None = None,
        cancel: Event | None = None,
    ) -> str:
        self.dockerfile_path(artifact)
        try:
            return self.engine.build(
                artifact.workspace,
                artifact.dockerfile,
                tag,
                build_args=artifact.build_args,
                cache_from=artifact.cache_from,
                force_rm=self.prune,
                out=out,
                cancel=cancel,
            )
        except EngineError as e:
            raise BuildExecutionError(str(e), phase="running build") from e


def compose_build_command(
    workspace: str,
    dockerfile_path: str,
    tag: str,
    build_args: list[str],
    prune: bool,
) -> list[str]:
    """Compose the ``docker build`` arguments.

    Args:
        workspace: Build context directory.
        dockerfile_path: Normalized Dockerfile path.
        tag: Tag applied to the result.
        build_args: Rendered build argument tokens.
        prune: Append ``--force-rm``.

    Returns:
        Arguments following the docker binary.
    """
    args = ["build", workspace, "--file", dockerfile_path, "-t", tag]
    args.extend(build_args)
    if prune:
        args.append("--force-rm")
    return args


class CliBuildStrategy(BuildStrategy):
    """Build by shelling out to the docker CLI."""

    def __init__(
        self,
        engine: DockerEngine,
        prune: bool = False,
        buildkit: bool = False,
        docker_binary: str = "docker",
        runner: Runner = run_command,
        timeout: float | None = None,
    ) -> None:
        super().__init__(engine, prune)
        self.buildkit = buildkit
        self.docker_binary = docker_binary
        self.runner = runner
        self.timeout = timeout

    @property
    def kind(self) -> StrategyKind:  # type: ignore[override]
        return StrategyKind.BUILDKIT if self.buildkit else StrategyKind.CLI

    def command(self, artifact: ArtifactSchema, tag: str) -> list[str]:
        """Return the full command line for an artifact.

        Raises:
            DockerfilePathError: If the Dockerfile escapes the workspace.
        """
        args = compose_build_command(
            artifact.workspace,
            self.dockerfile_path(artifact),
            tag,
            render_build_args(artifact.build_args),
            self.prune,
        )
        return [self.docker_binary, *args]

    def build(
        self,
        artifact: ArtifactSchema,
        tag: str,
        out: IO[str] | None = None,
        cancel: Event | None = None,
    ) -> str:
        cmd = self.command(artifact, tag)
        env_override = BUILDKIT_ENV if self.buildkit else None

        try:
            result = self.runner(
                cmd,
                out=out,
                env_override=env_override,
                timeout=self.timeout,
                cancel=cancel,
            )
        except BuildExecutionError as e:
            raise BuildExecutionError(
                str(e), phase="running build", exit_code=e.exit_code, code=e.code
            ) from e
        if not result.success:
            raise BuildExecutionError(
                f"docker build exited with code {result.exit_code}",
                phase="running build",
                exit_code=result.exit_code,
            )

        try:
            image_id = self.engine.image_id(tag)
        except EngineError as e:
            raise BuildExecutionError(str(e), phase="getting imageID for tag") from e
        if not image_id:
            raise BuildExecutionError(
                f"no image found for {tag}", phase="getting imageID for tag"
            )
        return image_id


def select_strategy(
    policy: BuildPolicy,
    engine: DockerEngine,
    docker_binary: str = "docker",
    runner: Runner = run_command,
    timeout: float | None = None,
) -> BuildStrategy:
    """Select the build strategy for an invocation.

    Args:
        policy: Resolved build policy.
        engine: Docker engine adapter.
        docker_binary: docker executable for CLI builds.
        runner: Process runner for CLI builds.
        timeout: CLI build timeout in seconds.

    Returns:
        The strategy every artifact of the invocation is built with.
    """
    kind = policy.strategy_kind
    logger.debug("Using %s build strategy", kind.value)
    if kind == StrategyKind.API:
        return ApiBuildStrategy(engine, prune=policy.prune_on_build)
    return CliBuildStrategy(
        engine,
        prune=policy.prune_on_build,
        buildkit=kind == StrategyKind.BUILDKIT,
        docker_binary=docker_binary,
        runner=runner,
        timeout=timeout,
    )


__all__ = [
    "ApiBuildStrategy",
    "BuildStrategy",
    "CliBuildStrategy",
    "compose_build_command",
    "select_strategy",
]
