"""Build configuration resolver.

Turns untyped build properties and cluster facts into an immutable
BuildPolicy. The policy is resolved once per invocation, before any
artifact is processed.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol

from pydantic import BaseModel, ConfigDict, ValidationError

from localbuild.builds.schema import LocalBuildSchema
from localbuild.errors import ConfigDecodeError, ContextResolutionError
from localbuild.types import StrategyKind

if TYPE_CHECKING:
    from localbuild.config import Settings

logger = logging.getLogger(__name__)


class ContextProvider(Protocol):
    """Cluster context facility."""

    def current_context(self) -> str: ...

    def is_local_cluster(self) -> bool: ...


class BuildPolicy(BaseModel):
    """Policy shared by every stage of one build invocation.

    Attributes:
        push_images: Push built images to their registry.
        use_cli_build: Build through the docker CLI.
        use_buildkit: Build through the docker CLI with BuildKit.
        prune_on_build: Remove intermediate containers (``--force-rm``).
        kube_context: Name of the active Kubernetes context.
        is_local_cluster: Whether the context is a local cluster.
    """

    model_config = ConfigDict(frozen=True)

    push_images: bool
    use_cli_build: bool = False
    use_buildkit: bool = False
    prune_on_build: bool = False
    kube_context: str
    is_local_cluster: bool

    @property
    def strategy_kind(self) -> StrategyKind:
        """Build strategy implied by the flags."""
        if self.use_buildkit:
            return StrategyKind.BUILDKIT
        if self.use_cli_build:
            return StrategyKind.CLI
        return StrategyKind.API


def decode_local_build(properties: Mapping[str, Any] | None) -> LocalBuildSchema:
    """Decode untyped build properties.

    Args:
        properties: Mapping in the shape of ``build.local``; None means empty.

    Returns:
        LocalBuildSchema instance.

    Raises:
        ConfigDecodeError: If the properties do not match the schema.
    """
    if properties is None:
        return LocalBuildSchema()
    if not isinstance(properties, Mapping):
        raise ConfigDecodeError(
            f"converting build properties: expected a mapping, got {type(properties).__name__}"
        )
    try:
        return LocalBuildSchema.model_validate(dict(properties))
    except ValidationError as e:
        raise ConfigDecodeError(f"converting build properties: {e}") from e


_CANONICAL_KEYS = {
    "use_docker_cli": "useDockerCLI",
    "use_buildkit": "useBuildkit",
}


def merge_properties(*layers: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge property layers, later layers overriding earlier ones.

    snake_case and camelCase spellings of the same key are treated as one
    key so that precedence holds whichever spelling a layer uses.
    """
    merged: dict[str, Any] = {}
    for layer in layers:
        if not layer:
            continue
        for key, value in layer.items():
            merged[_CANONICAL_KEYS.get(key, key)] = value
    return merged


def resolve_push(explicit: bool | None, is_local_cluster: bool) -> bool:
    """Resolve whether images are pushed.

    Local clusters read images straight from the local daemon, so the
    default is to push only for non-local clusters.
    """
    if explicit is not None:
        return explicit
    push_images = not is_local_cluster
    logger.debug(
        "push value not present, defaulting to %s because localCluster is %s",
        push_images,
        is_local_cluster,
    )
    return push_images


def resolve_policy(
    properties: Mapping[str, Any] | None,
    settings: Settings,
    context_provider: ContextProvider,
) -> BuildPolicy:
    """Resolve the build policy for one invocation.

    Args:
        properties: Untyped ``build.local`` properties.
        settings: Application settings (supplies prune).
        context_provider: Cluster context facility.

    Returns:
        Immutable BuildPolicy.

    Raises:
        ConfigDecodeError: If the properties cannot be decoded.
        ContextResolutionError: If the cluster context cannot be resolved.
    """
    local = decode_local_build(properties)

    try:
        kube_context = context_provider.current_context()
    except ContextResolutionError as e:
        raise ContextResolutionError(f"getting current cluster context: {e}") from e

    try:
        is_local_cluster = context_provider.is_local_cluster()
    except ContextResolutionError as e:
        raise ContextResolutionError(f"getting localCluster: {e}") from e

    return BuildPolicy(
        push_images=resolve_push(local.push, is_local_cluster),
        use_cli_build=local.use_docker_cli,
        use_buildkit=local.use_buildkit,
        prune_on_build=settings.prune,
        kube_context=kube_context,
        is_local_cluster=is_local_cluster,
    )


__all__ = [
    "BuildPolicy",
    "ContextProvider",
    "decode_local_build",
    "merge_properties",
    "resolve_policy",
    "resolve_push",
]
