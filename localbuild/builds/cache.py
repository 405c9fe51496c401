"""Cache warmup for cache-from images.

Cache-from images only speed up builds. A missing one is pulled if
possible; a failed pull degrades the stage but never fails it. Only a
failing presence lookup is fatal.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from threading import Event
from typing import IO, TYPE_CHECKING

from localbuild.errors import (
    CACHE_PULL_MISS,
    CacheLookupError,
    EngineError,
    check_cancelled,
)
from localbuild.types import BuildWarning, StageResult

if TYPE_CHECKING:
    from localbuild.builds.schema import ArtifactSchema
    from localbuild.engine.client import DockerEngine

logger = logging.getLogger(__name__)

WarningSink = Callable[[BuildWarning], None]


def warm_cache(
    engine: DockerEngine,
    artifact: ArtifactSchema,
    out: IO[str] | None = None,
    cancel: Event | None = None,
    on_warning: WarningSink | None = None,
) -> StageResult:
    """Make an artifact's cache-from images available locally.

    Args:
        engine: Docker engine adapter.
        artifact: Artifact whose cache_from images are warmed.
        out: Sink for pull progress.
        cancel: Cancellation token.
        on_warning: Receives a warning for each image that could not be pulled.

    Returns:
        StageResult, DEGRADED if any pull missed.

    Raises:
        CacheLookupError: If checking for a local image fails.
    """
    result = StageResult()
    for image in artifact.cache_from:
        check_cancelled(cancel, "pulling cache-from images")
        try:
            image_id = engine.image_id(image)
        except EngineError as e:
            raise CacheLookupError(f"getting imageID for {image}: {e}") from e
        if image_id:
            # already pulled
            continue

        try:
            engine.pull(image, out=out, cancel=cancel)
        except EngineError as e:
            logger.debug("Pull of %s failed: %s", image, e)
            warning = BuildWarning(
                code=CACHE_PULL_MISS,
                message=f"Cache-From image couldn't be pulled: {image}",
                image=image,
            )
            logger.warning(warning.message)
            result.degrade(warning)
            if on_warning is not None:
                on_warning(warning)
    return result


__all__ = ["WarningSink", "warm_cache"]
