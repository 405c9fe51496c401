"""Reference resolver: publish or locally tag a built image.

Pushed images are referenced by digest (``tag@digest``). Images that stay
local get a tag derived from their image ID, because Kubernetes cannot
use a bare image ID, or an image name suffixed with one, as an image
reference.
"""

from __future__ import annotations

import logging
from threading import Event
from typing import IO, TYPE_CHECKING

from localbuild.errors import (
    IDENTIFIER_LOOKUP,
    EngineError,
    PushError,
    TagError,
)
from localbuild.types import BuildOutcome, BuildWarning, BuiltImages, StageResult

if TYPE_CHECKING:
    from localbuild.builds.policy import BuildPolicy
    from localbuild.builds.schema import ArtifactSchema
    from localbuild.engine.client import DockerEngine

logger = logging.getLogger(__name__)

DIGEST_PREFIX = "sha256:"


def local_tag_for(image_name: str, image_id: str) -> str:
    """Return the unique local tag for an image ID.

    >>> local_tag_for("myapp", "sha256:abc123")
    'myapp:abc123'
    """
    return f"{image_name}:{image_id.removeprefix(DIGEST_PREFIX)}"


def image_id_for_tag(engine: DockerEngine, tag: str) -> str:
    """Return the image ID a tag points at.

    Raises:
        EngineError: If the image cannot be inspected.
    """
    return str(engine.inspect(tag).get("Id", ""))


def resolve_reference(
    engine: DockerEngine,
    policy: BuildPolicy,
    artifact: ArtifactSchema,
    tag: str,
    image_id: str,
    built_images: BuiltImages,
    out: IO[str] | None = None,
    cancel: Event | None = None,
    stage: StageResult | None = None,
) -> BuildOutcome:
    """Publish or locally tag a built image and compute its reference.

    Exactly one entry is appended to built_images on success.

    Args:
        engine: Docker engine adapter.
        policy: Resolved build policy.
        artifact: The artifact that was built.
        tag: Candidate tag the image was built with.
        image_id: Image ID returned by the build strategy.
        built_images: Accumulator of images built in this invocation.
        out: Sink for push progress.
        cancel: Cancellation token.
        stage: Collects the non-fatal warnings of this stage.

    Returns:
        BuildOutcome for the artifact.

    Raises:
        PushError: If the push fails.
        TagError: If the local tag cannot be applied.
    """
    if policy.push_images:
        try:
            digest = engine.push(tag, out=out, cancel=cancel)
        except EngineError as e:
            raise PushError(f"pushing {tag}: {e}") from e

        try:
            pushed_id = image_id_for_tag(engine, tag)
        except EngineError as e:
            logger.warning(
                "unable to inspect image: built images may not be cleaned up correctly"
            )
            logger.debug("Inspecting %s failed: %s", tag, e)
            pushed_id = ""
            if stage is not None:
                stage.degrade(
                    BuildWarning(
                        code=IDENTIFIER_LOOKUP,
                        message=f"unable to inspect image {tag}",
                        image=tag,
                    )
                )
        built_images.append(pushed_id)
        return BuildOutcome(
            image_name=artifact.image_name,
            tag=tag,
            final_reference=f"{tag}@{digest}",
            is_digest_form=True,
            image_id=pushed_id or image_id,
        )

    built_images.append(image_id)
    unique_tag = local_tag_for(artifact.image_name, image_id)
    try:
        engine.tag(image_id, unique_tag)
    except EngineError as e:
        raise TagError(f"tagging {image_id} as {unique_tag}: {e}") from e

    return BuildOutcome(
        image_name=artifact.image_name,
        tag=tag,
        final_reference=unique_tag,
        is_digest_form=False,
        image_id=image_id,
    )


__all__ = ["image_id_for_tag", "local_tag_for", "resolve_reference"]
