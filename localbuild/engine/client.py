"""Docker engine adapter.

Wraps the docker SDK low-level API behind the small set of operations the
build pipeline needs: build, push, tag, image ID lookup, inspect, pull and
prune. SDK failures and transport failures of the daemon connection are
translated to EngineError so callers never handle docker or requests
exceptions directly.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from threading import Event
from typing import IO, Any

import docker
from docker.errors import DockerException, ImageNotFound
from docker.utils import parse_repository_tag
from requests.exceptions import RequestException

from localbuild.engine.dockerfile import (
    dockerfile_relative_to_workspace,
    resolve_build_args,
)
from localbuild.errors import EngineError, check_cancelled

logger = logging.getLogger(__name__)

# SDK failures plus transport failures of the daemon connection
ENGINE_ERRORS = (DockerException, RequestException)


def split_reference(reference: str) -> tuple[str, str]:
    """Split an image reference into repository and tag.

    A reference without tag or digest gets the ``latest`` tag.
    """
    repository, tag = parse_repository_tag(reference)
    return repository, tag or "latest"


class DockerEngine:
    """Build, push and tag images through the local Docker daemon."""

    def __init__(self, client: docker.DockerClient | None = None) -> None:
        self._client = client

    @classmethod
    def from_env(cls) -> DockerEngine:
        """Create an engine connected with the DOCKER_* environment.

        Raises:
            EngineError: If the daemon is unreachable.
        """
        try:
            client = docker.from_env()
            client.ping()
        except ENGINE_ERRORS as e:
            raise EngineError(f"getting docker client: {e}") from e
        return cls(client)

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            self._client = docker.from_env()
        return self._client

    def _consume(
        self,
        chunks: Iterable[dict[str, Any]],
        out: IO[str] | None,
        cancel: Event | None,
        phase: str,
    ) -> list[dict[str, Any]]:
        """Stream progress chunks to out and collect aux payloads."""
        aux: list[dict[str, Any]] = []
        for chunk in chunks:
            check_cancelled(cancel, phase)
            if "error" in chunk:
                raise EngineError(f"{phase}: {chunk['error']}")
            if out is not None:
                if "stream" in chunk:
                    out.write(chunk["stream"])
                elif "status" in chunk:
                    prefix = f"{chunk['id']}: " if chunk.get("id") else ""
                    out.write(f"{prefix}{chunk['status']}\n")
            if "aux" in chunk:
                aux.append(chunk["aux"])
        return aux

    def build(
        self,
        workspace: str,
        dockerfile: str | None,
        tag: str,
        build_args: Mapping[str, str | None] | None = None,
        cache_from: list[str] | None = None,
        force_rm: bool = False,
        out: IO[str] | None = None,
        cancel: Event | None = None,
    ) -> str:
        """Build an image with the Engine API.

        Returns:
            Image ID of the built image.

        Raises:
            EngineError: If the build fails.
        """
        check_cancelled(cancel, "building image")
        if not os.path.isdir(workspace):
            raise EngineError(f"building image: workspace {workspace!r} is not a directory")
        try:
            chunks = self.client.api.build(
                path=workspace,
                dockerfile=dockerfile_relative_to_workspace(workspace, dockerfile),
                tag=tag,
                buildargs=resolve_build_args(build_args),
                cache_from=cache_from or None,
                rm=True,
                forcerm=force_rm,
                decode=True,
            )
            aux = self._consume(chunks, out, cancel, "building image")
        except (DockerException, OSError) as e:
            raise EngineError(f"building image: {e}") from e

        for payload in reversed(aux):
            if payload.get("ID"):
                return str(payload["ID"])
        return self.image_id(tag)

    def push(
        self, tag: str, out: IO[str] | None = None, cancel: Event | None = None
    ) -> str:
        """Push a tag to its registry.

        Returns:
            Digest of the pushed manifest (``sha256:...``).

        Raises:
            EngineError: If the push fails or no digest is reported.
        """
        check_cancelled(cancel, "pushing image")
        repository, image_tag = split_reference(tag)
        try:
            chunks = self.client.api.push(
                repository, tag=image_tag, stream=True, decode=True
            )
            aux = self._consume(chunks, out, cancel, "pushing image")
        except ENGINE_ERRORS as e:
            raise EngineError(f"pushing image: {e}") from e

        for payload in reversed(aux):
            if payload.get("Digest"):
                return str(payload["Digest"])
        raise EngineError(f"pushing image: no digest reported for {tag}")

    def tag(self, source: str, new_tag: str) -> None:
        """Apply a new tag to an existing image.

        Raises:
            EngineError: If the daemon refuses the tag.
        """
        repository, image_tag = split_reference(new_tag)
        try:
            tagged = self.client.api.tag(source, repository, image_tag)
        except ENGINE_ERRORS as e:
            raise EngineError(f"tagging {source} as {new_tag}: {e}") from e
        if not tagged:
            raise EngineError(f"tagging {source} as {new_tag}: daemon refused")

    def image_id(self, reference: str) -> str:
        """Look up the local image ID for a reference.

        Returns:
            The image ID, or an empty string if the image is not present.

        Raises:
            EngineError: If the lookup itself fails.
        """
        try:
            return str(self.client.images.get(reference).id)
        except ImageNotFound:
            return ""
        except ENGINE_ERRORS as e:
            raise EngineError(f"getting imageID for {reference}: {e}") from e

    def inspect(self, reference: str) -> dict[str, Any]:
        """Return the raw inspect payload of a local image.

        Raises:
            EngineError: If the image is missing or the call fails.
        """
        try:
            return dict(self.client.api.inspect_image(reference))
        except ENGINE_ERRORS as e:
            raise EngineError(f"inspecting image {reference}: {e}") from e

    def pull(
        self, image: str, out: IO[str] | None = None, cancel: Event | None = None
    ) -> None:
        """Pull an image from its registry.

        Raises:
            EngineError: If the pull fails.
        """
        check_cancelled(cancel, "pulling image")
        repository, image_tag = split_reference(image)
        try:
            chunks = self.client.api.pull(
                repository, tag=image_tag, stream=True, decode=True
            )
            self._consume(chunks, out, cancel, "pulling image")
        except ENGINE_ERRORS as e:
            raise EngineError(f"pulling {image}: {e}") from e

    def prune(self, image_ids: Iterable[str], out: IO[str] | None = None) -> None:
        """Remove images, including their untagged parents.

        Every image is attempted even if an earlier removal fails.

        Raises:
            EngineError: If any removal failed.
        """
        failures: list[str] = []
        for image_id in image_ids:
            try:
                self.client.api.remove_image(image_id, force=True, noprune=False)
            except ImageNotFound:
                logger.debug("Image %s already removed", image_id)
                continue
            except ENGINE_ERRORS as e:
                logger.warning("Failed to remove image %s: %s", image_id, e)
                failures.append(image_id)
                continue
            if out is not None:
                out.write(f"Removed image {image_id}\n")
        if failures:
            raise EngineError(f"pruning images: failed to remove {', '.join(failures)}")


__all__ = ["DockerEngine", "split_reference"]
