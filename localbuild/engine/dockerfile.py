"""Dockerfile path and build argument helpers shared by build strategies."""

import os
from collections.abc import Mapping
from pathlib import Path

from localbuild.errors import DockerfilePathError

DEFAULT_DOCKERFILE = "Dockerfile"


def normalize_dockerfile_path(workspace: str, dockerfile: str | None) -> str:
    """Resolve a Dockerfile path against its workspace.

    The path is joined onto the workspace as given, so ``./svc`` and
    ``Dockerfile`` yield ``./svc/Dockerfile``. An absolute Dockerfile path
    is kept as is.

    Args:
        workspace: Build context directory.
        dockerfile: Dockerfile path relative to the workspace.

    Returns:
        Dockerfile path usable from the current directory.

    Raises:
        DockerfilePathError: If the path resolves outside the workspace.
    """
    path = os.path.join(workspace, dockerfile or DEFAULT_DOCKERFILE)

    root = Path(workspace).resolve()
    resolved = Path(path).resolve()
    if resolved == root or not resolved.is_relative_to(root):
        raise DockerfilePathError(
            f"dockerfile {dockerfile!r} is outside of workspace {workspace!r}"
        )
    return path


def dockerfile_relative_to_workspace(workspace: str, dockerfile: str | None) -> str:
    """Return the normalized Dockerfile path relative to the workspace.

    The Engine API expects the Dockerfile relative to the build context.
    """
    path = normalize_dockerfile_path(workspace, dockerfile)
    return Path(os.path.relpath(Path(path).resolve(), Path(workspace).resolve())).as_posix()


def resolve_build_args(build_args: Mapping[str, str | None] | None) -> dict[str, str]:
    """Resolve build arguments for the Engine API.

    A None value takes the value of the environment variable of the same
    name and is dropped when that variable is unset, as the docker CLI does
    for a bare ``--build-arg KEY``.
    """
    resolved: dict[str, str] = {}
    for key, value in (build_args or {}).items():
        if value is None:
            value = os.environ.get(key)
            if value is None:
                continue
        resolved[key] = value
    return resolved


def render_build_args(build_args: Mapping[str, str | None] | None) -> list[str]:
    """Render build arguments as docker CLI flags.

    Keys are sorted so the command line is stable. A None value renders
    ``--build-arg KEY`` so docker takes the value from the environment.

    Args:
        build_args: Build argument mapping.

    Returns:
        Flat list of ``--build-arg`` tokens.
    """
    args: list[str] = []
    if not build_args:
        return args
    for key in sorted(build_args):
        value = build_args[key]
        args.append("--build-arg")
        args.append(key if value is None else f"{key}={value}")
    return args


__all__ = [
    "DEFAULT_DOCKERFILE",
    "dockerfile_relative_to_workspace",
    "normalize_dockerfile_path",
    "render_build_args",
    "resolve_build_args",
]
