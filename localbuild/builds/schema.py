"""Pydantic models for build files and local build properties.

A build file lists the artifacts to build and, optionally, the
``build.local`` properties that steer how they are built:

    artifacts:
      - image: myapp
        context: ./svc
        docker:
          dockerfile: Dockerfile
          buildArgs: {KEY: VAL}
          cacheFrom: [myapp:latest]
    build:
      local:
        push: false
        useBuildkit: true
"""

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ArtifactSchema(BaseModel):
    """An image to build.

    Attributes:
        image_name: Image name without tag (e.g. ``gcr.io/proj/myapp``).
        workspace: Build context directory, kept exactly as given.
        dockerfile: Dockerfile path relative to the workspace.
        build_args: Build arguments passed to the Dockerfile.
        cache_from: Images to use as cache sources, in order.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    image_name: str = Field(
        validation_alias=AliasChoices("image_name", "image", "imageName"),
        description="Image name without tag",
    )
    workspace: str = Field(
        default=".",
        validation_alias=AliasChoices("workspace", "context"),
        description="Build context directory",
    )
    dockerfile: str = Field(
        default="Dockerfile",
        validation_alias=AliasChoices("dockerfile", "dockerfilePath"),
    )
    build_args: dict[str, str | None] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("build_args", "buildArgs"),
    )
    cache_from: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("cache_from", "cacheFrom"),
    )

    @field_validator("image_name")
    @classmethod
    def validate_image_name(cls, v: str) -> str:
        """Validate the image name is non-empty and carries no tag or digest."""
        if not v:
            raise ValueError("image name must not be empty")
        if "@" in v or ":" in v.rsplit("/", 1)[-1]:
            raise ValueError(f"image name must not include a tag or digest: {v!r}")
        return v

    @field_validator("build_args", mode="before")
    @classmethod
    def stringify_build_args(cls, v: Any) -> Any:
        """Accept YAML scalars (numbers, booleans) as build argument values.

        A null value is kept so the argument is taken from the environment.
        """
        if isinstance(v, dict):
            return {str(k): None if val is None else str(val) for k, val in v.items()}
        return v


class LocalBuildSchema(BaseModel):
    """Properties of a local build as found in ``build.local``.

    Attributes:
        push: Push images after build; None means decide from the cluster.
        use_docker_cli: Shell out to the docker CLI instead of the API.
        use_buildkit: Shell out to the docker CLI with BuildKit enabled.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    push: bool | None = Field(default=None)
    use_docker_cli: bool = Field(
        default=False,
        validation_alias=AliasChoices("use_docker_cli", "useDockerCLI"),
    )
    use_buildkit: bool = Field(
        default=False,
        validation_alias=AliasChoices("use_buildkit", "useBuildkit"),
    )


class BuildFileSchema(BaseModel):
    """Top-level build file."""

    model_config = ConfigDict(extra="forbid")

    artifacts: list[ArtifactSchema] = Field(min_length=1)
    build: dict[str, Any] = Field(default_factory=dict)

    @field_validator("artifacts", mode="before")
    @classmethod
    def flatten_docker_section(cls, v: Any) -> Any:
        """Lift the nested ``docker`` section of each artifact to the top level."""
        if not isinstance(v, list):
            return v
        flattened = []
        for item in v:
            if isinstance(item, dict) and isinstance(item.get("docker"), dict):
                item = {**{k: val for k, val in item.items() if k != "docker"}, **item["docker"]}
            flattened.append(item)
        return flattened

    def local_properties(self) -> dict[str, Any]:
        """Return the untyped ``build.local`` properties (possibly empty)."""
        local = self.build.get("local")
        if local is None:
            return {}
        if not isinstance(local, dict):
            # Let the policy resolver report the decode failure
            return {"local": local}
        return dict(local)


def load_build_file(path: Path) -> BuildFileSchema:
    """Load and validate a build file (YAML or JSON).

    Args:
        path: Path to the build file.

    Returns:
        Validated BuildFileSchema instance.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the content is not a mapping.
        pydantic.ValidationError: If data does not match schema.
    """
    with open(path, encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping in {path}, got {type(data).__name__}")
    return BuildFileSchema.model_validate(data)


__all__ = [
    "ArtifactSchema",
    "BuildFileSchema",
    "LocalBuildSchema",
    "load_build_file",
]
