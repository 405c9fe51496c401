"""Tests for builds/schema.py module."""

import json

import pytest
from pydantic import ValidationError

from localbuild.builds.schema import (
    ArtifactSchema,
    BuildFileSchema,
    LocalBuildSchema,
    load_build_file,
)


class TestArtifactSchema:
    """Tests for ArtifactSchema."""

    def test_minimal(self):
        """Only the image name is required."""
        artifact = ArtifactSchema(image_name="app")
        assert artifact.workspace == "."
        assert artifact.dockerfile == "Dockerfile"
        assert artifact.build_args == {}
        assert artifact.cache_from == []

    def test_aliases(self):
        """Build file spellings are accepted."""
        artifact = ArtifactSchema.model_validate(
            {
                "image": "gcr.io/p/app",
                "context": "./svc",
                "dockerfilePath": "Dockerfile.dev",
                "buildArgs": {"VERSION": 3, "DEBUG": True},
                "cacheFrom": ["gcr.io/p/app:latest"],
            }
        )
        assert artifact.image_name == "gcr.io/p/app"
        assert artifact.workspace == "./svc"
        assert artifact.dockerfile == "Dockerfile.dev"
        assert artifact.build_args == {"VERSION": "3", "DEBUG": "True"}
        assert artifact.cache_from == ["gcr.io/p/app:latest"]

    def test_null_build_arg_kept(self):
        """A null build argument stays None so it is read from the environment."""
        artifact = ArtifactSchema.model_validate(
            {"image": "app", "buildArgs": {"TOKEN": None, "EMPTY": ""}}
        )
        assert artifact.build_args == {"TOKEN": None, "EMPTY": ""}

    @pytest.mark.parametrize("name", ["", "app:1", "app@sha256:abc"])
    def test_invalid_image_name(self, name):
        """Empty names and names with a tag or digest are rejected."""
        with pytest.raises(ValidationError):
            ArtifactSchema(image_name=name)

    def test_registry_port_allowed(self):
        """A registry port is not a tag."""
        assert ArtifactSchema(image_name="localhost:5000/app").image_name == (
            "localhost:5000/app"
        )

    def test_unknown_field(self):
        """Unknown fields are rejected."""
        with pytest.raises(ValidationError):
            ArtifactSchema.model_validate({"image": "app", "bogus": 1})

    def test_frozen(self):
        """Artifacts are immutable."""
        artifact = ArtifactSchema(image_name="app")
        with pytest.raises(ValidationError):
            artifact.workspace = "other"


class TestLocalBuildSchema:
    """Tests for LocalBuildSchema."""

    def test_defaults(self):
        """Push is unset by default."""
        local = LocalBuildSchema()
        assert local.push is None
        assert local.use_docker_cli is False
        assert local.use_buildkit is False

    def test_camel_case(self):
        """camelCase keys are accepted."""
        local = LocalBuildSchema.model_validate(
            {"push": True, "useDockerCLI": True, "useBuildkit": True}
        )
        assert local.push is True
        assert local.use_docker_cli is True
        assert local.use_buildkit is True


class TestBuildFileSchema:
    """Tests for BuildFileSchema."""

    def test_docker_section_flattened(self):
        """The nested docker section is lifted onto the artifact."""
        build_file = BuildFileSchema.model_validate(
            {
                "artifacts": [
                    {
                        "image": "app",
                        "context": "./svc",
                        "docker": {"dockerfile": "Dockerfile", "buildArgs": {"A": "1"}},
                    }
                ],
                "build": {"local": {"push": False}},
            }
        )
        assert build_file.artifacts[0].build_args == {"A": "1"}
        assert build_file.local_properties() == {"push": False}

    def test_no_artifacts(self):
        """At least one artifact is required."""
        with pytest.raises(ValidationError):
            BuildFileSchema.model_validate({"artifacts": []})

    def test_no_local_section(self):
        """Missing build.local yields no properties."""
        build_file = BuildFileSchema.model_validate({"artifacts": [{"image": "app"}]})
        assert build_file.local_properties() == {}


class TestLoadBuildFile:
    """Tests for load_build_file."""

    def test_yaml(self, tmp_path):
        """YAML build files load."""
        path = tmp_path / "build.yaml"
        path.write_text(
            "artifacts:\n"
            "  - image: app\n"
            "    context: ./svc\n"
            "build:\n"
            "  local:\n"
            "    useBuildkit: true\n"
        )
        build_file = load_build_file(path)
        assert build_file.artifacts[0].workspace == "./svc"
        assert build_file.local_properties() == {"useBuildkit": True}

    def test_json(self, tmp_path):
        """JSON build files load."""
        path = tmp_path / "build.json"
        path.write_text(json.dumps({"artifacts": [{"image": "app"}]}))
        assert load_build_file(path).artifacts[0].image_name == "app"

    def test_not_a_mapping(self, tmp_path):
        """A top-level list is rejected."""
        path = tmp_path / "build.yaml"
        path.write_text("- image: app\n")
        with pytest.raises(ValueError, match="Expected a mapping"):
            load_build_file(path)

    def test_missing(self, tmp_path):
        """A missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_build_file(tmp_path / "nope.yaml")

    def test_yaml_null_build_arg(self, tmp_path):
        """A YAML null build argument loads as None."""
        path = tmp_path / "build.yaml"
        path.write_text(
            "artifacts:\n"
            "  - image: app\n"
            "    buildArgs:\n"
            "      TOKEN:\n"
            "      VERSION: 2\n"
        )
        artifact = load_build_file(path).artifacts[0]
        assert artifact.build_args == {"TOKEN": None, "VERSION": "2"}
