"""Tests for builds/reference.py module."""

import logging
from unittest.mock import MagicMock

import pytest

from localbuild.builds.policy import BuildPolicy
from localbuild.builds.reference import local_tag_for, resolve_reference
from localbuild.builds.schema import ArtifactSchema
from localbuild.errors import EngineError, PushError, TagError
from localbuild.types import StageResult, StageStatus


@pytest.fixture
def engine() -> MagicMock:
    """Create a mocked engine."""
    engine = MagicMock()
    engine.push.return_value = "sha256:d1"
    engine.inspect.return_value = {"Id": "sha256:pushed"}
    return engine


@pytest.fixture
def artifact() -> ArtifactSchema:
    """Create a minimal artifact."""
    return ArtifactSchema(image_name="gcr.io/p/app")


def make_policy(push: bool) -> BuildPolicy:
    return BuildPolicy(push_images=push, kube_context="ctx", is_local_cluster=not push)


class TestLocalTagFor:
    """Tests for local_tag_for."""

    def test_strips_algorithm(self):
        """The sha256: prefix is dropped."""
        assert local_tag_for("app", "sha256:abc123") == "app:abc123"

    def test_plain_id(self):
        """An ID without prefix is used as is."""
        assert local_tag_for("app", "abc123") == "app:abc123"


class TestResolveReferencePush:
    """Tests for the push path of resolve_reference."""

    def test_digest_reference(self, engine, artifact):
        """A pushed image is referenced by tag@digest."""
        built = []
        outcome = resolve_reference(
            engine, make_policy(True), artifact, "gcr.io/p/app:v1", "sha256:built", built
        )
        assert outcome.final_reference == "gcr.io/p/app:v1@sha256:d1"
        assert outcome.is_digest_form is True
        assert built == ["sha256:pushed"]
        engine.tag.assert_not_called()

    def test_push_failure(self, engine, artifact):
        """A failed push is fatal and records nothing."""
        engine.push.side_effect = EngineError("denied")
        built = []
        with pytest.raises(PushError):
            resolve_reference(engine, make_policy(True), artifact, "app:v1", "sha256:b", built)
        assert built == []

    def test_inspect_failure_is_warning(self, engine, artifact, caplog):
        """A failed inspect after push still succeeds with an empty ID."""
        engine.inspect.side_effect = EngineError("gone")
        built = []
        stage = StageResult()
        with caplog.at_level(logging.WARNING):
            outcome = resolve_reference(
                engine,
                make_policy(True),
                artifact,
                "app:v1",
                "sha256:b",
                built,
                stage=stage,
            )
        assert outcome.final_reference == "app:v1@sha256:d1"
        assert built == [""]
        assert stage.status == StageStatus.DEGRADED
        assert stage.warnings[0].code == "identifier_lookup"
        assert "unable to inspect image" in caplog.text


class TestResolveReferenceLocal:
    """Tests for the local tag path of resolve_reference."""

    def test_unique_tag(self, engine, artifact):
        """A local image gets a tag derived from its ID."""
        built = []
        outcome = resolve_reference(
            engine, make_policy(False), artifact, "gcr.io/p/app:v1", "sha256:abc123", built
        )
        assert outcome.final_reference == "gcr.io/p/app:abc123"
        assert outcome.is_digest_form is False
        assert outcome.image_id == "sha256:abc123"
        assert built == ["sha256:abc123"]
        engine.tag.assert_called_once_with("sha256:abc123", "gcr.io/p/app:abc123")
        engine.push.assert_not_called()

    def test_tag_failure(self, engine, artifact):
        """A failed tag is fatal, after the ID was recorded."""
        engine.tag.side_effect = EngineError("refused")
        built = []
        with pytest.raises(TagError):
            resolve_reference(engine, make_policy(False), artifact, "app:v1", "sha256:abc", built)
        assert built == ["sha256:abc"]
