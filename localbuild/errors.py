"""Error definitions for localbuild.

Every error carries a stable ``code`` for programmatic handling. Fatal
errors abort the invocation; non-fatal conditions are recorded as
BuildWarning entries and never raised.
"""

from threading import Event

# Error code constants
CONFIG_DECODE = "config_decode"
DOCKERFILE_PATH = "dockerfile_path"
CONTEXT_RESOLUTION = "context_resolution"
CACHE_LOOKUP = "cache_lookup"
BUILD_EXECUTION = "build_execution"
PUSH_ERROR = "push_failed"
TAG_ERROR = "tag_failed"
MISSING_TAG = "missing_tag"
CANCELLED = "cancelled"
ENGINE_ERROR = "engine_error"

# Warning codes
CACHE_PULL_MISS = "cache_pull_miss"
IDENTIFIER_LOOKUP = "identifier_lookup"


class LocalBuildError(Exception):
    """Base error for localbuild operations."""

    default_code = "localbuild_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code or self.default_code
        # Set by the pipeline to the artifact being built when raised
        self.image_name: str | None = None


class ConfigDecodeError(LocalBuildError):
    """Raised when build properties cannot be decoded into a policy."""

    default_code = CONFIG_DECODE


class DockerfilePathError(ConfigDecodeError):
    """Raised when a Dockerfile path escapes its workspace."""

    default_code = DOCKERFILE_PATH


class ContextResolutionError(LocalBuildError):
    """Raised when the active cluster context cannot be determined."""

    default_code = CONTEXT_RESOLUTION


class EngineError(LocalBuildError):
    """Raised when the Docker engine rejects or fails an operation."""

    default_code = ENGINE_ERROR


class CacheLookupError(LocalBuildError):
    """Raised when the local presence check for a cache-from image fails."""

    default_code = CACHE_LOOKUP


class BuildExecutionError(LocalBuildError):
    """Raised when building an image fails.

    Attributes:
        phase: Short label of the failing phase (e.g. ``running build``).
        exit_code: Process exit code for CLI builds, if any.
    """

    default_code = BUILD_EXECUTION

    def __init__(
        self,
        message: str,
        phase: str | None = None,
        exit_code: int | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(f"{phase}: {message}" if phase else message, code)
        self.phase = phase
        self.exit_code = exit_code


class PushError(LocalBuildError):
    """Raised when pushing an image to its registry fails."""

    default_code = PUSH_ERROR


class TagError(LocalBuildError):
    """Raised when applying a local tag to a built image fails."""

    default_code = TAG_ERROR


class MissingTagError(LocalBuildError):
    """Raised when no candidate tag was supplied for an artifact."""

    default_code = MISSING_TAG

    def __init__(self, image_name: str) -> None:
        super().__init__(f"unable to find tag for image {image_name}")
        self.image_name = image_name


class BuildCancelledError(LocalBuildError):
    """Raised when the invocation is cancelled."""

    default_code = CANCELLED


def check_cancelled(cancel: Event | None, phase: str) -> None:
    """Raise BuildCancelledError if the cancellation token is set.

    Args:
        cancel: Cancellation token shared by the invocation.
        phase: Label of the step about to run or running.
    """
    if cancel is not None and cancel.is_set():
        raise BuildCancelledError(f"{phase}: cancelled")


__all__ = [
    "BuildCancelledError",
    "BuildExecutionError",
    "CacheLookupError",
    "ConfigDecodeError",
    "ContextResolutionError",
    "DockerfilePathError",
    "EngineError",
    "LocalBuildError",
    "MissingTagError",
    "PushError",
    "TagError",
    "check_cancelled",
]
