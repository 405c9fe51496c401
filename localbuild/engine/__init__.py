"""Container engine access.

This module handles:
- Talking to the Docker daemon through the docker SDK
- Dockerfile path normalization and build argument rendering
"""

from localbuild.engine.client import DockerEngine

__all__ = ["DockerEngine"]
