"""localbuild - build container images for Kubernetes deployments.

This package decides, per artifact, how to build an image with the local
Docker daemon, whether to push it to a registry, and which reference the
deployment manifests should use.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
