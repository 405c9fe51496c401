"""Current Kubernetes context and local-cluster detection.

The current context is read from kubeconfig the way kubectl does:
the first file listed in $KUBECONFIG (or ~/.kube/config) that sets
``current-context`` wins. A context is local when its images can be
used straight from the local Docker daemon without a registry.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from localbuild.errors import ContextResolutionError

if TYPE_CHECKING:
    from localbuild.config import Settings

logger = logging.getLogger(__name__)

LOCAL_CONTEXTS = frozenset({"minikube", "docker-for-desktop", "docker-desktop"})
LOCAL_CONTEXT_PREFIXES = ("kind-", "k3d-")


def kubeconfig_paths(explicit: Path | None = None) -> list[Path]:
    """Return kubeconfig files in lookup order.

    Args:
        explicit: Path configured in settings; takes precedence over env.

    Returns:
        List of candidate kubeconfig paths.
    """
    if explicit is not None:
        return [explicit]
    env_value = os.environ.get("KUBECONFIG")
    if env_value:
        return [Path(p) for p in env_value.split(os.pathsep) if p]
    return [Path.home() / ".kube" / "config"]


def load_kubeconfig(path: Path) -> dict[str, Any]:
    """Load a kubeconfig file.

    Args:
        path: Path to the kubeconfig.

    Returns:
        Parsed kubeconfig (empty dict for an empty file).

    Raises:
        ContextResolutionError: If the file is unreadable or malformed.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ContextResolutionError(f"reading kubeconfig {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ContextResolutionError(f"parsing kubeconfig {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ContextResolutionError(
            f"kubeconfig {path}: expected a mapping, got {type(data).__name__}"
        )
    return data


def is_local_context(context_name: str) -> bool:
    """Check whether a context name belongs to a well-known local cluster."""
    return context_name in LOCAL_CONTEXTS or context_name.startswith(
        LOCAL_CONTEXT_PREFIXES
    )


class KubeContextProvider:
    """Cluster context facility backed by kubeconfig and settings."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._current: str | None = None

    def current_context(self) -> str:
        """Return the name of the active Kubernetes context.

        Raises:
            ContextResolutionError: If no context can be determined.
        """
        if self._current is not None:
            return self._current
        if self._settings.kube_context:
            self._current = self._settings.kube_context
            return self._current

        for path in kubeconfig_paths(self._settings.kubeconfig):
            if not path.exists():
                logger.debug("kubeconfig %s does not exist, skipping", path)
                continue
            config = load_kubeconfig(path)
            name = config.get("current-context")
            if name:
                logger.debug("Using context %s from %s", name, path)
                self._current = str(name)
                return self._current

        raise ContextResolutionError("current-context is not set in kubeconfig")

    def is_local_cluster(self) -> bool:
        """Return whether the active context is a local cluster.

        An explicit ``local_cluster`` setting always wins over detection.

        Raises:
            ContextResolutionError: If the context cannot be determined.
        """
        if self._settings.local_cluster is not None:
            return self._settings.local_cluster
        return is_local_context(self.current_context())


__all__ = [
    "KubeContextProvider",
    "is_local_context",
    "kubeconfig_paths",
    "load_kubeconfig",
]
