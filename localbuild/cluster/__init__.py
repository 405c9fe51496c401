"""Kubernetes cluster context discovery.

This module handles:
- Reading the current context from kubeconfig
- Deciding whether that context points at a local cluster
"""

from localbuild.cluster.context import KubeContextProvider

__all__ = ["KubeContextProvider"]
