"""Build orchestration module.

This module handles:
- Resolving the build policy for an invocation
- Warming cache-from images
- Selecting the API or CLI build strategy
- Pushing or locally tagging built images
- Build records for history
"""

from localbuild.builds.pipeline import BuildReport, LocalBuilder
from localbuild.builds.policy import BuildPolicy

__all__ = ["BuildPolicy", "BuildReport", "LocalBuilder"]
