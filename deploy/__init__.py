"""Deploy package for sync_build_test."""

from .ImageDeployer import ImageDeployer

__all__ = ["ImageDeployer"]
