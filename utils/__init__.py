"""Utility modules for sync_build_test."""

from .Args import Args
from .Logger import Logger

__all__ = ["Args", "Logger"]
