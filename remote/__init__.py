"""Remote access package for sync_build_test."""

from .RemoteAccess import RemoteAccess

__all__ = ["RemoteAccess"]
