"""Buildbot package for sync_build_test."""

from .BuildbotGrabber import BuildbotGrabber, clear_credentials

__all__ = ["BuildbotGrabber", "clear_credentials"]
