"""Checkout package for sync_build_test."""

from .SourceSync import SourceSync

__all__ = ["SourceSync"]
