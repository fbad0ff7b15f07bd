"""Autotest runner package for sync_build_test."""

from .AutotestRunner import AutotestRunner

__all__ = ["AutotestRunner"]
