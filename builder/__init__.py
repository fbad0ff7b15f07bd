"""
Builder package for sync_build_test.

Wraps the chroot, package and image build scripts of the checkout.
"""

from .ChrootBuilder import ChrootBuilder
from .ImageBuilder import ImageBuilder
from .PackageBuilder import PackageBuilder

__all__ = ["ChrootBuilder", "ImageBuilder", "PackageBuilder"]
