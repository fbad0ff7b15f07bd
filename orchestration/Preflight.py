"""
Environment checks that run before anything else.

The pipeline enters the chroot itself and escalates with sudo only where
needed, so it must start outside the chroot as a regular user.
"""

import os
from pathlib import Path

from utils.Errors import ValidationError, die

# Present only inside the chroot
CHROOT_MARKER = Path("/etc/debian_chroot")


def assert_outside_chroot(marker: Path = CHROOT_MARKER) -> None:
    if marker.exists():
        die("This script must be run outside the chroot.", ValidationError)


def assert_not_root_user() -> None:
    if os.geteuid() == 0:
        die("This script must be run as a non-root user.", ValidationError)
