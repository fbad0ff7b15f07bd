"""
Utilities for file and folder operations.

Provides helpers for locating the checkout, checking removable block
devices, and formatting sizes and durations for log output.
"""

import os
from pathlib import Path
from typing import Optional, Union

# A directory holding this relative path is the root of a checkout
CHECKOUT_MARKER = Path("src") / "platform" / "dev"
SYS_BLOCK_ROOT = Path("/sys/block")


def find_checkout_root(start: Union[str, Path]) -> Optional[Path]:
    """
    Search upward from start for a directory containing src/platform/dev.

    Args:
        start: Directory to start from (usually the current directory)

    Returns:
        The first ancestor (or start itself) holding the marker, or None.

    Example:
        >>> find_checkout_root("/home/me/chromiumos/src/scripts")
        PosixPath('/home/me/chromiumos')
    """
    test_dir = Path(os.path.abspath(start))
    while True:
        if (test_dir / CHECKOUT_MARKER).is_dir():
            return test_dir
        if test_dir.parent == test_dir:
            return None
        test_dir = test_dir.parent


def block_device_name(device: str) -> str:
    """Strip a leading /dev/ from device ("/dev/sdb" -> "sdb")."""
    if device.startswith("/dev/"):
        return device[len("/dev/"):]
    return device


def is_removable_device(device: str, sys_block_root: Path = SYS_BLOCK_ROOT) -> bool:
    """
    Return True if /sys/block/<device>/removable reads "1".

    Args:
        device: Device path or name (e.g. "/dev/sdb" or "sdb")
        sys_block_root: Root of the block device sysfs tree

    Returns:
        True only when the kernel reports the device as removable.
    """
    name = block_device_name(device)
    if not name:
        return False
    try:
        flag = (Path(sys_block_root) / name / "removable").read_text(encoding="ascii")
    except OSError:
        return False
    return flag.strip() == "1"


def format_file_size(size_bytes: int) -> str:
    """
    Format a byte count in human-readable form (KB, MB, GB).

    Args:
        size_bytes: Size in bytes (non-negative).

    Returns:
        String like "1.2 MB", "500 KB", "3.4 GB".

    Example:
        >>> format_file_size(1536)
        '1.5 KB'
        >>> format_file_size(1_500_000)
        '1.4 MB'
    """
    if size_bytes < 0:
        size_bytes = 0
    for unit, suffix in [(1024**3, "GB"), (1024**2, "MB"), (1024, "KB")]:
        if size_bytes >= unit:
            return f"{size_bytes / unit:.1f} {suffix}"
    return f"{size_bytes} B"


def format_duration(seconds: float) -> str:
    """
    Format elapsed seconds as minutes:seconds.

    Example:
        >>> format_duration(125)
        '2:05s'
    """
    total = max(0, int(seconds))
    return f"{total // 60}:{total % 60:02d}s"
