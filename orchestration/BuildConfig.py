"""
Validated, immutable configuration for a sync_build_test run.

validate_and_set_param_defaults() turns the flat option mapping produced by
Args into a BuildConfig: it fills in "intelligent" defaults derived from
other options (checkout root, chroot, board), cross-validates options that
depend on each other, and raises ValidationError on any invalid combination.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional

from orchestration.ToolProtocol import RemoteSessionProtocol
from utils.Errors import ValidationError, die, warn
from utils.file_utils import (
    SYS_BLOCK_ROOT,
    block_device_name,
    find_checkout_root,
    is_removable_device,
)
from utils.Logger import Logger
from utils.url_utils import is_valid_url

DEFAULT_BOARD = "x86-generic"
# Unit tests only run for this board
UNITTEST_BOARD = "x86-generic"
TEST_CHRONOS_PASSWD = "test0000"
LATEST = "LATEST"

# main.py lives at <top>/src/scripts/<this project>/main.py
DEFAULT_SCRIPT_PATH = Path(__file__).resolve().parent.parent / "main.py"

OpenRemote = Callable[[str, Path, int], RemoteSessionProtocol]


@dataclass(frozen=True)
class BuildConfig:
    """Mutually consistent options for one run. Build with validate_and_set_param_defaults()."""

    top: Path
    chroot: Path
    board: str
    build: bool = True
    build_autotest: bool = False
    buildbot_uri: str = ""
    chrome_gold: bool = True
    chrome_root: str = ""
    chronos_passwd: str = ""
    enable_rootfs_verification: bool = False
    force_make_chroot: bool = False
    grab_buildbot: str = ""
    ignore_remote_test_failures: bool = False
    image_to_live: bool = False
    image_to_vm: bool = False
    image_to_usb: str = ""
    jobs: int = -1
    master: bool = True
    minilayout: bool = False
    mod_image_for_test: bool = False
    official: bool = False
    oldchromebinary: bool = True
    repo: str = ""
    sync: bool = True
    test: str = ""
    vm_options: str = "--no_graphics"
    withdev: bool = True
    usepkg: bool = True
    unittest: bool = True
    yes: bool = False
    remote: str = ""
    private_key: Optional[Path] = None
    ssh_port: int = 22

    @property
    def scripts_dir(self) -> Path:
        return self.top / "src" / "scripts"

    @property
    def board_dir(self) -> Path:
        return self.chroot / "build" / self.board

    @property
    def board_param(self) -> str:
        return f"--board={self.board}"

    @property
    def jobs_params(self) -> List[str]:
        return [f"--jobs={self.jobs}"] if self.jobs > 1 else []

    @property
    def withdev_params(self) -> List[str]:
        return ["--withdev"] if self.withdev else []

    @property
    def chroot_options(self) -> List[str]:
        """Extra options for enter_chroot.sh."""
        return [f"--chrome_root={self.chrome_root}"] if self.chrome_root else []

    def has_board_directory(self) -> bool:
        return self.board_dir.is_dir()


def _as_bool(value: Any) -> bool:
    """Accept real booleans and the strings a JSON config file may hold."""
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y", "on")
    return bool(value)


def _as_int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        die(f"--{name} expects an integer, got {value!r}", ValidationError)


def _resolve_top(top: str, cwd: Path, script_path: Path) -> Path:
    """Explicit --top, else the enclosing checkout, else the script's checkout."""
    if top:
        path = Path(os.path.expanduser(top))
    else:
        found = find_checkout_root(cwd)
        # <top>/src/scripts/<project>/main.py
        path = found if found is not None else script_path.parents[3]
    if path.is_dir():
        path = path.resolve()
    return path


def _learn_default_board(top: Path) -> str:
    """Board stored by setup_board in src/scripts/.default_board, else x86-generic."""
    board_file = top / "src" / "scripts" / ".default_board"
    try:
        board = board_file.read_text(encoding="utf-8").strip()
    except OSError:
        board = ""
    return board or DEFAULT_BOARD


def validate_and_set_param_defaults(
    values: Mapping[str, Any],
    *,
    cwd: Optional[Path] = None,
    script_path: Path = DEFAULT_SCRIPT_PATH,
    open_remote: Optional[OpenRemote] = None,
    sys_block_root: Path = SYS_BLOCK_ROOT,
) -> BuildConfig:
    """
    Validate options and set defaults based on other options.

    Args:
        values: Flat option mapping (see Args._defaults for keys).
        cwd: Directory to search upward from for a checkout (default: os.getcwd()).
        script_path: Path of main.py; its checkout is the fallback --top.
        open_remote: Called as open_remote(host, private_key, ssh_port) when
            --remote is set; returns a session used to learn the board.
        sys_block_root: Root of /sys/block, for the removable device check.

    Returns:
        A BuildConfig whose options are mutually consistent.

    Raises:
        ValidationError: On any invalid or contradictory combination.
    """
    opts = dict(values)

    def flag(name: str) -> bool:
        return _as_bool(opts.get(name, False))

    def text(name: str) -> str:
        return str(opts.get(name) or "")

    top = _resolve_top(text("top"), Path(cwd) if cwd else Path.cwd(), script_path)

    chroot = Path(os.path.expanduser(text("chroot"))) if text("chroot") else top / "chroot"
    force_make_chroot = flag("force_make_chroot")
    if not chroot.is_dir():
        force_make_chroot = True

    test = text("test")
    remote = text("remote")
    mod_image_for_test = flag("mod_image_for_test")
    image_to_live = flag("image_to_live")
    image_to_vm = flag("image_to_vm")

    if test:
        # Running tests needs an image modified for test
        mod_image_for_test = True
        if remote:
            image_to_live = True
        else:
            image_to_vm = True

    private_key_text = text("private_key")
    private_key = (
        Path(os.path.expanduser(private_key_text))
        if private_key_text
        else top / "src" / "scripts" / "mod_for_test_scripts" / "ssh_keys" / "testing_rsa"
    )
    ssh_port = _as_int("ssh_port", opts.get("ssh_port", 22))

    # Checked before the remote session, which is the first network access
    grab_buildbot = text("grab_buildbot")
    buildbot_uri = text("buildbot_uri")
    if grab_buildbot == LATEST:
        if not buildbot_uri:
            die("--grab_buildbot=LATEST requires --buildbot_uri or setting BUILDBOT_URI", ValidationError)
        if not is_valid_url(buildbot_uri):
            die(f"--buildbot_uri must be an http(s) URI, got {buildbot_uri!r}", ValidationError)
    elif grab_buildbot and not is_valid_url(grab_buildbot):
        die(f"--grab_buildbot expects LATEST or an http(s) image.zip URI, got {grab_buildbot!r}", ValidationError)

    session: Optional[RemoteSessionProtocol] = None
    if remote:
        # A remote host implies a live update
        image_to_live = True
        if open_remote is not None:
            session = open_remote(remote, private_key, ssh_port)

    board = text("board")
    if not board:
        if remote and session is not None:
            board = session.learn_board()
        else:
            board = _learn_default_board(top)

    build = flag("build")
    chrome_root = os.path.expanduser(text("chrome_root")) if text("chrome_root") else ""
    if build and chrome_root:
        if not Path(chrome_root).is_dir():
            die(f"Cannot find {chrome_root}", ValidationError)
        if not (Path(chrome_root) / "src" / "third_party" / "cros").is_dir():
            die("You need to add .gclient lines for Chrome on Chrome OS", ValidationError)

    sync = flag("sync")
    unittest = flag("unittest")
    master = flag("master")
    if grab_buildbot:
        # Grabbing a buildbot build is exclusive with syncing and building
        sync = build = unittest = master = False

    image_to_usb = text("image_to_usb")
    if image_to_live:
        if not mod_image_for_test:
            warn("You have specified to live reimage a machine with")
            warn("an image that is not modified for test (so it cannot be")
            warn("later live reimaged)")
        if image_to_usb:
            warn("You have specified to both live reimage a machine and")
            warn("write a USB image.  Is this what you wanted?")
        if not remote:
            die("Please specify --remote with --image_to_live", ValidationError)

    chronos_passwd = text("chronos_passwd")
    withdev = flag("withdev")
    if mod_image_for_test:
        # Override any specified chronos password with the test one
        chronos_passwd = TEST_CHRONOS_PASSWD
        withdev = True

    if image_to_usb:
        device = block_device_name(image_to_usb)
        if not device:
            die("Expected --image_to_usb option of /dev/* format", ValidationError)
        if not is_removable_device(device, sys_block_root):
            die(f"Could not verify that {device} for image_to_usb is removable", ValidationError)

    config = BuildConfig(
        top=top,
        chroot=chroot,
        board=board,
        build=build,
        build_autotest=flag("build_autotest"),
        buildbot_uri=buildbot_uri,
        chrome_gold=flag("chrome_gold"),
        chrome_root=chrome_root,
        chronos_passwd=chronos_passwd,
        enable_rootfs_verification=flag("enable_rootfs_verification"),
        force_make_chroot=force_make_chroot,
        grab_buildbot=grab_buildbot,
        ignore_remote_test_failures=flag("ignore_remote_test_failures"),
        image_to_live=image_to_live,
        image_to_vm=image_to_vm,
        image_to_usb=image_to_usb,
        jobs=_as_int("jobs", opts.get("jobs", -1)),
        master=master,
        minilayout=flag("minilayout"),
        mod_image_for_test=mod_image_for_test,
        official=flag("official"),
        oldchromebinary=flag("oldchromebinary"),
        repo=text("repo"),
        sync=sync,
        test=test,
        vm_options=text("vm_options"),
        withdev=withdev,
        usepkg=flag("usepkg"),
        unittest=unittest,
        yes=flag("yes"),
        remote=remote,
        private_key=private_key,
        ssh_port=ssh_port,
    )
    Logger.debug(f"Validated configuration: top={top} chroot={chroot} board={board}")
    return config
