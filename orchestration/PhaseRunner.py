"""
Phase execution envelope for sync_build_test.

Every state-changing step runs as a phase: it is announced with a divider so
it stands out when scrolling through lots of build output, recorded as the
last attempted phase for failure reporting, and any failure is fatal. After a
phase succeeds the sudo timestamp is refreshed so long builds do not stall on
a password prompt later.
"""

import os
import shlex
import subprocess
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Union

from utils.Errors import PhaseError
from utils.file_utils import format_duration
from utils.Logger import Logger

DIVIDER = "#############################################################"

PathLike = Union[str, Path]


@dataclass
class RunState:
    """Mutable state of one run: last attempted phase, start time, scoped temp dir."""

    tmp_dir: Optional[Path] = None
    last_phase: Optional[str] = None
    start_time: Optional[float] = None

    def start(self) -> None:
        self.start_time = time.time()

    def elapsed(self) -> float:
        if self.start_time is None:
            return 0.0
        return time.time() - self.start_time


def info_div() -> None:
    Logger.info(DIVIDER)


def describe_phase(description: str) -> None:
    """Announce a phase so it is obvious when scrolling back through output."""
    Logger.info("")
    info_div()
    Logger.info(description)


def show_duration(state: RunState) -> None:
    Logger.info(f"Total time: {format_duration(state.elapsed())}")


class PhaseRunner:
    """
    Runs phases on the host or inside the chroot.

    run_phase() and run_phase_in_chroot() execute external commands; phase()
    wraps in-process steps (file moves, archive extraction, downloads) in the
    same envelope.
    """

    def __init__(
        self,
        state: RunState,
        chroot: Path,
        scripts_dir: Path,
        chroot_options: Optional[Sequence[str]] = None,
        refresh_sudo: bool = True,
    ) -> None:
        """
        Args:
            state: Run state receiving the last attempted phase.
            chroot: Chroot path passed to enter_chroot.sh.
            scripts_dir: Directory holding enter_chroot.sh (<top>/src/scripts).
            chroot_options: Extra enter_chroot.sh options (e.g. --chrome_root).
            refresh_sudo: If False, never run "sudo true" (used by tests).
        """
        self._state = state
        self._chroot = Path(chroot)
        self._scripts_dir = Path(scripts_dir)
        self._chroot_options = list(chroot_options or [])
        self._refresh_sudo = refresh_sudo

    @property
    def state(self) -> RunState:
        return self._state

    @contextmanager
    def phase(self, description: str, detail: Optional[str] = None) -> Iterator[None]:
        """
        Run the body as a phase.

        OSError from the body is fatal and re-raised as PhaseError.

        Args:
            description: Phase description, logged and kept for failure reports.
            detail: Optional "Running: ..." line describing the body.
        """
        self._state.last_phase = description
        with Logger.tagged(description):
            describe_phase(description)
            if detail:
                Logger.info(f"Running: {detail}")
            info_div()
            try:
                yield
            except OSError as exc:
                Logger.error(f"{description}: {exc}")
                raise PhaseError(description, None, 1) from exc
        self.refresh_sudo()

    def run_phase(
        self,
        description: str,
        command: Sequence[PathLike],
        cwd: Optional[PathLike] = None,
        env: Optional[Dict[str, str]] = None,
        check: bool = True,
    ) -> int:
        """
        Describe and run an external command to completion.

        Args:
            description: Phase description.
            command: Command and arguments.
            cwd: Working directory for the command.
            env: Extra environment variables for the command.
            check: If True, a nonzero exit raises PhaseError.

        Returns:
            The command's exit status.

        Raises:
            PhaseError: If the command cannot be started, or exits nonzero and check is True.
        """
        argv: List[str] = [str(part) for part in command]
        self._state.last_phase = description

        run_env = None
        if env:
            run_env = dict(os.environ)
            run_env.update(env)
        with Logger.tagged(description):
            describe_phase(description)
            Logger.info(f"Running: {shlex.join(argv)}")
            info_div()
            Logger.info("")
            try:
                completed = subprocess.run(argv, cwd=str(cwd) if cwd else None, env=run_env, check=False)
            except OSError as exc:
                Logger.error(f"Could not run {argv[0]}: {exc}")
                raise PhaseError(description, argv, 127) from exc

        if completed.returncode != 0:
            if check:
                raise PhaseError(description, argv, completed.returncode)
            Logger.warning(f"{description} exited with status {completed.returncode}")
        self.refresh_sudo()
        return completed.returncode

    def run_phase_in_chroot(self, description: str, command: Sequence[PathLike], check: bool = True) -> int:
        """Like run_phase(), but run command inside the chroot via enter_chroot.sh."""
        wrapped: List[PathLike] = [
            "./enter_chroot.sh",
            f"--chroot={self._chroot}",
            *self._chroot_options,
            "--",
            *command,
        ]
        return self.run_phase(description, wrapped, cwd=self._scripts_dir, check=check)

    def refresh_sudo(self) -> None:
        """Refresh the sudo timestamp ("sudo true"); no-op when already root."""
        if not self._refresh_sudo or os.geteuid() == 0:
            return
        completed = subprocess.run(["sudo", "true"], check=False)
        if completed.returncode != 0:
            raise PhaseError("Refreshing sudo credentials", ["sudo", "true"], completed.returncode)
