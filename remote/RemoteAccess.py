"""
ssh access to a running Chromium OS test machine.

The testing private key is copied into the run's temp directory (ssh refuses
keys with loose permissions) together with a private known_hosts file, so
reimaged targets with new host keys never touch the user's ~/.ssh.
"""

import shutil
import subprocess
from pathlib import Path
from typing import List, Optional

from utils.Errors import BuildTestError, die
from utils.Logger import Logger

BOARD_KEY = "CHROMEOS_RELEASE_BOARD"
LSB_RELEASE = "/etc/lsb-release"


class RemoteAccess:
    """
    An ssh session to root@host.

    Call init() before use and close() when done; close() is safe to call
    more than once.
    """

    def __init__(self, host: str, private_key: Path, tmp_dir: Path, ssh_port: int = 22) -> None:
        self.host = host
        self.ssh_port = ssh_port
        self._private_key = Path(private_key)
        self._tmp_key = Path(tmp_dir) / "private_key"
        self._known_hosts = Path(tmp_dir) / "known_hosts"

    def _ssh_command(self, remote_command: List[str]) -> List[str]:
        return [
            "ssh",
            "-p",
            str(self.ssh_port),
            "-o",
            "StrictHostKeyChecking=no",
            "-o",
            f"UserKnownHostsFile={self._known_hosts}",
            "-o",
            "BatchMode=yes",
            "-i",
            str(self._tmp_key),
            f"root@{self.host}",
            *remote_command,
        ]

    def remote_sh(self, *remote_command: str) -> str:
        """
        Run a command on the target and return its stdout.

        Raises:
            BuildTestError: If ssh cannot be run or the command fails.
        """
        cmd = self._ssh_command(list(remote_command))
        Logger.debug(f"Running remote command: {' '.join(cmd)}")
        try:
            completed = subprocess.run(cmd, check=False, text=True, capture_output=True)
        except OSError as exc:
            raise BuildTestError(f"failed to execute ssh: {exc}") from exc
        if completed.returncode != 0:
            Logger.debug(f"ssh stderr: {completed.stderr}")
            die(f"Remote command failed on {self.host}: {' '.join(remote_command)}")
        return completed.stdout

    def init(self) -> None:
        """Install the private key and verify the target is reachable."""
        Logger.info("Initializing remote access")
        if not self._private_key.is_file():
            die(f"Cannot find private key {self._private_key}")
        self._tmp_key.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(self._private_key, self._tmp_key)
        self._tmp_key.chmod(0o400)
        Logger.info("Initiating first contact with remote host")
        self.remote_sh("true")
        Logger.info("Connection OK")

    def learn_board(self) -> str:
        """Return the board the target reports in /etc/lsb-release."""
        output = self.remote_sh("grep", BOARD_KEY, LSB_RELEASE)
        board = parse_board(output)
        if not board:
            die("Board required")
        Logger.info(f"Target reports board is {board}")
        return board

    def close(self) -> None:
        """Remove the key copy and known_hosts file."""
        for path in (self._tmp_key, self._known_hosts):
            if path.exists():
                path.chmod(0o600)
                path.unlink()


def parse_board(lsb_release: str) -> Optional[str]:
    """
    Return the CHROMEOS_RELEASE_BOARD value from lsb-release text.

    Example:
        >>> parse_board("CHROMEOS_RELEASE_BOARD=x86-mario\\n")
        'x86-mario'
    """
    for line in lsb_release.splitlines():
        key, sep, value = line.partition("=")
        if sep and key.strip() == BOARD_KEY:
            return value.strip() or None
    return None
