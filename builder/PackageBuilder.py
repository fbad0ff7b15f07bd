"""
Board setup and package builds.

All builds except enable_localaccount.sh run inside the chroot.
"""

from typing import List

from orchestration.BuildConfig import BuildConfig
from orchestration.PhaseRunner import PhaseRunner

# Account that BVT tests log in as
LOCAL_ACCOUNT = "chronos"


class PackageBuilder:
    """Sets up the board target and builds packages (and optionally Chrome) for it."""

    def __init__(self, config: BuildConfig, runner: PhaseRunner) -> None:
        self._config = config
        self._runner = runner

    def _pkg_params(self) -> List[str]:
        return [] if self._config.usepkg else ["--nousepkg"]

    def enable_local_account(self) -> None:
        """Enable the local account; BVT tests need it to pass."""
        self._runner.run_phase(
            "Enable local account",
            ["./enable_localaccount.sh", LOCAL_ACCOUNT, str(self._config.chroot)],
            cwd=self._config.scripts_dir,
        )

    def setup_board(self) -> None:
        self._runner.run_phase_in_chroot(
            "Setting up board target",
            ["./setup_board", *self._pkg_params(), self._config.board_param],
        )

    def build_packages(self) -> None:
        config = self._config
        command = ["./build_packages", config.board_param, *config.withdev_params]
        if config.build_autotest:
            command.append("--withautotest")
        command += self._pkg_params()
        if config.oldchromebinary:
            command.append("--oldchromebinary")
        self._runner.run_phase_in_chroot("Building packages", command)

    def chrome_use_flags(self) -> str:
        """USE flags for a local-source Chrome build."""
        use: List[str] = []
        # The ebuild only really uses gold on x86 when the binaries are found
        if self._config.chrome_gold:
            use.append("gold")
        if self._config.official:
            use.append("internal")
        if not self._config.test:
            use.append("-build_tests")
        return " ".join(use)

    def build_chrome(self) -> None:
        board = self._config.board
        self._runner.run_phase_in_chroot(
            "Building Chromium browser",
            [
                "env",
                f"BOARD={board}",
                f"USE={self.chrome_use_flags()}",
                "FEATURES=-usersandbox",
                "CHROME_ORIGIN=LOCAL_SOURCE",
                f"emerge-{board}",
                "chromeos-chrome",
            ],
        )

    def run_unit_tests(self) -> None:
        self._runner.run_phase_in_chroot(
            "Running unit tests",
            ["./cros_run_unit_tests", self._config.board_param],
        )
