"""
Chroot (re)creation with make_chroot.
"""

from orchestration.BuildConfig import BuildConfig
from orchestration.PhaseRunner import PhaseRunner


class ChrootBuilder:
    """Replaces the build chroot at config.chroot."""

    def __init__(self, config: BuildConfig, runner: PhaseRunner) -> None:
        self._config = config
        self._runner = runner

    def make_chroot(self) -> None:
        self._runner.run_phase(
            "Replacing chroot",
            ["./make_chroot", "--replace", f"--chroot={self._config.chroot}", *self._config.jobs_params],
            cwd=self._config.scripts_dir,
        )
