"""
Image deployment: write to a USB device or live update a running machine.

Both scripts run on the host, from <top>/src/scripts.
"""

from orchestration.BuildConfig import BuildConfig
from orchestration.PhaseRunner import PhaseRunner


class ImageDeployer:
    """Puts the mastered image on a removable device or a remote machine."""

    def __init__(self, config: BuildConfig, runner: PhaseRunner) -> None:
        self._config = config
        self._runner = runner

    def image_to_usb(self) -> None:
        config = self._config
        self._runner.run_phase(
            "Installing image to USB",
            ["./image_to_usb.sh", "--yes", f"--to={config.image_to_usb}", config.board_param],
            cwd=config.scripts_dir,
        )

    def image_to_live(self) -> None:
        config = self._config
        self._runner.run_phase(
            f"Re-imaging live Chromium OS machine {config.remote}",
            ["./image_to_live.sh", f"--remote={config.remote}", "--update_known_hosts"],
            cwd=config.scripts_dir,
        )
