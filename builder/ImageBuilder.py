"""
Image mastering, test modification, and VM image creation.
"""

import shlex

from orchestration.BuildConfig import BuildConfig
from orchestration.PhaseRunner import PhaseRunner

SET_PASSWORD_SCRIPT = "~/trunk/src/scripts/set_shared_user_password.sh"


class ImageBuilder:
    """Masters the bootable image for config.board and produces its variants."""

    def __init__(self, config: BuildConfig, runner: PhaseRunner) -> None:
        self._config = config
        self._runner = runner

    def set_shared_user_password(self) -> None:
        """Store config.chronos_passwd as the shared user password for the next image."""
        password = shlex.quote(self._config.chronos_passwd)
        self._runner.run_phase_in_chroot(
            "Setting default chronos password",
            ["sh", "-c", f"echo {password} | {SET_PASSWORD_SCRIPT}"],
        )

    def build_image(self) -> None:
        config = self._config
        rootfs = "--enable_rootfs_verification" if config.enable_rootfs_verification else "--noenable_rootfs_verification"
        self._runner.run_phase_in_chroot(
            "Mastering image",
            [
                "./build_image",
                config.board_param,
                "--replace",
                *config.withdev_params,
                *config.jobs_params,
                rootfs,
            ],
        )

    def mod_image_for_test(self) -> None:
        self._runner.run_phase_in_chroot(
            "Modifying image for test",
            ["./mod_image_for_test.sh", self._config.board_param, "--yes"],
        )

    def image_to_vm(self) -> None:
        self._runner.run_phase_in_chroot(
            "Creating VM image from existing image",
            ["./image_to_vm.sh", self._config.board_param],
        )
