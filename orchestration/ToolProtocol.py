"""
Collaborator protocols for sync_build_test.

Each external tool the orchestrator drives sits behind a narrow protocol so
that the pipeline order and gating can be exercised against fakes. Concrete
implementations build the command line and run it through the PhaseRunner;
any nonzero exit surfaces as a PhaseError.
"""

from typing import Protocol


class RemoteSessionProtocol(Protocol):
    """An ssh session to a running Chromium OS target."""

    def learn_board(self) -> str:
        """Return the board the target reports in /etc/lsb-release."""
        ...

    def close(self) -> None:
        """Release session state (key copies, known hosts)."""
        ...


class SourceSyncProtocol(Protocol):
    """repo based checkout management."""

    def init_checkout(self) -> None:
        """Create the checkout directory and run repo init in it."""
        ...

    def sync(self) -> None:
        """repo sync, then configure code review settings."""
        ...


class ChrootBuilderProtocol(Protocol):
    """make_chroot."""

    def make_chroot(self) -> None:
        ...


class PackageBuilderProtocol(Protocol):
    """Board setup and package builds inside the chroot."""

    def enable_local_account(self) -> None:
        ...

    def setup_board(self) -> None:
        ...

    def build_packages(self) -> None:
        ...

    def build_chrome(self) -> None:
        """Build the browser from the local --chrome_root source."""
        ...

    def run_unit_tests(self) -> None:
        ...


class ImageBuilderProtocol(Protocol):
    """Image mastering and variants."""

    def set_shared_user_password(self) -> None:
        ...

    def build_image(self) -> None:
        ...

    def mod_image_for_test(self) -> None:
        ...

    def image_to_vm(self) -> None:
        ...


class ImageDeployerProtocol(Protocol):
    """Putting a mastered image on a device."""

    def image_to_usb(self) -> None:
        ...

    def image_to_live(self) -> None:
        ...


class AutotestRunnerProtocol(Protocol):
    """Automated test execution, in a local VM or on --remote."""

    def run_tests(self) -> int:
        """
        Run the requested tests.

        Returns:
            The test runner's exit status (nonzero only when failures are ignored).

        Raises:
            TestFailureError: If tests fail and failures are not ignored.
        """
        ...


class BuildbotGrabberProtocol(Protocol):
    """Prebuilt image download and install."""

    def grab(self) -> bool:
        """
        Download and install the buildbot image.

        Returns:
            True if the installed image is already modified for test.
        """
        ...
