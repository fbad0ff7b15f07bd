"""
Orchestrator for sync_build_test.

Validates the configuration, confirms the plan with the user, then runs the
fixed pipeline: checkout, sync, buildbot grab, chroot, packages, Chrome, unit
tests, master, mod for test, USB, live update, VM image, tests. Every step is
gated by the configuration; the order never changes. The first fatal error
aborts the rest, is reported with the phase that was running and the elapsed
time, and the temp directory and remote session are released on every exit
path.
"""

import tempfile
from contextlib import ExitStack
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

import click

from autotest_runner.AutotestRunner import AutotestRunner
from buildbot.BuildbotGrabber import BuildbotGrabber, clear_credentials
from builder.ChrootBuilder import ChrootBuilder
from builder.ImageBuilder import ImageBuilder
from builder.PackageBuilder import PackageBuilder
from checkout.SourceSync import SourceSync
from deploy.ImageDeployer import ImageDeployer
from orchestration.BuildConfig import UNITTEST_BOARD, BuildConfig, validate_and_set_param_defaults
from orchestration.PhaseRunner import PhaseRunner, RunState, describe_phase, info_div, show_duration
from orchestration.Preflight import assert_not_root_user, assert_outside_chroot
from orchestration.StepPlan import Prompt, interactive, log_steps
from orchestration.ToolProtocol import (
    AutotestRunnerProtocol,
    BuildbotGrabberProtocol,
    ChrootBuilderProtocol,
    ImageBuilderProtocol,
    ImageDeployerProtocol,
    PackageBuilderProtocol,
    RemoteSessionProtocol,
    SourceSyncProtocol,
)
from remote.RemoteAccess import RemoteAccess
from utils.Args import Args
from utils.Errors import BuildTestError
from utils.Logger import Logger

# Exit status for Ctrl+C, as a shell reports it
INTERRUPTED_EXIT_CODE = 130


@dataclass
class Toolset:
    """The external collaborators the pipeline drives."""

    source_sync: SourceSyncProtocol
    chroot_builder: ChrootBuilderProtocol
    package_builder: PackageBuilderProtocol
    image_builder: ImageBuilderProtocol
    image_deployer: ImageDeployerProtocol
    autotest_runner: AutotestRunnerProtocol
    buildbot: BuildbotGrabberProtocol

    @classmethod
    def create(cls, config: BuildConfig, runner: PhaseRunner, tmp_dir: Path) -> "Toolset":
        return cls(
            source_sync=SourceSync(config, runner),
            chroot_builder=ChrootBuilder(config, runner),
            package_builder=PackageBuilder(config, runner),
            image_builder=ImageBuilder(config, runner),
            image_deployer=ImageDeployer(config, runner),
            autotest_runner=AutotestRunner(config, runner),
            buildbot=BuildbotGrabber(config, runner, tmp_dir),
        )


ToolsetFactory = Callable[[BuildConfig, PhaseRunner, Path], Toolset]


def failure(state: RunState) -> None:
    """Report a fatal error: clear credentials, name the phase, show the duration."""
    # Clear these out just in case
    clear_credentials()
    if state.start_time is None:
        return
    describe_phase(f"Failure during: {state.last_phase or 'startup'}")
    show_duration(state)
    info_div()


class Orchestrator:
    """
    Runs the pipeline for one validated configuration.

    Use Orchestrator.execute() (or run_from_args()) for a complete run with
    validation, confirmation, failure reporting and cleanup; run() only runs
    the pipeline steps.
    """

    def __init__(self, config: BuildConfig, runner: PhaseRunner, tools: Toolset, state: RunState) -> None:
        self.config = config
        self._runner = runner
        self._tools = tools
        self._state = state

    def run(self) -> None:
        """Run every enabled step, in order. Raises BuildTestError on the first fatal failure."""
        tools = self._tools
        config = self.config

        if not config.top.exists():
            tools.source_sync.init_checkout()

        if config.sync:
            tools.source_sync.sync()

        if config.grab_buildbot:
            if tools.buildbot.grab():
                # The buildbot already modified this image for test
                config = self.config = replace(config, mod_image_for_test=False)

        if config.force_make_chroot:
            tools.chroot_builder.make_chroot()

        if config.build:
            tools.package_builder.enable_local_account()
            # Only set up the board target if its directory does not exist
            if not config.has_board_directory():
                tools.package_builder.setup_board()
            tools.package_builder.build_packages()

        if config.chrome_root:
            tools.package_builder.build_chrome()

        if config.unittest and config.board == UNITTEST_BOARD:
            tools.package_builder.run_unit_tests()

        if config.master:
            if config.chronos_passwd:
                tools.image_builder.set_shared_user_password()
            tools.image_builder.build_image()

        if config.mod_image_for_test:
            tools.image_builder.mod_image_for_test()

        if config.image_to_usb:
            tools.image_deployer.image_to_usb()

        if config.image_to_live:
            tools.image_deployer.image_to_live()

        if config.image_to_vm:
            tools.image_builder.image_to_vm()

        if config.test:
            tools.autotest_runner.run_tests()

        Logger.info("")
        info_div()
        Logger.info(f"Successfully used {config.top} to:")
        log_steps(config)
        show_duration(self._state)
        info_div()

    @classmethod
    def execute(
        cls,
        values: Mapping[str, Any],
        *,
        prompt: Optional[Prompt] = None,
        toolset_factory: Optional[ToolsetFactory] = None,
        open_remote: Optional[Callable[[str, Path, int, Path], RemoteSessionProtocol]] = None,
        preflight: bool = True,
        refresh_sudo: bool = True,
        cwd: Optional[Path] = None,
    ) -> int:
        """
        Validate, confirm and run the pipeline; always clean up.

        Args:
            values: Flat option mapping (Args.get_config()).
            prompt: Confirmation prompt; defaults to an interactive one.
            toolset_factory: Builds the collaborators; defaults to Toolset.create.
            open_remote: Opens a remote session as open_remote(host, key, port, tmp_dir);
                defaults to RemoteAccess.
            preflight: If False, skip the outside-chroot / non-root checks.
            refresh_sudo: If False, never run "sudo true".
            cwd: Directory to look for the checkout from (default: current directory).

        Returns:
            Process exit status: 0 on success, the failing command's status, 1
            for validation and internal errors, 130 when interrupted.
        """
        state = RunState()
        with ExitStack() as stack:
            state.tmp_dir = Path(stack.enter_context(tempfile.TemporaryDirectory(prefix="sync_build_test.")))
            stack.callback(clear_credentials)

            def start_remote(host: str, private_key: Path, ssh_port: int) -> RemoteSessionProtocol:
                opener = open_remote or _open_remote_access
                session = opener(host, private_key, ssh_port, state.tmp_dir)
                stack.callback(session.close)
                return session

            try:
                if preflight:
                    assert_outside_chroot()
                    assert_not_root_user()
                config = validate_and_set_param_defaults(values, cwd=cwd, open_remote=start_remote)
                runner = PhaseRunner(
                    state,
                    chroot=config.chroot,
                    scripts_dir=config.scripts_dir,
                    chroot_options=config.chroot_options,
                    refresh_sudo=refresh_sudo,
                )
                # Cache up sudo status
                runner.refresh_sudo()
                interactive(config, prompt)

                state.start()
                tools = (toolset_factory or Toolset.create)(config, runner, state.tmp_dir)
                cls(config, runner, tools, state).run()
            except BuildTestError as exc:
                failure(state)
                return exc.exit_code
            except (KeyboardInterrupt, click.exceptions.Abort):
                Logger.error("Interrupted")
                failure(state)
                return INTERRUPTED_EXIT_CODE
            except Exception:
                Logger.exception("Unexpected error")
                failure(state)
                return 1
        return 0

    @classmethod
    def run_from_args(cls) -> int:
        """Run with the configuration held by Args."""
        return cls.execute(Args.get_config())


def _open_remote_access(host: str, private_key: Path, ssh_port: int, tmp_dir: Path) -> RemoteSessionProtocol:
    session = RemoteAccess(host, private_key, tmp_dir, ssh_port=ssh_port)
    session.init()
    return session
