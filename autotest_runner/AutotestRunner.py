"""
Automated test execution.

Without --remote, tests run in a locally started VM (cros_run_vm_test); with
--remote they run against that machine (run_remote_tests.sh). Test failures
are the only failures the pipeline can tolerate, and only when
--ignore_remote_test_failures is passed.
"""

import shlex
from typing import List

from orchestration.BuildConfig import BuildConfig
from orchestration.PhaseRunner import PhaseRunner
from utils.Errors import TestFailureError, die, warn


class AutotestRunner:
    """Runs config.test on a local VM or on config.remote."""

    def __init__(self, config: BuildConfig, runner: PhaseRunner) -> None:
        self._config = config
        self._runner = runner

    def vm_test_command(self) -> List[str]:
        config = self._config
        return [
            "./bin/cros_run_vm_test",
            config.board_param,
            f"--test_case={config.test}",
            *shlex.split(config.vm_options),
        ]

    def remote_test_command(self) -> List[str]:
        config = self._config
        # --test may hold several test names and options
        return [
            "./run_remote_tests.sh",
            f"--remote={config.remote}",
            *shlex.split(config.test),
            config.board_param,
            "--build",
        ]

    def run_tests(self) -> int:
        config = self._config
        if config.remote:
            description = f"Running tests on Chromium OS machine {config.remote}"
            command = self.remote_test_command()
            failure_msg = "Remote tests failed and --ignore_remote_test_failures not passed"
        else:
            description = "Running VM tests locally"
            command = self.vm_test_command()
            failure_msg = "VM tests failed and --ignore_remote_test_failures not passed"

        returncode = self._runner.run_phase(description, command, cwd=config.scripts_dir, check=False)
        if returncode != 0:
            if not config.ignore_remote_test_failures:
                die(failure_msg, TestFailureError)
            warn(f"Tests failed with exit status {returncode}; ignoring as requested")
        return returncode
