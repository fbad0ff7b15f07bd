"""
Unit tests for AutotestRunner.
"""

import unittest
from dataclasses import replace
from pathlib import Path
from unittest.mock import MagicMock

from autotest_runner.AutotestRunner import AutotestRunner
from orchestration.BuildConfig import BuildConfig
from utils.Errors import TestFailureError
from utils.Logger import Logger

VM = BuildConfig(
    top=Path("/co"),
    chroot=Path("/co/chroot"),
    board="x86-generic",
    test="suite_Smoke",
    image_to_vm=True,
    mod_image_for_test=True,
)
REMOTE = replace(VM, image_to_vm=False, image_to_live=True, remote="10.0.0.2", test="suite_Smoke -args=x")


class TestAutotestRunner(unittest.TestCase):
    """Test cases for AutotestRunner."""

    def setUp(self) -> None:
        Logger.reset()
        Logger.initialize(log_level="CRITICAL", log_file=False)
        self.runner = MagicMock()
        self.runner.run_phase.return_value = 0

    def tearDown(self) -> None:
        Logger.reset()

    def test_vm_command(self) -> None:
        self.assertEqual(
            AutotestRunner(VM, self.runner).vm_test_command(),
            ["./bin/cros_run_vm_test", "--board=x86-generic", "--test_case=suite_Smoke", "--no_graphics"],
        )

    def test_remote_command_splits_test_params(self) -> None:
        self.assertEqual(
            AutotestRunner(REMOTE, self.runner).remote_test_command(),
            ["./run_remote_tests.sh", "--remote=10.0.0.2", "suite_Smoke", "-args=x", "--board=x86-generic", "--build"],
        )

    def test_vm_tests_run_from_scripts_dir(self) -> None:
        self.assertEqual(AutotestRunner(VM, self.runner).run_tests(), 0)
        self.runner.run_phase.assert_called_once_with(
            "Running VM tests locally",
            AutotestRunner(VM, self.runner).vm_test_command(),
            cwd=Path("/co/src/scripts"),
            check=False,
        )

    def test_remote_tests_description(self) -> None:
        AutotestRunner(REMOTE, self.runner).run_tests()
        self.assertEqual(self.runner.run_phase.call_args[0][0], "Running tests on Chromium OS machine 10.0.0.2")

    def test_failure_is_fatal(self) -> None:
        self.runner.run_phase.return_value = 1
        with self.assertRaises(TestFailureError) as cm:
            AutotestRunner(REMOTE, self.runner).run_tests()
        self.assertIn("Remote tests failed", str(cm.exception))

    def test_vm_failure_message(self) -> None:
        self.runner.run_phase.return_value = 1
        with self.assertRaises(TestFailureError) as cm:
            AutotestRunner(VM, self.runner).run_tests()
        self.assertIn("VM tests failed", str(cm.exception))

    def test_failure_ignored(self) -> None:
        self.runner.run_phase.return_value = 3
        config = replace(REMOTE, ignore_remote_test_failures=True)
        self.assertEqual(AutotestRunner(config, self.runner).run_tests(), 3)
