"""
Unit tests for BuildConfig and validate_and_set_param_defaults.
"""

import tempfile
import unittest
from pathlib import Path
from typing import Any, Dict
from unittest.mock import Mock

from orchestration.BuildConfig import (
    TEST_CHRONOS_PASSWD,
    BuildConfig,
    validate_and_set_param_defaults,
)
from utils.Args import Args
from utils.Errors import ValidationError
from utils.Logger import Logger


class _CheckoutTestCase(unittest.TestCase):
    """Creates a fake checkout (src/platform/dev, src/scripts, chroot) in a temp dir."""

    def setUp(self) -> None:
        Logger.reset()
        Logger.initialize(log_level="CRITICAL", log_file=False)
        self._tmp = tempfile.TemporaryDirectory()
        self.top = Path(self._tmp.name).resolve()
        (self.top / "src" / "platform" / "dev").mkdir(parents=True)
        (self.top / "src" / "scripts").mkdir(parents=True)
        (self.top / "chroot").mkdir()

    def tearDown(self) -> None:
        self._tmp.cleanup()
        Logger.reset()

    def values(self, **overrides: Any) -> Dict[str, Any]:
        values = dict(Args._defaults)
        values.update(overrides)
        return values

    def validate(self, **overrides: Any) -> BuildConfig:
        return validate_and_set_param_defaults(self.values(**overrides), cwd=self.top / "src" / "scripts")


class TestDefaults(_CheckoutTestCase):

    def test_defaults_from_checkout(self) -> None:
        config = self.validate()
        self.assertEqual(config.top, self.top)
        self.assertEqual(config.chroot, self.top / "chroot")
        self.assertEqual(config.board, "x86-generic")
        self.assertFalse(config.force_make_chroot)
        self.assertTrue(config.sync)
        self.assertTrue(config.build)
        self.assertTrue(config.master)
        self.assertFalse(config.mod_image_for_test)
        self.assertEqual(
            config.private_key,
            self.top / "src" / "scripts" / "mod_for_test_scripts" / "ssh_keys" / "testing_rsa",
        )

    def test_explicit_top(self) -> None:
        config = validate_and_set_param_defaults(self.values(top=str(self.top)), cwd=Path("/"))
        self.assertEqual(config.top, self.top)

    def test_top_falls_back_to_script_checkout(self) -> None:
        with tempfile.TemporaryDirectory() as elsewhere:
            script = self.top / "src" / "scripts" / "sync_build_test" / "main.py"
            config = validate_and_set_param_defaults(self.values(), cwd=Path(elsewhere), script_path=script)
        self.assertEqual(config.top, self.top)

    def test_board_from_default_board_file(self) -> None:
        (self.top / "src" / "scripts" / ".default_board").write_text("x86-mario\n")
        self.assertEqual(self.validate().board, "x86-mario")

    def test_explicit_board_wins(self) -> None:
        (self.top / "src" / "scripts" / ".default_board").write_text("x86-mario\n")
        self.assertEqual(self.validate(board="arm-generic").board, "arm-generic")

    def test_missing_chroot_forces_make_chroot(self) -> None:
        config = self.validate(chroot=str(self.top / "other_chroot"))
        self.assertEqual(config.chroot, self.top / "other_chroot")
        self.assertTrue(config.force_make_chroot)

    def test_bad_jobs(self) -> None:
        with self.assertRaises(ValidationError):
            self.validate(jobs="many")


class TestDerivedProperties(_CheckoutTestCase):

    def test_paths_and_params(self) -> None:
        config = self.validate(board="x86-alex", jobs=4)
        self.assertEqual(config.scripts_dir, self.top / "src" / "scripts")
        self.assertEqual(config.board_dir, self.top / "chroot" / "build" / "x86-alex")
        self.assertEqual(config.board_param, "--board=x86-alex")
        self.assertEqual(config.jobs_params, ["--jobs=4"])
        self.assertEqual(config.withdev_params, ["--withdev"])
        self.assertEqual(config.chroot_options, [])

    def test_single_job_adds_no_param(self) -> None:
        self.assertEqual(self.validate(jobs=1).jobs_params, [])
        self.assertEqual(self.validate(jobs=-1).jobs_params, [])

    def test_has_board_directory(self) -> None:
        config = self.validate()
        self.assertFalse(config.has_board_directory())
        (self.top / "chroot" / "build" / "x86-generic").mkdir(parents=True)
        self.assertTrue(config.has_board_directory())

    def test_config_is_immutable(self) -> None:
        config = self.validate()
        with self.assertRaises(AttributeError):
            config.board = "x86-mario"  # type: ignore[misc]


class TestTestImplications(_CheckoutTestCase):

    def test_test_without_remote_uses_vm(self) -> None:
        config = self.validate(test="suite_Smoke", chronos_passwd="mine", withdev=False)
        self.assertTrue(config.mod_image_for_test)
        self.assertTrue(config.image_to_vm)
        self.assertFalse(config.image_to_live)
        self.assertEqual(config.chronos_passwd, TEST_CHRONOS_PASSWD)
        self.assertTrue(config.withdev)

    def test_test_with_remote_reimages_live(self) -> None:
        session = Mock()
        session.learn_board.return_value = "x86-mario"
        open_remote = Mock(return_value=session)

        config = validate_and_set_param_defaults(
            self.values(test="suite_Smoke", remote="10.0.0.2"),
            cwd=self.top,
            open_remote=open_remote,
        )

        self.assertTrue(config.image_to_live)
        self.assertFalse(config.image_to_vm)
        self.assertEqual(config.board, "x86-mario")
        open_remote.assert_called_once_with("10.0.0.2", config.private_key, 22)

    def test_remote_with_board_does_not_learn(self) -> None:
        session = Mock()
        config = validate_and_set_param_defaults(
            self.values(remote="10.0.0.2", board="x86-alex", private_key="/keys/rsa", ssh_port="2222"),
            cwd=self.top,
            open_remote=Mock(return_value=session),
        )
        session.learn_board.assert_not_called()
        self.assertEqual(config.private_key, Path("/keys/rsa"))
        self.assertEqual(config.ssh_port, 2222)

    def test_live_without_remote_fails(self) -> None:
        with self.assertRaises(ValidationError):
            self.validate(image_to_live=True)


class TestBuildbot(_CheckoutTestCase):

    def test_latest_requires_buildbot_uri(self) -> None:
        with self.assertRaises(ValidationError):
            self.validate(grab_buildbot="LATEST", buildbot_uri="")

    def test_latest_requires_http_uri(self) -> None:
        with self.assertRaises(ValidationError):
            self.validate(grab_buildbot="LATEST", buildbot_uri="bot/builds")

    def test_bad_buildbot_uri_fails_before_remote_session(self) -> None:
        open_remote = Mock()
        with self.assertRaises(ValidationError):
            validate_and_set_param_defaults(
                self.values(grab_buildbot="LATEST", buildbot_uri="", remote="10.0.0.2"),
                cwd=self.top,
                open_remote=open_remote,
            )
        open_remote.assert_not_called()

    def test_explicit_uri_must_be_http(self) -> None:
        with self.assertRaises(ValidationError):
            self.validate(grab_buildbot="file:///tmp/image.zip")

    def test_grab_disables_sync_and_build(self) -> None:
        config = self.validate(grab_buildbot="LATEST", buildbot_uri="http://bot/builds")
        self.assertFalse(config.sync)
        self.assertFalse(config.build)
        self.assertFalse(config.unittest)
        self.assertFalse(config.master)


class TestChromeRoot(_CheckoutTestCase):

    def test_missing_chrome_root(self) -> None:
        with self.assertRaises(ValidationError):
            self.validate(chrome_root=str(self.top / "nochrome"))

    def test_chrome_root_without_cros_gclient(self) -> None:
        chrome = self.top / "chrome"
        chrome.mkdir()
        with self.assertRaises(ValidationError):
            self.validate(chrome_root=str(chrome))

    def test_valid_chrome_root(self) -> None:
        chrome = self.top / "chrome"
        (chrome / "src" / "third_party" / "cros").mkdir(parents=True)
        config = self.validate(chrome_root=str(chrome))
        self.assertEqual(config.chroot_options, [f"--chrome_root={chrome}"])

    def test_chrome_root_unchecked_without_build(self) -> None:
        config = self.validate(chrome_root=str(self.top / "nochrome"), build=False)
        self.assertEqual(config.chrome_root, str(self.top / "nochrome"))


class TestImageToUsb(_CheckoutTestCase):

    def setUp(self) -> None:
        super().setUp()
        self.sys_block = self.top / "sys_block"
        for name, removable in (("sda", "0"), ("sdb", "1")):
            (self.sys_block / name).mkdir(parents=True)
            (self.sys_block / name / "removable").write_text(removable + "\n")

    def _validate(self, device: str) -> BuildConfig:
        return validate_and_set_param_defaults(
            self.values(image_to_usb=device), cwd=self.top, sys_block_root=self.sys_block
        )

    def test_removable_device(self) -> None:
        self.assertEqual(self._validate("/dev/sdb").image_to_usb, "/dev/sdb")

    def test_fixed_device_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self._validate("/dev/sda")

    def test_bare_dev_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self._validate("/dev/")
