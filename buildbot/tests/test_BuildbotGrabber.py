"""
Unit tests for BuildbotGrabber.
"""

import io
import os
import tarfile
import tempfile
import unittest
import zipfile
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict
from unittest.mock import MagicMock, patch

import requests

from buildbot.BuildbotGrabber import (
    BuildbotGrabber,
    clear_credentials,
    exported_credentials,
    image_version,
    prompt_credentials,
)
from orchestration.BuildConfig import BuildConfig
from orchestration.PhaseRunner import PhaseRunner, RunState
from utils.Errors import BuildTestError, PhaseError
from utils.Logger import Logger

IMAGE_URI = "http://bot/builds/0.9.74.0-a1/image.zip"


def _image_zip(with_autotest: bool = True, autotest_member: str = "autotest/client/README") -> bytes:
    """An image.zip like the buildbot produces."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr("chromiumos_base_image.bin", b"BASE")
        zf.writestr("chromiumos_test_image.bin", b"TEST")
        if with_autotest:
            bundle = io.BytesIO()
            with tarfile.open(fileobj=bundle, mode="w:bz2") as tf:
                data = b"client"
                info = tarfile.TarInfo(autotest_member)
                info.size = len(data)
                tf.addfile(info, io.BytesIO(data))
            zf.writestr("autotest.tar.bz2", bundle.getvalue())
    return buf.getvalue()


def _response(body: bytes) -> MagicMock:
    resp = MagicMock()
    resp.headers = {"Content-Length": str(len(body))}
    resp.iter_content.return_value = iter([body])
    resp.text = body.decode("latin-1")
    return resp


class TestHelpers(unittest.TestCase):

    def test_image_version(self) -> None:
        self.assertEqual(image_version(IMAGE_URI), "0.9.74.0-a1")

    def test_exported_credentials_scoped(self) -> None:
        with patch.dict(os.environ, {}):
            with exported_credentials("me", "pw") as auth:
                self.assertEqual(auth, ("me", "pw"))
                self.assertEqual(os.environ["GSDCURL_USERNAME"], "me")
                self.assertEqual(os.environ["GSDCURL_PASSWORD"], "pw")
            self.assertNotIn("GSDCURL_USERNAME", os.environ)
            self.assertNotIn("GSDCURL_PASSWORD", os.environ)

    def test_exported_credentials_cleared_on_error(self) -> None:
        with patch.dict(os.environ, {}):
            with self.assertRaises(RuntimeError):
                with exported_credentials("me", "pw"):
                    raise RuntimeError("download failed")
            self.assertNotIn("GSDCURL_PASSWORD", os.environ)

    def test_clear_credentials_when_unset(self) -> None:
        with patch.dict(os.environ, {}):
            clear_credentials()

    @patch("click.termui.hidden_prompt_func", return_value="pw")
    @patch("click.termui.visible_prompt_func", return_value="")
    def test_prompt_credentials_default_user(self, _user: MagicMock, _password: MagicMock) -> None:
        with patch.dict(os.environ, {"LOGNAME": "me"}):
            self.assertEqual(prompt_credentials(), ("me", "pw"))

    @patch("click.termui.visible_prompt_func", side_effect=KeyboardInterrupt)
    def test_prompt_credentials_ctrl_c(self, _input: MagicMock) -> None:
        with self.assertRaises(KeyboardInterrupt):
            prompt_credentials()

    @patch("click.termui.hidden_prompt_func", side_effect=EOFError)
    @patch("click.termui.visible_prompt_func", return_value="me")
    def test_prompt_credentials_end_of_input(self, _user: MagicMock, _password: MagicMock) -> None:
        Logger.reset()
        Logger.initialize(log_level="CRITICAL", log_file=False)
        self.addCleanup(Logger.reset)
        with self.assertRaises(BuildTestError) as cm:
            prompt_credentials()
        self.assertEqual(str(cm.exception), "No buildbot credentials given.")


class TestBuildbotGrabber(unittest.TestCase):
    """Test cases for BuildbotGrabber."""

    def setUp(self) -> None:
        Logger.reset()
        Logger.initialize(log_level="CRITICAL", log_file=False)
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.top = self.tmp / "co"
        (self.top / "chroot" / "build" / "x86-generic").mkdir(parents=True)
        self.config = BuildConfig(
            top=self.top,
            chroot=self.top / "chroot",
            board="x86-generic",
            sync=False,
            build=False,
            master=False,
            unittest=False,
            grab_buildbot=IMAGE_URI,
            mod_image_for_test=True,
            test="suite_Smoke",
            image_to_vm=True,
        )
        self.runner = PhaseRunner(
            RunState(), chroot=self.config.chroot, scripts_dir=self.config.scripts_dir, refresh_sudo=False
        )
        self.session = MagicMock()
        self._env = patch.dict(os.environ, {})
        self._env.start()

    def tearDown(self) -> None:
        self._env.stop()
        self._tmp.cleanup()
        Logger.reset()

    def _grabber(self, config: BuildConfig) -> BuildbotGrabber:
        return BuildbotGrabber(
            config, self.runner, self.tmp / "run", prompt=lambda: ("me", "pw"), session=self.session
        )

    def test_resolve_explicit_uri(self) -> None:
        self.assertEqual(self._grabber(self.config).resolve_image_uri(("me", "pw")), IMAGE_URI)
        self.session.get.assert_not_called()

    def test_resolve_latest(self) -> None:
        config = replace(self.config, grab_buildbot="LATEST", buildbot_uri="http://bot/builds/")
        self.session.get.return_value = _response(b"0.9.75.0-a1\n")

        uri = self._grabber(config).resolve_image_uri(("me", "pw"))

        self.assertEqual(uri, "http://bot/builds/0.9.75.0-a1/image.zip")
        self.assertEqual(self.session.get.call_args[0][0], "http://bot/builds/LATEST")
        self.assertEqual(self.session.get.call_args.kwargs["auth"], ("me", "pw"))

    def test_resolve_latest_fails(self) -> None:
        config = replace(self.config, grab_buildbot="LATEST", buildbot_uri="http://bot/builds")
        self.session.get.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(BuildTestError) as cm:
            self._grabber(config).resolve_image_uri(("me", "pw"))
        self.assertEqual(str(cm.exception), "Error finding latest.")

    def test_resolve_latest_empty(self) -> None:
        config = replace(self.config, grab_buildbot="LATEST", buildbot_uri="http://bot/builds")
        self.session.get.return_value = _response(b"\n")
        with self.assertRaises(BuildTestError):
            self._grabber(config).resolve_image_uri(("me", "pw"))

    @patch("orchestration.PhaseRunner.subprocess.run")
    def test_grab_test_image_with_autotest(self, mock_run: MagicMock) -> None:
        mock_run.return_value = MagicMock(returncode=0)
        seen_env: Dict[str, Any] = {}

        def get(url: str, **kwargs: Any) -> MagicMock:
            seen_env["user"] = os.environ.get("GSDCURL_USERNAME")
            return _response(_image_zip())

        self.session.get.side_effect = get

        self.assertTrue(self._grabber(self.config).grab())

        installed = self.top / "src" / "build" / "images" / "x86-generic" / "0.9.74.0-a1" / "chromiumos_image.bin"
        self.assertEqual(installed.read_bytes(), b"TEST")
        self.assertEqual(seen_env["user"], "me")
        self.assertNotIn("GSDCURL_USERNAME", os.environ)
        self.assertFalse((self.tmp / "run" / "image").exists())

        dest = self.config.board_dir / "usr" / "local"
        commands = [c[0][0] for c in mock_run.call_args_list]
        self.assertEqual(
            commands,
            [
                ["sudo", "rm", "-rf", str(dest / "autotest")],
                ["sudo", "mv", str(self.tmp / "run" / "image" / "autotest"), str(dest)],
            ],
        )

    @patch("orchestration.PhaseRunner.subprocess.run")
    def test_grab_base_image_without_tests(self, mock_run: MagicMock) -> None:
        config = replace(self.config, mod_image_for_test=False, test="", image_to_vm=False)
        self.session.get.return_value = _response(_image_zip(with_autotest=False))

        self.assertFalse(self._grabber(config).grab())

        installed = self.top / "src" / "build" / "images" / "x86-generic" / "0.9.74.0-a1" / "chromiumos_image.bin"
        self.assertEqual(installed.read_bytes(), b"BASE")
        mock_run.assert_not_called()

    def test_install_autotest_requires_board(self) -> None:
        config = replace(self.config, board="x86-mario")
        with self.assertRaises(BuildTestError) as cm:
            self._grabber(config).install_autotest()
        self.assertIn("run setup_board first", str(cm.exception))

    def test_download_http_error(self) -> None:
        resp = _response(b"")
        resp.raise_for_status.side_effect = requests.HTTPError("401 Unauthorized")
        self.session.get.return_value = resp

        with self.assertRaises(PhaseError) as cm:
            self._grabber(self.config).grab()

        self.assertEqual(cm.exception.phase, "Downloading image")
        self.assertNotIn("GSDCURL_PASSWORD", os.environ)

    def test_corrupt_archive(self) -> None:
        self.session.get.return_value = _response(b"not a zip")
        with self.assertRaises(PhaseError) as cm:
            self._grabber(self.config).grab()
        self.assertEqual(cm.exception.phase, "Unpacking image archive")

    @unittest.skipUnless(hasattr(tarfile, "data_filter"), "tarfile has no extraction filters")
    @patch("orchestration.PhaseRunner.subprocess.run")
    def test_autotest_member_outside_download_dir(self, mock_run: MagicMock) -> None:
        mock_run.return_value = MagicMock(returncode=0)
        self.session.get.return_value = _response(_image_zip(autotest_member="../escaped"))

        with self.assertRaises(PhaseError) as cm:
            self._grabber(self.config).grab()

        self.assertEqual(cm.exception.phase, "Unpacking buildbot autotest cross-compiled binaries")
        self.assertFalse((self.tmp / "run" / "escaped").exists())
