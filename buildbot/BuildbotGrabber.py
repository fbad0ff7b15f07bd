"""
Grab a prebuilt image from the buildbot instead of building one.

Credentials are prompted for interactively and exported as GSDCURL_USERNAME /
GSDCURL_PASSWORD only while the archive is being fetched; they are cleared
right after (and again by the failure handler).

The buildbot image.zip holds chromiumos_base_image.bin,
chromiumos_test_image.bin and optionally a cross-compiled autotest bundle
(autotest.tar.bz2 or autotest.tgz).
"""

import os
import posixpath
import shutil
import tarfile
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional, Tuple
from urllib.parse import urlparse

import requests

from orchestration.BuildConfig import LATEST, BuildConfig
from orchestration.PhaseRunner import PhaseRunner
from orchestration.StepPlan import ask
from utils.download_with_progress import download_via_url
from utils.Errors import PhaseError, die
from utils.Logger import Logger
from utils.url_utils import fetch_text, join_uri

CREDENTIAL_ENV_VARS = ("GSDCURL_USERNAME", "GSDCURL_PASSWORD")
ARCHIVE_NAME = "image.zip"
BASE_IMAGE = "chromiumos_base_image.bin"
TEST_IMAGE = "chromiumos_test_image.bin"
INSTALLED_IMAGE = "chromiumos_image.bin"
# Checked in this order
AUTOTEST_BUNDLES = ("autotest.tar.bz2", "autotest.tgz")
# Members may not escape the download dir; tarfile extraction filters need 3.12 or a backport
_SAFE_EXTRACT = {"filter": "data"} if hasattr(tarfile, "data_filter") else {}

Credentials = Tuple[str, str]
CredentialPrompt = Callable[[], Credentials]


def clear_credentials() -> None:
    """Remove exported download credentials from the environment."""
    for name in CREDENTIAL_ENV_VARS:
        os.environ.pop(name, None)


@contextmanager
def exported_credentials(username: str, password: str) -> Iterator[Credentials]:
    """Export credentials for the duration of the block, then clear them."""
    os.environ["GSDCURL_USERNAME"] = username
    os.environ["GSDCURL_PASSWORD"] = password
    try:
        yield (username, password)
    finally:
        clear_credentials()


def prompt_credentials() -> Credentials:
    default_user = os.environ.get("LOGNAME", "")
    username = ask("Username", default=default_user, show_default=bool(default_user))
    password = ask("Password", hide_input=True)
    if not username or not password:
        die("No buildbot credentials given.")
    return (username, password)


def image_version(image_uri: str) -> str:
    """
    Name of the directory holding image.zip, used as the local image dir name.

    Example:
        >>> image_version("http://bot/x86-generic/0.9.74.0-a1/image.zip")
        '0.9.74.0-a1'
    """
    return posixpath.basename(posixpath.dirname(urlparse(image_uri).path))


class BuildbotGrabber:
    """Downloads a buildbot image.zip and installs it into the checkout."""

    def __init__(
        self,
        config: BuildConfig,
        runner: PhaseRunner,
        tmp_dir: Path,
        prompt: Optional[CredentialPrompt] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._config = config
        self._runner = runner
        self._download_dir = Path(tmp_dir) / "image"
        self._prompt = prompt or prompt_credentials
        self._session = session

    def resolve_image_uri(self, auth: Credentials) -> str:
        """Turn --grab_buildbot=LATEST into <buildbot_uri>/<latest>/image.zip."""
        if self._config.grab_buildbot != LATEST:
            return self._config.grab_buildbot
        latest_uri = join_uri(self._config.buildbot_uri, LATEST)
        try:
            latest = fetch_text(latest_uri, auth=auth, session=self._session)
        except requests.RequestException as exc:
            Logger.error(f"Could not fetch {latest_uri}: {exc}")
            latest = ""
        if not latest:
            die("Error finding latest.")
        return join_uri(self._config.buildbot_uri, latest, ARCHIVE_NAME)

    def download(self, image_uri: str, auth: Credentials) -> Path:
        archive = self._download_dir / ARCHIVE_NAME
        with self._runner.phase("Downloading image", detail=f"GET {image_uri} -> {archive}"):
            try:
                _, ok = download_via_url(image_uri, archive, auth=auth, session=self._session)
            except requests.HTTPError as exc:
                Logger.error(f"Download of {image_uri} failed: {exc}")
                ok = False
            if not ok:
                raise PhaseError("Downloading image", None, 1)
        return archive

    def unpack(self, archive: Path) -> None:
        with self._runner.phase("Unpacking image archive", detail=f"unzip {archive}"):
            try:
                with zipfile.ZipFile(archive) as zf:
                    zf.extractall(self._download_dir)
            except zipfile.BadZipFile as exc:
                raise PhaseError("Unpacking image archive", None, 1) from exc

    def install_image(self, image_uri: str) -> bool:
        """
        Move the base (or test) image into the checkout's image directory.

        Returns:
            True if the test-modified image was installed.
        """
        config = self._config
        image_dir = config.top / "src" / "build" / "images" / config.board / image_version(image_uri)
        Logger.info(f"Copying in build image to {image_dir}")
        if image_dir.exists():
            shutil.rmtree(image_dir)
        image_dir.mkdir(parents=True)

        if config.mod_image_for_test:
            source, description = TEST_IMAGE, "Installing buildbot test modified image"
        else:
            source, description = BASE_IMAGE, "Installing buildbot base image"
        with self._runner.phase(description, detail=f"mv {source} {image_dir / INSTALLED_IMAGE}"):
            shutil.move(str(self._download_dir / source), str(image_dir / INSTALLED_IMAGE))
        return config.mod_image_for_test

    def install_autotest(self) -> None:
        """Install the prebuilt cross-compiled autotest bundle into the chroot, if shipped."""
        config = self._config
        if not config.has_board_directory():
            die("To run tests on a buildbot image, run setup_board first.")

        bundle = next(
            (self._download_dir / name for name in AUTOTEST_BUNDLES if (self._download_dir / name).exists()),
            None,
        )
        if bundle is None:
            Logger.warning("Buildbot image carries no autotest bundle; tests will build their own")
            return

        dest = config.board_dir / "usr" / "local"
        self._runner.run_phase("Removing old autotest", ["sudo", "rm", "-rf", dest / "autotest"])
        # Expand as the current user, then move as root to keep local user ownership
        with self._runner.phase(
            "Unpacking buildbot autotest cross-compiled binaries", detail=f"tar xf {bundle}"
        ):
            try:
                with tarfile.open(bundle, "r:*") as tf:
                    tf.extractall(self._download_dir, **_SAFE_EXTRACT)
            except tarfile.TarError as exc:
                raise PhaseError("Unpacking buildbot autotest cross-compiled binaries", None, 1) from exc
        self._runner.run_phase(
            "Installing buildbot autotest cross-compiled binaries",
            ["sudo", "mv", self._download_dir / "autotest", dest],
        )

    def grab(self) -> bool:
        """
        Download and install the buildbot image.

        Returns:
            True if the installed image is already modified for test.
        """
        username, password = self._prompt()
        self._download_dir.mkdir(parents=True, exist_ok=True)
        with exported_credentials(username, password) as auth:
            image_uri = self.resolve_image_uri(auth)
            Logger.info(f"Grabbing image from {image_uri} to {self._download_dir}")
            archive = self.download(image_uri, auth)

        self.unpack(archive)
        test_image_installed = self.install_image(image_uri)
        if self._config.test:
            self.install_autotest()

        with self._runner.phase("Removing downloaded image", detail=f"rm -rf {self._download_dir}"):
            shutil.rmtree(self._download_dir)
        return test_image_installed
