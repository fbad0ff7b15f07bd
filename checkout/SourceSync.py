"""
Source checkout management: repo init for new checkouts and repo sync.
"""

from orchestration.BuildConfig import BuildConfig
from orchestration.PhaseRunner import PhaseRunner
from utils.Logger import Logger

PUBLIC_MANIFEST_URI = "http://git.chromium.org/git/manifest"
OFFICIAL_MANIFEST_URI = "ssh://git@gitrw.chromium.org:9222/manifest-internal"
MINILAYOUT_MANIFEST = "minilayout.xml"


class SourceSync:
    """Creates and synchronizes the repo checkout at config.top."""

    def __init__(self, config: BuildConfig, runner: PhaseRunner) -> None:
        self._config = config
        self._runner = runner

    def manifest_uri(self) -> str:
        """Internal manifest for official builds, else --repo or the public one."""
        if self._config.official:
            return OFFICIAL_MANIFEST_URI
        return self._config.repo or PUBLIC_MANIFEST_URI

    def init_checkout(self) -> None:
        """Create config.top and run repo init in it."""
        top = self._config.top
        Logger.info(f"Checking out {top}")
        top.mkdir(parents=True, exist_ok=True)
        command = ["repo", "init", "-u", self.manifest_uri()]
        if self._config.minilayout:
            command += ["-m", MINILAYOUT_MANIFEST]
        self._runner.run_phase("Initializing new checkout", command, cwd=top)

    def sync(self) -> None:
        """repo sync, then point git cl at the checkout's codereview.settings."""
        top = self._config.top
        self._runner.run_phase("Synchronizing client", ["repo", "sync"], cwd=top)
        # git cl must run from inside a git repository
        overlay = top / "src" / "third_party" / "chromiumos-overlay"
        self._runner.run_phase(
            "Configuring code review settings",
            ["git", "cl", "config", f"file://{top / 'codereview.settings'}"],
            cwd=overlay,
        )
