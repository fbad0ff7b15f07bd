"""
Plan description and confirmation.

describe_steps() lists, in pipeline order, what a run with the given
configuration will do. It is used both to ask for confirmation before any
state-changing phase runs and to summarize a successful run.
"""

from typing import Any, Callable, List, Optional

import click
import typer

from orchestration.BuildConfig import LATEST, BuildConfig
from utils.Errors import BuildTestError, die
from utils.Logger import Logger

Prompt = Callable[[str], str]


def describe_steps(config: BuildConfig, has_board_dir: Optional[bool] = None) -> List[str]:
    """
    Return the description lines of the steps config will run, in order.

    Args:
        config: Validated configuration.
        has_board_dir: Whether the board is already set up; looked up in the
            chroot when None.
    """
    if has_board_dir is None:
        has_board_dir = config.has_board_directory()

    steps: List[str] = []
    if config.sync:
        is_official = " (official)" if config.official else ""
        steps.append(f" * Sync client (repo sync){is_official} (disable using --nosync)")
    if config.force_make_chroot:
        steps.append(f" * Rebuild chroot (make_chroot) in {config.chroot}")
    set_passwd = False
    if not has_board_dir:
        steps.append(f" * Setup new board {config.board} (setup_board)")
    if config.build:
        extra_build = ""
        if config.withdev:
            extra_build = " with dev packages"
        if config.oldchromebinary:
            extra_build = " (but pull Chrome binary)"
        steps.append(f" * Build packages{extra_build} (build_packages) (disable using --nobuild)")
        set_passwd = True
        if config.build_autotest:
            steps.append(" * Cross-build autotest client tests (build_autotest)")
        if config.chrome_root:
            steps.append(
                f" * After Chrome builds in build_packages, building Chrome from sources at {config.chrome_root}"
            )
    if config.master:
        steps.append(" * Master image (build_image) (disable using --nomaster)")
    if config.grab_buildbot:
        if config.grab_buildbot == LATEST:
            steps.append(f" * Grab latest buildbot image under {config.buildbot_uri}")
        else:
            steps.append(f" * Grab buildbot image zip at URI {config.grab_buildbot}")
    if config.unittest:
        steps.append(" * Run cros_run_unit_tests to run all unit tests (disable using --nounittest)")
    if config.mod_image_for_test:
        if config.grab_buildbot:
            steps.append(" * Use the prebuilt image modded for test (rootfs_test.image)")
            steps.append(" * Install prebuilt cross-compiled autotests in chroot")
        else:
            steps.append(" * Make image able to run tests (mod_image_for_test)")
        set_passwd = True
    else:
        steps.append(" * Not modifying image for test (enable using --mod_image_for_test)")
    if set_passwd:
        if config.chronos_passwd:
            steps.append(f" * Set chronos password to {config.chronos_passwd}")
        else:
            steps.append(" * Set chronos password randomly")
    if config.image_to_usb:
        steps.append(f" * Write the image to USB device {config.image_to_usb}")
    if config.image_to_live:
        steps.append(f" * Reimage live test Chromium OS instance at {config.remote}")
    if config.image_to_vm:
        steps.append(" * Copy off a separate VM image")
    if config.test:
        if config.remote:
            steps.append(f" * Run (and build) tests ({config.test}) on machine at {config.remote}")
        else:
            steps.append(f" * Start a VM locally and run (and build) tests ({config.test}) on it")
    else:
        steps.append(" * Not running any autotests (pass --test=suite_Smoke for instance to change)")
    return steps


def log_steps(config: BuildConfig, has_board_dir: Optional[bool] = None) -> None:
    for line in describe_steps(config, has_board_dir):
        Logger.info(line)


def ask(question: str, **prompt_kwargs: Any) -> str:
    """
    typer.prompt, reading end of input as an empty answer.

    Raises:
        KeyboardInterrupt: If the user hit Ctrl+C at the prompt.
    """
    try:
        return typer.prompt(question, **prompt_kwargs)
    except click.exceptions.Abort as exc:
        # Click wraps both EOFError and KeyboardInterrupt in Abort
        if isinstance(exc.__context__, EOFError):
            return ""
        raise KeyboardInterrupt from exc


def _default_prompt(question: str) -> str:
    return ask(question, default="", show_default=False)


def prompt_to_continue(yes: bool, prompt: Optional[Prompt] = None) -> None:
    """
    Ask the user to confirm; anything but an answer starting with y aborts.

    Raises:
        BuildTestError: If the user does not confirm.
    """
    if yes:
        Logger.info("Continuing without prompting since you passed --yes")
        return
    answer = (prompt or _default_prompt)("Are you sure (y/N)?")
    typer.echo("(Pass -y to skip this prompt)")
    if (answer or "")[:1].lower() != "y":
        die("Ok, better safe than sorry.", BuildTestError)


def interactive(config: BuildConfig, prompt: Optional[Prompt] = None) -> None:
    """Log the planned steps and get the user's permission to take them."""
    Logger.info("")
    Logger.info(f"Planning these steps on {config.top} for {config.board}:")
    log_steps(config)
    prompt_to_continue(config.yes, prompt)
