"""
Command line arguments and configuration with singleton pattern.

Provides a centralized configuration accessible via direct attribute access.
Supports command line arguments, a JSON config file, and environment
variable defaults.

Config File Format:
    JSON format with simple key-value pairs, keyed by flag name.

    Example build_test.json:
    {
        "board": "x86-generic",
        "jobs": 4,
        "nosync": true
    }

Example usage:
    from utils.Args import Args

    Args.initialize()

    board = Args.board          # From --board, config file, or defaults
    buildbot = Args.buildbot_uri  # From --buildbot_uri, config, or $BUILDBOT_URI

Note: Priority order (highest to lowest):
    1. Command line arguments (from Typer)
    2. Config file values
    3. Environment variables (BUILDBOT_URI, CHROMIUMOS_REPO, CHRONOS_PASSWD)
    4. Default values (from defaults dict)
"""

import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from click.core import ParameterSource


# Environment variable -> config key
ENV_DEFAULTS: Dict[str, str] = {
    "BUILDBOT_URI": "buildbot_uri",
    "CHROMIUMOS_REPO": "repo",
    "CHRONOS_PASSWD": "chronos_passwd",
}


class ArgsMeta(type):
    """Metaclass to provide direct attribute access to config values."""

    def __getattr__(cls, name: str):
        """Provide attribute access to config values."""
        if not cls._initialized:
            raise RuntimeError("Args has not been initialized. Call Args.initialize() first.")

        if name in cls._config:
            return cls._config[name]

        raise AttributeError(f"Config item '{name}' not found")


class Args(metaclass=ArgsMeta):
    """Args class providing direct attribute access to configuration."""

    # Default values (lowest priority)
    _defaults: Dict[str, Any] = {
        "config_file": None,  # Set from --config when provided
        "log_level": "INFO",
        "log_color": False,
        "log_file": None,  # None = sync_build_test.log in cwd
        "board": "",
        "build": True,
        "build_autotest": False,
        "buildbot_uri": "",
        "chrome_gold": True,
        "chrome_root": "",
        "chronos_passwd": "",
        "chroot": "",
        "enable_rootfs_verification": False,
        "force_make_chroot": False,
        "grab_buildbot": "",  # LATEST or a full image.zip URI
        "ignore_remote_test_failures": False,
        "image_to_live": False,
        "image_to_vm": False,
        "image_to_usb": "",
        # jobs > 1 may break the build and need a retry; 1 is best unattended
        "jobs": -1,
        "master": True,
        "minilayout": False,
        "mod_image_for_test": False,
        "official": False,
        "oldchromebinary": True,
        "repo": "",
        "sync": True,
        "test": "",
        "top": "",
        "vm_options": "--no_graphics",
        "withdev": True,
        "usepkg": True,
        "unittest": True,
        "yes": False,
        # Remote access
        "remote": "",
        "private_key": "",  # Empty = testing_rsa inside the checkout
        "ssh_port": 22,
    }

    _config: Dict[str, Any] = {}
    _initialized: bool = False

    @classmethod
    def initialize(cls, config_file: Optional[Path] = None, argv: Optional[List[str]] = None) -> None:
        """
        Initialize configuration from defaults, environment, config file, and command line args.

        Args:
            config_file: Optional path to config file. If None, uses --config from command line.
            argv: Command line without program name. If None, uses sys.argv[1:].
        """
        if cls._initialized:
            return

        cls._config = dict(cls._defaults)

        # Environment defaults sit just above the built-in defaults
        for env_name, key in ENV_DEFAULTS.items():
            value = os.environ.get(env_name)
            if value:
                cls._config[key] = value

        parsed_args = cls._parse_command_line(argv)

        config_path = config_file or parsed_args.get("config")
        if config_path:
            if not isinstance(config_path, Path):
                config_path = Path(config_path)
            if config_path.exists():
                cls._load_config_file(config_path)
                cls._config["config_file"] = str(config_path)
            else:
                # Warn if config file not found, but continue without it
                print(f"Warning: Config file '{config_path}' not found. Using defaults and command line arguments only.",
                      file=sys.stderr)

        cls._apply_command_line_args(parsed_args)

        cls._initialized = True

    @classmethod
    def _parse_command_line(cls, argv: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Parse command line arguments using Typer.

        Only options actually given on the command line are returned, so that
        config file values are not clobbered by Typer defaults.

        Returns:
            Dictionary of parsed command line arguments
        """
        parsed_values: Dict[str, Any] = {}
        d = cls._defaults

        def callback(
            ctx: typer.Context,
            config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to configuration file (JSON format)"),
            log_level: str = typer.Option(d["log_level"], "--log-level", "-l", help="Set the logging level", case_sensitive=False),
            log_color: bool = typer.Option(d["log_color"], "--log-color", help="Color the log severity in terminal (only when stdout is a TTY)."),
            log_file: Optional[Path] = typer.Option(None, "--log-file", help="Append log output to this file (default: ./sync_build_test.log)"),
            board: str = typer.Option(d["board"], "--board", help="Board setting"),
            build: bool = typer.Option(d["build"], "--build/--nobuild", help="Build all code (but not necessarily master image)"),
            build_autotest: bool = typer.Option(d["build_autotest"], "--build_autotest/--nobuild_autotest", help="Build autotest"),
            buildbot_uri: str = typer.Option(d["buildbot_uri"], "--buildbot_uri", help="Base URI to buildbot build location which contains LATEST file (default: $BUILDBOT_URI)"),
            chrome_gold: bool = typer.Option(d["chrome_gold"], "--chrome_gold/--nochrome_gold", help="Build Chrome using gold if it is installed and supported."),
            chrome_root: str = typer.Option(d["chrome_root"], "--chrome_root", help="The root of your chrome browser source. Should contain a 'src' subdir. If set, chrome browser is built from source."),
            chronos_passwd: str = typer.Option(d["chronos_passwd"], "--chronos_passwd", help="Use this as the chronos user passwd (default: $CHRONOS_PASSWD)"),
            chroot: str = typer.Option(d["chroot"], "--chroot", help="Chroot to build/use"),
            enable_rootfs_verification: bool = typer.Option(d["enable_rootfs_verification"], "--enable_rootfs_verification/--noenable_rootfs_verification", help="Enable rootfs verification when building image"),
            force_make_chroot: bool = typer.Option(d["force_make_chroot"], "--force_make_chroot/--noforce_make_chroot", help="Run make_chroot indep of sync"),
            grab_buildbot: str = typer.Option(d["grab_buildbot"], "--grab_buildbot", help="Instead of building, grab this full image.zip URI generated by the buildbot (or LATEST)"),
            ignore_remote_test_failures: bool = typer.Option(d["ignore_remote_test_failures"], "--ignore_remote_test_failures/--noignore_remote_test_failures", help="Ignore any remote tests that failed and don't return failure"),
            image_to_live: bool = typer.Option(d["image_to_live"], "--image_to_live/--noimage_to_live", help="Put the resulting image on live instance (requires --remote)"),
            image_to_vm: bool = typer.Option(d["image_to_vm"], "--image_to_vm/--noimage_to_vm", help="Create a VM image"),
            image_to_usb: str = typer.Option(d["image_to_usb"], "--image_to_usb", help="Treat this device as USB and put the image on it after build"),
            jobs: int = typer.Option(d["jobs"], "--jobs", help="Concurrent build jobs"),
            master: bool = typer.Option(d["master"], "--master/--nomaster", help="Master an image from built code"),
            minilayout: bool = typer.Option(d["minilayout"], "--minilayout/--nominilayout", help="Use minimal code checkout"),
            mod_image_for_test: bool = typer.Option(d["mod_image_for_test"], "--mod_image_for_test/--nomod_image_for_test", help="Modify the image for testing"),
            official: bool = typer.Option(d["official"], "--official/--noofficial", help="Sync/Build/Test official Chrome OS"),
            oldchromebinary: bool = typer.Option(d["oldchromebinary"], "--oldchromebinary/--nooldchromebinary", help="Always use chrome binary package"),
            repo: str = typer.Option(d["repo"], "--repo", help="Manifest repo for chromiumos (default: $CHROMIUMOS_REPO)"),
            sync: bool = typer.Option(d["sync"], "--sync/--nosync", help="Sync the checkout"),
            test: str = typer.Option(d["test"], "--test", help="Test the built image with the given params to run_remote_tests"),
            top: str = typer.Option(d["top"], "--top", help="Root directory of your checkout (defaults to determining from your cwd)"),
            vm_options: str = typer.Option(d["vm_options"], "--vm_options", help="VM options"),
            withdev: bool = typer.Option(d["withdev"], "--withdev/--nowithdev", help="Build development packages"),
            usepkg: bool = typer.Option(d["usepkg"], "--usepkg/--nousepkg", help="Use binary packages"),
            unittest: bool = typer.Option(d["unittest"], "--unittest/--nounittest", help="Run unit tests"),
            yes: bool = typer.Option(d["yes"], "--yes", "-y", help="Reply yes to all prompts"),
            remote: str = typer.Option(d["remote"], "--remote", help="Remote hostname/IP of running Chromium OS instance"),
            private_key: str = typer.Option(d["private_key"], "--private_key", help="Private key of root account on remote host"),
            ssh_port: int = typer.Option(d["ssh_port"], "--ssh_port", help="SSH port of the remote machine"),
        ) -> None:
            """Sync, build, master and test a Chromium OS image with one command."""
            parsed_values["_invoked"] = True
            for name, value in ctx.params.items():
                if ctx.get_parameter_source(name) != ParameterSource.COMMANDLINE:
                    continue
                if name == "log_level":
                    value = value.upper()
                parsed_values[name] = value

        app = typer.Typer(help="Sync your checkout, build a Chromium OS image, and test it all with one command.")
        app.command()(callback)

        args = sys.argv[1:] if argv is None else argv
        try:
            app(args, standalone_mode=False)
        except SystemExit:
            raise  # --help/--version: let SystemExit propagate so the process exits

        # If --help was used, the callback is never invoked; exit cleanly.
        if not parsed_values.pop("_invoked", False):
            sys.exit(0)

        return parsed_values

    @classmethod
    def _load_config_file(cls, config_path: Path) -> None:
        """
        Load configuration from JSON file and merge into config.

        Args:
            config_path: Path to the JSON config file
        """
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config_file_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in config file '{config_path}': {e}")
        except OSError as e:
            raise IOError(f"Error reading config file '{config_path}': {e}")

        if not isinstance(config_file_data, dict):
            raise ValueError(f"Config file '{config_path}' must contain a JSON object")

        for key, value in config_file_data.items():
            # Allow shflags-style negations, e.g. {"nosync": true}
            if key.startswith("no") and key[2:] in cls._defaults and isinstance(cls._defaults[key[2:]], bool):
                cls._config[key[2:]] = not value
            else:
                cls._config[key] = value

    @classmethod
    def _apply_command_line_args(cls, parsed_args: Dict[str, Any]) -> None:
        """
        Apply command line argument values to config, overriding file values and defaults.

        Args:
            parsed_args: Dictionary of parsed command line arguments from Typer
        """
        for key, value in parsed_args.items():
            if key == "config":
                continue
            if value is not None:
                cls._config[key] = value

    @classmethod
    def get_config(cls) -> Dict[str, Any]:
        """
        Get the full configuration dictionary.

        Returns:
            Dictionary containing all configuration values
        """
        if not cls._initialized:
            raise RuntimeError("Args has not been initialized. Call Args.initialize() first.")
        return cls._config.copy()

    @classmethod
    def reset(cls) -> None:
        """Forget all state so initialize() can run again (used by tests)."""
        cls._config = {}
        cls._initialized = False
