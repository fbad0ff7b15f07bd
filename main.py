"""
sync_build_test - Main entry point.

Sync your checkout, build a Chromium OS image, and test it all with one
command. Steps can be switched off with the --noX flags; the plan is shown
and confirmed before anything runs.
"""

import sys

import click

from utils.Args import Args
from utils.Logger import Logger


def setup() -> None:
    """
    Initialize the application: configuration and logging.

    Note: Args must be initialized before Logger since Logger configuration
    comes from Args. Args uses print() for warnings, not Logger, so this order is safe.
    """
    # Initialize configuration (handles command line args and config file)
    Args.initialize()

    log_level = Args.log_level
    Logger.initialize(log_level=log_level, log_file=Args.log_file, log_color=Args.log_color)

    Logger.debug(f"Python version: {sys.version}")
    if Args.config_file:
        Logger.info(f"Using config file: {Args.config_file}")
    Logger.debug(f"Log level: {log_level}")


def main() -> int:
    """Run the pipeline and return the process exit status."""
    setup()

    from orchestration.Orchestrator import Orchestrator

    return Orchestrator.run_from_args()


def cli() -> None:
    try:
        status = main()
    except SystemExit:
        raise  # Preserve exit code from --help etc.
    except click.ClickException as e:
        print(e.format_message(), file=sys.stderr)
        sys.exit(e.exit_code)
    except (ValueError, OSError) as e:
        # Unreadable or malformed config file
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(status)


if __name__ == "__main__":
    cli()
