"""Reel Orchestrator CLI"""

import logging

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from .run import run_cmd, estimate_cmd
from .status import status_cmd
from .credits import credits_cmd

# Load .env file at CLI startup
load_dotenv()


@click.group()
@click.version_option(version="0.1.0")
@click.option("--debug", is_flag=True, help="Verbose logging")
def main(debug: bool):
    """Reel Orchestrator - credit-accounted video workflows

    \b
    Quick Start:
      reel credits grant alice --bonus
      reel estimate plan.json
      reel run plan.json --user alice --mock

    \b
    Commands:
      run        Execute a workflow plan
      estimate   Price a plan without running it
      status     Show a run's progress
      credits    Balance, grants and history
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_time=False, show_path=False)],
        force=True,
    )


main.add_command(run_cmd, name="run")
main.add_command(estimate_cmd, name="estimate")
main.add_command(status_cmd, name="status")
main.add_command(credits_cmd, name="credits")


if __name__ == "__main__":
    main()
