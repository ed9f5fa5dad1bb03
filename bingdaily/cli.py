"""
bingdaily

Set the Gnome desktop background from the Bing image of the day.

This module defines the entry point to the bingdaily CLI. A bare invocation runs the whole
pipeline once and exits, which is what a scheduler wants, e.g. in a crontab:

    0 9 * * * bingdaily >> ~/.bingdaily.log 2>&1

Exit status is 0 on success and 1 on any failure. The failure is reported as a single line
on stderr naming the stage that failed.
"""

import click

from bingdaily.config import config
from bingdaily.pipeline import run
from bingdaily.cli_utils.decorators import catch_errors
from bingdaily.cli_utils.console import confirm_success
from bingdaily.cli_utils.console import silence


@click.command()
@click.option(
    "--verbose",
    "verbosity",
    flag_value="verbose",
    default=True,
    help="Log every stage of the run to stderr.",
)
@click.option(
    "--quiet",
    "verbosity",
    flag_value="quiet",
    help="Only report failures.",
)
@click.version_option(package_name="bingdaily")
@catch_errors
def cli(verbosity):
    """
    Download the Bing image of the day into ~/.bingdaily and set a random cached image
    as the desktop background.
    """

    if verbosity == "quiet":
        silence()

    applied = run(config)
    confirm_success(f"Desktop background set to {applied}")


def main():
    cli()


if __name__ == "__main__":
    main()
