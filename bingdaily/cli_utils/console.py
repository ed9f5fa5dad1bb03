"""
bingdaily console utilities

This module provides application-wide access to Rich Console objects for writing to stdout
and stderr. bingdaily mostly runs from a scheduler, so progress goes through log(), which
timestamps every line and writes to stderr where cron or the systemd journal collect it.

Every console soft wraps: one message is one line in the log, whatever its length.
"""

from io import StringIO

from rich.console import Console
from rich.theme import Theme

bingdaily_theme = Theme(
    {"warning": "orange_red1", "fail": "bold red", "confirm": ""}
)

console = Console(theme=bingdaily_theme, soft_wrap=True)
error_console = Console(theme=bingdaily_theme, stderr=True, soft_wrap=True)
log_console = Console(theme=bingdaily_theme, stderr=True, soft_wrap=True)


"""
Formatting helpers
"""


def warn(msg: str):
    """
    Format msg and print to stderr.
    """

    error_console.print(f"[bold]warning: [/] {msg}", style="warning")


def confirm_success(msg: str, **kwargs):
    """
    Format confirmation msg and print to stdout. Accept any additional kwargs that console.print from
    rich module exposes.
    """

    console.print(f"{msg}", style="confirm", **kwargs)


def fail(msg: str):
    """
    Format failure msg and print to stderr.
    """

    error_console.print(f"failed. {msg}", style="fail", markup=False)


def log(msg: str):
    """
    Write a timestamped progress line to the log stream (stderr).

    Console.log lays its output out as a table that wraps at the console width (80 columns
    when stderr is not a terminal), so the timestamp is added here and the line is printed
    unwrapped.
    """

    timestamp = log_console.get_datetime().strftime("[%X]")
    log_console.print(timestamp, msg, markup=False, highlight=False)


def silence():
    """
    Swallow progress output for --quiet. Failures still reach error_console.
    """

    console.file = StringIO()
    log_console.file = StringIO()
