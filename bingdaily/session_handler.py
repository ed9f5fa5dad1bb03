"""
Desktop Session Discovery

gsettings talks to the desktop's settings store over the session D-Bus. When bingdaily runs from
cron or a systemd timer it inherits none of the desktop session's environment, so the address of
that bus (DBUS_SESSION_BUS_ADDRESS) has to be recovered from a process that does belong to the
session:

    1) find the gnome-session process owned by the invoking user (pgrep --euid <uid>)
    2) read DBUS_SESSION_BUS_ADDRESS from that process's environment block (/proc/<pid>/environ)

Everything that touches the host goes through a SystemBridge so the rest of the program can be
exercised with an in-memory fake.
"""

import os
import subprocess
from pathlib import Path

from bingdaily.cli_utils.console import log

BUS_ADDRESS_VAR = "DBUS_SESSION_BUS_ADDRESS"


class SessionNotFoundError(Exception):
    """
    Raised when no desktop session process is running for the current user.
    """

    pass


class SessionEnvError(Exception):
    """
    Raised when the session bus address cannot be read from the session process.
    """

    pass


class ApplyError(Exception):
    """
    Raised when an attempt to update the desktop background fails. Carries the combined
    output of the settings command, if there was any.
    """

    def __init__(self, msg: str, output: str = ""):
        self.output = output
        if output:
            msg = f"{msg}\n{output.rstrip()}"
        super().__init__(msg)


class SystemBridge:
    """
    The narrow set of host operations bingdaily needs. Subclasses implement all three.
    """

    def find_session_process(self, uid: int) -> int:
        raise NotImplementedError

    def read_process_env_var(self, pid: int, name: str) -> str:
        raise NotImplementedError

    def apply_background(self, args: list[str], env: dict) -> subprocess.CompletedProcess:
        raise NotImplementedError


class ShellSystemBridge(SystemBridge):
    """
    Production bridge: shells out to pgrep, reads /proc and runs the settings command.
    """

    def __init__(
        self,
        session_process: str = "gnome-session",
        proc_root: Path = Path("/proc"),
        timeout: float = None,
    ):
        self.session_process = session_process
        self.proc_root = Path(proc_root)
        self.timeout = timeout

    def find_session_process(self, uid: int) -> int:
        """
        Return the pid of the first session process owned by uid. pgrep exits with 1 when
        nothing matches.
        """

        try:
            result = subprocess.run(
                ["pgrep", "--euid", str(uid), self.session_process],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout,
            )

        except (OSError, subprocess.SubprocessError) as error:
            raise SessionNotFoundError(f"could not run pgrep: {error}")

        if result.returncode != 0:
            raise SessionNotFoundError(
                f"no {self.session_process} process found for uid {uid}"
                f" (pgrep exit status {result.returncode})"
            )

        pids = result.stdout.split()
        if not pids:
            raise SessionNotFoundError(
                f"no {self.session_process} process found for uid {uid}"
            )

        try:
            return int(pids[0])
        except ValueError:
            raise SessionNotFoundError(f"unexpected pgrep output: {result.stdout!r}")

    def read_process_env_var(self, pid: int, name: str) -> str:
        """
        Read name from the NUL separated KEY=VALUE block in /proc/<pid>/environ.
        """

        environ = self.proc_root / str(pid) / "environ"

        try:
            block = environ.read_bytes()
        except OSError as error:
            raise SessionEnvError(f"could not read {environ}: {error}")

        prefix = name.encode() + b"="
        for item in block.split(b"\0"):
            if item.startswith(prefix):
                return item[len(prefix) :].decode(errors="replace")

        raise SessionEnvError(f"{name} is not set for process {pid}")

    def apply_background(self, args: list[str], env: dict) -> subprocess.CompletedProcess:
        """
        Run the settings command with stdout and stderr combined. Non-zero exit is left to the
        caller; failing to start or timing out is an ApplyError.
        """

        try:
            return subprocess.run(
                args,
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout,
            )

        except subprocess.TimeoutExpired as error:
            raise ApplyError(f"{args[0]} timed out after {error.timeout}s")

        except (OSError, subprocess.SubprocessError) as error:
            raise ApplyError(f"could not run {args[0]}: {error}")


def current_uid() -> int:
    return os.geteuid()


def discover_session_bus_address(bridge: SystemBridge, uid: int = None) -> str:
    """
    Find the running desktop session of uid (default: the invoking user) and return its
    session bus address.
    """

    if uid is None:
        uid = current_uid()

    pid = bridge.find_session_process(uid)
    log(f"Found desktop session process {pid} for uid {uid}")

    address = bridge.read_process_env_var(pid, BUS_ADDRESS_VAR)
    if not address:
        raise SessionEnvError(f"{BUS_ADDRESS_VAR} is empty for process {pid}")

    log(f"Session bus address: {address}")
    return address
