"""
conftest.py

Test configuration for bingdaily tests.

Defines Pytest fixtures for supplying test data to tests across the entire
test suite. Fixtures used within only a single module are defined
directly in that module. Conftest.py should only be used for universal
fixtures.

Test images are generated with Pillow rather than checked in, and the host
(pgrep, /proc, gsettings) is replaced by FakeSystemBridge, an in-memory
SystemBridge.
"""

import io
import os
import shutil
import subprocess
import tempfile
import unittest.mock
from pathlib import Path

import pytest
import requests
from PIL import Image

# bingdaily.config runs init() on import and writes config.json when none exists. Point it
# at a scratch directory before any test module imports it.
TEST_CONFIG_DIR = tempfile.mkdtemp(prefix="bingdaily-tests-")
os.environ["BINGDAILY_CONFIG_DIR"] = TEST_CONFIG_DIR


def pytest_unconfigure(config):
    shutil.rmtree(TEST_CONFIG_DIR, ignore_errors=True)


from bingdaily.session_handler import SystemBridge
from bingdaily.session_handler import SessionNotFoundError
from bingdaily.session_handler import SessionEnvError

BUS_ADDRESS = "unix:path=/run/user/1000/bus"
SESSION_PID = 4242


class FakeSystemBridge(SystemBridge):
    """
    sessions maps uid -> pid, environs maps pid -> environment dict. Every
    apply_background call is recorded in calls as (args, env).
    """

    def __init__(self, sessions=None, environs=None, returncode=0, output=""):
        self.sessions = {} if sessions is None else sessions
        self.environs = {} if environs is None else environs
        self.returncode = returncode
        self.output = output
        self.calls = []

    def find_session_process(self, uid):
        try:
            return self.sessions[uid]
        except KeyError:
            raise SessionNotFoundError(f"no session for uid {uid}")

    def read_process_env_var(self, pid, name):
        try:
            return self.environs[pid][name]
        except KeyError:
            raise SessionEnvError(f"{name} is not set for process {pid}")

    def apply_background(self, args, env):
        self.calls.append((args, env))
        return subprocess.CompletedProcess(
            args=args, returncode=self.returncode, stdout=self.output
        )


@pytest.fixture(scope="session")
def image_bytes() -> bytes:
    """
    Bytes of a small but valid JPEG.
    """

    buffer = io.BytesIO()
    Image.new("RGB", (32, 18), color=(30, 90, 160)).save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture(scope="session")
def test_image(tmp_path_factory, image_bytes) -> Path:
    """
    Returns a Path to a JPEG on disk.
    """

    path = tmp_path_factory.mktemp("test_data") / "test_image.jpg"
    path.write_bytes(image_bytes)
    return path


@pytest.fixture
def cache_dir(tmp_path) -> Path:
    path = tmp_path / ".bingdaily"
    path.mkdir()
    return path


@pytest.fixture
def make_cache(image_bytes):
    """
    Factory filling a directory with count images named img00.jpg, img01.jpg, ...
    mtimes is an optional list of modification times (one per file); by default
    every file is one minute newer than the previous one.
    """

    def inner(directory: Path, count: int, mtimes=None) -> list[Path]:
        paths = []
        for i in range(count):
            path = directory / f"img{i:02d}.jpg"
            path.write_bytes(image_bytes)

            mtime = mtimes[i] if mtimes is not None else 1_600_000_000 + i * 60
            os.utime(path, (mtime, mtime))
            paths.append(path)

        return paths

    return inner


@pytest.fixture
def mock_response(image_bytes):
    """
    A requests.Response stand in answering 200 with image_bytes as the body.
    """

    response = unittest.mock.MagicMock(spec=requests.Response)
    response.status_code = 200
    response.iter_content.return_value = [image_bytes[:100], image_bytes[100:]]
    return response


@pytest.fixture
def fake_bridge() -> FakeSystemBridge:
    """
    A bridge with one desktop session owned by the current user.
    """

    return FakeSystemBridge(
        sessions={os.geteuid(): SESSION_PID},
        environs={SESSION_PID: {"DBUS_SESSION_BUS_ADDRESS": BUS_ADDRESS}},
    )


@pytest.fixture
def no_session_bridge() -> FakeSystemBridge:
    return FakeSystemBridge()
