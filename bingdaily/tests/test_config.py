"""
Test config.py

Every test points BINGDAILY_CONFIG_DIR at tmp_path so the user's real configuration is never
read or written.
"""

import json
import os
from pathlib import Path

import pytest

# following entities are tested in this module:
from bingdaily.config import BingDailyConfig
from bingdaily.config import BingDailyConfigError
from bingdaily.config import config_source
from bingdaily.config import init
from bingdaily.config import load_config


@pytest.fixture
def config_dir(tmp_path, monkeypatch) -> Path:
    directory = tmp_path / "config"
    monkeypatch.setenv("BINGDAILY_CONFIG_DIR", str(directory))
    return directory


def test_defaults():

    config = BingDailyConfig()

    assert config.CACHE_DIR == Path("~/.bingdaily").expanduser()
    assert config.RETENTION == 10
    assert (
        config.FEED_URL
        == "https://www.bing.com/HPImageArchive.aspx?format=js&idx=0&n=1"
    )
    assert config.SETTINGS_SCHEMA == "org.gnome.desktop.background"
    assert config.SETTINGS_KEY == "picture-uri"


def test_config_source_from_environment(config_dir):

    assert config_source() == config_dir / "config.json"


def test_generate_and_load_config(config_dir, tmp_path):

    config = BingDailyConfig(
        BINGDAILY_CONFIG_DIR=config_dir, CACHE_DIR=tmp_path / "cache", RETENTION=5
    )

    dest_file = config.generate_config_json()

    assert dest_file == config_dir / "config.json"
    assert json.loads(dest_file.read_text())["CACHE_DIR"] == str(tmp_path / "cache")
    assert load_config() == config


def test_load_config_coerces_paths(config_dir):

    config_dir.mkdir()
    (config_dir / "config.json").write_text(json.dumps({"CACHE_DIR": "/var/tmp/bing"}))

    config = load_config()

    assert config.CACHE_DIR == Path("/var/tmp/bing")
    assert isinstance(config.CACHE_DIR, Path)


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        "[1, 2, 3]",
        json.dumps({"NOT_A_KEY": 1}),
        json.dumps({"RETENTION": 0}),
        json.dumps({"RETENTION": "ten"}),
    ],
)
def test_load_config_failure(config_dir, content):

    config_dir.mkdir()
    (config_dir / "config.json").write_text(content)

    with pytest.raises(BingDailyConfigError):
        load_config()


def test_load_config_missing(config_dir):

    with pytest.raises(BingDailyConfigError):
        load_config()


def test_init_writes_defaults(config_dir):

    config = init()

    assert (config_dir / "config.json").exists()
    assert config.BINGDAILY_CONFIG_DIR == config_dir
    assert config.RETENTION == 10


def test_init_keeps_broken_config(config_dir):
    """
    A broken config file falls back to defaults without being overwritten.
    """

    config_dir.mkdir()
    (config_dir / "config.json").write_text("{not json")

    config = init()

    assert config.RETENTION == 10
    assert (config_dir / "config.json").read_text() == "{not json"


def test_init_unwritable_config_dir(tmp_path, monkeypatch):

    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory")
    monkeypatch.setenv("BINGDAILY_CONFIG_DIR", str(blocker / "config"))

    config = init()

    assert config.RETENTION == 10


def test_import_time_config_stays_out_of_home():
    """
    The config loaded on import follows BINGDAILY_CONFIG_DIR, which conftest.py points at a
    scratch directory, so collecting the suite never writes under the user's home.
    """

    from bingdaily.config import config

    config_dir = Path(os.environ["BINGDAILY_CONFIG_DIR"])

    assert config.BINGDAILY_CONFIG_DIR == config_dir
    assert config_dir != Path("~/.config/bingdaily").expanduser()
    assert (config_dir / "config.json").exists()
