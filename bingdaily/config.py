"""
bingdaily Configuration Management

This file handles utilities related to generating and loading variables from a configuration file.
BingDailyConfig is loaded once at import time so every stage of the pipeline reads the same
values. Raise a BingDailyConfigError for any issues that arise in processing or retrieving
these configuration variables.

The configuration file is "config.json" and is saved at ~/.config/bingdaily/config.json. The
directory can be overridden with the BINGDAILY_CONFIG_DIR environment variable, which is handy
for cron jobs that run with a minimal environment.
"""

import json
import os
from dataclasses import dataclass
from dataclasses import asdict
from dataclasses import fields
from pathlib import Path, PurePath

from bingdaily.feed_handler import build_feed_url
from bingdaily.cli_utils.console import warn


class BingDailyConfigError(Exception):
    """Raise when an issue occurs with handling bingdaily configuration."""

    pass


class PathEncoder(json.JSONEncoder):
    """
    custom encoder adds support for serializing pathlib objects as strings
    """

    def default(self, o):
        if isinstance(o, PurePath):
            return str(o)

        else:
            return json.JSONEncoder.default(self, o)


@dataclass
class BingDailyConfig:
    """
    Configuration variables for bingdaily. Instantiated from keyword arguments of a deserialized
    json object, so the json object should stay flat.

    CACHE_DIR holds downloaded images named <hash>.jpg. At most RETENTION of them are kept.
    """

    BINGDAILY_CONFIG_DIR: Path = Path("~/.config/bingdaily").expanduser()
    CACHE_DIR: Path = Path("~/.bingdaily").expanduser()
    RETENTION: int = 10

    FEED_ROOT: str = "https://www.bing.com"
    FEED_PATH: str = "/HPImageArchive.aspx?format=js&idx=0&n=1"

    # seconds; None waits forever
    REQUEST_TIMEOUT: float = 30
    COMMAND_TIMEOUT: float = 60

    SESSION_PROCESS: str = "gnome-session"
    GSETTINGS: str = "gsettings"
    SETTINGS_SCHEMA: str = "org.gnome.desktop.background"
    SETTINGS_KEY: str = "picture-uri"

    def __post_init__(self):
        """
        Handle the case where a new BingDailyConfig is created from JSON, which cannot
        deserialize a str into a Path.
        """

        self.BINGDAILY_CONFIG_DIR = Path(self.BINGDAILY_CONFIG_DIR).expanduser()
        self.CACHE_DIR = Path(self.CACHE_DIR).expanduser()

        if int(self.RETENTION) < 1:
            raise BingDailyConfigError(
                f"RETENTION must keep at least one image, got {self.RETENTION}"
            )
        self.RETENTION = int(self.RETENTION)

    @property
    def FEED_URL(self) -> str:
        return build_feed_url(self.FEED_ROOT, self.FEED_PATH)

    def generate_config_json(self) -> Path:
        """
        Write the BingDailyConfig to file, serializing to JSON. Returns filepath of written
        config.json file located at BINGDAILY_CONFIG_DIR.

        Overwrites any existing config file.
        """

        try:
            to_json = json.dumps(
                asdict(self), sort_keys=True, indent=4, cls=PathEncoder
            )

        except TypeError as error:
            raise BingDailyConfigError(
                f"There was an error trying to serialize config data to JSON: {error}"
            )

        try:
            self.BINGDAILY_CONFIG_DIR.mkdir(parents=True, exist_ok=True)

            dest_file = self.BINGDAILY_CONFIG_DIR / "config.json"
            with open(dest_file, "w") as file:

                file.write(to_json)

        except OSError as error:
            raise BingDailyConfigError(
                f"There was an error saving the configuration file: {error}."
            )

        return dest_file


def config_source() -> Path:
    """Location of config.json, honouring BINGDAILY_CONFIG_DIR."""

    try:
        return Path(os.environ["BINGDAILY_CONFIG_DIR"]).expanduser() / "config.json"

    except KeyError:
        return Path("~/.config/bingdaily/config.json").expanduser()


def load_config() -> BingDailyConfig:
    """
    Load config.json from BINGDAILY_CONFIG_DIR or ~/.config/bingdaily and instantiate variables
    as a BingDailyConfig dataclass. Raise BingDailyConfigError if a config file can't be found
    or does not describe a valid configuration.
    """

    config_src = config_source()

    try:
        with config_src.open("r") as file:

            from_json = json.loads(file.read())

    except json.JSONDecodeError as error:
        raise BingDailyConfigError(f"There was an issue reading the config: {error}")

    except OSError as error:
        raise BingDailyConfigError(f"There was an issue opening the config: {error}")

    if not isinstance(from_json, dict):
        raise BingDailyConfigError(
            f"Config at {config_src} must be a JSON object, got {type(from_json).__name__}"
        )

    known = {field.name for field in fields(BingDailyConfig)}
    unknown = set(from_json) - known
    if unknown:
        raise BingDailyConfigError(
            f"Unknown config keys in {config_src}: {', '.join(sorted(unknown))}"
        )

    try:
        return BingDailyConfig(**from_json)

    except (TypeError, ValueError) as error:
        raise BingDailyConfigError(f"Invalid value in {config_src}: {error}")


def init() -> BingDailyConfig:
    """initialize bingdaily configuration"""

    config_src = config_source()

    if config_src.exists():
        try:
            return load_config()

        except BingDailyConfigError as error:
            # leave the user's file alone so it can be fixed by hand
            warn(f"ignoring config file, using defaults: {error}")
            return BingDailyConfig(BINGDAILY_CONFIG_DIR=config_src.parent)

    config = BingDailyConfig(BINGDAILY_CONFIG_DIR=config_src.parent)

    # a missing config is not fatal; the job must still run with a read-only home
    try:
        config.generate_config_json()

    except BingDailyConfigError as error:
        warn(f"using default configuration: {error}")

    return config


config = init()
