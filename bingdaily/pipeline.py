"""
bingdaily pipeline

One run is a strict sequence of stages:

    prepare cache -> fetch metadata -> download image -> evict old images -> set wallpaper

The first failing stage aborts the run. Its exception is wrapped in a PipelineError that
names the stage, so the single failure line in the log says where things went wrong.
"""

import random
from contextlib import contextmanager
from pathlib import Path

from bingdaily import feed_handler
from bingdaily import image_handler
from bingdaily import wallpaper_handler
from bingdaily.config import BingDailyConfig
from bingdaily.session_handler import ShellSystemBridge
from bingdaily.session_handler import SystemBridge
from bingdaily.cli_utils.console import log


class PipelineError(Exception):
    """
    Raised when a stage of the run fails. The original error is available as .cause and as
    __cause__.
    """

    def __init__(self, stage: str, cause: Exception):
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage}: {cause}")


@contextmanager
def stage(name: str):
    """Wrap any error raised inside the block with the stage name."""

    try:
        yield
    except PipelineError:
        raise
    except Exception as error:
        raise PipelineError(name, error) from error


def run(
    config: BingDailyConfig, bridge: SystemBridge = None, rng: random.Random = None
) -> Path:
    """
    Fetch today's image into the cache, trim the cache and set a random cached image as the
    desktop background. Returns the image that was applied.
    """

    if bridge is None:
        bridge = ShellSystemBridge(
            session_process=config.SESSION_PROCESS, timeout=config.COMMAND_TIMEOUT
        )

    if rng is None:
        rng = random.Random()

    log("Starting bingdaily run")

    with stage("prepare cache"):
        log(f"Attempt to create output directory: {config.CACHE_DIR}")
        cache_dir = image_handler.ensure_cache_dir(config.CACHE_DIR)

    with stage("fetch metadata"):
        metadata = feed_handler.fetch_latest_metadata(
            config.FEED_URL, timeout=config.REQUEST_TIMEOUT
        )
        log(f"Obtained image metadata: {metadata.title!r} ({metadata.hash})")

    with stage("download image"):
        image_handler.ensure_cached(
            cache_dir, metadata, config.FEED_ROOT, timeout=config.REQUEST_TIMEOUT
        )

    with stage("evict old images"):
        image_handler.evict_old_entries(cache_dir, retention=config.RETENTION)

    log("Updating background image")

    with stage("set wallpaper"):
        applied = wallpaper_handler.apply_wallpaper(
            cache_dir,
            bridge,
            rng,
            schema=config.SETTINGS_SCHEMA,
            key=config.SETTINGS_KEY,
            gsettings=config.GSETTINGS,
        )

    log(f"Desktop wallpaper updated to {applied}")
    return applied
