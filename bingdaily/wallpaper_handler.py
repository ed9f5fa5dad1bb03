"""
Gnome Wallpaper Handler

This module updates the Gnome desktop background by dropping into the gsettings CLI, which
writes the picture-uri key of the org.gnome.desktop.background schema. More information on
this schema can be found at:
https://github.com/GNOME/gsettings-desktop-schemas/blob/master/schemas/org.gnome.desktop.background.gschema.xml.in

The image shown is picked at random from everything in the cache, not necessarily today's
download, so the background rotates through the retained history on every run.

gsettings needs the session bus of the running desktop. The address is discovered by the
session handler and injected into the command's environment on top of our own.
"""

import os
import random
from pathlib import Path

from bingdaily.image_handler import list_cache_entries
from bingdaily.session_handler import ApplyError
from bingdaily.session_handler import BUS_ADDRESS_VAR
from bingdaily.session_handler import SystemBridge
from bingdaily.session_handler import discover_session_bus_address
from bingdaily.cli_utils.console import log


def choose_image(cache_dir: Path, rng: random.Random) -> Path:
    """
    Pick one cached image uniformly at random.
    """

    entries = list_cache_entries(cache_dir)
    if not entries:
        raise ApplyError(f"Failed to choose an image: {cache_dir} contains no images.")

    return rng.choice(entries).path


def wallpaper_uri(img_path: Path) -> str:
    return "file://" + str(Path(img_path).expanduser().absolute())


def session_environment(bus_address: str, base: dict = None) -> dict:
    """Copy of base (default: os.environ) with the session bus address set."""

    env = dict(os.environ if base is None else base)
    env[BUS_ADDRESS_VAR] = bus_address
    return env


def update_wallpaper(
    img_path: Path,
    bridge: SystemBridge,
    bus_address: str,
    schema: str = "org.gnome.desktop.background",
    key: str = "picture-uri",
    gsettings: str = "gsettings",
) -> str:
    """
    Point the background at img_path and return the uri that was set. Raise ApplyError with
    the command's output if gsettings exits non-zero.
    """

    uri = wallpaper_uri(img_path)
    log(f"Full filename: {uri}")

    set_desktop_background = [gsettings, "set", schema, key, uri]

    result = bridge.apply_background(
        set_desktop_background, session_environment(bus_address)
    )

    if result.returncode != 0:
        raise ApplyError(
            f"failed to set wallpaper: {gsettings} exited with status {result.returncode}",
            output=result.stdout or "",
        )

    return uri


def apply_wallpaper(
    cache_dir: Path,
    bridge: SystemBridge,
    rng: random.Random,
    schema: str = "org.gnome.desktop.background",
    key: str = "picture-uri",
    gsettings: str = "gsettings",
) -> Path:
    """
    Choose a cached image, find the desktop session and set the background. Returns the chosen
    image. The session is located before gsettings is run, so without a session nothing is
    invoked.
    """

    img_path = choose_image(cache_dir, rng)
    log(f"Chose {img_path.name} from {cache_dir}")

    bus_address = discover_session_bus_address(bridge)

    update_wallpaper(
        img_path,
        bridge,
        bus_address,
        schema=schema,
        key=key,
        gsettings=gsettings,
    )

    return img_path
