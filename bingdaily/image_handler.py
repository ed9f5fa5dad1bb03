"""
Image Handler

Utilities for downloading images into the local cache and keeping that cache bounded.

Cache layout: every image lives directly in the cache directory as <hash>.jpg where <hash> is
the content identifier supplied by the feed. Because the name is derived from the content, an
existing file means the image is already cached and nothing needs to be downloaded.

Downloads are streamed into a sibling "<name>.part" file, validated with Pillow and only then
renamed onto the final name, so a failed download never leaves a file that looks complete.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, UnidentifiedImageError
import requests

from bingdaily.feed_handler import ImageMetadata
from bingdaily.cli_utils.console import log

CHUNK_SIZE = 64 * 1024


class StorageError(Exception):
    """
    Raised when the cache directory cannot be created or an entry cannot be removed.
    """

    pass


class DownloadError(Exception):
    """
    Raised when an image download is unsuccessful.
    """

    pass


class InvalidImageError(DownloadError):
    """
    Raised when a downloaded file is not an image. Wrapper around the PIL
    UnidentifiedImageError.
    """

    pass


@dataclass
class CacheEntry:
    path: Path
    modified: float

    @property
    def name(self) -> str:
        return self.path.name


def ensure_cache_dir(cache_dir: Path) -> Path:
    """Create the cache directory and any missing parents."""

    cache_dir = Path(cache_dir).expanduser()

    try:
        cache_dir.mkdir(mode=0o755, parents=True, exist_ok=True)

    except FileExistsError:
        raise StorageError(f"{cache_dir} exists and is not a directory.")

    except OSError as error:
        raise StorageError(f"failed to make image directory {cache_dir}: {error}")

    return cache_dir


def validate_image(input) -> str:
    """
    Determine whether input is a valid image and return its format. PIL only reads the header
    here, so this is cheap even for large files.
    """

    try:
        with Image.open(input) as image:

            return image.format

    except UnidentifiedImageError:
        raise InvalidImageError(f"Input {str(input)} does not appear to be an image.")

    except FileNotFoundError:
        raise InvalidImageError(f"Input {str(input)} could not be found.")


def download_image(url: str, file_path: Path, timeout: float = None) -> Path:
    """
    Download the image at url to file_path and return file_path.

    Anything other than a 200 response is a DownloadError. The body is streamed to a temporary
    .part file next to the target and renamed into place once it has been written completely and
    recognised as an image. The .part file is removed on any failure.

    Never overwrites an existing file.
    """

    destination_path = Path(file_path).expanduser().absolute()

    if destination_path.is_dir():
        raise DownloadError(f"Destination file {destination_path} is a directory.")

    if destination_path.exists():
        raise DownloadError(f"File already exists at {destination_path}.")

    try:
        r = requests.get(url, stream=True, timeout=timeout)

    except requests.exceptions.RequestException as error:
        raise DownloadError(f"error while downloading image: {error}")

    partial_path = destination_path.with_name(destination_path.name + ".part")

    try:
        if r.status_code != requests.codes.ok:
            raise DownloadError(
                f"Download error: something went wrong trying to access {url} (status code {r.status_code})"
            )

        try:
            with open(partial_path, "wb") as file:
                for chunk in r.iter_content(chunk_size=CHUNK_SIZE):
                    file.write(chunk)

        except requests.exceptions.RequestException as error:
            raise DownloadError(f"failed to read image from {url}: {error}")

        except OSError as error:
            raise DownloadError(f"failed to write image to {partial_path}: {error}")

        validate_image(partial_path)

        try:
            os.replace(partial_path, destination_path)
        except OSError as error:
            raise DownloadError(f"failed to move image into place: {error}")

    except DownloadError:
        partial_path.unlink(missing_ok=True)
        raise

    finally:
        r.close()

    return destination_path


def ensure_cached(
    cache_dir: Path, metadata: ImageMetadata, root: str, timeout: float = None
) -> Path:
    """
    Make sure the image described by metadata is in cache_dir and return its path. If a file
    with the same hash is already there nothing is downloaded and the file is left untouched.
    """

    cache_dir = ensure_cache_dir(cache_dir)
    filename = cache_dir / metadata.filename

    log(f"Checking for existence of file: {filename}")

    if filename.is_file():
        log("Image already exists, no need to download")
        return filename

    url = metadata.image_url(root)
    log(f"Downloading {url}")

    return download_image(url, filename, timeout=timeout)


def list_cache_entries(cache_dir: Path) -> list[CacheEntry]:
    """
    Return the *.jpg files in cache_dir, sorted by name. Anything else in the directory is
    not a cache entry.
    """

    try:
        entries = [
            CacheEntry(path=path, modified=path.stat().st_mtime)
            for path in Path(cache_dir).iterdir()
            if path.suffix == ".jpg" and path.is_file()
        ]

    except OSError as error:
        raise StorageError(f"Failed to read image directory: {error}")

    return sorted(entries, key=lambda entry: entry.name)


def evict_old_entries(cache_dir: Path, retention: int = 10) -> list[Path]:
    """
    Delete the least recently modified entries so that at most retention remain. Returns the
    deleted paths, oldest first. Entries with identical modification times keep their name
    order since the sort is stable.
    """

    entries = list_cache_entries(cache_dir)

    if len(entries) <= retention:
        log("No images to delete")
        return []

    entries.sort(key=lambda entry: entry.modified)

    deleted = []
    for entry in entries[: len(entries) - retention]:
        log(f"Deleting image: {entry.path}")

        try:
            entry.path.unlink()
        except OSError as error:
            raise StorageError(f"Failed to delete image {entry.path}: {error}")

        deleted.append(entry.path)

    return deleted
