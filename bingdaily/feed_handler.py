"""
Bing Image Feed Handler

This module is a wrapper around the public, unauthenticated Bing homepage image archive
(HPImageArchive.aspx). Only one endpoint is used: a GET that returns a JSON description of the
current "image of the day". Downloading the image itself is left to the image handler so this
file stays limited to talking to the feed and decoding its response.

The response looks like:

    {"images": [{"url": "/th?id=OHR.Example_1920x1080.jpg", "title": "...", "hsh": "..."}]}

'url' is relative to the feed root (https://www.bing.com) and 'hsh' is a stable identifier of
the image content which we use as the cache filename.
"""

from dataclasses import dataclass

import requests


class MetadataError(Exception):
    """
    Raised when the image metadata cannot be fetched or decoded.
    """

    pass


@dataclass(frozen=True)
class ImageMetadata:
    """One record of the feed describing the current featured image."""

    url: str
    title: str
    hash: str

    @classmethod
    def from_json(cls, record) -> "ImageMetadata":
        if not isinstance(record, dict):
            raise MetadataError(f"expected an image record, got {record!r}")

        try:
            url = record["url"]
            image_hash = record["hsh"]

        except KeyError as error:
            raise MetadataError(f"image record is missing {error}")

        if not isinstance(url, str) or not url:
            raise MetadataError(f"image record has an invalid url: {url!r}")

        # the hash becomes a filename, so it must not be able to escape the cache directory
        if not isinstance(image_hash, str) or not image_hash or "/" in image_hash:
            raise MetadataError(f"image record has an invalid hash: {image_hash!r}")

        return cls(url=url, title=str(record.get("title", "")), hash=image_hash)

    @property
    def filename(self) -> str:
        return f"{self.hash}.jpg"

    def image_url(self, root: str) -> str:
        return root + self.url


def build_feed_url(root: str, path: str) -> str:
    return root.removesuffix("/") + "/" + path.removeprefix("/")


def fetch_latest_metadata(feed_url: str, timeout: float = None) -> ImageMetadata:
    """
    Request the current featured image from the feed and return the first record.

    Raises MetadataError if the request fails, the server answers with an error status, the
    body is not JSON of the expected shape, or the feed lists no images. There is no retry.
    """

    try:
        r = requests.get(feed_url, timeout=timeout)

    except requests.exceptions.RequestException as error:
        raise MetadataError(f"failed to download metadata: {error}")

    try:
        r.raise_for_status()
    except requests.exceptions.HTTPError:
        raise MetadataError(
            f"something went wrong trying to access {feed_url} (status code {r.status_code})"
        )

    # requests raises its own JSONDecodeError, which is a ValueError subclass
    try:
        body = r.json()
    except ValueError as error:
        raise MetadataError(f"failed to decode JSON response: {error}")

    if not isinstance(body, dict) or not isinstance(body.get("images"), list):
        raise MetadataError("JSON response does not contain an 'images' list")

    images = body["images"]
    if not images:
        raise MetadataError("no images found in JSON response")

    return ImageMetadata.from_json(images[0])
