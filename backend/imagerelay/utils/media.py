"""
MIME type and filename helpers shared by the upload server and the client.

All functions are pure and always return a value, except the data URL parser
which raises InvalidDataURL on malformed input.
"""
import base64
import binascii
import random
import re
import time
from typing import Tuple
from urllib.parse import urlsplit

DEFAULT_MIME_TYPE = "image/jpeg"

# Mapping of image extensions to canonical MIME types
EXTENSION_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "bmp": "image/bmp",
    "heic": "image/heic",
    "heif": "image/heif",
}

DATA_URL_PATTERN = re.compile(r"^data:([A-Za-z\-+/]+);base64,(.+)$")


class InvalidDataURL(ValueError):
    """Raised when a string is not a decodable base64 data URL."""


def _strip_uri(path_or_uri: str) -> str:
    """Drop query string and fragment from URIs, leave plain paths alone."""
    if "://" in path_or_uri:
        return urlsplit(path_or_uri).path
    return path_or_uri.split("?", 1)[0].split("#", 1)[0]


def mime_type_of(path_or_uri: str) -> str:
    """
    Get MIME type from a file path, URI or bare file name.

    Unknown or missing extensions fall back to image/jpeg.
    """
    if not path_or_uri:
        return DEFAULT_MIME_TYPE

    name = _strip_uri(path_or_uri).rsplit("/", 1)[-1]
    if "." not in name:
        return DEFAULT_MIME_TYPE

    extension = name.rsplit(".", 1)[-1].lower()
    return EXTENSION_MIME_TYPES.get(extension, DEFAULT_MIME_TYPE)


def generate_random_filename(prefix: str = "image", extension: str = "jpg") -> str:
    """
    Generate a random filename with extension.

    Pattern: {prefix}_{unixMillis}_{0-9999}.{extension}
    """
    timestamp = int(time.time() * 1000)
    suffix = random.randint(0, 9999)
    return f"{prefix}_{timestamp}_{suffix}.{extension}"


def safe_filename(path_or_uri: str, prefix: str = "image", extension: str = "jpg") -> str:
    """
    Extract the trailing path segment of a file reference.

    If there is no segment, or it has no dot-extension, a random name is
    generated instead.
    """
    if not path_or_uri:
        return generate_random_filename(prefix, extension)

    filename = _strip_uri(path_or_uri).rsplit("/", 1)[-1]
    if not filename or "." not in filename:
        return generate_random_filename(prefix, extension)

    return filename


def extension_for_mime(mime_type: str) -> str:
    """Subtype part of a MIME type, used as file extension (image/png -> png)."""
    return mime_type.split("/", 1)[-1]


def build_data_url(mime_type: str, base64_data: str) -> str:
    return f"data:{mime_type};base64,{base64_data}"


def parse_data_url(data_url: str) -> Tuple[str, bytes]:
    """
    Split a data URL into its MIME type and decoded bytes.

    Raises:
        InvalidDataURL: If the string does not match the data URL format
            or the payload is not valid base64
    """
    match = DATA_URL_PATTERN.match(data_url or "")
    if not match:
        raise InvalidDataURL("Invalid base64 image format")

    mime_type, payload = match.group(1), match.group(2)
    try:
        content = base64.b64decode(payload)
    except (binascii.Error, ValueError) as e:
        raise InvalidDataURL(f"Invalid base64 payload: {e}") from e

    return mime_type, content
