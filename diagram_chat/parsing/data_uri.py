"""Data URI encoding for message attachments.

Attachments travel inside the message JSON as base64 data URIs, so the
server never needs a separate upload step.
"""

import base64
import binascii
import re

_DATA_URI_RE = re.compile(
    r"^data:(?P<media_type>[\w.+-]+/[\w.+-]+)(?P<params>(?:;[\w.+-]+=[^;,]*)*);base64,(?P<data>.*)$",
    re.DOTALL,
)


class DataURIError(ValueError):
    """Raised when a string is not a base64 data URI."""

    pass


def is_data_uri(url: str) -> bool:
    return url.startswith("data:")


def encode_data_uri(data: bytes, media_type: str) -> str:
    """Encode raw bytes as a base64 data URI.

    Args:
        data: File content.
        media_type: Media type in type/subtype form.

    Returns:
        A string of the form ``data:<media_type>;base64,<payload>``.
    """
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{media_type};base64,{payload}"


def decode_data_uri(url: str) -> tuple[str, bytes]:
    """Decode a base64 data URI.

    Args:
        url: The data URI.

    Returns:
        Tuple of (media_type, content bytes).

    Raises:
        DataURIError: If the URI is malformed or the payload is not base64.
    """
    match = _DATA_URI_RE.match(url)
    if match is None:
        raise DataURIError("Not a base64 data URI")

    try:
        data = base64.b64decode(match.group("data"), validate=True)
    except binascii.Error as e:
        raise DataURIError(f"Invalid base64 payload: {e}") from e

    return match.group("media_type").lower(), data
