"""Image encoding helpers shared by providers and the file store.

Images travel through the system as data URIs (``data:image/png;base64,...``).
Providers return them that way, the file store accepts and produces them, and
user uploads are normalized to them on arrival.
"""

import base64
import binascii
import logging
import re

import httpx

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/png"

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[\w-]+=[\w.-]+)*;base64,(?P<data>.*)$", re.DOTALL)

_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)

MIME_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
}


def sniff_mime_type(data: bytes) -> str:
    """Guess an image MIME type from magic bytes, falling back to PNG."""
    for signature, mime_type in _SIGNATURES:
        if data.startswith(signature):
            return mime_type
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return DEFAULT_MIME_TYPE


def bytes_to_data_uri(data: bytes, mime_type: str | None = None) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type or sniff_mime_type(data)};base64,{encoded}"


def base64_to_data_uri(encoded: str, mime_type: str | None = None) -> str:
    """Wrap a bare base64 payload (as most provider APIs return it) in a data URI."""
    if encoded.startswith("data:"):
        return encoded
    if mime_type is None:
        mime_type = sniff_mime_type(base64.b64decode(encoded[:64] + "=" * (-len(encoded[:64]) % 4)))
    return f"data:{mime_type};base64,{encoded}"


def parse_data_uri(value: str) -> tuple[str, bytes]:
    """Decode an image into ``(mime_type, bytes)``.

    Accepts a base64 data URI or a bare base64 string. Raises ``ValueError`` for
    anything that does not decode.
    """
    match = _DATA_URI_RE.match(value.strip())
    payload = match.group("data") if match else value.strip()
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError("Image is not valid base64 data") from e
    if not data:
        raise ValueError("Image data is empty")

    mime_type = match.group("mime") if match and match.group("mime") else sniff_mime_type(data)
    return mime_type, data


def extension_for(mime_type: str) -> str:
    return MIME_EXTENSIONS.get(mime_type, "bin")


async def fetch_url_to_data_uri(
    url: str,
    client: httpx.AsyncClient | None = None,
    timeout: float = 60.0,
) -> str:
    """Download a remote image and return it as a data URI."""
    if url.startswith("data:"):
        return url

    if client is None:
        async with httpx.AsyncClient(timeout=timeout) as own_client:
            return await fetch_url_to_data_uri(url, own_client)

    response = await client.get(url)
    response.raise_for_status()
    mime_type = response.headers.get("content-type", "").split(";")[0].strip()
    if not mime_type.startswith("image/"):
        mime_type = None
    logger.debug(f"Fetched remote image {url} ({len(response.content)} bytes)")
    return bytes_to_data_uri(response.content, mime_type)
