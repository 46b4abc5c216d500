"""Response body decoder pipeline.

Raw response bytes go through three ordered stages before they are parsed
into a document:

1. decompression according to Content-Encoding (gzip, deflate, br);
2. charset correction to UTF-8;
3. an optional caller-registered transform keyed by MIME type.

A document is only ever built from the output of all three stages.
"""

import gzip
import logging
import threading
import zlib
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Set

import brotli
from bs4 import UnicodeDammit

from ..errors import DecodeError

logger = logging.getLogger(__name__)

# fn(body, content_type, url) -> new body
ContentTransform = Callable[[bytes, str, str], bytes]

# Served by some Chinese sites without a meta charset; sniffing misreads it.
LEGACY_GBK_CONTENT_TYPE = "text/html; charset=GBK"


@dataclass(frozen=True)
class DecodedBody:
    """Decoded body bytes and their character encoding, when known."""
    content: bytes
    encoding: Optional[str] = None


def mime_type(content_type: str) -> str:
    """Return the lower-cased type/subtype of a Content-Type value."""
    return content_type.split(";", 1)[0].strip().lower()


def declared_charset(content_type: str) -> Optional[str]:
    """Return the charset parameter of a Content-Type value, if any."""
    for param in content_type.split(";")[1:]:
        name, _, value = param.partition("=")
        if name.strip().lower() == "charset":
            value = value.strip().strip('"\'')
            return value or None
    return None


def decompress(content: bytes, content_encoding: str) -> bytes:
    """Undo Content-Encoding. Unknown encodings pass through unchanged.

    Raises:
        DecodeError: the compressed stream is malformed.
    """
    encoding = content_encoding.strip().lower()
    if not content or encoding in ("", "identity"):
        return content

    try:
        if encoding == "gzip":
            return gzip.decompress(content)
        if encoding == "deflate":
            try:
                return zlib.decompress(content)
            except zlib.error:
                # Raw DEFLATE without the zlib header.
                return zlib.decompress(content, -zlib.MAX_WBITS)
        if encoding == "br":
            return brotli.decompress(content)
    except (OSError, EOFError, zlib.error, brotli.error) as e:
        raise DecodeError(f"Failed to decode {encoding} body: {e}") from e

    return content


class DecoderPipeline:
    """
    Decompression, charset correction and MIME-keyed transforms.

    Transforms and charset exemptions are registered per MIME type
    (type/subtype, parameters ignored).
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._transforms: Dict[str, ContentTransform] = {}
        self._exempt: Set[str] = set()

    def set_transform(self, mime: str, transform: ContentTransform) -> None:
        """Register the transform applied to bodies of the given MIME type."""
        with self._lock:
            self._transforms[mime_type(mime)] = transform

    def clear_transform(self, mime: str) -> None:
        with self._lock:
            self._transforms.pop(mime_type(mime), None)

    def has_transform(self, mime: str) -> bool:
        with self._lock:
            return mime_type(mime) in self._transforms

    def set_exempt(self, mime: str) -> None:
        """Keep bodies of the given MIME type byte-for-byte (no charset correction)."""
        with self._lock:
            self._exempt.add(mime_type(mime))

    def clear_exempt(self, mime: str) -> None:
        with self._lock:
            self._exempt.discard(mime_type(mime))

    def is_exempt(self, mime: str) -> bool:
        with self._lock:
            return mime_type(mime) in self._exempt

    def fix_charset(self, content: bytes, content_type: str) -> DecodedBody:
        """Transcode a body to UTF-8.

        The exact legacy GBK content type is decoded with the GBK codec;
        exempt MIME types are left alone; everything else is sniffed with
        the declared charset as first guess. Any failure keeps raw bytes.
        """
        if content_type == LEGACY_GBK_CONTENT_TYPE:
            try:
                return DecodedBody(content.decode("gbk").encode("utf-8"), "utf-8")
            except UnicodeDecodeError:
                logger.debug("GBK body did not decode, keeping raw bytes")
                return DecodedBody(content)

        if self.is_exempt(content_type):
            return DecodedBody(content)

        if not content:
            return DecodedBody(content)

        charset = declared_charset(content_type)
        known = [charset] if charset else []
        try:
            dammit = UnicodeDammit(content, known_definite_encodings=known, is_html=True)
        except (LookupError, UnicodeError) as e:
            logger.debug(f"Charset sniffing failed: {e}")
            return DecodedBody(content)

        if dammit.unicode_markup is None:
            return DecodedBody(content)

        try:
            return DecodedBody(dammit.unicode_markup.encode("utf-8"), "utf-8")
        except UnicodeEncodeError:
            return DecodedBody(content)

    def transform(self, content: bytes, content_type: str, url: str) -> bytes:
        """Apply the transform registered for the body's MIME type, if any."""
        with self._lock:
            fn = self._transforms.get(mime_type(content_type))
        if fn is None:
            return content
        return fn(content, content_type, url)

    def decode(self, content: bytes, content_encoding: str, content_type: str,
               url: str) -> DecodedBody:
        """Run every stage of the pipeline.

        Raises:
            DecodeError: decompression failed.
        """
        raw = decompress(content, content_encoding)
        decoded = self.fix_charset(raw, content_type)
        transformed = self.transform(decoded.content, content_type, url)
        if transformed is decoded.content:
            return decoded
        return DecodedBody(transformed, decoded.encoding)
