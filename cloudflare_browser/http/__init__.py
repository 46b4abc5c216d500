"""HTTP layer for browsing sessions.

Request/response value types, the transports that carry them and the
decoder pipeline that turns raw bodies into parseable bytes. The curl_cffi
transport is imported lazily by create_transport().
"""

from .messages import (
    Request,
    Response,
)

from .transport import (
    Transport,
    AiohttpTransport,
    create_transport,
)

from .decoder import (
    DecoderPipeline,
    DecodedBody,
    ContentTransform,
    LEGACY_GBK_CONTENT_TYPE,
    decompress,
    declared_charset,
    mime_type,
)

__all__ = [
    "Request",
    "Response",
    "Transport",
    "AiohttpTransport",
    "create_transport",
    "DecoderPipeline",
    "DecodedBody",
    "ContentTransform",
    "LEGACY_GBK_CONTENT_TYPE",
    "decompress",
    "declared_charset",
    "mime_type",
]
