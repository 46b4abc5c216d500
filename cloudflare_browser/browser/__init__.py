"""Browsing session engine.

This module provides the Browser, its attributes, header helpers and the
redirect policy it follows.
"""

from .attributes import (
    Attribute,
    AttributeMap,
    default_attributes,
)

from .headers import (
    build_request_headers,
    copy_headers,
    format_headers,
    inherit_headers,
)

from .redirects import (
    RedirectHop,
    RedirectPolicy,
    build_redirect_request,
)

from .session import (
    Browser,
    create_browser,
    encode_form,
)

__all__ = [
    "Attribute",
    "AttributeMap",
    "default_attributes",
    "build_request_headers",
    "copy_headers",
    "format_headers",
    "inherit_headers",
    "RedirectHop",
    "RedirectPolicy",
    "build_redirect_request",
    "Browser",
    "create_browser",
    "encode_form",
]
