"""Boolean session attributes."""

from enum import Enum
from typing import Dict, Mapping


class Attribute(Enum):
    """Switchable browser behaviours.

    Each value is the name of the BrowserConfig field holding the flag.
    """
    SEND_REFERER = "send_referer"
    META_REFRESH_HANDLING = "meta_refresh_handling"
    FOLLOW_REDIRECTS = "follow_redirects"


AttributeMap = Mapping[Attribute, bool]


def default_attributes() -> Dict[Attribute, bool]:
    """Attribute values of a new browser."""
    return {
        Attribute.SEND_REFERER: True,
        Attribute.META_REFRESH_HANDLING: True,
        Attribute.FOLLOW_REDIRECTS: True,
    }
