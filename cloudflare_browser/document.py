"""HTML document parsing.

Response bodies are parsed with BeautifulSoup and the stdlib html.parser
backend. Documents are queried with CSS selectors (soupsieve).
"""

from typing import Optional

from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup

from .errors import DocumentParseError


# Placeholder body used whenever no real body is available.
EMPTY_HTML = b"<html></html>"

PARSER = "html.parser"


def parse_document(content: bytes, encoding: Optional[str] = None) -> BeautifulSoup:
    """Parse a response body into a document.

    Args:
        content: Body bytes, fully decoded by the decoder pipeline.
        encoding: Known character encoding of ``content``. When None the
            parser sniffs it from a BOM or meta declaration.
    """
    try:
        return BeautifulSoup(content, PARSER, from_encoding=encoding)
    except (ParserRejectedMarkup, AssertionError, LookupError) as e:
        raise DocumentParseError(f"Failed to parse document: {e}") from e


def empty_document() -> BeautifulSoup:
    """Return a fresh placeholder document."""
    return BeautifulSoup(EMPTY_HTML, PARSER, from_encoding="utf-8")


def is_empty_document(document: BeautifulSoup) -> bool:
    """Check whether a document carries no content."""
    return not document.get_text(strip=True) and all(
        tag.name == "html" for tag in document.find_all(True)
    )
