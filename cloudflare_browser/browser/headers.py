"""Header bag helpers for browsing sessions."""

from typing import Iterable, Mapping, Optional, Tuple, Union

from multidict import CIMultiDict

HeaderInput = Union[Mapping[str, str], Iterable[Tuple[str, str]], None]


def copy_headers(headers: HeaderInput = None) -> CIMultiDict:
    """Return an independent copy of a header bag."""
    if headers is None:
        return CIMultiDict()
    return CIMultiDict(headers)


def inherit_headers(target: CIMultiDict, source: CIMultiDict,
                    skip: Iterable[str] = ()) -> None:
    """Copy headers of source that target lacks. Present headers are kept."""
    present = {name.lower() for name in target.keys()}
    present.update(name.lower() for name in skip)
    for name, value in source.items():
        if name.lower() not in present:
            target.add(name, value)


def format_headers(headers: CIMultiDict) -> str:
    """Render a header bag one "Name: v1;v2" line per header name."""
    lines = []
    seen = set()
    for name in headers.keys():
        key = name.lower()
        if key in seen:
            continue
        seen.add(key)
        lines.append(f"{name}: {';'.join(headers.getall(name))}\n")
    return "".join(lines)


def build_request_headers(session_headers: CIMultiDict, user_agent: str,
                          referrer: Optional[str] = None,
                          content_type: Optional[str] = None) -> CIMultiDict:
    """Build the headers of one outgoing request.

    The session bag is deep-copied, so nothing set here leaks into it.
    """
    headers = copy_headers(session_headers)
    headers["User-Agent"] = user_agent
    if referrer:
        headers["Referer"] = referrer
    if content_type:
        headers["Content-Type"] = content_type
    return headers
