"""Cookie jar for browsing sessions.

The jar is owned by the transport and shared by every request a session
makes, including challenge follow-ups and redirect hops.
"""

import email.utils
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional
from urllib.parse import urlparse


@dataclass
class Cookie:
    """Represents an HTTP cookie."""
    name: str
    value: str
    domain: Optional[str] = None
    path: Optional[str] = None
    expires: Optional[datetime] = None
    max_age: Optional[int] = None
    secure: bool = False
    http_only: bool = False
    same_site: Optional[str] = None  # None, "Strict", "Lax", "None"
    host_only: bool = True
    created: datetime = field(default_factory=datetime.now)

    @property
    def is_expired(self) -> bool:
        """Check if cookie is expired."""
        if self.max_age is not None:
            return datetime.now() >= self.created + timedelta(seconds=self.max_age)

        if self.expires is not None:
            return datetime.now() > self.expires

        return False

    @property
    def is_session_cookie(self) -> bool:
        """Check if cookie is a session cookie (no expiry)."""
        return self.expires is None and self.max_age is None

    def matches_domain(self, domain: str) -> bool:
        """Check if cookie matches domain."""
        if not self.domain:
            return False

        cookie_domain = self.domain.lower().lstrip('.')
        request_domain = domain.lower()

        if cookie_domain == request_domain:
            return True

        if self.host_only:
            return False

        return request_domain.endswith('.' + cookie_domain)

    def matches_path(self, path: str) -> bool:
        """Check if cookie matches path."""
        cookie_path = self.path or "/"

        if not path.startswith(cookie_path):
            return False

        return (
            len(path) == len(cookie_path)
            or cookie_path.endswith('/')
            or path[len(cookie_path)] == '/'
        )

    def to_header_value(self) -> str:
        """Convert cookie to header value format."""
        return f"{self.name}={self.value}"


class CookieJar:
    """HTTP cookie jar for session management."""

    def __init__(self):
        self._lock = threading.Lock()
        self._cookies: Dict[str, Dict[str, Cookie]] = {}  # domain -> "path|name" -> cookie

    def add_cookie(self, cookie: Cookie, url: str) -> None:
        """Add cookie to jar, or remove the stored one when already expired."""
        parsed_url = urlparse(url)
        hostname = (parsed_url.hostname or "").lower()

        if cookie.domain:
            cookie.domain = cookie.domain.lower().lstrip('.')
            cookie.host_only = False
            if not self._is_valid_domain(cookie.domain, hostname):
                return
        else:
            cookie.domain = hostname
            cookie.host_only = True

        if not cookie.path or not cookie.path.startswith('/'):
            cookie.path = self._default_path(parsed_url.path)

        key = f"{cookie.path}|{cookie.name}"
        with self._lock:
            domain_cookies = self._cookies.setdefault(cookie.domain, {})
            if cookie.is_expired:
                domain_cookies.pop(key, None)
                if not domain_cookies:
                    del self._cookies[cookie.domain]
                return
            domain_cookies[key] = cookie

    def get_cookies(self, url: str) -> List[Cookie]:
        """Get cookies for URL, most specific path first."""
        parsed_url = urlparse(url)
        domain = (parsed_url.hostname or "").lower()
        path = parsed_url.path or "/"
        is_secure = parsed_url.scheme == "https"

        with self._lock:
            candidates = [c for cookies in self._cookies.values() for c in cookies.values()]

        matching_cookies = [
            cookie for cookie in candidates
            if self._cookie_matches_request(cookie, domain, path, is_secure)
        ]
        matching_cookies.sort(key=lambda c: (-len(c.path or "/"), c.created))
        return matching_cookies

    def get_cookie_header(self, url: str) -> Optional[str]:
        """Get Cookie header value for URL."""
        cookies = self.get_cookies(url)
        if not cookies:
            return None
        return "; ".join(cookie.to_header_value() for cookie in cookies)

    def parse_set_cookie(self, set_cookie_headers: Iterable[str], url: str) -> None:
        """Parse Set-Cookie header values and add the cookies."""
        if isinstance(set_cookie_headers, str):
            set_cookie_headers = [set_cookie_headers]
        for header in set_cookie_headers:
            self._parse_single_set_cookie(header, url)

    def _parse_single_set_cookie(self, cookie_str: str, url: str) -> None:
        """Parse single Set-Cookie header."""
        if not cookie_str.strip():
            return

        parts = [part.strip() for part in cookie_str.split(';')]
        name_value = parts[0]
        if '=' not in name_value:
            return

        name, value = name_value.split('=', 1)
        name = name.strip()
        if not name:
            return

        cookie = Cookie(name=name, value=value.strip().strip('"'))

        for part in parts[1:]:
            if '=' in part:
                attr_name, attr_value = part.split('=', 1)
                attr_name = attr_name.strip().lower()
                attr_value = attr_value.strip()

                if attr_name == 'domain' and attr_value:
                    cookie.domain = attr_value
                elif attr_name == 'path':
                    cookie.path = attr_value
                elif attr_name == 'expires':
                    cookie.expires = self._parse_expires(attr_value)
                elif attr_name == 'max-age':
                    try:
                        cookie.max_age = int(attr_value)
                    except ValueError:
                        pass
                elif attr_name == 'samesite':
                    cookie.same_site = attr_value
            else:
                attr_name = part.strip().lower()
                if attr_name == 'secure':
                    cookie.secure = True
                elif attr_name == 'httponly':
                    cookie.http_only = True

        self.add_cookie(cookie, url)

    def _parse_expires(self, expires_str: str) -> Optional[datetime]:
        """Parse expires date string."""
        try:
            timestamp = email.utils.parsedate_to_datetime(expires_str)
        except (ValueError, TypeError):
            return None
        if timestamp.tzinfo is not None:
            timestamp = timestamp.astimezone().replace(tzinfo=None)
        return timestamp

    def _is_valid_domain(self, cookie_domain: str, request_domain: str) -> bool:
        """Validate cookie domain against request domain."""
        if not cookie_domain or not request_domain:
            return False
        return cookie_domain == request_domain or request_domain.endswith('.' + cookie_domain)

    def _default_path(self, request_path: str) -> str:
        """Calculate default path for cookie."""
        if not request_path or not request_path.startswith('/'):
            return '/'

        last_slash = request_path.rfind('/')
        if last_slash > 0:
            return request_path[:last_slash]

        return '/'

    def _cookie_matches_request(self, cookie: Cookie, domain: str, path: str,
                                is_secure: bool) -> bool:
        """Check if cookie matches request."""
        if cookie.is_expired:
            return False

        if not cookie.matches_domain(domain):
            return False

        if not cookie.matches_path(path):
            return False

        if cookie.secure and not is_secure:
            return False

        return True

    def clear_expired(self) -> int:
        """Remove expired cookies and return count removed."""
        removed_count = 0

        with self._lock:
            for domain in list(self._cookies.keys()):
                for key in list(self._cookies[domain].keys()):
                    if self._cookies[domain][key].is_expired:
                        del self._cookies[domain][key]
                        removed_count += 1

                if not self._cookies[domain]:
                    del self._cookies[domain]

        return removed_count

    def clear_all(self) -> None:
        """Clear all cookies."""
        with self._lock:
            self._cookies.clear()

    def get_all_cookies(self) -> List[Cookie]:
        """Get all cookies in jar."""
        with self._lock:
            return [c for cookies in self._cookies.values() for c in cookies.values()]

    def __len__(self) -> int:
        with self._lock:
            return sum(len(domain_cookies) for domain_cookies in self._cookies.values())


def parse_cookie_header(cookie_header: str) -> Dict[str, str]:
    """Parse Cookie header into name-value pairs."""
    cookies = {}
    if not cookie_header:
        return cookies

    for part in cookie_header.split(';'):
        part = part.strip()
        if '=' in part:
            name, value = part.split('=', 1)
            cookies[name.strip()] = value.strip()

    return cookies
