"""Session-scoped stores: navigation states, history, async results,
bookmarks and cookies.
"""

from .state import (
    State,
    new_history_state,
)

from .history import (
    History,
    MemoryHistory,
)

from .async_store import (
    AsyncDocument,
    AsyncStore,
)

from .bookmarks import MemoryBookmarks

from .cookies import (
    Cookie,
    CookieJar,
    parse_cookie_header,
)

__all__ = [
    "State",
    "new_history_state",
    "History",
    "MemoryHistory",
    "AsyncDocument",
    "AsyncStore",
    "MemoryBookmarks",
    "Cookie",
    "CookieJar",
    "parse_cookie_header",
]
