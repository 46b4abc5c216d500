"""Browser configuration.

A BrowserConfig holds every tunable of one browsing session. Values can be
given in code or overridden from the environment with BrowserConfig.from_env().
"""

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

from .errors import ConfigurationError


DEFAULT_CHROME_VERSION = "124.0.0.0"

DEFAULT_USER_AGENT = (
    f"Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    f"(KHTML, like Gecko) Chrome/{DEFAULT_CHROME_VERSION} Safari/537.36"
)

# Challenge retries fall back to this limit when max_reloads is left at 0.
DEFAULT_MAX_RELOADS = 3

DEFAULT_MAX_REDIRECTS = 10

# Timeout restored by Browser.clear_timeout().
DEFAULT_CLEAR_TIMEOUT = 180.0

SUPPORTED_TRANSPORTS = ("aiohttp", "curl")

ENV_PREFIX = "CFB_"


@dataclass
class BrowserConfig:
    """Configuration for a browsing session."""

    # Identity
    user_agent: str = DEFAULT_USER_AGENT

    # Attributes
    send_referer: bool = True
    meta_refresh_handling: bool = True
    follow_redirects: bool = True

    # Limits
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    max_reloads: int = 0
    history_capacity: int = 10

    # Timing
    timeout: Optional[float] = None
    challenge_delay: Optional[float] = None
    script_timeout: float = 5.0

    # Transport
    use_cookies: bool = True
    transport: str = "aiohttp"
    impersonate: str = "chrome124"
    verify_ssl: bool = True
    proxy_url: Optional[str] = None

    def __post_init__(self):
        self.validate()

    @property
    def reload_limit(self) -> int:
        """Effective bound for challenge retries."""
        return self.max_reloads if self.max_reloads > 0 else DEFAULT_MAX_RELOADS

    def validate(self) -> None:
        """Reject values the browser cannot work with."""
        for name in ("max_redirects", "max_reloads", "history_capacity"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must not be negative")

        for name in ("timeout", "challenge_delay"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ConfigurationError(f"{name} must not be negative")

        if self.script_timeout <= 0:
            raise ConfigurationError("script_timeout must be positive")

        if self.transport not in SUPPORTED_TRANSPORTS:
            raise ConfigurationError(
                f"Unsupported transport '{self.transport}', "
                f"expected one of {', '.join(SUPPORTED_TRANSPORTS)}"
            )

    def copy(self, **changes: Any) -> "BrowserConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX,
                 environ: Optional[Dict[str, str]] = None, **overrides: Any) -> "BrowserConfig":
        """Build a configuration from environment variables.

        Each field maps to ``<prefix><FIELD_NAME>``, e.g. ``CFB_TIMEOUT=30``.
        Explicit keyword overrides win over the environment.
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        for f in fields(cls):
            raw = environ.get(f"{prefix}{f.name.upper()}")
            if raw is None:
                continue
            values[f.name] = _coerce(f.name, raw, f.default)

        values.update(overrides)
        return cls(**values)


_OPTIONAL_FLOATS = {"timeout", "challenge_delay"}
_OPTIONAL_STRINGS = {"proxy_url"}


def _coerce(name: str, raw: str, default: Any) -> Any:
    """Convert an environment string to the type of a config field."""
    raw = raw.strip()

    if name in _OPTIONAL_FLOATS or name in _OPTIONAL_STRINGS:
        if raw == "" or raw.lower() == "none":
            return None
        if name in _OPTIONAL_STRINGS:
            return raw
        default = 0.0

    if isinstance(default, bool):
        lowered = raw.lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ConfigurationError(f"Invalid boolean for {name}: {raw!r}")

    try:
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"Invalid value for {name}: {raw!r}") from e

    return raw


def create_default_config() -> BrowserConfig:
    """Create the default browser configuration."""
    return BrowserConfig()

