"""
Client configuration.

A `ClientConfig` can be built directly, or loaded from a YAML file with
environment overrides:

    client_id: "..."
    client_secret: "..."
    supports: [channels, players, tells]
    channels: [gossip]
    players: []
    user_agent: "MyMUD 1.0"
    url: "wss://grapevine.haus/socket"
    request_timeout: null

Environment variables (take precedence over the file):
    GRAPEVINE_CLIENT_ID, GRAPEVINE_CLIENT_SECRET, GRAPEVINE_URL
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from shared.utils import is_nonempty_str

PACKAGE_VERSION = "0.1.0"
USER_AGENT_PREFIX = "PyGrapevine"

DEFAULT_URL = "wss://grapevine.haus/socket"
DEFAULT_PING_INTERVAL = 15.0
DEFAULT_PING_TIMEOUT = 45.0

_ENV_OVERRIDES = {
    "GRAPEVINE_CLIENT_ID": "client_id",
    "GRAPEVINE_CLIENT_SECRET": "client_secret",
    "GRAPEVINE_URL": "url",
}


class InvalidCredentialsError(TypeError):
    """Raised at construction when client_id or client_secret is unusable."""
    pass


def default_user_agent() -> str:
    return f"{USER_AGENT_PREFIX} {PACKAGE_VERSION}"


@dataclass
class ClientConfig:
    client_id: str
    client_secret: str
    supports: List[str] = field(default_factory=list)
    channels: List[str] = field(default_factory=list)
    players: List[str] = field(default_factory=list)
    user_agent: Optional[str] = None
    url: str = DEFAULT_URL
    # None keeps waits unbounded
    request_timeout: Optional[float] = None
    ping_interval: Optional[float] = DEFAULT_PING_INTERVAL
    ping_timeout: Optional[float] = DEFAULT_PING_TIMEOUT

    def __post_init__(self) -> None:
        if not is_nonempty_str(self.client_id):
            raise InvalidCredentialsError("client_id must be a valid string.")
        if not is_nonempty_str(self.client_secret):
            raise InvalidCredentialsError("client_secret must be a valid string.")
        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive or None")
        self.supports = list(self.supports or [])
        self.channels = list(self.channels or [])
        self.players = list(self.players or [])
        if not self.user_agent:
            self.user_agent = default_user_agent()


def load_config(path: Optional[Union[str, Path]] = None, **overrides: Any) -> ClientConfig:
    """
    Build a ClientConfig from an optional YAML file, the environment and
    explicit keyword overrides (highest precedence, None values ignored).

    Raises:
        InvalidCredentialsError: credentials missing after all sources merged
        ValueError: the YAML document is not a mapping
    """
    data: Dict[str, Any] = {}
    if path is not None:
        text = Path(path).read_text(encoding="utf-8")
        loaded = yaml.safe_load(text)
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        data.update(loaded)

    for env_name, key in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            data[key] = value

    data.update({k: v for k, v in overrides.items() if v is not None})

    known = {f.name for f in fields(ClientConfig)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown config keys: {sorted(unknown)}")

    return ClientConfig(
        client_id=data.pop("client_id", None),  # type: ignore[arg-type]
        client_secret=data.pop("client_secret", None),  # type: ignore[arg-type]
        **data,
    )
