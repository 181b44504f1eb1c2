from __future__ import annotations
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Tuple


def now_ms() -> int:
    return int(time.time() * 1000)


def iso_now() -> str:
    """
    Current UTC time as ISO-8601 with millisecond precision, e.g.
    '2019-03-01T12:00:00.000Z'. Used for the `sent_at` field of tells.
    """
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_ref() -> str:
    """Fresh correlation token for a request."""
    return str(uuid.uuid4())


def is_nonempty_str(value: Any) -> bool:
    return isinstance(value, str) and len(value) > 0


def split_target(target: str, default_game: Optional[str] = None) -> Tuple[str, Optional[str]]:
    """
    Split a tell target of the form 'Player' or 'Player@Game'.

    - The part before the first '@' is the player name.
    - A second component, when present, overrides `default_game`.

    Examples:
        split_target("bob@othergame", "herogame") -> ("bob", "othergame")
        split_target("bob", "herogame")           -> ("bob", "herogame")
    """
    parts = target.split('@')
    game = default_game
    if len(parts) > 1:
        game = parts[1]
    return parts[0], game
