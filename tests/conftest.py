import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from helpers import DummyWebSocket  # noqa: E402


@pytest.fixture
def dummy_ws():
    return DummyWebSocket()


@pytest.fixture
def fake_connect(monkeypatch, dummy_ws):
    """Route websockets.connect to the in-memory socket."""
    import websockets

    calls = []

    async def _connect(url, **kwargs):
        calls.append((url, kwargs))
        return dummy_ws

    monkeypatch.setattr(websockets, "connect", _connect)
    return calls
