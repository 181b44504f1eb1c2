import io

import pytest
from rich.console import Console
from typer.testing import CliRunner

from grapevine.client import Grapevine
from grapevine import gv_cli
from grapevine.gv_cli import _handle_line, _print_broadcast, app
from helpers import authenticate
from shared.envelope import Envelope


def test_tell_without_credentials_exits_with_config_error(monkeypatch):
    for name in ("GRAPEVINE_CLIENT_ID", "GRAPEVINE_CLIENT_SECRET", "GRAPEVINE_URL"):
        monkeypatch.delenv(name, raising=False)

    result = CliRunner().invoke(app, ["tell", "bob@othergame", "hi", "--name", "alice"])

    assert result.exit_code == 2
    assert "Invalid configuration" in result.output


@pytest.mark.asyncio
async def test_interactive_commands(fake_connect, dummy_ws):
    client = Grapevine("client-id", "client-secret")
    await client.connect()
    await authenticate(client)

    assert await _handle_line(client, "alice", "/add eric") is True
    assert await _handle_line(client, "alice", "/status ExampleGame") is True
    assert await _handle_line(client, "alice", "/status") is True
    assert await _handle_line(client, "alice", "/remove eric") is True
    assert await _handle_line(client, "alice", "/quit") is False

    assert dummy_ws.sent_events() == [
        "authenticate",
        "players/sign-in",
        "games/status",
        "players/status",
        "players/sign-out",
    ]
    assert client.players.snapshot() == []
    await client.close()


def test_broadcast_printer_tolerates_non_object_payloads(monkeypatch):
    out = io.StringIO()
    monkeypatch.setattr(gv_cli, "console", Console(file=out, width=120, no_color=True))

    _print_broadcast(Envelope(event="tells/receive", payload=["not", "a", "dict"]))
    _print_broadcast(Envelope(event="players/status", payload="ExampleGame"))
    _print_broadcast(Envelope(
        event="tells/receive",
        payload={"from_name": "bob", "from_game": "OtherGame", "message": "hi"},
    ))

    lines = out.getvalue().splitlines()
    assert lines[0] == "Tell from None@None: None"
    assert lines[1] == "None: (nobody)"
    assert lines[2] == "Tell from bob@OtherGame: hi"
