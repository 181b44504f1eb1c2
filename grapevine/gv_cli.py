#!/usr/bin/env python3

from __future__ import annotations
import asyncio
from pathlib import Path
from typing import List, Optional, Set

import typer
from aioconsole import ainput
from rich.console import Console
from rich.table import Table

from grapevine.client import Grapevine
from grapevine.core.EventTypes import EventType, Notification, inbound
from shared.config import ClientConfig, InvalidCredentialsError, load_config
from shared.envelope import Envelope, GrapevineError, RequestRejectedError
from shared.log import get_logger

app = typer.Typer(help="Grapevine client CLI")
console = Console()
logger = get_logger(__name__)

_background_tasks: Set[asyncio.Task] = set()

HELP_TEXT = "/tell <player[@game]> <msg>, /status [game], /who, /add <name>, /remove <name>, /quit"


def _load(config: Optional[Path], client_id: Optional[str], client_secret: Optional[str],
          url: Optional[str], players: Optional[List[str]] = None) -> ClientConfig:
    try:
        return load_config(config, client_id=client_id, client_secret=client_secret,
                           url=url, players=players or None)
    except (InvalidCredentialsError, ValueError) as e:
        console.print(f"[red]Invalid configuration[/]: {e}")
        raise typer.Exit(code=2)


def _print_broadcast(env: Envelope) -> None:
    payload = env.payload if isinstance(env.payload, dict) else {}
    if env.event == EventType.TELLS_RECEIVE.value:
        console.print(
            f"[bold cyan]Tell[/] from {payload.get('from_name')}@{payload.get('from_game')}: "
            f"{payload.get('message')}"
        )
    elif env.event == EventType.PLAYERS_SIGN_IN.value and env.status is None:
        console.print(f"[green]+[/] {payload.get('name')}@{payload.get('game')}")
    elif env.event == EventType.PLAYERS_SIGN_OUT.value and env.status is None:
        console.print(f"[red]-[/] {payload.get('name')}@{payload.get('game')}")
    elif env.event == EventType.PLAYERS_STATUS.value:
        players = ", ".join(payload.get("players") or []) or "(nobody)"
        console.print(f"[bold yellow]{payload.get('game')}[/]: {players}")
    elif env.event == EventType.GAMES_STATUS.value:
        console.print(f"[bold yellow]{payload.get('game')}[/]: {payload.get('display_name', '')}")


async def _handle_line(client: Grapevine, name: str, line: str) -> bool:
    """Run one interactive command; returns False when the session should end."""
    if line in {"/quit", "/exit"}:
        return False
    if line == "/help":
        console.print(HELP_TEXT)
    elif line == "/who":
        table = Table(title="Online Players")
        table.add_column("Name")
        for player in client.players:
            table.add_row(player)
        console.print(table)
    elif line.startswith("/add "):
        player = line[len("/add "):].strip()
        added = await client.add_player(player, announce=True)
        console.print(f"Added {player}" if added else f"{player} is already online")
    elif line.startswith("/remove "):
        player = line[len("/remove "):].strip()
        removed = await client.remove_player(player, announce=True)
        console.print(f"Removed {player}" if removed else f"{player} is not online")
    elif line == "/status" or line.startswith("/status "):
        game = line[len("/status"):].strip() or None
        await client.get_status(game)
    elif line.startswith("/tell "):
        parts = line.split(" ", 2)
        if len(parts) < 3:
            console.print("Usage: /tell <player[@game]> <message>")
            return True
        task = asyncio.create_task(_tell(client, name, parts[1], parts[2]))
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)
    else:
        console.print(f"Unknown command. {HELP_TEXT}")
    return True


async def _tell(client: Grapevine, name: str, target: str, message: str) -> None:
    try:
        await client.send_tell(message, name, target)
        console.print(f"[dim]Tell to {target} sent[/]")
    except RequestRejectedError as e:
        console.print(f"[red]Tell to {target} failed[/]: {e.error}")
    except GrapevineError as e:
        console.print(f"[red]Tell to {target} failed[/]: {e}")


@app.command()
def run(
    name: str = typer.Option(..., help="Player name used as the sender of tells"),
    config: Optional[Path] = typer.Option(None, help="YAML config file"),
    client_id: Optional[str] = typer.Option(None, help="Grapevine client id"),
    client_secret: Optional[str] = typer.Option(None, help="Grapevine client secret"),
    url: Optional[str] = typer.Option(None, help="Grapevine websocket URL"),
):
    """Connect, authenticate and start an interactive session."""
    cfg = _load(config, client_id, client_secret, url, [name])

    async def main_loop() -> None:
        client = Grapevine.from_config(cfg)
        client.on(Notification.AUTHENTICATED, lambda: console.print("[bold green]Authenticated[/]"))
        client.on(Notification.PARSE_ERROR, lambda e: console.print(f"[red]Bad frame[/]: {e}"))
        client.on(Notification.CLOSED, lambda code, reason: console.print(f"[red]Closed[/] {code} {reason}"))
        for event in (EventType.TELLS_RECEIVE, EventType.PLAYERS_SIGN_IN, EventType.PLAYERS_SIGN_OUT,
                      EventType.PLAYERS_STATUS, EventType.GAMES_STATUS):
            client.on(inbound(event.value), _print_broadcast)

        console.print(f"[bold green]Grapevine client starting[/] as {name} on {cfg.url}")
        await client.connect()
        try:
            while True:
                line = (await ainput(": ")).strip()
                if not line:
                    continue
                if not await _handle_line(client, name, line):
                    break
        finally:
            await client.close()

    asyncio.run(main_loop())


@app.command()
def tell(
    target: str = typer.Argument(..., help="Player or Player@Game"),
    message: str = typer.Argument(..., help="Message text"),
    name: str = typer.Option(..., help="Sender player name"),
    game: Optional[str] = typer.Option(None, help="Destination game when target has no @game"),
    config: Optional[Path] = typer.Option(None, help="YAML config file"),
    client_id: Optional[str] = typer.Option(None, help="Grapevine client id"),
    client_secret: Optional[str] = typer.Option(None, help="Grapevine client secret"),
    url: Optional[str] = typer.Option(None, help="Grapevine websocket URL"),
    timeout: float = typer.Option(10.0, help="Seconds to wait for each reply"),
):
    """Send one tell and exit."""
    cfg = _load(config, client_id, client_secret, url)
    cfg.request_timeout = timeout

    async def main() -> int:
        async with Grapevine.from_config(cfg) as client:
            try:
                await client.wait_authenticated()
                result = await client.send_tell(message, name, target, game)
            except RequestRejectedError as e:
                console.print(f"[red]Rejected[/]: {e.error}")
                return 1
            except (GrapevineError, asyncio.TimeoutError) as e:
                console.print(f"[red]Failed[/]: {e}")
                return 1
            console.print(f"[green]{result}[/]")
            return 0

    raise typer.Exit(code=asyncio.run(main()))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
