"""CLI: rtmbot run"""

from typing import Optional, TextIO

import click
from rich.console import Console

from rtmbot.client import AsyncRtmBot
from rtmbot.errors import RtmBotError, StreamError
from rtmbot.handlers import MatchPolicy, Response
from rtmbot.transport.http import DEFAULT_API_URL

console = Console()


def _load_config() -> dict:
    from rtmbot.cli.main import _load_config
    return _load_config()


def _run(coro):
    from rtmbot.cli.main import _run
    return _run(coro)


def ping(out: TextIO, response: Response) -> None:
    out.write("pong")


def echo(out: TextIO, response: Response) -> None:
    out.write(response.data[0] if response.data else "")


BUILTIN_COMMANDS = [
    ("^ping$", ping),
    ("^echo (.*)$", echo),
]


def build_bot(token: str, api_url: str, first_match: bool = False) -> AsyncRtmBot:
    bot = AsyncRtmBot(
        token,
        api_url=api_url,
        match_policy=MatchPolicy.FIRST if first_match else MatchPolicy.LAST,
    )
    for pattern, func in BUILTIN_COMMANDS:
        bot.add_handler(pattern, func)
    return bot


@click.command("run")
@click.option("--token", default=None, envvar="RTMBOT_TOKEN", help="Bot token (env: RTMBOT_TOKEN)")
@click.option("--api-url", default=None, envvar="RTMBOT_API_URL", help="Web API base URL")
@click.option("--first-match", is_flag=True, help="First matching handler wins instead of the last")
def run_cmd(token: Optional[str], api_url: Optional[str], first_match: bool):
    """Connect and answer `ping` and `echo <text>` until the stream drops."""
    cfg = _load_config()
    token = token or cfg.get("token")
    if not token:
        console.print("[red]No token. Pass --token, set RTMBOT_TOKEN or run `rtmbot auth login`.[/red]")
        raise SystemExit(1)
    bot = build_bot(token, api_url or cfg.get("api_url", DEFAULT_API_URL), first_match)

    async def _serve():
        try:
            await bot.start()
        finally:
            await bot.stop()

    try:
        _run(_serve())
    except StreamError as e:
        console.print(f"[red]Stream terminated: {e}[/red]")
        raise SystemExit(2)
    except RtmBotError as e:
        console.print(f"[red]Could not start ({e.code}): {e}[/red]")
        raise SystemExit(1)
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")
