"""CLI: rtmbot auth login|status|logout"""

from typing import Optional

import click
from rich.console import Console

from rtmbot.client import AsyncRtmBot
from rtmbot.errors import RtmBotError
from rtmbot.transport.http import DEFAULT_API_URL

console = Console()


def _load_config() -> dict:
    from rtmbot.cli.main import _load_config
    return _load_config()


def _save_config(cfg: dict) -> None:
    from rtmbot.cli.main import _save_config
    _save_config(cfg)


def _run(coro):
    from rtmbot.cli.main import _run
    return _run(coro)


@click.group()
def auth():
    """Authentication commands."""


@auth.command("login")
@click.option("--api-url", default=None, envvar="RTMBOT_API_URL", help="Web API base URL")
def auth_login(api_url: Optional[str]):
    """Validate a bot token with rtm.start and save it."""

    async def _login():
        cfg = _load_config()
        url = api_url or cfg.get("api_url", DEFAULT_API_URL)
        token = click.prompt("Bot token", hide_input=True)
        bot = AsyncRtmBot(token, api_url=url)
        try:
            with console.status("Checking token..."):
                session = await bot.authenticate()
        finally:
            await bot.stop()
        identity = session.identity
        console.print(f"[green]Logged in as {identity.name} (ID: {identity.id})[/green]")

        _save_config({**cfg, "token": token, "bot_id": identity.id,
                      "bot_name": identity.name, "api_url": url})
        console.print("[dim]Token saved to ~/.rtmbot/config.json[/dim]")

    try:
        _run(_login())
    except RtmBotError as e:
        console.print(f"[red]Login failed ({e.code}): {e}[/red]")
        raise SystemExit(1)


@auth.command("status")
def auth_status():
    """Show current auth status."""
    cfg = _load_config()
    if cfg.get("token"):
        console.print(f"[green]Logged in[/green] as {cfg.get('bot_name', 'unknown')} (ID: {cfg.get('bot_id')})")
    else:
        console.print("[yellow]Not logged in. Run `rtmbot auth login`.[/yellow]")


@auth.command("logout")
def auth_logout():
    """Clear saved credentials."""
    _save_config({})
    console.print("[green]Logged out.[/green]")
