"""
rtmbot CLI — `rtmbot` command.

Commands:
  rtmbot auth login     Validate a token and save it
  rtmbot auth status    Show the saved bot identity
  rtmbot auth logout    Forget the saved token
  rtmbot run            Run a bot with the built-in commands
"""

import asyncio
import json
import logging
import os
from pathlib import Path

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
except ImportError:
    raise SystemExit("CLI requires extras: pip install rtmbot[cli]")

console = Console()
CONFIG_FILE = Path.home() / ".rtmbot" / "config.json"


def _load_config() -> dict:
    try:
        return json.loads(CONFIG_FILE.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def _save_config(cfg: dict) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(cfg, indent=2))
    CONFIG_FILE.chmod(0o600)


def _run(coro):
    return asyncio.run(coro)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)],
        force=True,
    )


@click.group()
@click.version_option("0.1.0")
@click.option(
    "--log-level",
    default=lambda: os.environ.get("RTMBOT_LOG_LEVEL", "INFO"),
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (env: RTMBOT_LOG_LEVEL)",
)
def main(log_level: str):
    """rtmbot — answer Slack messages with regex command handlers."""
    _configure_logging(log_level)


# Register subcommands from separate modules
from rtmbot.cli.auth import auth
from rtmbot.cli.run import run_cmd

main.add_command(auth)
main.add_command(run_cmd)


if __name__ == "__main__":
    main()
