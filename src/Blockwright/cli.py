"""Developer CLI: run extraction on text, or talk to an agent in an in-process world.

Examples:
  some_model_output | blockwright extract --mode plan
  blockwright chat Steve "goto 1 64 1"
  blockwright console --sender Steve --autonomous
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
import orjson
import structlog

from Blockwright.agent import AgentController
from Blockwright.config import Settings, load_settings
from Blockwright.extraction import extract
from Blockwright.logging import redact_settings, setup_logging
from Blockwright.schemas import Plan
from Blockwright.world import InProcessWorld

log = structlog.get_logger()

# A few blocks around spawn so local sessions have something to inspect and dig
DEMO_BLOCKS = {
    (2, 64, 1): "oak_log",
    (2, 65, 1): "oak_log",
    (-3, 64, 2): "birch_log",
    (4, 63, -2): "stone",
    (5, 63, -2): "stone",
}


class EchoWorld(InProcessWorld):
    """In-process world whose chat channel prints to the terminal."""

    def __init__(self, username: str, **kwargs):
        super().__init__(**kwargs)
        self.username = username

    def chat(self, text: str) -> None:
        super().chat(text)
        click.echo(f"<{self.username}> {text}")


def _settings() -> Settings:
    if not Path("config.toml").exists() and not Path(".env").exists():
        msg = click.style(
            "WARNING: Could not find 'config.toml' or '.env' in the current directory.",
            fg="yellow",
            bold=True,
        )
        click.echo(f"{msg}\nContinuing with default settings.", err=True)
    settings = load_settings()
    setup_logging(settings)
    log.info("cli.startup", config=redact_settings(settings))
    return settings


def _world(settings: Settings, players: tuple[str, ...]) -> EchoWorld:
    names = set(players)
    if settings.owner_username:
        names.add(settings.owner_username)
    return EchoWorld(
        settings.agent_username,
        position=(0, 64, 0),
        blocks=DEMO_BLOCKS,
        players={name: (float(i + 2), 64.0, 0.0) for i, name in enumerate(sorted(names))},
        inventory={"oak_log": 2, "oak_planks": 8},
    )


def _split_line(line: str, default_sender: str) -> tuple[str, str]:
    sender, sep, message = line.partition(":")
    if sep and sender.strip() and " " not in sender.strip():
        return sender.strip(), message.strip()
    return default_sender, line.strip()


@click.group()
def main() -> None:
    """Blockwright developer tools."""


@main.command("extract")
@click.option(
    "--mode",
    type=click.Choice(["plan", "actions", "directive"]),
    default="actions",
    show_default=True,
)
@click.option("--identity", default=None, help="Name substituted for USERNAME placeholders.")
def extract_cmd(mode: str, identity: str | None) -> None:
    """Read model output on stdin and print the extracted actions as JSON."""
    text = click.get_text_stream("stdin").read()
    found = extract(text, mode, identity=identity)  # type: ignore[arg-type]
    if isinstance(found, Plan):
        payload = {"plan": found.model_dump(exclude_none=True)}
    else:
        payload = {"actions": [a.model_dump(exclude_none=True) for a in found or []]}
    click.echo(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode())
    if not found:
        click.echo("// No actions found", err=True)


@main.command("chat")
@click.argument("sender")
@click.argument("message", nargs=-1, required=True)
def chat_cmd(sender: str, message: tuple[str, ...]) -> None:
    """Send one chat message to a fresh agent and print its replies."""

    async def _run() -> None:
        settings = _settings()
        agent = AgentController(settings, _world(settings, (sender,)))
        try:
            await agent.handle_chat(sender, " ".join(message))
        finally:
            await agent.aclose()

    asyncio.run(_run())


@main.command("console")
@click.option("--sender", default="Player", show_default=True)
@click.option("--autonomous/--no-autonomous", default=False, show_default=True)
def console_cmd(sender: str, autonomous: bool) -> None:
    """Interactive session: each stdin line is a chat message ("name: text" or text)."""

    async def _run() -> None:
        settings = _settings()
        agent = AgentController(settings, _world(settings, (sender,)))
        if autonomous:
            agent.start()
        try:
            while True:
                line = await asyncio.to_thread(sys.stdin.readline)
                if not line:
                    break
                if not line.strip():
                    continue
                who, text = _split_line(line, sender)
                await agent.handle_chat(who, text)
        finally:
            await agent.aclose()

    asyncio.run(_run())


if __name__ == "__main__":  # pragma: no cover
    main()
