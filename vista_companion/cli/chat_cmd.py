"""CLI command for talking to Vista from the terminal."""

from __future__ import annotations

from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel

from vista_companion.api.config import load_config
from vista_companion.bridge.provider import BridgeProvider
from vista_companion.bridge.remote import RemoteBridge, RemoteCommandBridge
from vista_companion.commands.executor import CommandExecutor
from vista_companion.conversation.orchestrator import Conversation, Reply
from vista_companion.llm.cascade import ReplyCascade

console = Console()

EXIT_WORDS = {"exit", "quit", "bye"}


def _show(reply: Reply, name: str) -> None:
    title = f"{name} [dim]({reply.emotion})[/dim]"
    if reply.command is not None:
        title += f" [dim]· {reply.command.domain.value}/{reply.command.action.value}[/dim]"
    console.print(Panel(reply.response, title=title, border_style="cyan"))


@click.command("chat")
@click.argument("text", required=False)
@click.option("--provider", "providers", multiple=True,
              type=click.Choice(["groq", "gemini", "claude"]),
              help="LLM provider to try, in order (repeatable)")
def chat(text: Optional[str], providers: tuple):
    """Talk to Vista. Without TEXT, starts an interactive session.

    \b
    Examples:
        vista chat "hello there"
        vista chat "check my whatsapp messages"
        vista chat --provider gemini
    """
    config = load_config()
    if providers:
        config["providers"] = list(providers)
    name = config.get("assistant_name", "Vista")

    bridges = BridgeProvider.from_config(config)
    command_bridge = bridges.get
    if config.get("whatsapp_service_url"):
        forwarded = RemoteCommandBridge(RemoteBridge(config["whatsapp_service_url"]))
        command_bridge = lambda: forwarded
    conversation = Conversation(CommandExecutor(command_bridge), ReplyCascade.from_config(config))

    try:
        if text:
            _show(conversation.respond(text), name)
            return

        console.print(f"[dim]Talking to {name}. Type 'exit' to quit.[/dim]")
        while True:
            try:
                line = console.input("[bold]you>[/bold] ").strip()
            except (EOFError, KeyboardInterrupt):
                console.print()
                break
            if not line:
                continue
            _show(conversation.respond(line), name)
            if line.lower() in EXIT_WORDS:
                break
    finally:
        bridges.close()
