"""Vista companion CLI: chat with Vista, run its API, drive WhatsApp."""

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from vista_companion.api.config import store_api_key
from vista_companion.cli.chat_cmd import chat
from vista_companion.cli.serve_cmd import serve
from vista_companion.cli.whatsapp_cmd import whatsapp

console = Console()


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging")
def cli(verbose):
    """Vista: a voice companion that can read and send your WhatsApp messages."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


@cli.command("set-key")
@click.argument("provider", type=click.Choice(["groq", "gemini", "claude"]))
@click.option("--key", prompt=True, hide_input=True, help="API key")
def set_key(provider, key):
    """Store an LLM API key in macOS Keychain.

    Examples:

        vista set-key groq

        vista set-key gemini
    """
    try:
        stored = store_api_key(provider, key)
    except FileNotFoundError:
        console.print("[red]Keychain not available.[/red] Set the key in the environment instead.")
        return
    if stored:
        console.print(f"[green]✓[/green] {provider} API key stored in Keychain")
    else:
        console.print("[red]Failed to store key.[/red]")


cli.add_command(chat)
cli.add_command(serve)
cli.add_command(whatsapp)


if __name__ == "__main__":
    cli()
