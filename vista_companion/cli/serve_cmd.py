"""CLI command for running the Vista HTTP API."""

from __future__ import annotations

import click
import uvicorn
from rich.console import Console

from vista_companion.api.config import load_config
from vista_companion.api.server import create_app

console = Console()


@click.command("serve")
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True)
def serve(host: str, port: int):
    """Run the HTTP API the Vista frontend talks to."""
    config = load_config()
    if config.get("whatsapp_service_url"):
        console.print(f"[dim]WhatsApp via {config['whatsapp_service_url']}[/dim]")
    elif not config.get("client_factory"):
        console.print("[yellow]No WhatsApp client configured (client_factory); "
                      "WhatsApp endpoints will report it as unavailable.[/yellow]")
    console.print(f"[bold]Vista API on http://{host}:{port}[/bold]")
    uvicorn.run(create_app(config), host=host, port=port)
