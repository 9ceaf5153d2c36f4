"""CLI commands for the WhatsApp bridge of a running Vista server."""

from __future__ import annotations

import logging
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from vista_companion.bridge.errors import BridgeError
from vista_companion.bridge.remote import RemoteBridge

console = Console()
logger = logging.getLogger(__name__)

DEFAULT_SERVER = "http://127.0.0.1:8000"


def _bridge(server: str) -> RemoteBridge:
    return RemoteBridge(f"{server.rstrip('/')}/api/whatsapp")


@click.group("whatsapp")
@click.option("--server", default=DEFAULT_SERVER, show_default=True,
              help="Base URL of a running `vista serve`")
@click.pass_context
def whatsapp(ctx, server: str):
    """Connect and use WhatsApp through the Vista server."""
    ctx.obj = _bridge(server)


@whatsapp.command("connect")
@click.pass_obj
def connect(bridge: RemoteBridge):
    """Start the WhatsApp session and print the QR code to scan, if any."""
    try:
        data = bridge.connect()
    except BridgeError as exc:
        console.print(f"[red]Connect failed:[/red] {exc}")
        raise SystemExit(1)

    if data.get("ready"):
        console.print(f"[green]✓[/green] {data.get('message', 'Connected')}")
    elif data.get("qrCode"):
        console.print(f"[yellow]{data.get('message')}[/yellow]")
        console.print(data["qrCode"])
    else:
        console.print(f"[dim]{data.get('message', 'Initializing...')}[/dim]")


@whatsapp.command("status")
@click.pass_obj
def status(bridge: RemoteBridge):
    """Show whether WhatsApp is connected."""
    try:
        data = bridge.status()
    except BridgeError as exc:
        console.print(f"[red]Server unavailable:[/red] {exc}")
        raise SystemExit(1)

    phase = data.get("phase", "unknown")
    if data.get("connected"):
        console.print(f"[green]✓[/green] Connected [dim]({phase})[/dim]")
    elif data.get("qrCode"):
        console.print(f"[yellow]✗[/yellow] Waiting for QR scan [dim]({phase})[/dim]")
    else:
        console.print(f"[yellow]✗[/yellow] Not connected [dim]({phase})[/dim]")


@whatsapp.command("messages")
@click.option("--contact", default=None, help="Only messages from this contact")
@click.option("--unread", is_flag=True, help="Only unread messages")
@click.option("--limit", default=10, help="Maximum messages to show")
@click.pass_obj
def messages(bridge: RemoteBridge, contact: Optional[str], unread: bool, limit: int):
    """List recent WhatsApp messages."""
    try:
        data = bridge.messages(contact=contact, unread=unread, limit=limit)
    except BridgeError as exc:
        console.print(f"[red]Failed to get messages:[/red] {exc}")
        raise SystemExit(1)

    found = data.get("messages", [])
    if not found:
        console.print("[dim]No messages.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("From")
    table.add_column("When", style="dim")
    table.add_column("Message")
    table.add_column("ID", style="dim")
    for msg in found:
        table.add_row(
            msg.get("contactName") or msg.get("from", ""),
            msg.get("timestamp", "")[:16].replace("T", " "),
            msg.get("body", "")[:120],
            msg.get("id", ""),
        )
    console.print(table)


@whatsapp.command("send")
@click.argument("message")
@click.option("--to", "contact", default=None, help="Contact or chat name")
@click.option("--reply-to", default=None, help="Message id to reply to")
@click.pass_obj
def send(bridge: RemoteBridge, message: str, contact: Optional[str], reply_to: Optional[str]):
    """Send MESSAGE to a contact, or reply to a message id."""
    if not contact and not reply_to:
        raise click.UsageError("Pass --to or --reply-to")
    try:
        data = bridge.send(message, contact=contact, reply_to=reply_to)
    except BridgeError as exc:
        console.print(f"[red]Send failed:[/red] {exc}")
        raise SystemExit(1)
    console.print(f"[green]✓[/green] {data.get('message', 'Sent')}")
