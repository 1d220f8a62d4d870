"""API-key gate: the per-session credential every command needs."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from guardlens.services.actions import check_connection

console = Console()

DEFAULT_GATE_ERROR = "Failed to connect with the provided API key"

API_KEY_OPTION = typer.Option(
    None,
    "--api-key",
    envvar="GUARDLENS_API_KEY",
    help="Governance API key (prompted for when not given).",
    show_default=False,
)


def require_api_key(api_key: Optional[str]) -> str:
    """
    Return a usable key for this session.

    A key passed in (option or env) is used as-is. Otherwise the user is
    prompted and the key is checked against the service before use.
    """
    if api_key and api_key.strip():
        return api_key.strip()

    entered = typer.prompt("Governance API key", hide_input=True, default="", show_default=False)
    status = check_connection(entered)
    if not status.success:
        console.print(f"[red]✗[/red] {escape(status.error or DEFAULT_GATE_ERROR)}")
        raise typer.Exit(1)
    return entered.strip()
