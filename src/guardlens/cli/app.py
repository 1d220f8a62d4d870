from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from guardlens.cli.gate import API_KEY_OPTION
from guardlens.cli.inferences import browse_cmd, inferences_cmd
from guardlens.cli.tasks import rules_app, tasks_app, validate_prompt_cmd, validate_response_cmd
from guardlens.config.settings import settings
from guardlens.services.actions import check_connection
from guardlens.utils.logging_config import setup_logging

app = typer.Typer(help="GuardLens CLI (browse inferences, manage tasks and rules).")
console = Console()


@app.callback()
def main_callback(
    log_level: str = typer.Option(settings.log_level, "--log-level", help="Logging level."),
) -> None:
    setup_logging(log_level)


@app.command("connect")
def connect_cmd(api_key: Optional[str] = API_KEY_OPTION) -> None:
    """Check that the API key can reach the governance service."""
    if not api_key:
        api_key = typer.prompt("Governance API key", hide_input=True, default="", show_default=False)

    status = check_connection(api_key)
    if status.success:
        console.print(f"[green]✓[/green] Connected to {escape(settings.base_url or '')}")
        return
    console.print(f"[red]✗[/red] {escape(status.error or 'Failed to connect')}")
    raise typer.Exit(1)


app.command("inferences")(inferences_cmd)
app.command("browse")(browse_cmd)
app.command("validate-prompt")(validate_prompt_cmd)
app.command("validate-response")(validate_response_cmd)
app.add_typer(tasks_app, name="tasks")
app.add_typer(rules_app, name="rules")


if __name__ == "__main__":
    app()
