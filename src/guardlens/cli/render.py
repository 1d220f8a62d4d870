"""rich rendering for the inferences table view."""

from __future__ import annotations

from rich.columns import Columns
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from guardlens.services.formatting import BADGE_STYLES, badge_style, result_icon
from guardlens.services.table_view import (
    DetailSection,
    InferenceRow,
    MessagePanel,
    Pagination,
    RuleView,
    SectionKind,
    TableView,
    ViewState,
)


def result_badge(result: str, label: str | None = None) -> Text:
    glyph, icon_style = result_icon(result)
    text = Text()
    text.append(f"{glyph} ", style=icon_style)
    text.append(label or result, style=badge_style(result))
    return text


def _message_cell(message: str, failed: int) -> Text:
    text = Text(message)
    if failed:
        text.append(f" {failed} failed", style=BADGE_STYLES["destructive"])
    return text


def _section(section: DetailSection) -> Text:
    text = Text()
    if section.kind == SectionKind.MESSAGE:
        for item in section.items:
            text.append(f"“{item.text}”\n", style="italic")
        return text

    text.append(f"{section.title}\n", style="bold")
    for item in section.items:
        if section.kind == SectionKind.CLAIMS:
            text.append(f"  {item.text}\n")
            if item.ok:
                text.append("    ✓ Valid\n", style="green")
            else:
                text.append("    ✗ Invalid\n", style="red")
        elif section.kind == SectionKind.PII:
            text.append(f"  {item.text}\n", style=BADGE_STYLES["destructive"])
        elif section.kind == SectionKind.KEYWORDS:
            text.append(f"  {item.text}\n", style=BADGE_STYLES["secondary"])
        else:
            text.append(f"  {item.text}\n", style="cyan")
        if item.note:
            text.append(f"    {item.note}\n", style="dim")
    return text


def _rule(rule: RuleView) -> Text:
    line = result_badge(rule.result, rule.label)
    if rule.toxicity is not None:
        item = rule.toxicity.items[0]
        style = BADGE_STYLES["secondary"] if item.ok else BADGE_STYLES["destructive"]
        line.append("  ")
        line.append(rule.toxicity.title, style=style)
        if item.text:
            line.append(f" {item.text}", style="dim")
    line.append("\n")
    for section in rule.sections:
        line.append_text(_section(section))
    return line


def _message_panel(panel: MessagePanel) -> Panel:
    body = Text(f"{panel.message}\n")
    if panel.tokens:
        body.append(f"Tokens: {panel.tokens}\n", style="dim")
    if panel.context:
        body.append("Context:\n", style="bold")
        body.append(f"{panel.context}\n", style="dim")
    body.append("Rule Results:\n", style="bold")
    for rule in panel.rules:
        body.append_text(_rule(rule))
    return Panel(body, title=panel.title, title_align="left")


def render_details(row: InferenceRow, console: Console) -> None:
    console.print(
        Panel(
            Columns([_message_panel(p) for p in row.panels], expand=True),
            title=row.id,
            title_align="left",
        )
    )


def render_pagination(pagination: Pagination, console: Console) -> None:
    prev_style = "bold" if pagination.can_previous else "dim"
    next_style = "bold" if pagination.can_next else "dim"
    footer = Text()
    footer.append(f"Rows per page: {pagination.page_size}   ")
    footer.append(pagination.label)
    footer.append("   ")
    footer.append("‹ prev", style=prev_style)
    footer.append(" ")
    footer.append("next ›", style=next_style)
    console.print(footer)


def render_table_view(view: TableView, console: Console) -> None:
    if view.state == ViewState.ERROR:
        console.print(Text(view.message or "", style="red"))
        return

    if view.state in (ViewState.IDLE, ViewState.LOADING) and not view.rows:
        console.print(Text(view.message or "", style="dim"))
        return

    table = Table(title="Inferences")
    table.add_column("", width=1)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Task")
    table.add_column("Result", no_wrap=True)
    table.add_column("User ID")
    table.add_column("Created At", no_wrap=True)
    table.add_column("Prompt", max_width=40, overflow="ellipsis")
    table.add_column("Response", max_width=40, overflow="ellipsis")

    for row in view.rows:
        table.add_row(
            "▾" if row.expanded else "▸",
            row.short_id,
            row.task,
            result_badge(row.result),
            row.user,
            row.created_at,
            _message_cell(row.prompt, row.prompt_failed),
            _message_cell(row.response, row.response_failed),
        )

    console.print(table)
    if view.state == ViewState.EMPTY:
        console.print(Text(view.message or "", style="dim"))

    for row in view.rows:
        if row.expanded:
            render_details(row, console)

    if view.state == ViewState.LOADING:
        console.print(Text("Loading…", style="dim"))
    render_pagination(view.pagination, console)


def render_json(payload, console: Console) -> None:
    """Pretty-print an action result (pydantic model, list of models or None)."""
    if payload is None:
        console.print("[green]✓[/green] Done")
        return
    if isinstance(payload, list):
        data = [p.model_dump(mode="json", exclude_none=True) for p in payload]
    else:
        data = payload.model_dump(mode="json", exclude_none=True)
    console.print_json(data=data)
