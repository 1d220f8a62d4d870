"""Inferences table commands: a single page, or an interactive browser."""

from __future__ import annotations

import shlex
from datetime import datetime
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from guardlens.cli.gate import API_KEY_OPTION, require_api_key
from guardlens.cli.render import render_table_view
from guardlens.services.filters import (
    PAGE_SIZES,
    FilterState,
    InferencesFilters,
    apply_filters,
    change_page,
    change_page_size,
    clear_filters,
    set_date_range,
    set_rule_status,
    update_draft,
)
from guardlens.services.inferences_query import InferencesQuery
from guardlens.services.table_view import ExpandedRows, ViewState, build_table_view

console = Console()

BROWSE_HELP = """\
Commands:
  n / p              next / previous page
  size N             rows per page (one of 10, 25, 50, 100)
  e ID               expand or collapse a row (full id or its first characters)
  set FIELD=VALUE    edit a draft filter (task_name, user_id, start_time, end_time)
  status VALUE|all   draft rule-status filter
  show               show draft and applied filters
  apply              apply the draft filters
  clear              clear all filters now
  r                  refetch the current page
  q                  quit"""


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _match_row(query: InferencesQuery, prefix: str) -> Optional[str]:
    data = query.result.data
    if not data:
        return None
    for inference in data.inferences:
        if inference.id.startswith(prefix):
            return inference.id
    return None


def inferences_cmd(
    api_key: Optional[str] = API_KEY_OPTION,
    task_name: Optional[str] = typer.Option(None, "--task-name", help="Filter by task name."),
    user_id: Optional[str] = typer.Option(None, "--user-id", help="Filter by user ID."),
    start: Optional[str] = typer.Option(None, "--start", help="Start of date range (ISO)."),
    end: Optional[str] = typer.Option(None, "--end", help="End of date range (ISO)."),
    status: Optional[str] = typer.Option(None, "--status", help="Rule status filter."),
    page: int = typer.Option(0, "--page", min=0, help="Zero-based page index."),
    page_size: int = typer.Option(10, "--page-size", help=f"One of {PAGE_SIZES}."),
    expand: Optional[list[str]] = typer.Option(None, "--expand", help="Inference id to expand (repeatable)."),
) -> None:
    """Show one page of inferences."""
    key = require_api_key(api_key)

    try:
        state = FilterState()
        state = update_draft(state, task_name=task_name, user_id=user_id)
        state = set_date_range(state, _parse_date(start), _parse_date(end))
        state = set_rule_status(state, status)
        state = change_page_size(state, page_size)
        state = apply_filters(state)
        state = change_page(state, page)
    except ValueError as e:
        console.print(f"[red]✗[/red] Error: {escape(str(e))}")
        raise typer.Exit(1)

    query = InferencesQuery(key)
    result = query.run(state.applied)

    expanded = ExpandedRows()
    for prefix in expand or []:
        inference_id = _match_row(query, prefix) or prefix
        expanded = expanded.toggle(inference_id)

    view = build_table_view(result, state.applied, expanded)
    render_table_view(view, console)
    if view.state == ViewState.ERROR:
        raise typer.Exit(1)


def _describe(filters: InferencesFilters) -> str:
    parts = []
    for name, value in vars(filters).items():
        if value is None:
            continue
        if isinstance(value, tuple):
            value = ",".join(s.value for s in value)
        parts.append(f"{name}={value}")
    return ", ".join(parts) or "(none)"


def browse_cmd(api_key: Optional[str] = API_KEY_OPTION) -> None:
    """Interactive inferences browser with draft/apply filters."""
    key = require_api_key(api_key)
    query = InferencesQuery(key)
    state = FilterState()
    expanded = ExpandedRows()
    console.print(BROWSE_HELP, highlight=False)

    refresh = True
    while True:
        if refresh:
            result = query.run(state.applied)
            render_table_view(build_table_view(result, state.applied, expanded), console)
        refresh = True

        line = typer.prompt("guardlens", default="", show_default=False).strip()
        if not line:
            refresh = False
            continue
        cmd, _, arg = line.partition(" ")
        arg = arg.strip()
        pagination = build_table_view(query.result, state.applied).pagination

        try:
            if cmd in ("q", "quit", "exit"):
                return
            elif cmd == "n":
                if not pagination.can_next:
                    console.print("[yellow]Already on the last page[/yellow]")
                    refresh = False
                    continue
                state = change_page(state, pagination.page + 1)
            elif cmd == "p":
                if not pagination.can_previous:
                    console.print("[yellow]Already on the first page[/yellow]")
                    refresh = False
                    continue
                state = change_page(state, pagination.page - 1)
            elif cmd == "size":
                state = change_page_size(state, int(arg))
            elif cmd == "e":
                expanded = expanded.toggle(_match_row(query, arg) or arg)
            elif cmd == "set":
                changes = {}
                for token in shlex.split(arg):
                    name, _, value = token.partition("=")
                    changes[name] = value
                state = update_draft(state, **changes)
                console.print(f"Draft: {_describe(state.draft)}", markup=False, highlight=False)
                refresh = False
            elif cmd == "status":
                state = set_rule_status(state, arg or None)
                console.print(f"Draft: {_describe(state.draft)}", markup=False, highlight=False)
                refresh = False
            elif cmd == "show":
                console.print(f"Draft:   {_describe(state.draft)}", markup=False, highlight=False)
                console.print(f"Applied: {_describe(state.applied)}", markup=False, highlight=False)
                refresh = False
            elif cmd == "apply":
                state = apply_filters(state)
            elif cmd == "clear":
                state = clear_filters(state)
            elif cmd == "r":
                result = query.refetch(state.applied)
                render_table_view(build_table_view(result, state.applied, expanded), console)
                refresh = False
            else:
                console.print(BROWSE_HELP, highlight=False)
                refresh = False
        except ValueError as e:
            console.print(f"[red]✗[/red] Error: {escape(str(e))}")
            refresh = False
