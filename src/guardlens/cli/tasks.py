"""Task, rule and validation commands (thin wrappers over the form actions)."""

from __future__ import annotations

from typing import Any, Callable, Optional

import httpx
import typer
from rich.console import Console
from rich.markup import escape

from guardlens.cli.gate import API_KEY_OPTION, require_api_key
from guardlens.cli.render import render_json
from guardlens.errors import GuardLensError
from guardlens.models.domain import RuleType
from guardlens.services import actions

console = Console()

tasks_app = typer.Typer(help="Create, inspect and archive tasks.")
rules_app = typer.Typer(help="Manage the rules of a task.")


def _call(action: Callable[..., Any], *args: Any) -> None:
    try:
        result = action(*args)
    except (GuardLensError, httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
        console.print(f"[red]✗[/red] Error: {escape(str(e))}")
        raise typer.Exit(1)
    render_json(result, console)


def _form(**fields: Optional[str]) -> dict[str, str]:
    return {k: v for k, v in fields.items() if v is not None}


def _flag(value: bool) -> str:
    return "true" if value else "false"


# tasks


@tasks_app.command("create")
def create_task_cmd(
    name: str = typer.Option(..., "--name", help="Task name."),
    api_key: Optional[str] = API_KEY_OPTION,
) -> None:
    """Create a task."""
    key = require_api_key(api_key)
    _call(actions.create_task_form_action, key, _form(name=name))


@tasks_app.command("get")
def get_task_cmd(
    task_id: str = typer.Option(..., "--task-id", help="Task ID"),
    api_key: Optional[str] = API_KEY_OPTION,
) -> None:
    """Show a task and its rules."""
    key = require_api_key(api_key)
    _call(actions.get_task_action, key, task_id)


@tasks_app.command("search")
def search_tasks_cmd(
    search: Optional[str] = typer.Option(None, "--search", help="Search term."),
    api_key: Optional[str] = API_KEY_OPTION,
) -> None:
    """List tasks, optionally filtered by a search term."""
    key = require_api_key(api_key)
    _call(actions.search_tasks_action, key, search)


@tasks_app.command("archive")
def archive_task_cmd(
    task_id: str = typer.Option(..., "--task-id", help="Task ID"),
    api_key: Optional[str] = API_KEY_OPTION,
) -> None:
    """Archive a task."""
    key = require_api_key(api_key)
    _call(actions.archive_task_action, key, task_id)


# rules


@rules_app.command("create")
def create_rule_cmd(
    task_id: str = typer.Option(..., "--task-id", help="Task ID"),
    name: str = typer.Option(..., "--name", help="Rule name."),
    rule_type: RuleType = typer.Option(..., "--type", help="Rule type."),
    apply_to_prompt: bool = typer.Option(True, "--prompt/--no-prompt", help="Apply to prompts."),
    apply_to_response: bool = typer.Option(False, "--response/--no-response", help="Apply to responses."),
    keywords: Optional[str] = typer.Option(None, "--keywords", help="Comma-separated keywords."),
    regex_patterns: Optional[str] = typer.Option(None, "--regex-patterns", help="Comma-separated patterns."),
    threshold: Optional[str] = typer.Option(None, "--threshold", help="Toxicity threshold."),
    confidence_threshold: Optional[str] = typer.Option(None, "--confidence-threshold", help="PII confidence."),
    disabled_pii_entities: Optional[str] = typer.Option(None, "--disabled-pii-entities", help="Comma-separated."),
    allow_list: Optional[str] = typer.Option(None, "--allow-list", help="Comma-separated."),
    examples: Optional[str] = typer.Option(None, "--examples", help="JSON list of {example, result}."),
    hint: Optional[str] = typer.Option(None, "--hint", help="Sensitive data hint."),
    api_key: Optional[str] = API_KEY_OPTION,
) -> None:
    """Add a rule to a task."""
    key = require_api_key(api_key)
    form = _form(
        taskId=task_id,
        name=name,
        type=rule_type.value,
        applyToPrompt=_flag(apply_to_prompt),
        applyToResponse=_flag(apply_to_response),
        keywords=keywords,
        regexPatterns=regex_patterns,
        threshold=threshold,
        confidenceThreshold=confidence_threshold,
        disabledPiiEntities=disabled_pii_entities,
        allowList=allow_list,
        examples=examples,
        hint=hint,
    )
    _call(actions.create_task_rule_form_action, key, form)


def _set_enabled(task_id: str, rule_id: str, enabled: bool, api_key: Optional[str]) -> None:
    key = require_api_key(api_key)
    form = _form(taskId=task_id, ruleId=rule_id, enabled=_flag(enabled))
    _call(actions.update_task_rule_form_action, key, form)


@rules_app.command("enable")
def enable_rule_cmd(
    task_id: str = typer.Option(..., "--task-id", help="Task ID"),
    rule_id: str = typer.Option(..., "--rule-id", help="Rule ID"),
    api_key: Optional[str] = API_KEY_OPTION,
) -> None:
    """Enable a task rule."""
    _set_enabled(task_id, rule_id, True, api_key)


@rules_app.command("disable")
def disable_rule_cmd(
    task_id: str = typer.Option(..., "--task-id", help="Task ID"),
    rule_id: str = typer.Option(..., "--rule-id", help="Rule ID"),
    api_key: Optional[str] = API_KEY_OPTION,
) -> None:
    """Disable a task rule."""
    _set_enabled(task_id, rule_id, False, api_key)


@rules_app.command("archive")
def archive_rule_cmd(
    task_id: str = typer.Option(..., "--task-id", help="Task ID"),
    rule_id: str = typer.Option(..., "--rule-id", help="Rule ID"),
    api_key: Optional[str] = API_KEY_OPTION,
) -> None:
    """Archive a task rule."""
    key = require_api_key(api_key)
    _call(actions.archive_task_rule_action, key, task_id, rule_id)


# validation


def validate_prompt_cmd(
    task_id: str = typer.Option(..., "--task-id", help="Task ID"),
    prompt: str = typer.Option(..., "--prompt", help="Prompt text."),
    conversation_id: Optional[str] = typer.Option(None, "--conversation-id"),
    user_id: Optional[str] = typer.Option(None, "--user-id"),
    api_key: Optional[str] = API_KEY_OPTION,
) -> None:
    """Validate a prompt against a task's rules."""
    key = require_api_key(api_key)
    form = _form(taskId=task_id, prompt=prompt, conversationId=conversation_id, userId=user_id)
    _call(actions.validate_prompt_form_action, key, form)


def validate_response_cmd(
    task_id: str = typer.Option(..., "--task-id", help="Task ID"),
    inference_id: str = typer.Option(..., "--inference-id", help="Inference ID from validate-prompt."),
    response: str = typer.Option(..., "--response", help="Response text."),
    context: Optional[str] = typer.Option(None, "--context", help="Retrieved context."),
    api_key: Optional[str] = API_KEY_OPTION,
) -> None:
    """Validate a response for an earlier validated prompt."""
    key = require_api_key(api_key)
    form = _form(taskId=task_id, inferenceId=inference_id, response=response, context=context)
    _call(actions.validate_response_form_action, key, form)
