"""
Action layer: build a configured client per call and forward to it.

Every action takes the caller's credential first. Nothing here catches or
rewrites errors, except check_connection which reports instead of raising.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Optional

import httpx

from guardlens.clients.governance_client import GovernanceClient
from guardlens.config.settings import Settings, settings as default_settings
from guardlens.errors import ConfigurationError, GuardLensError
from guardlens.models.domain import (
    ExampleConfig,
    ExamplesConfig,
    KeywordsConfig,
    NewRuleRequest,
    NewTaskRequest,
    PIIConfig,
    PromptValidationRequest,
    QueryInferencesParams,
    QueryInferencesResponse,
    RegexConfig,
    ResponseValidationRequest,
    Rule,
    RuleType,
    Task,
    ToxicityConfig,
    UpdateRuleRequest,
    ValidationResult,
)

logger = logging.getLogger(__name__)


def get_client(
    api_key: Optional[str],
    settings: Settings | None = None,
    http_client: httpx.Client | None = None,
) -> GovernanceClient:
    """Client factory. Fails fast when the base URL or credential is missing."""
    cfg = settings or default_settings
    if not cfg.base_url:
        raise ConfigurationError("GUARDLENS_BASE_URL is required")
    try:
        url = httpx.URL(cfg.base_url)
    except httpx.InvalidURL as e:
        raise ConfigurationError(f"GUARDLENS_BASE_URL is not a valid URL: {e}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(f"GUARDLENS_BASE_URL must be an http(s) URL, got {cfg.base_url!r}")
    if not api_key:
        raise ConfigurationError("An API key is required")
    return GovernanceClient(
        base_url=cfg.base_url,
        api_key=api_key,
        client=http_client,
        timeout_s=cfg.timeout_s,
    )


# Task actions


def create_task_action(api_key: str, request: NewTaskRequest) -> Task:
    with get_client(api_key) as client:
        return client.create_task(request)


def get_task_action(api_key: str, task_id: str) -> Task:
    with get_client(api_key) as client:
        return client.get_task(task_id)


def search_tasks_action(api_key: str, search_term: Optional[str] = None) -> list[Task]:
    with get_client(api_key) as client:
        return client.search_tasks(search_term)


def archive_task_action(api_key: str, task_id: str) -> None:
    with get_client(api_key) as client:
        client.archive_task(task_id)


# Task rule actions


def create_task_rule_action(api_key: str, task_id: str, request: NewRuleRequest) -> Rule:
    with get_client(api_key) as client:
        return client.create_task_rule(task_id, request)


def update_task_rule_action(
    api_key: str, task_id: str, rule_id: str, request: UpdateRuleRequest
) -> Task:
    with get_client(api_key) as client:
        return client.update_task_rule(task_id, rule_id, request)


def archive_task_rule_action(api_key: str, task_id: str, rule_id: str) -> None:
    with get_client(api_key) as client:
        client.archive_task_rule(task_id, rule_id)


# Validation actions


def validate_prompt_action(
    api_key: str, task_id: str, request: PromptValidationRequest
) -> ValidationResult:
    with get_client(api_key) as client:
        return client.validate_prompt(task_id, request)


def validate_response_action(
    api_key: str, task_id: str, inference_id: str, request: ResponseValidationRequest
) -> ValidationResult:
    with get_client(api_key) as client:
        return client.validate_response(task_id, inference_id, request)


# Inferences


def get_inferences_action(
    api_key: str, params: QueryInferencesParams | None = None
) -> QueryInferencesResponse:
    with get_client(api_key) as client:
        return client.get_inferences(params)


# Form-style actions: flat string fields in, typed requests out


def _split_list(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def _require(form: Mapping[str, str], *names: str) -> None:
    missing = [n for n in names if not form.get(n)]
    if missing:
        raise ValueError(f"Missing required fields: {', '.join(missing)}")


def _flag(form: Mapping[str, str], name: str) -> bool:
    return form.get(name) == "true"


def build_rule_request(form: Mapping[str, str]) -> NewRuleRequest:
    """Turn rule form fields into a NewRuleRequest with the type's config."""
    rule_type = form["type"]
    config = None

    if rule_type == RuleType.KEYWORD.value:
        if form.get("keywords"):
            config = KeywordsConfig(keywords=_split_list(form["keywords"]))
    elif rule_type == RuleType.REGEX.value:
        if form.get("regexPatterns"):
            config = RegexConfig(regex_patterns=_split_list(form["regexPatterns"]))
    elif rule_type == RuleType.TOXICITY.value:
        if form.get("threshold"):
            config = ToxicityConfig(threshold=float(form["threshold"]))
    elif rule_type == RuleType.PII_DATA.value:
        config = PIIConfig(
            confidence_threshold=(
                float(form["confidenceThreshold"]) if form.get("confidenceThreshold") else None
            ),
            disabled_pii_entities=(
                _split_list(form["disabledPiiEntities"]) if form.get("disabledPiiEntities") else None
            ),
            allow_list=_split_list(form["allowList"]) if form.get("allowList") else None,
        )
    elif rule_type == RuleType.MODEL_SENSITIVE_DATA.value:
        if form.get("examples"):
            try:
                parsed = json.loads(form["examples"])
                if not isinstance(parsed, list):
                    raise ValueError("Examples must be an array")
                examples = [ExampleConfig.model_validate(e) for e in parsed]
            except ValueError as e:
                # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors
                raise ValueError("Invalid examples JSON format") from e
            config = ExamplesConfig(examples=examples, hint=form.get("hint") or None)

    return NewRuleRequest(
        name=form["name"],
        type=rule_type,
        apply_to_prompt=_flag(form, "applyToPrompt"),
        apply_to_response=_flag(form, "applyToResponse"),
        config=config,
    )


def create_task_form_action(api_key: str, form: Mapping[str, str]) -> Task:
    if not form.get("name"):
        raise ValueError("Task name is required")
    return create_task_action(api_key, NewTaskRequest(name=form["name"]))


def create_task_rule_form_action(api_key: str, form: Mapping[str, str]) -> Rule:
    _require(form, "taskId", "name", "type")
    request = build_rule_request(form)
    return create_task_rule_action(api_key, form["taskId"], request)


def update_task_rule_form_action(api_key: str, form: Mapping[str, str]) -> Task:
    _require(form, "taskId", "ruleId")
    request = UpdateRuleRequest(enabled=_flag(form, "enabled"))
    return update_task_rule_action(api_key, form["taskId"], form["ruleId"], request)


def validate_prompt_form_action(api_key: str, form: Mapping[str, str]) -> ValidationResult:
    _require(form, "taskId", "prompt")
    request = PromptValidationRequest(
        prompt=form["prompt"],
        conversation_id=form.get("conversationId") or None,
        user_id=form.get("userId") or None,
    )
    return validate_prompt_action(api_key, form["taskId"], request)


def validate_response_form_action(api_key: str, form: Mapping[str, str]) -> ValidationResult:
    _require(form, "taskId", "inferenceId", "response")
    request = ResponseValidationRequest(
        response=form["response"],
        context=form.get("context") or None,
    )
    return validate_response_action(api_key, form["taskId"], form["inferenceId"], request)


@dataclass(frozen=True)
class ConnectionStatus:
    success: bool
    error: str | None = None


def check_connection(api_key: Optional[str]) -> ConnectionStatus:
    """Probe the service with a one-row inference query. Never raises."""
    if not api_key or not api_key.strip():
        return ConnectionStatus(success=False, error="Please enter an API key")
    try:
        get_inferences_action(api_key.strip(), QueryInferencesParams(page_size=1))
    except (GuardLensError, httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
        logger.info("Connection test failed: %s", e)
        return ConnectionStatus(success=False, error=str(e) or "Unknown error occurred")
    return ConnectionStatus(success=True)


