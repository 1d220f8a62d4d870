"""HTTP client for the GenAI governance service REST API."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional
from urllib.parse import quote, urlencode

import httpx
from pydantic import BaseModel

from guardlens.config.settings import settings
from guardlens.errors import GovernanceAPIError
from guardlens.models.domain import (
    NewRuleRequest,
    NewTaskRequest,
    PromptValidationRequest,
    QueryInferencesParams,
    QueryInferencesResponse,
    ResponseValidationRequest,
    Rule,
    Task,
    UpdateRuleRequest,
    ValidationResult,
)

logger = logging.getLogger(__name__)

INFERENCES_QUERY_PATH = "/api/v2/inferences/query"
TASKS_PATH = "/api/v2/tasks"


def _wire_value(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def query_pairs(params: QueryInferencesParams) -> list[tuple[str, str]]:
    """
    Flatten query params into ordered (key, value) pairs.

    Scalars give one pair, lists give one pair per element in list order,
    and unset fields are left out entirely.
    """
    pairs: list[tuple[str, str]] = []
    for key in type(params).model_fields:
        value = getattr(params, key)
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((key, _wire_value(item)) for item in value)
        else:
            pairs.append((key, _wire_value(value)))
    return pairs


def build_query_string(params: QueryInferencesParams) -> str:
    return urlencode(query_pairs(params))


def _segment(value: str) -> str:
    return quote(str(value), safe="")


class GovernanceClient:
    """
    Thin typed wrapper over the governance REST API.

    Design:
    - Sync httpx client (simple for CLI + tests)
    - Dependency injection via `client` makes it testable without real HTTP
    - No retries and no caching at this layer
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        client: httpx.Client | None = None,
        timeout_s: float | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout_s or settings.timeout_s)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "GovernanceClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def request(self, method: str, endpoint: str, body: BaseModel | None = None) -> Any:
        """
        Send one request and decode the reply.

        Non-2xx raises GovernanceAPIError with the raw body text. 204 gives
        an empty dict, JSON content types are parsed and anything else is
        returned as text. Transport errors propagate as httpx exceptions.
        """
        url = f"{self.base_url}{endpoint}"
        content = body.model_dump_json(exclude_none=True) if body is not None else None

        logger.debug("%s %s", method, endpoint)
        r = self._client.request(method, url, headers=self._headers(), content=content)

        if not r.is_success:
            logger.debug("%s %s failed with %s", method, endpoint, r.status_code)
            raise GovernanceAPIError(r.status_code, r.text)

        if r.status_code == 204:
            return {}

        content_type = r.headers.get("content-type", "")
        if "application/json" in content_type:
            return r.json()
        return r.text

    # Task operations

    def create_task(self, request: NewTaskRequest) -> Task:
        return Task.model_validate(self.request("POST", TASKS_PATH, request))

    def get_task(self, task_id: str) -> Task:
        return Task.model_validate(self.request("GET", f"{TASKS_PATH}/{_segment(task_id)}"))

    def search_tasks(self, search_term: Optional[str] = None) -> list[Task]:
        query = f"?{urlencode({'search': search_term})}" if search_term else ""
        payload = self.request("GET", f"{TASKS_PATH}{query}")
        return [Task.model_validate(t) for t in payload or []]

    def archive_task(self, task_id: str) -> None:
        self.request("DELETE", f"{TASKS_PATH}/{_segment(task_id)}")

    # Task rule operations

    def create_task_rule(self, task_id: str, request: NewRuleRequest) -> Rule:
        payload = self.request("POST", f"{TASKS_PATH}/{_segment(task_id)}/rules", request)
        return Rule.model_validate(payload)

    def update_task_rule(self, task_id: str, rule_id: str, request: UpdateRuleRequest) -> Task:
        payload = self.request(
            "PATCH",
            f"{TASKS_PATH}/{_segment(task_id)}/rules/{_segment(rule_id)}",
            request,
        )
        return Task.model_validate(payload)

    def archive_task_rule(self, task_id: str, rule_id: str) -> None:
        self.request("DELETE", f"{TASKS_PATH}/{_segment(task_id)}/rules/{_segment(rule_id)}")

    # Task-based validation

    def validate_prompt(self, task_id: str, request: PromptValidationRequest) -> ValidationResult:
        payload = self.request("POST", f"{TASKS_PATH}/{_segment(task_id)}/validate_prompt", request)
        return ValidationResult.model_validate(payload)

    def validate_response(
        self,
        task_id: str,
        inference_id: str,
        request: ResponseValidationRequest,
    ) -> ValidationResult:
        payload = self.request(
            "POST",
            f"{TASKS_PATH}/{_segment(task_id)}/validate_response/{_segment(inference_id)}",
            request,
        )
        return ValidationResult.model_validate(payload)

    # Inferences

    def get_inferences(self, params: QueryInferencesParams | None = None) -> QueryInferencesResponse:
        query = build_query_string(params or QueryInferencesParams())
        endpoint = f"{INFERENCES_QUERY_PATH}?{query}" if query else INFERENCES_QUERY_PATH
        return QueryInferencesResponse.model_validate(self.request("GET", endpoint))
