"""Global test fixtures."""

import sys
from pathlib import Path

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from guardlens.config.settings import settings  # noqa: E402
from guardlens.services import actions  # noqa: E402

BASE_URL = "https://governance.test"


@pytest.fixture(autouse=True)
def _base_url(monkeypatch):
    # Every test talks to a fake service; nothing reaches the network.
    monkeypatch.setattr(settings, "base_url", BASE_URL)
    monkeypatch.delenv("GUARDLENS_API_KEY", raising=False)
    yield


@pytest.fixture
def use_transport(monkeypatch):
    """Route every action's client through httpx.MockTransport(handler)."""
    real_get_client = actions.get_client

    def _install(handler):
        def _get_client(api_key, settings=None, http_client=None):
            transport = httpx.MockTransport(handler)
            return real_get_client(api_key, settings=settings, http_client=httpx.Client(transport=transport))

        monkeypatch.setattr(actions, "get_client", _get_client)

    return _install


def rule_result(name="Keyword check", result="Pass", rule_type="KeywordRule", details=None):
    payload = {
        "id": f"rule-{name.lower().replace(' ', '-')}",
        "name": name,
        "rule_type": rule_type,
        "scope": "task",
        "result": result,
        "latency_ms": 12,
    }
    if details is not None:
        payload["details"] = details
    return payload


def inference(inference_id="0f8e2c1a-5b7d-4c3e-9a21-6d4f0b9e7c11", prompt_rules=None, response=True, **overrides):
    payload = {
        "id": inference_id,
        "result": "Pass",
        "created_at": 1718000000,
        "updated_at": 1718000000,
        "task_id": "task-1",
        "task_name": "Support bot",
        "inference_prompt": {
            "id": f"{inference_id}-p",
            "inference_id": inference_id,
            "result": "Pass",
            "created_at": 1718000000,
            "updated_at": 1718000000,
            "message": "How do I reset my password?",
            "prompt_rule_results": prompt_rules or [],
            "tokens": 9,
        },
        "inference_feedback": [],
        "user_id": "user-7",
    }
    if response:
        payload["inference_response"] = {
            "id": f"{inference_id}-r",
            "inference_id": inference_id,
            "result": "Pass",
            "created_at": 1718000001,
            "updated_at": 1718000001,
            "message": "Use the account settings page.",
            "context": "Password resets live under settings.",
            "response_rule_results": [],
        }
    payload.update(overrides)
    return payload


def page_payload(count, n, prefix="inf"):
    return {
        "count": count,
        "inferences": [inference(f"{prefix}-{i:04d}-0000-0000") for i in range(n)],
    }


@pytest.fixture
def make_rule_result():
    return rule_result


@pytest.fixture
def make_inference():
    return inference


@pytest.fixture
def make_page():
    return page_payload
