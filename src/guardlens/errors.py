"""Exception types raised by GuardLens."""

from __future__ import annotations


class GuardLensError(Exception):
    """Base class for GuardLens failures."""


class ConfigurationError(GuardLensError):
    """Base URL or credential missing; raised before any network call."""


class GovernanceAPIError(GuardLensError):
    """Non-2xx response from the governance service."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Governance API Error: {status_code} - {body}")
