"""Binds applied filters and a credential to a cached page fetch."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from guardlens.models.domain import QueryInferencesParams, QueryInferencesResponse
from guardlens.services import actions
from guardlens.services.filters import InferencesFilters, to_query_params
from guardlens.services.query_cache import QueryCache, make_key

logger = logging.getLogger(__name__)

Fetcher = Callable[[str, QueryInferencesParams], QueryInferencesResponse]


class QueryStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class QueryResult:
    status: QueryStatus
    data: Optional[QueryInferencesResponse] = None
    error: Optional[Exception] = None

    @property
    def is_loading(self) -> bool:
        return self.status == QueryStatus.LOADING

    @property
    def is_error(self) -> bool:
        return self.status == QueryStatus.ERROR

    @property
    def is_empty(self) -> bool:
        """Successful fetch with no rows (distinct from "no data yet")."""
        return self.status == QueryStatus.SUCCESS and not (self.data and self.data.inferences)


def _default_fetcher(api_key: str, params: QueryInferencesParams) -> QueryInferencesResponse:
    return actions.get_inferences_action(api_key, params)


class InferencesQuery:
    """
    The inferences data hook.

    Inert without a credential. Each run derives params from the applied
    filters, fetches through the shared cache and records the outcome only
    if its key is still the most recently requested one.
    """

    def __init__(
        self,
        api_key: Optional[str],
        fetcher: Fetcher | None = None,
        cache: QueryCache | None = None,
    ):
        self.api_key = api_key
        self.fetcher = fetcher or _default_fetcher
        self.cache = cache or QueryCache()
        self.result = QueryResult(QueryStatus.IDLE)
        self.current_key: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def params_for(self, filters: InferencesFilters) -> QueryInferencesParams:
        return to_query_params(filters)

    def key_parts(self, params: QueryInferencesParams) -> list[Any]:
        return ["inferences", self.api_key, params.model_dump(mode="json", exclude_none=True)]

    def run(self, filters: InferencesFilters) -> QueryResult:
        if not self.enabled:
            self.result = QueryResult(QueryStatus.IDLE)
            return self.result

        params = self.params_for(filters)
        key_parts = self.key_parts(params)
        key = make_key(key_parts)

        with self._lock:
            self.current_key = key
            self.result = QueryResult(QueryStatus.LOADING, data=self.result.data)

        try:
            data = self.cache.fetch(key_parts, lambda: self.fetcher(self.api_key, params))
        except Exception as e:
            logger.warning("Inference fetch failed: %s", e)
            outcome = QueryResult(QueryStatus.ERROR, error=e)
        else:
            outcome = QueryResult(QueryStatus.SUCCESS, data=data)

        with self._lock:
            if self.current_key == key:
                self.result = outcome
            else:
                logger.debug("Discarding result for superseded query %s", key[:12])
        return outcome

    def refetch(self, filters: InferencesFilters) -> QueryResult:
        self.cache.invalidate(self.key_parts(self.params_for(filters)))
        return self.run(filters)
