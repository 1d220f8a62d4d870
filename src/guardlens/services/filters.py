"""
Two-stage filter state for the inferences table.

`draft` is what the user is editing; `applied` is what drives fetching.
Every transition is a pure function returning a new FilterState.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

from guardlens.models.domain import (
    PaginationSortMethod,
    QueryInferencesParams,
    RuleResultEnum,
)

PAGE_SIZES: tuple[int, ...] = (10, 25, 50, 100)
DEFAULT_PAGE_SIZE = 10

RULE_STATUSES: tuple[RuleResultEnum, ...] = tuple(RuleResultEnum)

# Fields a user can type into; pagination is handled separately.
EDITABLE_FIELDS = ("task_name", "user_id", "start_time", "end_time")


@dataclass(frozen=True)
class InferencesFilters:
    task_name: Optional[str] = None
    user_id: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    rule_statuses: Optional[tuple[RuleResultEnum, ...]] = None
    page: Optional[int] = None
    page_size: Optional[int] = None


def _initial_filters() -> InferencesFilters:
    return InferencesFilters(page=0, page_size=DEFAULT_PAGE_SIZE)


@dataclass(frozen=True)
class FilterState:
    draft: InferencesFilters = field(default_factory=_initial_filters)
    applied: InferencesFilters = field(default_factory=_initial_filters)


def update_draft(state: FilterState, **changes: Optional[str]) -> FilterState:
    """Edit draft fields. Blank strings clear the field. Never touches `applied`."""
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown filter field(s): {', '.join(sorted(unknown))}")
    cleaned = {k: (v or None) for k, v in changes.items()}
    return replace(state, draft=replace(state.draft, **cleaned))


def set_date_range(
    state: FilterState,
    start: Optional[datetime],
    end: Optional[datetime],
) -> FilterState:
    return replace(
        state,
        draft=replace(
            state.draft,
            start_time=start.isoformat() if start else None,
            end_time=end.isoformat() if end else None,
        ),
    )


def set_rule_status(state: FilterState, status: Optional[str]) -> FilterState:
    """Single-status select; None or "all" means any status."""
    if not status or status == "all":
        statuses = None
    else:
        statuses = (RuleResultEnum(status),)
    return replace(state, draft=replace(state.draft, rule_statuses=statuses))


def apply_filters(state: FilterState) -> FilterState:
    applied = replace(state.draft, page=0, page_size=state.applied.page_size)
    return replace(state, applied=applied)


def clear_filters(state: FilterState) -> FilterState:
    cleared = InferencesFilters(page=0, page_size=state.applied.page_size)
    return FilterState(draft=cleared, applied=cleared)


def change_page(state: FilterState, page: int) -> FilterState:
    if page < 0:
        raise ValueError("page must be >= 0")
    return replace(state, applied=replace(state.applied, page=page))


def change_page_size(state: FilterState, page_size: int) -> FilterState:
    if page_size not in PAGE_SIZES:
        raise ValueError(f"page_size must be one of {PAGE_SIZES}")
    return replace(state, applied=replace(state.applied, page_size=page_size, page=0))


def to_query_params(filters: InferencesFilters) -> QueryInferencesParams:
    """Normalize applied filters into the request the service expects."""
    return QueryInferencesParams(
        task_name=filters.task_name,
        user_id=filters.user_id,
        start_time=filters.start_time,
        end_time=filters.end_time,
        rule_statuses=list(filters.rule_statuses) if filters.rule_statuses else None,
        page=filters.page if filters.page is not None else 0,
        page_size=filters.page_size if filters.page_size is not None else DEFAULT_PAGE_SIZE,
        include_count=True,
        sort=PaginationSortMethod.DESC,
    )
