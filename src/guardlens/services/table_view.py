"""View models for the inferences table: rows, detail panels and pagination."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from guardlens.models.domain import (
    BaseDetails,
    DetailKind,
    HallucinationDetails,
    Inference,
    KeywordDetails,
    PIIDetails,
    RegexDetails,
    RuleResult,
    RuleResultEnum,
    ToxicityDetails,
)
from guardlens.services.filters import DEFAULT_PAGE_SIZE, InferencesFilters
from guardlens.services.formatting import format_date, format_rule_result, percent
from guardlens.services.inferences_query import QueryResult, QueryStatus

NOT_AVAILABLE = "N/A"
NO_RESPONSE = "No response"
NO_INFERENCES = "No inferences found"
WAITING = "Waiting for data"


@dataclass(frozen=True)
class Pagination:
    page: int
    page_size: int
    total_count: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total_count / self.page_size)

    @property
    def can_previous(self) -> bool:
        return self.page > 0

    @property
    def can_next(self) -> bool:
        return self.page < self.total_pages - 1

    @property
    def label(self) -> str:
        return f"Page {self.page + 1} of {self.total_pages} ({self.total_count} total)"


@dataclass(frozen=True)
class ExpandedRows:
    ids: frozenset[str] = frozenset()

    def toggle(self, inference_id: str) -> "ExpandedRows":
        if inference_id in self.ids:
            return ExpandedRows(self.ids - {inference_id})
        return ExpandedRows(self.ids | {inference_id})

    def is_expanded(self, inference_id: str) -> bool:
        return inference_id in self.ids


# ---------------------------------------------------------------------------
# Rule detail sections
# ---------------------------------------------------------------------------


class SectionKind(str, Enum):
    MESSAGE = "message"
    KEYWORDS = "keywords"
    REGEX = "regex"
    CLAIMS = "claims"
    PII = "pii"
    TOXICITY = "toxicity"


@dataclass(frozen=True)
class DetailItem:
    text: str
    note: Optional[str] = None
    ok: Optional[bool] = None


@dataclass(frozen=True)
class DetailSection:
    kind: SectionKind
    title: str
    items: tuple[DetailItem, ...]


def _keyword_sections(details: KeywordDetails) -> list[DetailSection]:
    items = tuple(DetailItem(m.keyword) for m in details.keyword_matches)
    return [DetailSection(SectionKind.KEYWORDS, "Keywords found:", items)] if items else []


def _regex_sections(details: RegexDetails) -> list[DetailSection]:
    items = tuple(
        DetailItem(m.matching_text, note=f"Pattern: {m.pattern}" if m.pattern else None)
        for m in details.regex_matches
    )
    return [DetailSection(SectionKind.REGEX, "Pattern matches:", items)] if items else []


def _claim_sections(details: HallucinationDetails) -> list[DetailSection]:
    items = tuple(
        DetailItem(c.claim, note=c.reason or None, ok=c.valid) for c in details.claims
    )
    return [DetailSection(SectionKind.CLAIMS, "Claims analysis:", items)] if items else []


def _pii_sections(details: PIIDetails) -> list[DetailSection]:
    items = []
    for e in details.pii_entities:
        text = f"{e.entity}: {e.span}"
        if e.confidence:
            text += f" ({percent(e.confidence)}%)"
        items.append(DetailItem(text))
    return [DetailSection(SectionKind.PII, "PII detected:", tuple(items))] if items else []


def _no_sections(details: ToxicityDetails | BaseDetails) -> list[DetailSection]:
    return []


_SECTION_BUILDERS: dict[DetailKind, Callable] = {
    DetailKind.KEYWORD: _keyword_sections,
    DetailKind.REGEX: _regex_sections,
    DetailKind.CLAIMS: _claim_sections,
    DetailKind.PII: _pii_sections,
    # toxicity renders as the inline badge, not as a panel
    DetailKind.TOXICITY: _no_sections,
    DetailKind.BASE: _no_sections,
}


def toxicity_badge(rule: RuleResult) -> Optional[DetailSection]:
    """Inline toxicity score badge; shown for any result, Pass included."""
    details = rule.details
    if details is None or details.kind != DetailKind.TOXICITY:
        return None
    score = percent(details.toxicity_score)
    return DetailSection(
        SectionKind.TOXICITY,
        f"{score}%",
        (DetailItem(details.toxicity_violation_type or "", ok=score == 0),),
    )


def detail_sections(rule: RuleResult) -> list[DetailSection]:
    """Expanded detail panel for one rule result. Passing rules show none."""
    details = rule.details
    if details is None or rule.result == RuleResultEnum.PASS:
        return []
    sections: list[DetailSection] = []
    if details.message:
        sections.append(DetailSection(SectionKind.MESSAGE, "Message", (DetailItem(details.message),)))
    sections.extend(_SECTION_BUILDERS[DetailKind(details.kind)](details))
    return sections


def failed_rules(results: list[RuleResult]) -> list[RuleResult]:
    return [r for r in results or [] if r.result == RuleResultEnum.FAIL]


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuleView:
    name: str
    result: str
    label: str
    toxicity: Optional[DetailSection]
    sections: tuple[DetailSection, ...]


def rule_view(rule: RuleResult) -> RuleView:
    return RuleView(
        name=rule.name,
        result=format_rule_result(rule.result),
        label=f"{rule.name}: {format_rule_result(rule.result)}",
        toxicity=toxicity_badge(rule),
        sections=tuple(detail_sections(rule)),
    )


@dataclass(frozen=True)
class MessagePanel:
    title: str
    message: str
    tokens: Optional[int]
    context: Optional[str]
    rules: tuple[RuleView, ...]


@dataclass(frozen=True)
class InferenceRow:
    id: str
    short_id: str
    task: str
    result: str
    user: str
    created_at: str
    prompt: str
    response: str
    prompt_failed: int
    response_failed: int
    expanded: bool
    panels: tuple[MessagePanel, ...] = ()


def _panels(inference: Inference) -> tuple[MessagePanel, ...]:
    prompt = inference.inference_prompt
    panels = [
        MessagePanel(
            title="Prompt Details",
            message=prompt.message,
            tokens=prompt.tokens,
            context=None,
            rules=tuple(rule_view(r) for r in prompt.prompt_rule_results),
        )
    ]
    response = inference.inference_response
    if response is not None:
        panels.append(
            MessagePanel(
                title="Response Details",
                message=response.message,
                tokens=response.tokens,
                context=response.context,
                rules=tuple(rule_view(r) for r in response.response_rule_results),
            )
        )
    return tuple(panels)


def build_row(inference: Inference, expanded: ExpandedRows) -> InferenceRow:
    is_expanded = expanded.is_expanded(inference.id)
    response = inference.inference_response
    return InferenceRow(
        id=inference.id,
        short_id=f"{inference.id[:8]}...",
        task=inference.task_name or NOT_AVAILABLE,
        result=format_rule_result(inference.result),
        user=inference.user_id or NOT_AVAILABLE,
        created_at=format_date(inference.created_at),
        prompt=inference.inference_prompt.message,
        response=response.message if response else NO_RESPONSE,
        prompt_failed=len(failed_rules(inference.inference_prompt.prompt_rule_results)),
        response_failed=len(failed_rules(response.response_rule_results)) if response else 0,
        expanded=is_expanded,
        panels=_panels(inference) if is_expanded else (),
    )


# ---------------------------------------------------------------------------
# Whole table
# ---------------------------------------------------------------------------


class ViewState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"
    EMPTY = "empty"
    ROWS = "rows"


@dataclass(frozen=True)
class TableView:
    state: ViewState
    message: Optional[str] = None
    rows: tuple[InferenceRow, ...] = ()
    pagination: Pagination = field(default_factory=lambda: Pagination(0, DEFAULT_PAGE_SIZE, 0))


def build_table_view(
    result: QueryResult,
    applied: InferencesFilters,
    expanded: ExpandedRows | None = None,
) -> TableView:
    expanded = expanded or ExpandedRows()
    data = result.data
    pagination = Pagination(
        page=applied.page or 0,
        page_size=applied.page_size or DEFAULT_PAGE_SIZE,
        total_count=data.count if data else 0,
    )

    if result.status == QueryStatus.ERROR:
        return TableView(
            ViewState.ERROR,
            message=f"Error loading inferences: {result.error}",
            pagination=pagination,
        )
    if result.status == QueryStatus.IDLE:
        return TableView(ViewState.IDLE, message=WAITING, pagination=pagination)
    if data is None:
        return TableView(ViewState.LOADING, message=WAITING, pagination=pagination)
    if not data.inferences:
        return TableView(ViewState.EMPTY, message=NO_INFERENCES, pagination=pagination)

    rows = tuple(build_row(i, expanded) for i in data.inferences)
    state = ViewState.LOADING if result.status == QueryStatus.LOADING else ViewState.ROWS
    return TableView(state, rows=rows, pagination=pagination)
