from guardlens.models.domain import Inference, QueryInferencesResponse, RuleResult
from guardlens.services.filters import InferencesFilters
from guardlens.services.inferences_query import QueryResult, QueryStatus
from guardlens.services.table_view import (
    NO_INFERENCES,
    NO_RESPONSE,
    NOT_AVAILABLE,
    ExpandedRows,
    Pagination,
    SectionKind,
    ViewState,
    build_row,
    build_table_view,
    detail_sections,
    failed_rules,
    rule_view,
    toxicity_badge,
)


def _rule(make_rule_result, **kwargs) -> RuleResult:
    return RuleResult.model_validate(make_rule_result(**kwargs))


def _success(payload) -> QueryResult:
    return QueryResult(QueryStatus.SUCCESS, data=QueryInferencesResponse.model_validate(payload))


def test_first_of_three_pages():
    p = Pagination(page=0, page_size=10, total_count=25)
    assert p.total_pages == 3
    assert p.can_next and not p.can_previous
    assert p.label == "Page 1 of 3 (25 total)"


def test_last_page_disables_next():
    p = Pagination(page=2, page_size=10, total_count=25)
    assert p.can_previous and not p.can_next


def test_no_results_has_zero_pages():
    p = Pagination(page=0, page_size=10, total_count=0)
    assert p.total_pages == 0
    assert not p.can_next and not p.can_previous


def test_expanded_rows_toggle():
    rows = ExpandedRows().toggle("a").toggle("b").toggle("a")
    assert rows.is_expanded("b")
    assert not rows.is_expanded("a")


def test_toxicity_only_details_round_trip(make_rule_result):
    rule = _rule(
        make_rule_result,
        name="Toxicity",
        result="Fail",
        rule_type="ToxicityRule",
        details={"toxicity_score": 0.92, "toxicity_violation_type": "profanity"},
    )

    badge = toxicity_badge(rule)
    assert badge.kind == SectionKind.TOXICITY
    assert badge.title == "92%"
    assert badge.items[0].text == "profanity"
    assert badge.items[0].ok is False
    # the score is shown inline, not repeated as a panel
    assert detail_sections(rule) == []


def test_toxicity_badge_shows_for_passing_rule(make_rule_result):
    rule = _rule(make_rule_result, result="Pass", rule_type="ToxicityRule", details={"toxicity_score": 0.0})
    badge = toxicity_badge(rule)
    assert badge.title == "0%"
    assert badge.items[0].ok is True


def test_failed_keyword_rule_lists_matches(make_rule_result):
    rule = _rule(
        make_rule_result,
        result="Fail",
        details={"message": "Blocked keyword", "keyword_matches": [{"keyword": "refund"}, {"keyword": "lawsuit"}]},
    )
    sections = detail_sections(rule)

    assert [s.kind for s in sections] == [SectionKind.MESSAGE, SectionKind.KEYWORDS]
    assert sections[0].items[0].text == "Blocked keyword"
    assert sections[1].title == "Keywords found:"
    assert [i.text for i in sections[1].items] == ["refund", "lawsuit"]


def test_passing_rule_hides_details(make_rule_result):
    rule = _rule(make_rule_result, result="Pass", details={"keyword_matches": [{"keyword": "refund"}]})
    assert detail_sections(rule) == []
    assert rule_view(rule).label == "Keyword check: Pass"


def test_regex_claims_and_pii_sections(make_rule_result):
    regex = _rule(
        make_rule_result,
        result="Fail",
        details={"regex_matches": [{"matching_text": "4111-1111", "pattern": r"\d{4}-\d{4}"}]},
    )
    claims = _rule(
        make_rule_result,
        result="Fail",
        details={"claims": [{"claim": "Paris is in Spain", "valid": False, "reason": "wrong country"}]},
    )
    pii = _rule(
        make_rule_result,
        result="Fail",
        details={"pii_entities": [{"entity": "EMAIL_ADDRESS", "span": "a@b.com", "confidence": 0.875}]},
    )

    (regex_section,) = detail_sections(regex)
    assert regex_section.title == "Pattern matches:"
    assert regex_section.items[0].note == r"Pattern: \d{4}-\d{4}"

    (claims_section,) = detail_sections(claims)
    assert claims_section.items[0].ok is False
    assert claims_section.items[0].note == "wrong country"

    (pii_section,) = detail_sections(pii)
    assert pii_section.items[0].text == "EMAIL_ADDRESS: a@b.com (88%)"


def test_failed_rules_counts_only_fail(make_rule_result):
    rules = [
        _rule(make_rule_result, result="Fail"),
        _rule(make_rule_result, result="Skipped"),
        _rule(make_rule_result, result="Fail"),
    ]
    assert len(failed_rules(rules)) == 2


def test_row_fields(make_inference, make_rule_result):
    inference = Inference.model_validate(
        make_inference(
            prompt_rules=[make_rule_result(result="Fail"), make_rule_result(result="Pass")],
            task_name=None,
            user_id=None,
        )
    )
    row = build_row(inference, ExpandedRows())

    assert row.short_id == "0f8e2c1a..."
    assert row.task == NOT_AVAILABLE
    assert row.user == NOT_AVAILABLE
    assert row.prompt_failed == 1
    assert row.response == "Use the account settings page."
    assert row.panels == ()


def test_expanded_row_has_prompt_and_response_panels(make_inference):
    inference = Inference.model_validate(make_inference())
    row = build_row(inference, ExpandedRows().toggle(inference.id))

    assert [p.title for p in row.panels] == ["Prompt Details", "Response Details"]
    assert row.panels[1].context == "Password resets live under settings."


def test_row_without_response(make_inference):
    inference = Inference.model_validate(make_inference(response=False))
    row = build_row(inference, ExpandedRows().toggle(inference.id))

    assert row.response == NO_RESPONSE
    assert row.response_failed == 0
    assert [p.title for p in row.panels] == ["Prompt Details"]


def test_table_view_rows_and_pagination(make_page):
    view = build_table_view(_success(make_page(25, 10)), InferencesFilters(page=0, page_size=10))

    assert view.state == ViewState.ROWS
    assert len(view.rows) == 10
    assert view.pagination.label == "Page 1 of 3 (25 total)"


def test_table_view_empty_is_not_idle():
    empty = build_table_view(_success({"count": 0, "inferences": []}), InferencesFilters(page=0, page_size=10))
    idle = build_table_view(QueryResult(QueryStatus.IDLE), InferencesFilters())

    assert empty.state == ViewState.EMPTY
    assert empty.message == NO_INFERENCES
    assert idle.state == ViewState.IDLE


def test_table_view_error_message():
    result = QueryResult(QueryStatus.ERROR, error=RuntimeError("Governance API Error: 404 - not found"))
    view = build_table_view(result, InferencesFilters(page=0, page_size=10))

    assert view.state == ViewState.ERROR
    assert view.message == "Error loading inferences: Governance API Error: 404 - not found"
    assert view.rows == ()


def test_loading_keeps_previous_rows(make_page):
    previous = QueryInferencesResponse.model_validate(make_page(25, 10))
    view = build_table_view(QueryResult(QueryStatus.LOADING, data=previous), InferencesFilters(page=1, page_size=10))

    assert view.state == ViewState.LOADING
    assert len(view.rows) == 10


def test_row_with_out_of_range_timestamp_still_renders(make_inference, make_page):
    payload = make_page(2, 1)
    payload["inferences"].append(make_inference("bad-0000-0000", created_at=1e16))
    view = build_table_view(_success(payload), InferencesFilters(page=0, page_size=10))

    assert view.state == ViewState.ROWS
    assert view.rows[1].created_at == "Invalid Date"
