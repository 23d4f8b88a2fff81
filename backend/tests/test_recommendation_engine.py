"""Tests for recommendation orchestration and explanations."""
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from tokenestate.core.config import settings
from tokenestate.schemas.recommendation import GENERIC_REASONS, InvestmentRange, RiskLevel
from tokenestate.services import storage
from tokenestate.services.fallback_scorer import REASON_BUDGET, REASON_LOCATION, REASON_TYPE
from tokenestate.services.llm_client import InferenceError
from tokenestate.services.recommendation_engine import (
    EXPLANATION_EMPTY,
    EXPLANATION_UNAVAILABLE,
    PROPERTY_NOT_FOUND,
    ScoringFailed,
    ScoringSucceeded,
    build_explanation_prompt,
    build_scoring_prompt,
    explain_recommendation,
    generate_recommendations,
    normalize_limit,
    score_with_inference,
)
from tokenestate.services.profile_analyzer import default_investor_profile
from conftest import FakeInferenceClient

QUOTA_EXCEEDED = InferenceError("RateLimitError: You exceeded your current quota")


def _entry(property_id, score, reasons=None, risk="medium", match=None):
    return {
        "propertyId": property_id,
        "score": score,
        "reasons": reasons if reasons is not None else ["Good fit"],
        "riskLevel": risk,
        "matchPercentage": score if match is None else match,
    }


def _assert_well_formed(recommendations):
    scores = [r.score for r in recommendations]
    assert scores == sorted(scores, reverse=True)
    for rec in recommendations:
        assert 0 <= rec.score <= 100
        assert 0 <= rec.match_percentage <= 100
        assert 1 <= len(rec.reasons) <= 3


def test_quota_error_falls_back_to_rule_based_scoring(db: Session, make_user, make_property):
    user = make_user()
    props = [
        make_property(property_type="Residential", location="Urban Heights", min_investment=Decimal("2000"), expected_roi=Decimal("11.0")),
        make_property(property_type="Commercial"),
        make_property(),
        make_property(location="Suburban Park"),
        make_property(expected_roi=Decimal("12.5")),
    ]
    client = FakeInferenceClient(json_replies={"score_properties": QUOTA_EXCEEDED})

    recs = generate_recommendations(db, user.id, limit=5, client=client)

    assert len(recs) == 5
    assert {r.property.id for r in recs} == {p.id for p in props}
    assert recs[0].property.id == props[0].id
    assert recs[0].reasons == [REASON_BUDGET, REASON_TYPE, REASON_LOCATION]
    assert recs[0].risk_level == RiskLevel.MEDIUM
    assert "score_properties" in client.labels()
    _assert_well_formed(recs)


def test_already_invested_and_sold_out_properties_are_excluded(
    db: Session, make_user, make_property, make_investment
):
    user = make_user()
    held = make_property()
    sold_out = make_property(available_tokens=0)
    inactive = make_property(is_active=False)
    open_prop = make_property()
    make_investment(user, held)

    recs = generate_recommendations(db, user.id, client=FakeInferenceClient())

    ids = [r.property.id for r in recs]
    assert ids == [open_prop.id]
    assert held.id not in ids
    assert sold_out.id not in ids
    assert inactive.id not in ids


def test_no_candidates_returns_empty_without_scoring(db: Session, make_user, make_property, make_investment):
    user = make_user()
    make_investment(user, make_property())
    make_property(available_tokens=0)
    client = FakeInferenceClient(json_replies={"score_properties": {"recommendations": []}})

    assert generate_recommendations(db, user.id, client=client) == []
    assert "score_properties" not in client.labels()


def test_primary_scoring_results_are_mapped_sorted_and_truncated(db: Session, make_user, make_property):
    user = make_user()
    a, b, c = make_property(), make_property(), make_property()
    reply = {
        "recommendations": [
            _entry(a.id, 40),
            _entry(99999, 99),  # not a candidate
            _entry(c.id, 90, risk="HIGH"),
            _entry(b.id, 75, reasons=["one", "two", "three", "four"]),
            _entry(c.id, 10),  # duplicate id
        ]
    }
    client = FakeInferenceClient(json_replies={"score_properties": reply})

    recs = generate_recommendations(db, user.id, limit=2, client=client)

    assert [r.property.id for r in recs] == [c.id, b.id]
    assert recs[0].risk_level == RiskLevel.HIGH
    assert recs[1].reasons == ["one", "two", "three"]
    _assert_well_formed(recs)


def test_primary_scoring_values_are_clamped_and_reasons_backfilled(db: Session, make_user, make_property):
    user = make_user()
    a, b = make_property(), make_property()
    reply = {
        "recommendations": [
            _entry(a.id, 140, reasons=[], match=-3),
            _entry(b.id, "55", reasons=None),
        ]
    }
    reply["recommendations"][1].pop("reasons")

    recs = generate_recommendations(db, user.id, client=FakeInferenceClient(json_replies={"score_properties": reply}))

    assert recs[0].property.id == a.id
    assert recs[0].score == 100
    assert recs[0].match_percentage == 0
    assert recs[0].reasons == list(GENERIC_REASONS)
    assert recs[1].score == 55
    assert recs[1].reasons == list(GENERIC_REASONS)


@pytest.mark.parametrize("bad_value", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_primary_scores_are_dropped(db: Session, make_user, make_property, bad_value):
    user = make_user()
    a, b, c = make_property(), make_property(), make_property()
    reply = {
        "recommendations": [
            _entry(a.id, 90),
            _entry(b.id, bad_value),
            _entry(c.id, 60, match=bad_value),
        ]
    }

    recs = generate_recommendations(db, user.id, client=FakeInferenceClient(json_replies={"score_properties": reply}))

    assert [r.property.id for r in recs] == [a.id]
    assert recs[0].score == 90


def test_unusable_primary_reply_triggers_fallback(db: Session, make_user, make_property):
    user = make_user()
    props = [make_property(), make_property(property_type="Commercial")]
    reply = {"recommendations": [_entry(99999, 80), {"propertyId": props[0].id, "score": "high"}, "junk"]}

    recs = generate_recommendations(db, user.id, client=FakeInferenceClient(json_replies={"score_properties": reply}))

    # Fallback: commercial property earns the type bonus and ranks first
    assert [r.property.id for r in recs] == [props[1].id, props[0].id]
    assert recs[0].score == settings.SCORING_BASE_SCORE + settings.SCORING_TYPE_BONUS


def test_ties_keep_candidate_order(db: Session, make_user, make_property):
    user = make_user()
    props = [make_property() for _ in range(4)]
    reply = {"recommendations": [_entry(p.id, 70) for p in reversed(props)]}

    recs = generate_recommendations(db, user.id, client=FakeInferenceClient(json_replies={"score_properties": reply}))

    assert [r.property.id for r in recs] == [p.id for p in props]


def test_missing_client_uses_fallback(db: Session, make_user, make_property):
    user = make_user()
    make_property()

    recs = generate_recommendations(db, user.id, client=None)

    assert len(recs) == 1
    assert recs[0].score == settings.SCORING_BASE_SCORE


def test_unexpected_error_returns_empty_list(db: Session, make_user, make_property, monkeypatch):
    user = make_user()
    make_property()

    def broken(_db):
        raise RuntimeError("database went away")

    monkeypatch.setattr(storage, "get_properties", broken)

    assert generate_recommendations(db, user.id, client=FakeInferenceClient()) == []


@pytest.mark.parametrize(
    "limit,expected",
    [
        (None, 5),
        (0, 5),
        (-3, 5),
        ("3", 5),
        (2.5, 5),
        (True, 5),
        (1, 1),
        (7, 7),
        (10_000, 20),
    ],
)
def test_normalize_limit(limit, expected):
    assert normalize_limit(limit) == expected


def test_limit_bounds_result_size(db: Session, make_user, make_property):
    user = make_user()
    for _ in range(8):
        make_property()

    assert len(generate_recommendations(db, user.id, limit=3, client=FakeInferenceClient())) == 3
    assert len(generate_recommendations(db, user.id, client=FakeInferenceClient())) == 5
    assert len(generate_recommendations(db, user.id, limit=0, client=FakeInferenceClient())) == 5


def test_score_with_inference_outcomes(db: Session, make_property):
    prop = make_property()
    profile = default_investor_profile()

    failed = score_with_inference(FakeInferenceClient(json_replies={"score_properties": QUOTA_EXCEEDED}), profile, [prop])
    assert isinstance(failed, ScoringFailed)
    assert "quota" in failed.reason

    ok = score_with_inference(
        FakeInferenceClient(json_replies={"score_properties": {"recommendations": [_entry(prop.id, 66)]}}),
        profile,
        [prop],
    )
    assert isinstance(ok, ScoringSucceeded)
    assert [e.property_id for e in ok.entries] == [prop.id]

    assert isinstance(score_with_inference(None, profile, [prop]), ScoringFailed)


def test_scoring_prompt_lists_every_candidate(db: Session, make_user, make_property):
    user = make_user()
    props = [make_property(title="Seattle Waterfront Towers"), make_property(title="Pune Metropolitan Mall")]
    client = FakeInferenceClient()

    generate_recommendations(db, user.id, client=client)

    [prompt] = [p for label, p in client.calls if label == "score_properties"]
    for prop in props:
        assert f"Property ID: {prop.id}" in prompt
        assert prop.title in prompt
    assert "Risk Tolerance: moderate" in prompt


def test_prompts_render_large_budgets_in_full(make_property):
    prop = make_property()
    profile = default_investor_profile().model_copy(
        update={"preferred_investment_range": InvestmentRange(min=2500, max=1234567)}
    )

    expected = "Preferred Investment Range: $2,500 - $1,234,567"
    assert expected in build_scoring_prompt(profile, [prop])
    assert expected in build_explanation_prompt(profile, prop)


def test_explain_unknown_property_returns_sentinel(db: Session, make_user):
    user = make_user()
    client = FakeInferenceClient(text_reply="should not be used")

    assert explain_recommendation(db, 9999, user.id, client) == PROPERTY_NOT_FOUND
    assert client.calls == []


def test_explain_returns_model_text_verbatim(db: Session, make_user, make_property):
    user = make_user()
    prop = make_property(title="Miami Beach Resort")
    text = "This resort suits you.\n\nIt balances income and growth. "
    client = FakeInferenceClient(text_reply=text)

    assert explain_recommendation(db, prop.id, user.id, client) == text
    [prompt] = [p for label, p in client.calls if label == "explain_recommendation"]
    assert "Title: Miami Beach Resort" in prompt


def test_explain_failures_return_fixed_text(db: Session, make_user, make_property):
    user = make_user()
    prop = make_property()

    assert explain_recommendation(db, prop.id, user.id, FakeInferenceClient(text_reply=QUOTA_EXCEEDED)) == EXPLANATION_UNAVAILABLE
    assert explain_recommendation(db, prop.id, user.id, FakeInferenceClient(text_reply=RuntimeError("x"))) == EXPLANATION_UNAVAILABLE
    assert explain_recommendation(db, prop.id, user.id, None) == EXPLANATION_UNAVAILABLE
    assert explain_recommendation(db, prop.id, user.id, FakeInferenceClient(text_reply="")) == EXPLANATION_EMPTY

