import time

import pytest
from freezegun import freeze_time

from tap_webhooks.services.webhook_verify import WebhookVerifier

NOW = 1735732800  # 2025-01-01 12:00:00 UTC


@pytest.fixture(autouse=True)
def frozen_clock():
    with freeze_time("2025-01-01 12:00:00"):
        assert int(time.time()) == NOW
        yield


def test_recent_webhook_passes(verifier):
    assert verifier.check_tolerance({"created": NOW - 60}).valid


def test_old_webhook_fails(verifier):
    result = verifier.check_tolerance({"created": NOW - 400})

    assert not result.valid
    assert result.error == "webhook expired or timestamp invalid"
    assert result.context == {
        "created": NOW - 400,
        "now": NOW,
        "tolerance": 300,
        "diff": 400,
    }


@pytest.mark.parametrize("offset", [300, -300])
def test_boundary_is_inclusive(verifier, offset):
    assert verifier.check_tolerance({"created": NOW - offset}).valid


@pytest.mark.parametrize("offset", [301, -301])
def test_one_past_boundary_fails(verifier, offset):
    result = verifier.check_tolerance({"created": NOW - offset})
    assert not result.valid
    assert result.context["diff"] == 301


def test_future_timestamp_beyond_tolerance_fails(verifier):
    assert not verifier.check_tolerance({"created": NOW + 3600}).valid


def test_custom_tolerance(secret):
    verifier = WebhookVerifier(secret, tolerance_seconds=10)

    assert verifier.check_tolerance({"created": NOW - 10}).valid
    assert not verifier.check_tolerance({"created": NOW - 11}).valid


def test_zero_tolerance_requires_exact_time(secret):
    verifier = WebhookVerifier(secret, tolerance_seconds=0)

    assert verifier.check_tolerance({"created": NOW}).valid
    assert not verifier.check_tolerance({"created": NOW - 1}).valid


def test_missing_created_passes(verifier):
    assert verifier.check_tolerance({"id": "chg_123"}).valid


def test_null_created_passes(verifier):
    assert verifier.check_tolerance({"id": "chg_123", "created": None}).valid


@pytest.mark.parametrize(
    "created",
    [str(NOW), f" {NOW} ", float(NOW), NOW + 0.9],
)
def test_numeric_forms_are_parsed(verifier, created):
    assert verifier.check_tolerance({"created": created}).valid


@pytest.mark.parametrize(
    "created",
    ["not-a-number", "", "1.7e9", True, False, [NOW], {"ts": NOW}, float("nan"), float("inf")],
)
def test_unparseable_created_fails_closed(verifier, created):
    result = verifier.check_tolerance({"created": created})

    assert not result.valid
    assert result.error == "webhook expired or timestamp invalid"
    assert result.context["reason"] == "unparseable"


def test_validate_runs_tolerance_after_signature(verifier):
    payload = {"id": "chg_123", "amount": 10.5, "created": NOW - 301}

    result = verifier.validate(payload, verifier.compute_signature(payload))

    assert result.error == "webhook expired or timestamp invalid"
