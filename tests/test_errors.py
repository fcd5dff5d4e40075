"""Error taxonomy and structured error bodies."""

from __future__ import annotations

import pytest

from zyra_launchpad.errors import (
    GENERIC_MESSAGE,
    AlreadyClaimedError,
    AlreadyDoneError,
    CapExceededError,
    InvalidInputError,
    InvalidStateError,
    LaunchpadError,
    NotFoundError,
    ProviderUnavailableError,
    error_body,
)


@pytest.mark.parametrize(
    "exc_class, kind",
    [
        (NotFoundError, "not_found"),
        (InvalidStateError, "invalid_state"),
        (InvalidInputError, "invalid_input"),
        (AlreadyClaimedError, "already_claimed"),
        (AlreadyDoneError, "already_done"),
    ],
)
def test_each_error_has_a_stable_kind(exc_class, kind):
    exc = exc_class("boom")
    assert isinstance(exc, LaunchpadError)
    assert exc.kind == kind
    assert exc.to_dict() == {"kind": kind, "message": "boom", "details": {}}


def test_cap_exceeded_carries_amounts():
    exc = CapExceededError(
        "over cap", pi_power="300.0000000", committed_pi="100.0000000", requested="250.0000000",
    )
    assert exc.kind == "cap_exceeded"
    assert exc.details == {
        "pi_power": "300.0000000",
        "committed_pi": "100.0000000",
        "requested": "250.0000000",
    }


def test_provider_unavailable_prefixes_provider():
    exc = ProviderUnavailableError("ledger", "horizon HTTP 503")
    assert exc.message == "[ledger] horizon HTTP 503"
    assert exc.provider == "ledger"


def test_error_body_exposes_taxonomy_errors():
    body = error_body(InvalidStateError("Participation window is not open"))
    assert body == {
        "success": False,
        "kind": "invalid_state",
        "message": "Participation window is not open",
    }


def test_error_body_hides_unexpected_errors():
    body = error_body(KeyError("internal detail"))
    assert body["kind"] == "internal_error"
    assert body["message"] == GENERIC_MESSAGE
    assert "internal detail" not in body["message"]
