from __future__ import annotations

import pytest

from .utils import assert_not_5xx, http_delete, http_get_json, http_post_json, http_put_json

CHAIN = ["account", "profile", "definition", "instance"]
STEPS = {"need_account", "need_profile", "need_definition", "need_instance", "complete"}


def _open(base: str) -> dict:
    status, body, text = http_post_json(base, "/sessions")
    assert status == 201, f"{status}: {text[:300]}"
    return body


def test_open_session_shape(live_onboarding_url: str):
    body = _open(live_onboarding_url)
    sid = body["session_id"]
    try:
        assert body["step"] in STEPS
        assert [r["kind"] for r in body["resources"]] == CHAIN
        assert body["resources"][0]["address"]
        assert body["node"]["text"]
        assert body["node"]["actions"]
    finally:
        assert http_delete(live_onboarding_url, f"/sessions/{sid}") == 204


def test_step_follows_first_missing_link(live_onboarding_url: str):
    body = _open(live_onboarding_url)
    sid = body["session_id"]
    try:
        flags = [r["exists"] == "present" for r in body["resources"]]
        expected = "complete" if all(flags) else f"need_{CHAIN[flags.index(False)]}"
        assert body["step"] == expected
    finally:
        http_delete(live_onboarding_url, f"/sessions/{sid}")


def test_weird_inputs_never_5xx(live_onboarding_url: str):
    sid = _open(live_onboarding_url)["session_id"]
    try:
        status, _, text = http_put_json(live_onboarding_url, f"/sessions/{sid}/parameters/definition", {"name": "x" * 64})
        assert status == 400, text
        status, _, text = http_put_json(live_onboarding_url, f"/sessions/{sid}/parameters/instance", {"recipient": "not-a-key"})
        assert status == 400, text
        status, _, text = http_post_json(live_onboarding_url, f"/sessions/{sid}/start-another", {"clear_from": "account"})
        assert status == 400, text
        status, _, text = http_post_json(live_onboarding_url, f"/sessions/{sid}/resources/nothing")
        assert_not_5xx(status, text)
    finally:
        http_delete(live_onboarding_url, f"/sessions/{sid}")


def test_full_walk(live_onboarding_url: str, full_walk_enabled: bool):
    """
    Walks the whole chain. Needs a ledger that can fund the wallet
    (LEDGER_PROVIDER=stub, or a devnet faucet that is not rate limited).
    """
    if not full_walk_enabled:
        pytest.skip("set ONBOARDING_TEST_FULL_WALK=1 to create resources on the ledger")

    sid = _open(live_onboarding_url)["session_id"]
    try:
        for kind in CHAIN:
            status, body, text = http_post_json(live_onboarding_url, f"/sessions/{sid}/resources/{kind}")
            assert status == 200, f"{status}: {text[:300]}"
            assert body["outcome"]["status"] in ("created", "cached"), body["outcome"]

            status, body, text = http_post_json(live_onboarding_url, f"/sessions/{sid}/probe")
            assert status == 200, f"{status}: {text[:300]}"
            assert body["resources"][CHAIN.index(kind)]["exists"] == "present"

        status, body, _ = http_get_json(live_onboarding_url, f"/sessions/{sid}")
        assert body["step"] == "complete"
        assert body["completed"] is True

        # creating again never writes
        status, body, _ = http_post_json(live_onboarding_url, f"/sessions/{sid}/resources/instance")
        assert body["outcome"]["status"] == "cached"
    finally:
        http_delete(live_onboarding_url, f"/sessions/{sid}")
