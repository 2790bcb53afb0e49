import os

os.environ.setdefault("LEDGER_PROVIDER", "stub")

import pytest

from onboarding.config import MIN_FUNDING_LAMPORTS
from onboarding.ledger.stub_client import StubLedgerClient
from onboarding.probe import LedgerProbe
from onboarding.service import OnboardingService
from onboarding.session import StateCache


@pytest.fixture()
def ledger():
    return StubLedgerClient(airdrop_lamports=1_000_000_000)


@pytest.fixture()
def funded_ledger(ledger):
    ledger.fund(ledger.authority, 50 * MIN_FUNDING_LAMPORTS)
    return ledger


@pytest.fixture()
def probe(ledger):
    return LedgerProbe(ledger, timeout=0.5)


@pytest.fixture()
def cache():
    return StateCache()


@pytest.fixture()
def service(ledger):
    svc = OnboardingService(ledger, write_timeout=1.0)
    svc.probe_client.timeout = 0.5
    return svc
