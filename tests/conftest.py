from __future__ import annotations

import os
from pathlib import Path

import pytest
import requests
from dotenv import load_dotenv


def _try_load_local_env() -> None:
    """
    Load a .env at the repository root if present so running tests locally is easy.
    """
    repo_root = Path(__file__).resolve().parents[1]
    env_path = repo_root / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)


_try_load_local_env()


@pytest.fixture(scope="session")
def onboarding_url() -> str:
    return os.getenv("CREDENTIAL_ONBOARDING_URL", "http://localhost:8082")


@pytest.fixture(scope="session")
def live_onboarding_url(onboarding_url: str) -> str:
    """
    The service URL, or a skip when nothing answers there.
    """
    try:
        r = requests.get(onboarding_url.rstrip("/") + "/health", timeout=2.0)
    except requests.RequestException as e:
        pytest.skip(f"credential-onboarding not reachable at {onboarding_url}: {e}")
    if r.status_code >= 400:
        pytest.skip(f"credential-onboarding unhealthy at {onboarding_url}: {r.status_code}")
    return onboarding_url


@pytest.fixture(scope="session")
def full_walk_enabled() -> bool:
    # Full walks only make sense against the in-memory ledger or a faucet-backed devnet.
    return os.getenv("ONBOARDING_TEST_FULL_WALK", "0") == "1"
