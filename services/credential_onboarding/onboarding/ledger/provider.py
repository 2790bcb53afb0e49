from onboarding.config import LEDGER_PROVIDER
from onboarding.ledger.base import LedgerClient
from onboarding.ledger.rpc_client import RpcLedgerClient
from onboarding.ledger.stub_client import StubLedgerClient

_client = None


def make_ledger_client(provider: str = LEDGER_PROVIDER) -> LedgerClient:
    if provider == "stub":
        return StubLedgerClient()
    if provider == "solana":
        return RpcLedgerClient()
    raise RuntimeError(f"Invalid LEDGER_PROVIDER={provider}")


def get_ledger_client() -> LedgerClient:
    """
    Singleton-ish client factory.
    """
    global _client
    if _client is not None:
        return _client

    _client = make_ledger_client()
    return _client


async def close_ledger_client() -> None:
    global _client
    if _client is None:
        return

    client, _client = _client, None
    await client.aclose()
