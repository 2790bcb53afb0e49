import asyncio
import logging
from typing import Optional, Sequence, Tuple

from onboarding.config import PROBE_TIMEOUT_SECS
from onboarding.errors import LedgerReadError
from onboarding.ledger.base import AccountInfo, LedgerClient
from onboarding.resources import ResourceKind

logger = logging.getLogger("credential_onboarding.probe")


class LedgerProbe:
    """
    Read-only view of the ledger. Failures never escape: a read that errors
    or times out comes back as None. No retries happen here.
    """

    def __init__(self, client: LedgerClient, timeout: float = PROBE_TIMEOUT_SECS):
        self.client = client
        self.timeout = timeout

    @property
    def program_id(self) -> str:
        return self.client.program_id

    @property
    def authority(self) -> str:
        return self.client.authority

    def derive_address(self, kind: ResourceKind, parent: Optional[str], args: Sequence[bytes] = ()) -> str:
        return self.client.derive(kind, parent, args)

    async def read_account(self, address: str) -> Tuple[Optional[AccountInfo], Optional[str]]:
        """(account, error). error is set when the read itself failed."""
        try:
            info = await asyncio.wait_for(self.client.get_account(address), timeout=self.timeout)
            return info, None
        except asyncio.TimeoutError:
            msg = f"getAccountInfo timed out after {self.timeout:.0f}s"
        except LedgerReadError as e:
            msg = str(e)
        logger.warning("account probe failed for %s: %s", address, msg)
        return None, msg

    async def fetch_account(self, address: str) -> Optional[AccountInfo]:
        info, _error = await self.read_account(address)
        return info

    async def fetch_balance(self, address: str) -> Optional[int]:
        try:
            return await asyncio.wait_for(self.client.get_balance(address), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("balance probe timed out for %s after %.0fs", address, self.timeout)
        except LedgerReadError as e:
            logger.warning("balance probe failed for %s: %s", address, e)
        return None
