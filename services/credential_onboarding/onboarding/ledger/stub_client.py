import asyncio
import hashlib
from typing import Dict, List, Optional, Set, Tuple

from solders.keypair import Keypair

from onboarding.config import AIRDROP_LAMPORTS, PROGRAM_ID
from onboarding.errors import LedgerReadError, LedgerWriteError
from onboarding.ledger.base import AccountInfo, CreateParams, CreateReceipt, LedgerClient
from onboarding.resources import SYSTEM_PROGRAM, ResourceKind, name_seed, pubkey_bytes


class StubLedgerClient(LedgerClient):
    """
    Deterministic in-memory ledger for tests/dev.
    The authority keypair comes from a hashed seed, so every address the
    stub hands out is stable across runs.

    Enforces what the real program enforces at its boundary: seeds must
    match the target, parents must exist, an address can be created once,
    and every created account costs rent from the authority.
    """

    RENT_LAMPORTS = 2_000_000
    DATA_LENGTH = 512

    def __init__(
        self,
        program_id: str = PROGRAM_ID,
        seed: str = "stub-wallet",
        *,
        airdrop_lamports: int = AIRDROP_LAMPORTS,
        initial_lamports: int = 0,
    ):
        self._program_id = program_id
        self._keypair = Keypair.from_seed(hashlib.sha256(seed.encode("utf-8")).digest())
        self._airdrop_lamports = airdrop_lamports
        self._tx_count = 0

        self.accounts: Dict[str, AccountInfo] = {}
        self.reads: List[str] = []
        self.writes: List[Tuple[ResourceKind, CreateParams]] = []

        # Fault injection
        self.failing_reads: Set[str] = set()
        self.write_delay: float = 0.0
        self.next_write_error: Optional[Exception] = None

        if initial_lamports:
            self.fund(self.authority, initial_lamports)

    @property
    def authority(self) -> str:
        return str(self._keypair.pubkey())

    @property
    def program_id(self) -> str:
        return self._program_id

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def fund(self, address: str, lamports: int) -> None:
        current = self.accounts.get(address)
        if current is None:
            self.accounts[address] = AccountInfo(owner=SYSTEM_PROGRAM, lamports=lamports, data_length=0)
        else:
            self.accounts[address] = AccountInfo(
                owner=current.owner,
                lamports=current.lamports + lamports,
                data_length=current.data_length,
            )

    def occupy(self, address: str, owner: str, lamports: int = 1_000_000) -> None:
        """Place an account owned by some other program at address."""
        self.accounts[address] = AccountInfo(owner=owner, lamports=lamports, data_length=64)

    def reads_of(self, address: str) -> int:
        return self.reads.count(address)

    # ------------------------------------------------------------------
    # LedgerClient
    # ------------------------------------------------------------------

    async def get_account(self, address: str) -> Optional[AccountInfo]:
        self.reads.append(address)
        await asyncio.sleep(0)
        if address in self.failing_reads:
            raise LedgerReadError(f"getAccountInfo failed: simulated outage for {address}")
        return self.accounts.get(address)

    async def get_balance(self, address: str) -> int:
        self.reads.append(address)
        await asyncio.sleep(0)
        if address in self.failing_reads:
            raise LedgerReadError(f"getBalance failed: simulated outage for {address}")
        info = self.accounts.get(address)
        return info.lamports if info else 0

    def _owned(self, address: Optional[str]) -> bool:
        info = self.accounts.get(address) if address else None
        return info is not None and info.owner == self._program_id

    def _expected_target(self, kind: ResourceKind, params: CreateParams) -> str:
        if kind is ResourceKind.PROFILE:
            return self.derive(kind, self.authority)
        if kind is ResourceKind.DEFINITION:
            return self.derive(kind, params.profile, [name_seed(params.name)])
        return self.derive(
            kind,
            params.definition,
            [pubkey_bytes(params.profile), pubkey_bytes(params.recipient)],
        )

    def _signature(self, kind: ResourceKind, target: str) -> str:
        self._tx_count += 1
        return str(self._keypair.sign_message(f"{kind.value}:{target}:{self._tx_count}".encode("utf-8")))

    async def submit_create(self, kind: ResourceKind, params: CreateParams) -> CreateReceipt:
        self.writes.append((kind, params))
        if self.write_delay:
            await asyncio.sleep(self.write_delay)
        else:
            await asyncio.sleep(0)

        if self.next_write_error is not None:
            err, self.next_write_error = self.next_write_error, None
            raise err

        if kind is ResourceKind.ACCOUNT:
            self.fund(self.authority, self._airdrop_lamports)
            return CreateReceipt(signature=self._signature(kind, self.authority), address=self.authority)

        if kind is ResourceKind.DEFINITION and not self._owned(params.profile):
            raise LedgerWriteError(
                "Transaction failed: issuer account not initialized",
                logs=["Program log: AnchorError caused by account: issuer. Error Code: AccountNotInitialized."],
            )
        if kind is ResourceKind.INSTANCE and not (self._owned(params.profile) and self._owned(params.definition)):
            raise LedgerWriteError(
                "Transaction failed: achievement account not initialized",
                logs=["Program log: AnchorError caused by account: achievement. Error Code: AccountNotInitialized."],
            )

        if params.target != self._expected_target(kind, params):
            raise LedgerWriteError(
                "Transaction failed: A seeds constraint was violated",
                logs=["Program log: AnchorError. Error Code: ConstraintSeeds."],
            )

        if params.target in self.accounts:
            raise LedgerWriteError(
                "Transaction failed: custom program error: 0x0",
                logs=[f"Allocate: account Address {{ address: {params.target}, base: None }} already in use"],
            )

        payer = self.accounts.get(self.authority)
        if payer is None or payer.lamports < self.RENT_LAMPORTS:
            raise LedgerWriteError(
                "Transaction failed: Attempt to debit an account but found no record of a prior credit.",
            )

        self.accounts[self.authority] = AccountInfo(
            owner=payer.owner,
            lamports=payer.lamports - self.RENT_LAMPORTS,
            data_length=payer.data_length,
        )
        self.accounts[params.target] = AccountInfo(
            owner=self._program_id,
            lamports=self.RENT_LAMPORTS,
            data_length=self.DATA_LENGTH,
        )
        return CreateReceipt(signature=self._signature(kind, params.target), address=params.target)
