from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from onboarding.resources import ResourceKind, derive_address


@dataclass(frozen=True)
class AccountInfo:
    owner: str
    lamports: int
    data_length: int


@dataclass(frozen=True)
class CreateParams:
    """
    Everything a creation write needs. `target` is the derived address the
    write is expected to create; parents are passed explicitly.
    """

    target: str
    profile: Optional[str] = None
    definition: Optional[str] = None
    recipient: Optional[str] = None
    name: str = ""
    description: str = ""
    criteria: str = ""
    url: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class CreateReceipt:
    signature: str
    address: str


class LedgerClient(ABC):
    """
    Minimal ledger interface.
    Reads raise LedgerReadError on transport failure; writes raise
    LedgerWriteError when rejected and WriteOutcomeUnknownError when
    the outcome could not be confirmed.
    """

    @property
    @abstractmethod
    def authority(self) -> str:
        """Public key of the signing wallet, which is the root Account."""
        ...

    @property
    @abstractmethod
    def program_id(self) -> str:
        ...

    def derive(self, kind: ResourceKind, parent: Optional[str], args: Sequence[bytes] = ()) -> str:
        if kind is ResourceKind.ACCOUNT:
            return self.authority
        return derive_address(self.program_id, kind, parent, args)

    @abstractmethod
    async def get_account(self, address: str) -> Optional[AccountInfo]:
        ...

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        ...

    @abstractmethod
    async def submit_create(self, kind: ResourceKind, params: CreateParams) -> CreateReceipt:
        ...

    async def aclose(self) -> None:
        return None
