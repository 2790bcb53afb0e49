from typing import List, Optional, Sequence


class OnboardingError(Exception):
    """Base class for every error the onboarding flow surfaces to a caller."""


class LedgerReadError(OnboardingError):
    """Transport or RPC failure while reading ledger state."""


class InsufficientFundingError(OnboardingError):
    def __init__(self, balance_lamports: Optional[int], required_lamports: int):
        self.balance_lamports = balance_lamports
        self.required_lamports = required_lamports
        shown = "unknown" if balance_lamports is None else str(balance_lamports)
        super().__init__(
            f"INSUFFICIENT_BALANCE: {shown} lamports available, {required_lamports} required"
        )


class LedgerWriteError(OnboardingError):
    """
    The ledger rejected a write. The message and program logs are kept
    verbatim so they can be shown to the user as-is.
    """

    def __init__(
        self,
        message: str,
        *,
        logs: Optional[Sequence[str]] = None,
        already_exists: bool = False,
    ):
        super().__init__(message)
        self.logs: List[str] = list(logs or [])
        self.already_exists = already_exists or any("already in use" in line for line in self.logs)


class WriteOutcomeUnknownError(OnboardingError):
    """A submitted write could not be confirmed in time; re-probe before deciding."""

    def __init__(self, message: str, *, signature: Optional[str] = None):
        super().__init__(message)
        self.signature = signature


class MissingParentError(OnboardingError):
    def __init__(self, kind, missing):
        self.kind = kind
        self.missing = missing
        super().__init__(f"cannot create {kind.value}: {missing.value} is not confirmed on the ledger")


class UnknownSessionError(OnboardingError):
    pass
