"""
Flow controller: which step comes next, and what to show for it.

Both functions are pure. Nodes are built fresh on every call and are
immutable, so two renders never share or patch each other's content.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

from onboarding.config import LAMPORTS_PER_SOL, MIN_FUNDING_LAMPORTS
from onboarding.errors import (
    InsufficientFundingError,
    LedgerWriteError,
    MissingParentError,
    WriteOutcomeUnknownError,
)
from onboarding.guard import CreateResult, CreateStatus
from onboarding.resources import CHAIN_ORDER, ResourceKind
from onboarding.session import Session


class Step(str, Enum):
    NEED_ACCOUNT = "need_account"
    NEED_PROFILE = "need_profile"
    NEED_DEFINITION = "need_definition"
    NEED_INSTANCE = "need_instance"
    COMPLETE = "complete"


STEP_FOR_MISSING = {
    ResourceKind.ACCOUNT: Step.NEED_ACCOUNT,
    ResourceKind.PROFILE: Step.NEED_PROFILE,
    ResourceKind.DEFINITION: Step.NEED_DEFINITION,
    ResourceKind.INSTANCE: Step.NEED_INSTANCE,
}


def step_for_flags(flags: Sequence[bool]) -> Step:
    for kind, present in zip(CHAIN_ORDER, flags):
        if not present:
            return STEP_FOR_MISSING[kind]
    return Step.COMPLETE


def next_step(session: Session) -> Step:
    return step_for_flags(session.flags())


class ActionType(str, Enum):
    CREATE = "create"
    PROBE = "probe"
    CHECK_BALANCE = "check_balance"
    START_ANOTHER = "start_another"
    RESET = "reset"
    FINISH = "finish"
    HELP = "help"


@dataclass(frozen=True)
class Action:
    action: ActionType
    label: str
    kind: Optional[ResourceKind] = None


@dataclass(frozen=True)
class PresentationNode:
    step: Step
    text: str
    actions: Tuple[Action, ...] = ()


WALLET_HELP = (
    "A wallet is the key that signs changes to the blockchain state. It lets you "
    "authorize storage and send and receive digital information securely, without "
    "anyone impersonating you or altering what you did."
)

_LABELS = {
    ResourceKind.ACCOUNT: "Account",
    ResourceKind.PROFILE: "Issuer profile",
    ResourceKind.DEFINITION: "Achievement",
    ResourceKind.INSTANCE: "Credential",
}


def sol(lamports: Optional[int]) -> str:
    if lamports is None:
        return "unknown"
    return f"{lamports / LAMPORTS_PER_SOL:g} SOL"


def _create(kind: ResourceKind, label: str) -> Action:
    return Action(ActionType.CREATE, label, kind)


def _step_node(step: Step, session: Session, min_funding: int) -> PresentationNode:
    account = session.record(ResourceKind.ACCOUNT)
    profile = session.record(ResourceKind.PROFILE)
    definition = session.record(ResourceKind.DEFINITION)
    instance = session.record(ResourceKind.INSTANCE)

    if step is Step.NEED_ACCOUNT:
        if account.probe_error:
            text = (
                f"Could not read the wallet: {account.probe_error}\n\n"
                f"Wallet: {account.address}\n\nTry again in a few seconds."
            )
            return PresentationNode(step, text, (
                Action(ActionType.CHECK_BALANCE, "Try again", ResourceKind.ACCOUNT),
            ))
        if account.lamports:
            text = (
                f"Insufficient balance: {sol(account.lamports)}\n\n"
                f"Wallet: {account.address}\n\n"
                f"Deposit at least {sol(min_funding)} to continue."
            )
        else:
            text = (
                "To begin you need a funded wallet.\n\n"
                f"Wallet: {account.address or 'not resolved yet'}\n\nShall I fund it for you?"
            )
        return PresentationNode(step, text, (
            _create(ResourceKind.ACCOUNT, "Fund wallet"),
            Action(ActionType.CHECK_BALANCE, "Check balance", ResourceKind.ACCOUNT),
            Action(ActionType.HELP, "What is a wallet?"),
        ))

    if step is Step.NEED_PROFILE:
        text = (
            f"Wallet funded: {sol(account.lamports)}\n\n"
            f"Wallet: {account.address}\n\nCreate your issuer profile?"
        )
        return PresentationNode(step, text, (
            _create(ResourceKind.PROFILE, "Create profile"),
            Action(ActionType.PROBE, "Refresh"),
        ))

    if step is Step.NEED_DEFINITION:
        text = (
            "Issuer profile ready!\n\n"
            f"Issuer: {profile.address}\n\nCreate your achievement?"
        )
        return PresentationNode(step, text, (
            _create(ResourceKind.DEFINITION, "Create achievement"),
            Action(ActionType.PROBE, "Refresh"),
        ))

    if step is Step.NEED_INSTANCE:
        text = (
            f"Achievement ready: {definition.label or ''}\n\n"
            f"Achievement: {definition.address}\n\nReceive your credential?"
        )
        return PresentationNode(step, text, (
            _create(ResourceKind.INSTANCE, "Receive credential"),
            Action(ActionType.START_ANOTHER, "New achievement", ResourceKind.DEFINITION),
        ))

    text = (
        "Process complete!\n\n"
        f"Wallet: {account.address}\n"
        f"Profile: {profile.address}\n"
        f"Achievement: {definition.address}\n"
        f"Credential: {instance.address}"
    )
    return PresentationNode(step, text, (
        Action(ActionType.START_ANOTHER, "New achievement", ResourceKind.DEFINITION),
        Action(ActionType.FINISH, "Finish"),
    ))


def _outcome_node(
    step: Step,
    session: Session,
    outcome: CreateResult,
    min_funding: int,
) -> PresentationNode:
    label = _LABELS[outcome.kind]
    error = outcome.error

    if outcome.status is CreateStatus.BUSY:
        return PresentationNode(step, f"{label}: a creation is already in progress, please wait.", (
            Action(ActionType.PROBE, "Refresh"),
            Action(ActionType.RESET, "Reset"),
        ))

    if outcome.status is CreateStatus.CACHED:
        return PresentationNode(step, f"{label} already exists!\n\n{outcome.address}\n\nContinuing...", (
            Action(ActionType.PROBE, "Continue"),
        ))

    if outcome.status is CreateStatus.CREATED:
        text = f"{label} created!\n\n{outcome.address}\n\nTransaction: {outcome.signature}"
        return PresentationNode(step, text, (
            Action(ActionType.PROBE, "Continue"),
        ))

    if isinstance(error, MissingParentError):
        base = _step_node(STEP_FOR_MISSING[error.missing], session, min_funding)
        text = f"{_LABELS[error.missing]} not found. Please create it first.\n\n{base.text}"
        return PresentationNode(base.step, text, base.actions)

    if isinstance(error, InsufficientFundingError):
        text = (
            f"Insufficient balance: {sol(error.balance_lamports)}\n\n"
            f"Deposit at least {sol(error.required_lamports)} and try again."
        )
        return PresentationNode(step, text, (
            Action(ActionType.CHECK_BALANCE, "Check balance", ResourceKind.ACCOUNT),
        ))

    if isinstance(error, WriteOutcomeUnknownError):
        text = f"{label}: {error}\n\nThe transaction may still land. Refresh before trying again."
        return PresentationNode(step, text, (
            Action(ActionType.PROBE, "Refresh"),
        ))

    if isinstance(error, LedgerWriteError):
        detail = str(error)
        if error.logs:
            detail += "\n" + "\n".join(error.logs)
        if error.already_exists:
            text = f"{label} already exists on the ledger but could not be read back.\n\n{detail}"
            return PresentationNode(step, text, (
                Action(ActionType.PROBE, "Refresh"),
            ))
        return PresentationNode(step, f"{label} failed: {detail}", (
            _create(outcome.kind, "Try again"),
            Action(ActionType.PROBE, "Refresh"),
        ))

    return PresentationNode(step, f"{label} failed: {error}", (
        _create(outcome.kind, "Try again"),
    ))


def render(
    step: Step,
    session: Session,
    *,
    outcome: Optional[CreateResult] = None,
    min_funding: int = MIN_FUNDING_LAMPORTS,
) -> PresentationNode:
    if outcome is not None:
        return _outcome_node(step, session, outcome, min_funding)
    return _step_node(step, session, min_funding)


def render_help() -> PresentationNode:
    return PresentationNode(Step.NEED_ACCOUNT, WALLET_HELP, (
        _create(ResourceKind.ACCOUNT, "Got it, fund wallet"),
    ))
