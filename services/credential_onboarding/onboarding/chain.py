from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence, Tuple

from onboarding.config import (
    DEFAULT_ACHIEVEMENT_CRITERIA,
    DEFAULT_ACHIEVEMENT_DESCRIPTION,
    DEFAULT_ACHIEVEMENT_NAME,
    ISSUER_EMAIL,
    ISSUER_NAME,
    ISSUER_URL,
    MIN_FUNDING_LAMPORTS,
)
from onboarding.errors import MissingParentError
from onboarding.ledger.base import CreateParams
from onboarding.probe import LedgerProbe
from onboarding.resources import (
    CHAIN_ORDER,
    SYSTEM_PROGRAM,
    Existence,
    ResourceKind,
    ResourceRecord,
    name_seed,
    parent_of,
    pubkey_bytes,
)
from onboarding.session import PendingParameters, Session, StateCache

logger = logging.getLogger("credential_onboarding.chain")

PRE_EXISTING = "pre-existing"


# ---------------------------------------------------------------------
# Discriminating arguments
# ---------------------------------------------------------------------

def definition_name(session: Session, default_name: str = DEFAULT_ACHIEVEMENT_NAME) -> str:
    """Staged name, else the name the current record was resolved with, else the default."""
    staged = session.pending.get(ResourceKind.DEFINITION)
    if staged and staged.name:
        return staged.name
    return session.record(ResourceKind.DEFINITION).label or default_name


def instance_recipient(session: Session, resources: Optional[Dict[ResourceKind, ResourceRecord]] = None) -> Optional[str]:
    resources = resources or session.resources
    staged = session.pending.get(ResourceKind.INSTANCE)
    if staged and staged.recipient:
        return staged.recipient
    return resources[ResourceKind.INSTANCE].label or resources[ResourceKind.ACCOUNT].address


def _seed_args(
    kind: ResourceKind,
    session: Session,
    resources: Dict[ResourceKind, ResourceRecord],
    default_name: str,
) -> Tuple[Optional[str], Sequence[bytes]]:
    """(label, extra seeds) used to derive kind's address."""
    if kind is ResourceKind.DEFINITION:
        name = definition_name(session, default_name)
        return name, (name_seed(name),)
    if kind is ResourceKind.INSTANCE:
        recipient = instance_recipient(session, resources)
        profile = resources[ResourceKind.PROFILE].address
        return recipient, (pubkey_bytes(profile), pubkey_bytes(recipient))
    return None, ()


# ---------------------------------------------------------------------
# Probing
# ---------------------------------------------------------------------

def _kept_signature(current: ResourceRecord, address: str) -> str:
    if current.address == address and current.signature:
        return current.signature
    return PRE_EXISTING


async def _probe_account(
    current: ResourceRecord,
    probe: LedgerProbe,
    min_funding: int,
) -> ResourceRecord:
    address = probe.derive_address(ResourceKind.ACCOUNT, None)
    info, error = await probe.read_account(address)

    if error:
        return current.with_state(Existence.ABSENT, address=address, lamports=None, probe_error=error)

    lamports = info.lamports if info else 0
    if info is not None and info.owner != SYSTEM_PROGRAM:
        logger.info("root account %s is owned by %s, not a wallet", address, info.owner)
        return current.with_state(Existence.ABSENT, address=address, lamports=lamports, probe_error=None)

    if lamports < min_funding:
        logger.info("account %s holds %d lamports, %d required", address, lamports, min_funding)
        return current.with_state(Existence.ABSENT, address=address, lamports=lamports, probe_error=None)

    return current.with_state(
        Existence.PRESENT,
        address=address,
        lamports=lamports,
        signature=_kept_signature(current, address),
        probe_error=None,
    )


async def _probe_owned(
    current: ResourceRecord,
    probe: LedgerProbe,
    address: str,
    parent: str,
    label: Optional[str],
) -> ResourceRecord:
    info, error = await probe.read_account(address)
    base = dict(address=address, parent_key=parent, label=label)

    if error:
        return current.with_state(Existence.ABSENT, lamports=None, signature=None, probe_error=error, **base)

    if info is None:
        return current.with_state(Existence.ABSENT, lamports=None, signature=None, probe_error=None, **base)

    if info.owner != probe.program_id:
        logger.info(
            "%s address %s is occupied by %s (expected %s)",
            current.kind.value, address, info.owner, probe.program_id,
        )
        return current.with_state(Existence.ABSENT, lamports=info.lamports, signature=None, probe_error=None, **base)

    return current.with_state(
        Existence.PRESENT,
        lamports=info.lamports,
        signature=_kept_signature(current, address),
        probe_error=None,
        **base,
    )


async def resolve_chain(
    session: Session,
    probe: LedgerProbe,
    *,
    min_funding: int = MIN_FUNDING_LAMPORTS,
    default_name: str = DEFAULT_ACHIEVEMENT_NAME,
) -> Dict[ResourceKind, ResourceRecord]:
    """
    Probe Account -> Profile -> Definition -> Instance strictly in order.
    A link whose parent is not present is set to unknown without any read,
    and so is everything after it. Read failures resolve to absent.
    """
    resources = dict(session.resources)
    parent: Optional[ResourceRecord] = None

    for kind in CHAIN_ORDER:
        current = resources[kind]

        if parent is not None and not parent.present:
            resources[kind] = current.with_state(Existence.UNKNOWN, probe_error=None)
            continue

        if kind is ResourceKind.ACCOUNT:
            record = await _probe_account(current, probe, min_funding)
        else:
            label, args = _seed_args(kind, session, resources, default_name)
            address = probe.derive_address(kind, parent.address, args)
            record = await _probe_owned(current, probe, address, parent.address, label)

        resources[kind] = record
        parent = record

    return resources


async def probe_chain(
    cache: StateCache,
    probe: LedgerProbe,
    *,
    min_funding: int = MIN_FUNDING_LAMPORTS,
    default_name: str = DEFAULT_ACHIEVEMENT_NAME,
) -> Session:
    session = cache.get()
    resources = await resolve_chain(session, probe, min_funding=min_funding, default_name=default_name)
    # Swapped in one assignment; no reader sees a half-probed chain.
    session = cache.update(resources=resources)

    logger.info(
        "session %s chain: %s",
        session.session_id,
        " ".join(f"{kind.value}={resources[kind].exists.value}" for kind in CHAIN_ORDER),
    )
    return session


async def probe_balance(
    cache: StateCache,
    probe: LedgerProbe,
    *,
    min_funding: int = MIN_FUNDING_LAMPORTS,
) -> Session:
    """Re-run only the Account probe."""
    current = cache.get().record(ResourceKind.ACCOUNT)
    record = await _probe_account(current, probe, min_funding)
    return cache.put_record(record)


async def probe_link(
    cache: StateCache,
    probe: LedgerProbe,
    kind: ResourceKind,
    address: str,
    parent: str,
    label: Optional[str],
) -> ResourceRecord:
    """Re-read one program-owned link at a known address."""
    current = cache.get().record(kind)
    record = await _probe_owned(current, probe, address, parent, label)
    cache.put_record(record)
    logger.info("session %s: %s re-read as %s", cache.get().session_id, kind.value, record.exists.value)
    return record


# ---------------------------------------------------------------------
# Creation preconditions
# ---------------------------------------------------------------------

def missing_ancestor(session: Session, kind: ResourceKind) -> Optional[ResourceKind]:
    """First link before kind that is not confirmed present, if any."""
    for ancestor in CHAIN_ORDER[:CHAIN_ORDER.index(kind)]:
        if not session.record(ancestor).present:
            return ancestor
    return None


def require_parent(session: Session, kind: ResourceKind) -> None:
    missing = missing_ancestor(session, kind)
    if missing is not None:
        raise MissingParentError(kind, missing)


def build_create_params(
    session: Session,
    probe: LedgerProbe,
    kind: ResourceKind,
    *,
    default_name: str = DEFAULT_ACHIEVEMENT_NAME,
) -> Tuple[CreateParams, Optional[str]]:
    """
    (params, label) for creating kind. Parents must already be present;
    call require_parent first.
    """
    staged = session.pending.get(kind) or PendingParameters()
    account = session.address_of(ResourceKind.ACCOUNT) or probe.authority

    if kind is ResourceKind.ACCOUNT:
        return CreateParams(target=probe.authority), None

    parent = parent_of(kind)
    parent_address = session.address_of(parent)

    if kind is ResourceKind.PROFILE:
        target = probe.derive_address(kind, account)
        return CreateParams(
            target=target,
            name=staged.name or ISSUER_NAME,
            url=staged.url or ISSUER_URL,
            email=staged.email or ISSUER_EMAIL,
        ), None

    profile = session.address_of(ResourceKind.PROFILE)

    if kind is ResourceKind.DEFINITION:
        name = definition_name(session, default_name)
        if name == default_name:
            description = DEFAULT_ACHIEVEMENT_DESCRIPTION
            criteria = DEFAULT_ACHIEVEMENT_CRITERIA
        else:
            description = f"Custom achievement: {name}"
            criteria = "Achievement created by the user with a custom name"
        target = probe.derive_address(kind, parent_address, (name_seed(name),))
        return CreateParams(
            target=target,
            profile=profile,
            name=name,
            description=staged.description or description,
            criteria=staged.criteria or criteria,
        ), name

    recipient = instance_recipient(session)
    target = probe.derive_address(kind, parent_address, (pubkey_bytes(profile), pubkey_bytes(recipient)))
    return CreateParams(
        target=target,
        profile=profile,
        definition=parent_address,
        recipient=recipient,
    ), recipient
