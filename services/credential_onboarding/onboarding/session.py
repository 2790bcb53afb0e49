from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from onboarding.resources import CHAIN_ORDER, ResourceKind, ResourceRecord, name_seed, pubkey_bytes

logger = logging.getLogger("credential_onboarding.session")


@dataclass(frozen=True)
class PendingParameters:
    """User-supplied fields staged for the next creation of one resource kind."""

    name: Optional[str] = None
    description: Optional[str] = None
    criteria: Optional[str] = None
    url: Optional[str] = None
    email: Optional[str] = None
    recipient: Optional[str] = None


def validate_pending(kind: ResourceKind, params: PendingParameters) -> PendingParameters:
    """Raise ValueError for parameters that could never produce a valid write."""
    if kind is ResourceKind.ACCOUNT:
        raise ValueError("the account takes no parameters")
    if kind is ResourceKind.DEFINITION and params.name is not None:
        name_seed(params.name)
    if params.recipient is not None:
        if kind is not ResourceKind.INSTANCE:
            raise ValueError("recipient only applies to an instance")
        pubkey_bytes(params.recipient)
    return params


def new_resources() -> Dict[ResourceKind, ResourceRecord]:
    return {kind: ResourceRecord(kind=kind) for kind in CHAIN_ORDER}


@dataclass
class Session:
    session_id: str = field(default_factory=lambda: uuid4().hex)
    resources: Dict[ResourceKind, ResourceRecord] = field(default_factory=new_resources)
    in_progress: bool = False
    completed: bool = False
    pending: Dict[ResourceKind, PendingParameters] = field(default_factory=dict)
    # Records retired by "start another"; their addresses stay reachable.
    history: List[ResourceRecord] = field(default_factory=list)

    def record(self, kind: ResourceKind) -> ResourceRecord:
        return self.resources[kind]

    def address_of(self, kind: ResourceKind) -> Optional[str]:
        return self.resources[kind].address

    def flags(self) -> Tuple[bool, ...]:
        return tuple(self.resources[kind].present for kind in CHAIN_ORDER)


_SESSION_FIELDS = {f.name for f in fields(Session)} - {"session_id"}


class StateCache:
    """
    Holder of the latest chain resolution. The version counter only exists
    so log lines can tell stale snapshots apart.
    """

    def __init__(self, session: Optional[Session] = None):
        self._session = session or Session()
        self.version = 0

    def get(self) -> Session:
        return self._session

    def update(self, **changes) -> Session:
        unknown = set(changes) - _SESSION_FIELDS
        if unknown:
            raise AttributeError(f"Session has no field(s): {', '.join(sorted(unknown))}")

        for name, value in changes.items():
            setattr(self._session, name, value)
        self.version += 1
        logger.debug(
            "session %s v%d updated: %s",
            self._session.session_id,
            self.version,
            ", ".join(sorted(changes)),
        )
        return self._session

    def put_record(self, record: ResourceRecord) -> Session:
        resources = dict(self._session.resources)
        resources[record.kind] = record
        return self.update(resources=resources)
