from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from onboarding.errors import OnboardingError, WriteOutcomeUnknownError
from onboarding.ledger.base import CreateReceipt
from onboarding.resources import Existence, ResourceKind
from onboarding.session import Session, StateCache

logger = logging.getLogger("credential_onboarding.guard")

WriteFn = Callable[[], Awaitable[CreateReceipt]]


class CreateStatus(str, Enum):
    CREATED = "created"
    CACHED = "cached"
    BUSY = "busy"
    FAILED = "failed"


@dataclass(frozen=True)
class CreateResult:
    kind: ResourceKind
    status: CreateStatus
    address: Optional[str] = None
    signature: Optional[str] = None
    error: Optional[OnboardingError] = None

    @property
    def ok(self) -> bool:
        return self.status in (CreateStatus.CREATED, CreateStatus.CACHED)


class IdempotencyGuard:
    """
    Gate in front of every creation write of one session.

    - at most one write in flight (a second activation gets BUSY)
    - no write at all once the cache shows the resource present (CACHED)

    The busy/present checks and taking the lock happen with no suspension
    point in between, so two activations racing on the same event loop
    cannot both get past them.
    """

    def __init__(self, cache: Optional[StateCache] = None):
        self._cache = cache
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def _set(self, session: Session, **changes) -> None:
        if self._cache is not None and self._cache.get() is session:
            self._cache.update(**changes)
            return
        for name, value in changes.items():
            setattr(session, name, value)

    async def attempt_create(
        self,
        kind: ResourceKind,
        session: Session,
        write_fn: WriteFn,
        *,
        label: Optional[str] = None,
        parent_key: Optional[str] = None,
    ) -> CreateResult:
        if self._lock.locked() or session.in_progress:
            logger.info("session %s: %s creation ignored, another write is in flight", session.session_id, kind.value)
            return CreateResult(kind=kind, status=CreateStatus.BUSY)

        record = session.record(kind)
        if record.present:
            logger.info("session %s: %s already present at %s, skipping write", session.session_id, kind.value, record.address)
            return CreateResult(
                kind=kind,
                status=CreateStatus.CACHED,
                address=record.address,
                signature=record.signature,
            )

        # Uncontended acquire completes without yielding to the loop.
        async with self._lock:
            self._set(session, in_progress=True)
            try:
                logger.info("session %s: creating %s", session.session_id, kind.value)
                receipt = await write_fn()
            except OnboardingError as e:
                logger.warning("session %s: %s creation failed: %s", session.session_id, kind.value, e)
                # An unconfirmed write may still land; only a probe can settle it.
                outcome = Existence.UNKNOWN if isinstance(e, WriteOutcomeUnknownError) else Existence.ABSENT
                resources = dict(session.resources)
                resources[kind] = resources[kind].with_state(outcome)
                self._set(session, resources=resources)
                result = CreateResult(kind=kind, status=CreateStatus.FAILED, error=e)
            else:
                resources = dict(session.resources)
                resources[kind] = resources[kind].with_state(
                    Existence.PRESENT,
                    address=receipt.address,
                    signature=receipt.signature,
                    label=label,
                    parent_key=parent_key,
                    probe_error=None,
                )
                pending = {k: v for k, v in session.pending.items() if k is not kind}
                self._set(session, resources=resources, pending=pending)
                logger.info(
                    "session %s: %s created at %s (tx %s)",
                    session.session_id, kind.value, receipt.address, receipt.signature,
                )
                result = CreateResult(
                    kind=kind,
                    status=CreateStatus.CREATED,
                    address=receipt.address,
                    signature=receipt.signature,
                )
            finally:
                self._set(session, in_progress=False)

        return result
