from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from onboarding.chain import (
    build_create_params,
    probe_balance,
    probe_chain,
    probe_link,
    require_parent,
)
from onboarding.config import DEFAULT_ACHIEVEMENT_NAME, MIN_FUNDING_LAMPORTS, WRITE_TIMEOUT_SECS
from onboarding.errors import (
    InsufficientFundingError,
    LedgerWriteError,
    MissingParentError,
    UnknownSessionError,
    WriteOutcomeUnknownError,
)
from onboarding.flow import PresentationNode, Step, next_step, render
from onboarding.guard import CreateResult, CreateStatus, IdempotencyGuard
from onboarding.ledger.base import CreateReceipt, LedgerClient
from onboarding.probe import LedgerProbe
from onboarding.recovery import force_reset, is_stuck, start_another
from onboarding.resources import Existence, ResourceKind, parent_of
from onboarding.session import PendingParameters, Session, StateCache, validate_pending

logger = logging.getLogger("credential_onboarding.service")


class OnboardingService:
    """
    One user's walk through the chain. Owns the session's cache and guard;
    the ledger client may be shared between sessions.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        *,
        session: Optional[Session] = None,
        min_funding: int = MIN_FUNDING_LAMPORTS,
        write_timeout: float = WRITE_TIMEOUT_SECS,
        default_name: str = DEFAULT_ACHIEVEMENT_NAME,
    ):
        self.ledger = ledger
        self.probe_client = LedgerProbe(ledger)
        self.cache = StateCache(session)
        self.guard = IdempotencyGuard(self.cache)
        self.min_funding = min_funding
        self.write_timeout = write_timeout
        self.default_name = default_name

    @property
    def session(self) -> Session:
        return self.cache.get()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def probe(self) -> Step:
        await probe_chain(
            self.cache,
            self.probe_client,
            min_funding=self.min_funding,
            default_name=self.default_name,
        )
        return self.evaluate()

    async def check_balance(self) -> Step:
        await probe_balance(self.cache, self.probe_client, min_funding=self.min_funding)
        return self.evaluate()

    def evaluate(self) -> Step:
        session = self.cache.get()
        if is_stuck(session) and not self.guard.busy:
            force_reset(self.cache)
            session = self.cache.get()

        step = next_step(session)
        if step is Step.COMPLETE and not session.completed:
            self.cache.update(completed=True)
        return step

    def node(self, outcome: Optional[CreateResult] = None) -> PresentationNode:
        session = self.cache.get()
        return render(next_step(session), session, outcome=outcome, min_funding=self.min_funding)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def stage(self, kind: ResourceKind, params: PendingParameters) -> Session:
        validate_pending(kind, params)
        pending = dict(self.cache.get().pending)
        pending[kind] = params
        return self.cache.update(pending=pending)

    async def _funded_write(self, kind: ResourceKind, params) -> CreateReceipt:
        if kind is not ResourceKind.ACCOUNT:
            balance = await self.probe_client.fetch_balance(self.probe_client.authority)
            if balance is None or balance < self.min_funding:
                raise InsufficientFundingError(balance, self.min_funding)

        try:
            return await asyncio.wait_for(
                self.ledger.submit_create(kind, params),
                timeout=self.write_timeout,
            )
        except asyncio.TimeoutError as e:
            raise WriteOutcomeUnknownError(
                f"{kind.value} write not confirmed within {self.write_timeout:.0f}s"
            ) from e

    async def create(self, kind: ResourceKind) -> CreateResult:
        session = self.cache.get()
        try:
            require_parent(session, kind)
        except MissingParentError as e:
            logger.info("session %s: %s", session.session_id, e)
            return CreateResult(kind=kind, status=CreateStatus.FAILED, error=e)

        params, label = build_create_params(
            session, self.probe_client, kind, default_name=self.default_name
        )
        parent = parent_of(kind)
        parent_key = session.address_of(parent) if parent else None

        # Never write over a link whose state was not settled by a read.
        if session.record(kind).exists is Existence.UNKNOWN and not self.guard.busy:
            await self._reread(kind, params.target, parent_key, label)
            session = self.cache.get()

        async def write() -> CreateReceipt:
            return await self._funded_write(kind, params)

        result = await self.guard.attempt_create(
            kind,
            session,
            write,
            label=label,
            parent_key=parent_key,
        )

        error = result.error
        if isinstance(error, LedgerWriteError) and error.already_exists:
            record = await probe_link(self.cache, self.probe_client, kind, params.target, parent_key, label)
            if record.present:
                logger.info("session %s: %s already on the ledger at %s", session.session_id, kind.value, record.address)
                return CreateResult(
                    kind=kind,
                    status=CreateStatus.CACHED,
                    address=record.address,
                    signature=record.signature,
                )
        return result

    async def _reread(self, kind: ResourceKind, address: str, parent_key: Optional[str], label: Optional[str]) -> None:
        if kind is ResourceKind.ACCOUNT:
            await probe_balance(self.cache, self.probe_client, min_funding=self.min_funding)
        else:
            await probe_link(self.cache, self.probe_client, kind, address, parent_key, label)

    def reset(self) -> Session:
        return force_reset(self.cache)

    def start_another(self, clear_from: ResourceKind) -> Session:
        return start_another(self.cache, clear_from)


class SessionRegistry:
    """Live sessions of this process, keyed by session id."""

    def __init__(self, ledger: LedgerClient, **service_options):
        self.ledger = ledger
        self._service_options = service_options
        self._services: Dict[str, OnboardingService] = {}

    def open(self) -> OnboardingService:
        service = OnboardingService(self.ledger, **self._service_options)
        self._services[service.session.session_id] = service
        logger.info("session %s opened", service.session.session_id)
        return service

    def get(self, session_id: str) -> OnboardingService:
        try:
            return self._services[session_id]
        except KeyError:
            raise UnknownSessionError(f"unknown session {session_id}") from None

    def close(self, session_id: str) -> None:
        self.get(session_id)
        del self._services[session_id]
        logger.info("session %s closed", session_id)

    def __len__(self) -> int:
        return len(self._services)
