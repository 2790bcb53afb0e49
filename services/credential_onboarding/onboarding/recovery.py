import logging

from onboarding.flow import Step, next_step
from onboarding.resources import ResourceKind, ResourceRecord, downstream_of
from onboarding.session import Session, StateCache

logger = logging.getLogger("credential_onboarding.recovery")

# "Start another" never reaches above the Definition.
RESTARTABLE = (ResourceKind.DEFINITION, ResourceKind.INSTANCE)


def is_stuck(session: Session) -> bool:
    """
    A write marked in progress while the whole chain is already resolved
    and latched complete. Normal transitions never produce this.
    """
    return session.in_progress and session.completed and next_step(session) is Step.COMPLETE


def force_reset(cache: StateCache) -> Session:
    """
    Clear the in-progress and completed flags. Resolved records, their
    addresses included, are left exactly as they were.
    """
    session = cache.get()
    logger.warning(
        "session %s: force reset (in_progress=%s completed=%s)",
        session.session_id, session.in_progress, session.completed,
    )
    return cache.update(in_progress=False, completed=False)


def start_another(cache: StateCache, clear_from: ResourceKind) -> Session:
    """
    Begin another Definition or Instance on top of the existing Account and
    Profile. `clear_from` names the first link to clear; it and every link
    after it move to history and return to unknown.
    """
    if clear_from not in RESTARTABLE:
        raise ValueError(
            f"clear_from must be one of {', '.join(k.value for k in RESTARTABLE)}, got {clear_from.value}"
        )

    session = cache.get()
    if session.in_progress:
        raise ValueError("a creation is in progress; wait for it to finish")

    resources = dict(session.resources)
    retired = []
    for kind in downstream_of(clear_from):
        record = resources[kind]
        if record.address:
            retired.append(record)
        resources[kind] = ResourceRecord(kind=kind)

    logger.info(
        "session %s: starting another %s, retired %d record(s)",
        session.session_id, clear_from.value, len(retired),
    )
    return cache.update(
        resources=resources,
        history=session.history + retired,
    )
