import pytest

from onboarding.flow import Step
from onboarding.recovery import force_reset, is_stuck, start_another
from onboarding.resources import CHAIN_ORDER, Existence, ResourceKind, ResourceRecord
from onboarding.session import Session, StateCache

WALLET = "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"


def complete_cache(**flags) -> StateCache:
    session = Session(**flags)
    for kind in CHAIN_ORDER:
        address = WALLET if kind is ResourceKind.ACCOUNT else f"{kind.value}-addr"
        session.resources[kind] = ResourceRecord(kind=kind, exists=Existence.PRESENT, address=address)
    return StateCache(session)


def test_force_reset_keeps_addresses():
    cache = complete_cache(in_progress=True, completed=True)
    before = dict(cache.get().resources)

    session = force_reset(cache)

    assert session.in_progress is False
    assert session.completed is False
    assert session.address_of(ResourceKind.ACCOUNT) == WALLET
    assert session.resources == before


def test_stuck_needs_all_three_conditions():
    assert is_stuck(complete_cache(in_progress=True, completed=True).get())
    assert not is_stuck(complete_cache(in_progress=False, completed=True).get())
    assert not is_stuck(complete_cache(in_progress=True, completed=False).get())
    assert not is_stuck(Session(in_progress=True, completed=True))


def test_service_repairs_stuck_session(ledger):
    from onboarding.service import OnboardingService

    cache = complete_cache(in_progress=True, completed=True)
    service = OnboardingService(ledger, session=cache.get())

    assert service.evaluate() is Step.COMPLETE
    assert service.session.in_progress is False
    # re-latched because the chain is still fully resolved
    assert service.session.completed is True


def test_start_another_definition_clears_definition_and_instance():
    cache = complete_cache(completed=True)

    session = start_another(cache, ResourceKind.DEFINITION)

    assert session.record(ResourceKind.ACCOUNT).present
    assert session.record(ResourceKind.PROFILE).present
    assert session.record(ResourceKind.DEFINITION).exists is Existence.UNKNOWN
    assert session.record(ResourceKind.DEFINITION).address is None
    assert session.record(ResourceKind.INSTANCE).exists is Existence.UNKNOWN
    assert [r.address for r in session.history] == ["definition-addr", "instance-addr"]
    assert session.completed is True


def test_start_another_instance_keeps_definition():
    cache = complete_cache(completed=True)

    session = start_another(cache, ResourceKind.INSTANCE)

    assert session.record(ResourceKind.DEFINITION).present
    assert session.record(ResourceKind.INSTANCE).exists is Existence.UNKNOWN
    assert [r.kind for r in session.history] == [ResourceKind.INSTANCE]


@pytest.mark.parametrize("kind", [ResourceKind.ACCOUNT, ResourceKind.PROFILE])
def test_start_another_never_reaches_above_definition(kind):
    cache = complete_cache(completed=True)
    with pytest.raises(ValueError):
        start_another(cache, kind)
    assert cache.get().flags() == (True, True, True, True)


def test_start_another_refused_while_writing():
    cache = complete_cache(in_progress=True)
    with pytest.raises(ValueError):
        start_another(cache, ResourceKind.DEFINITION)
