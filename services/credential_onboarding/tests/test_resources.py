import pytest

from onboarding.config import PROGRAM_ID
from onboarding.resources import (
    CHAIN_ORDER,
    ResourceKind,
    derive_address,
    downstream_of,
    name_seed,
    parent_of,
    pubkey_bytes,
)

WALLET = "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"


def test_parent_of_follows_chain_order():
    assert parent_of(ResourceKind.ACCOUNT) is None
    assert parent_of(ResourceKind.PROFILE) is ResourceKind.ACCOUNT
    assert parent_of(ResourceKind.DEFINITION) is ResourceKind.PROFILE
    assert parent_of(ResourceKind.INSTANCE) is ResourceKind.DEFINITION


def test_downstream_includes_itself():
    assert downstream_of(ResourceKind.DEFINITION) == (ResourceKind.DEFINITION, ResourceKind.INSTANCE)
    assert downstream_of(ResourceKind.ACCOUNT) == CHAIN_ORDER


def test_derivation_is_deterministic():
    a = derive_address(PROGRAM_ID, ResourceKind.PROFILE, WALLET)
    b = derive_address(PROGRAM_ID, ResourceKind.PROFILE, WALLET)
    assert a == b
    assert a != WALLET


def test_definition_address_depends_on_name():
    profile = derive_address(PROGRAM_ID, ResourceKind.PROFILE, WALLET)
    a = derive_address(PROGRAM_ID, ResourceKind.DEFINITION, profile, [name_seed("Campus Explorer")])
    b = derive_address(PROGRAM_ID, ResourceKind.DEFINITION, profile, [name_seed("Robotics Club")])
    assert a != b


def test_instance_address_depends_on_recipient():
    profile = derive_address(PROGRAM_ID, ResourceKind.PROFILE, WALLET)
    definition = derive_address(PROGRAM_ID, ResourceKind.DEFINITION, profile, [name_seed("Campus Explorer")])
    a = derive_address(PROGRAM_ID, ResourceKind.INSTANCE, definition, [pubkey_bytes(profile), pubkey_bytes(WALLET)])
    b = derive_address(PROGRAM_ID, ResourceKind.INSTANCE, definition, [pubkey_bytes(profile), pubkey_bytes(profile)])
    assert a != b


def test_account_is_not_derived():
    with pytest.raises(ValueError):
        derive_address(PROGRAM_ID, ResourceKind.ACCOUNT, WALLET)


def test_derivation_needs_parent():
    with pytest.raises(ValueError):
        derive_address(PROGRAM_ID, ResourceKind.PROFILE, None)


def test_name_seed_limits():
    assert name_seed("a" * 32) == b"a" * 32
    with pytest.raises(ValueError):
        name_seed("a" * 33)
    with pytest.raises(ValueError):
        name_seed("")
    # limit is in UTF-8 bytes, not characters
    with pytest.raises(ValueError):
        name_seed("€" * 11)
