"""
Resource chain declarations.

The chain is Account -> Profile -> Definition -> Instance. The Account is the
authority wallet itself; every other link lives at a program-derived address
computed from its parent's address plus discriminating seeds:

    Profile     ["issuer", account]
    Definition  ["achievement", profile, name]
    Instance    ["credential", definition, profile, recipient]
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence, Tuple

from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID


class ResourceKind(str, Enum):
    ACCOUNT = "account"
    PROFILE = "profile"
    DEFINITION = "definition"
    INSTANCE = "instance"


class Existence(str, Enum):
    UNKNOWN = "unknown"
    ABSENT = "absent"
    PRESENT = "present"


CHAIN_ORDER: Tuple[ResourceKind, ...] = (
    ResourceKind.ACCOUNT,
    ResourceKind.PROFILE,
    ResourceKind.DEFINITION,
    ResourceKind.INSTANCE,
)

SEED_TAGS = {
    ResourceKind.PROFILE: b"issuer",
    ResourceKind.DEFINITION: b"achievement",
    ResourceKind.INSTANCE: b"credential",
}

MAX_SEED_LEN = 32

SYSTEM_PROGRAM = str(SYSTEM_PROGRAM_ID)


@dataclass(frozen=True)
class ResourceRecord:
    kind: ResourceKind
    exists: Existence = Existence.UNKNOWN
    address: Optional[str] = None
    parent_key: Optional[str] = None
    lamports: Optional[int] = None
    # Discriminating argument: Definition name or Instance recipient.
    label: Optional[str] = None
    signature: Optional[str] = None
    probe_error: Optional[str] = None

    @property
    def present(self) -> bool:
        return self.exists is Existence.PRESENT

    def with_state(self, exists: Existence, **changes) -> "ResourceRecord":
        return replace(self, exists=exists, **changes)


def parent_of(kind: ResourceKind) -> Optional[ResourceKind]:
    idx = CHAIN_ORDER.index(kind)
    return CHAIN_ORDER[idx - 1] if idx > 0 else None


def downstream_of(kind: ResourceKind) -> Tuple[ResourceKind, ...]:
    """kind itself and every link after it."""
    return CHAIN_ORDER[CHAIN_ORDER.index(kind):]


def pubkey_bytes(address: str) -> bytes:
    return bytes(Pubkey.from_string(address))


def name_seed(name: str) -> bytes:
    seed = name.encode("utf-8")
    if not seed:
        raise ValueError("name must not be empty")
    if len(seed) > MAX_SEED_LEN:
        raise ValueError(f"name is {len(seed)} bytes, at most {MAX_SEED_LEN} fit in an address seed")
    return seed


def derive_address(
    program_id: str,
    kind: ResourceKind,
    parent: str,
    args: Sequence[bytes] = (),
) -> str:
    """
    Program-derived address of a non-root link. Pure and deterministic:
    anyone holding the same program id, parent and args gets the same address.
    """
    if kind is ResourceKind.ACCOUNT:
        raise ValueError("the root account is the authority key and is not derived")
    if not parent:
        raise ValueError(f"{kind.value} address needs its parent address")

    seeds = [SEED_TAGS[kind], pubkey_bytes(parent), *args]
    for seed in seeds:
        if len(seed) > MAX_SEED_LEN:
            raise ValueError(f"seed of {len(seed)} bytes exceeds {MAX_SEED_LEN}")

    address, _bump = Pubkey.find_program_address(seeds, Pubkey.from_string(program_id))
    return str(address)
