"""
Instruction data for the open badges program.

Layout is Anchor style: an 8-byte discriminator followed by the borsh
encoding of the arguments (u32 little-endian length prefixed strings and
byte vectors, a 0/1 tag for Option, raw 32 bytes for a public key).
"""

import struct
from typing import Optional

from onboarding.resources import pubkey_bytes

DISCRIMINATORS = {
    "initialize_issuer": bytes([231, 164, 134, 90, 62, 217, 189, 118]),
    "create_achievement": bytes([41, 79, 246, 230, 218, 83, 35, 240]),
    "issue_achievement_credential": bytes([22, 116, 163, 110, 214, 114, 254, 183]),
    "issue_achievement_credential_simple_subject": bytes([16, 205, 50, 88, 128, 8, 13, 228]),
}


def _bytes(value: bytes) -> bytes:
    return struct.pack("<I", len(value)) + value


def _string(value: str) -> bytes:
    return _bytes(value.encode("utf-8"))


def _option_string(value: Optional[str]) -> bytes:
    if not value:
        return b"\x00"
    return b"\x01" + _string(value)


def _option_pubkey(value: Optional[str]) -> bytes:
    if not value:
        return b"\x00"
    return b"\x01" + pubkey_bytes(value)


def initialize_issuer(name: str, url: Optional[str], email: Optional[str]) -> bytes:
    return (
        DISCRIMINATORS["initialize_issuer"]
        + _string(name)
        + _option_string(url)
        + _option_string(email)
    )


def create_achievement(
    achievement_id: str,
    name: str,
    description: str,
    criteria_narrative: Optional[str],
    criteria_id: Optional[str],
    creator: Optional[str],
) -> bytes:
    return (
        DISCRIMINATORS["create_achievement"]
        + _string(achievement_id)
        + _string(name)
        + _string(description)
        + _option_string(criteria_narrative)
        + _option_string(criteria_id)
        + _option_pubkey(creator)
    )


def issue_credential_simple_subject(
    recipient: str,
    signature: bytes,
    message: bytes,
    timestamp: str,
) -> bytes:
    return (
        DISCRIMINATORS["issue_achievement_credential_simple_subject"]
        + pubkey_bytes(recipient)
        + _bytes(signature)
        + _bytes(message)
        + _string(timestamp)
    )
