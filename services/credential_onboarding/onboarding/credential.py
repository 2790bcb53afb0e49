import json
from datetime import datetime, timezone
from typing import Optional

CONTEXT = [
    "https://www.w3.org/ns/credentials/v2",
    "https://purl.imsglobal.org/spec/ob/v3p0/context-3.0.3.json",
]
CREDENTIAL_TYPE = ["VerifiableCredential", "OpenBadgeCredential"]
SUBJECT_TYPE = ["AchievementSubject"]


def iso_timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def credential_json(
    *,
    credential: str,
    issuer: str,
    definition: str,
    recipient: str,
    valid_from: str,
) -> str:
    """
    Open Badges 3.0 credential in the exact byte layout the program
    re-derives when it verifies the issuer signature: compact separators,
    fixed key order, non-ASCII left unescaped.
    """
    doc = {
        "@context": CONTEXT,
        "id": f"did:sol:{credential}",
        "type": CREDENTIAL_TYPE,
        "issuer": f"did:sol:{issuer}",
        "validFrom": valid_from,
        "credentialSubject": {
            "id": f"sol:{recipient}",
            "type": SUBJECT_TYPE,
            "achievement": f"did:sol:{definition}",
        },
    }
    return json.dumps(doc, separators=(",", ":"), ensure_ascii=False)
