import asyncio
import base64
import logging
from typing import Any, List, Optional

import httpx
from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.transaction import Transaction

from onboarding.config import (
    AIRDROP_LAMPORTS,
    CONFIRM_POLL_SECS,
    PROBE_TIMEOUT_SECS,
    PROGRAM_ID,
    SOLANA_RPC_URL,
    WALLET_SECRET_KEY,
    WRITE_TIMEOUT_SECS,
)
from onboarding.credential import credential_json, iso_timestamp
from onboarding.errors import LedgerReadError, LedgerWriteError, WriteOutcomeUnknownError
from onboarding.ledger import instructions
from onboarding.ledger.base import AccountInfo, CreateParams, CreateReceipt, LedgerClient
from onboarding.resources import ResourceKind

logger = logging.getLogger("credential_onboarding.ledger")

CONFIRMED = ("confirmed", "finalized")


def load_keypair(secret: str) -> Keypair:
    if secret:
        return Keypair.from_base58_string(secret)
    keypair = Keypair()
    logger.warning("WALLET_SECRET_KEY not set; generated ephemeral wallet %s", keypair.pubkey())
    return keypair


def _meta(address: str, *, signer: bool = False, writable: bool = False) -> AccountMeta:
    return AccountMeta(Pubkey.from_string(address), is_signer=signer, is_writable=writable)


class RpcLedgerClient(LedgerClient):
    """Solana JSON-RPC over httpx."""

    def __init__(
        self,
        rpc_url: str = SOLANA_RPC_URL,
        program_id: str = PROGRAM_ID,
        keypair: Optional[Keypair] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        airdrop_lamports: int = AIRDROP_LAMPORTS,
        write_timeout: float = WRITE_TIMEOUT_SECS,
        poll_secs: float = CONFIRM_POLL_SECS,
    ):
        self._rpc_url = rpc_url
        self._program_id = program_id
        self._keypair = keypair or load_keypair(WALLET_SECRET_KEY)
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=PROBE_TIMEOUT_SECS)
        self._airdrop_lamports = airdrop_lamports
        self._write_timeout = write_timeout
        self._poll_secs = poll_secs
        self._request_id = 0

    @property
    def authority(self) -> str:
        return str(self._keypair.pubkey())

    @property
    def program_id(self) -> str:
        return self._program_id

    # ------------------------------------------------------------------
    # JSON-RPC plumbing
    # ------------------------------------------------------------------

    async def _post(self, method: str, params: List[Any]) -> dict:
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        resp = await self._http.post(self._rpc_url, json=payload)
        resp.raise_for_status()
        return resp.json()

    async def _read(self, method: str, params: List[Any]) -> Any:
        try:
            body = await self._post(method, params)
        except (httpx.HTTPError, ValueError) as e:
            raise LedgerReadError(f"{method} failed: {e}") from e

        if body.get("error"):
            err = body["error"]
            raise LedgerReadError(f"RPC error in {method}: {err.get('message') or err}")
        return body.get("result")

    async def _write(self, method: str, params: List[Any]) -> str:
        try:
            body = await self._post(method, params)
        except (httpx.HTTPError, ValueError) as e:
            # The request may have reached the node; only a probe can tell.
            raise WriteOutcomeUnknownError(f"{method} failed in transit: {e}") from e

        if body.get("error"):
            err = body["error"]
            data = err.get("data") or {}
            logs = data.get("logs") if isinstance(data, dict) else None
            raise LedgerWriteError(f"Transaction failed: {err.get('message') or err}", logs=logs)

        signature = body.get("result")
        if not isinstance(signature, str):
            raise WriteOutcomeUnknownError(f"{method} returned no signature: {body!r}")
        return signature

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_account(self, address: str) -> Optional[AccountInfo]:
        result = await self._read(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": "confirmed"}],
        )
        value = (result or {}).get("value")
        if not value:
            return None

        data = value.get("data") or ["", "base64"]
        try:
            data_length = len(base64.b64decode(data[0]))
        except (ValueError, TypeError):
            data_length = int(value.get("space") or 0)

        return AccountInfo(
            owner=str(value.get("owner")),
            lamports=int(value.get("lamports") or 0),
            data_length=data_length,
        )

    async def get_balance(self, address: str) -> int:
        result = await self._read("getBalance", [address, {"commitment": "confirmed"}])
        if isinstance(result, int):
            return result
        if isinstance(result, dict) and isinstance(result.get("value"), int):
            return result["value"]
        raise LedgerReadError(f"Invalid balance response format: {result!r}")

    async def _latest_blockhash(self) -> Hash:
        try:
            result = await self._read("getLatestBlockhash", [{"commitment": "confirmed"}])
            return Hash.from_string(result["value"]["blockhash"])
        except (LedgerReadError, KeyError, TypeError, ValueError) as e:
            # Nothing was submitted yet, so this is a plain rejection.
            raise LedgerWriteError(f"Could not fetch a recent blockhash: {e}") from e

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _instruction(self, kind: ResourceKind, params: CreateParams) -> Instruction:
        program = Pubkey.from_string(self._program_id)
        system = str(SYSTEM_PROGRAM_ID)

        if kind is ResourceKind.PROFILE:
            data = instructions.initialize_issuer(params.name, params.url, params.email)
            accounts = [
                _meta(params.target, writable=True),
                _meta(self.authority, signer=True, writable=True),
                _meta(system),
            ]
        elif kind is ResourceKind.DEFINITION:
            data = instructions.create_achievement(
                achievement_id=params.name,
                name=params.name,
                description=params.description,
                criteria_narrative=params.criteria,
                criteria_id=None,
                creator=self.authority,
            )
            accounts = [
                _meta(params.target, writable=True),
                _meta(params.profile),
                _meta(self.authority, signer=True, writable=True),
                _meta(system),
            ]
        elif kind is ResourceKind.INSTANCE:
            valid_from = iso_timestamp()
            message = credential_json(
                credential=params.target,
                issuer=params.profile,
                definition=params.definition,
                recipient=params.recipient,
                valid_from=valid_from,
            ).encode("utf-8")
            signature = bytes(self._keypair.sign_message(message))
            data = instructions.issue_credential_simple_subject(
                params.recipient, signature, message, valid_from
            )
            accounts = [
                _meta(params.target, writable=True),
                _meta(params.definition),
                _meta(params.profile),
                _meta(self.authority, signer=True, writable=True),
                _meta(system),
            ]
        else:
            raise ValueError(f"no program instruction creates {kind.value}")

        return Instruction(program, data, accounts)

    async def _confirm(self, signature: str) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._write_timeout

        while loop.time() < deadline:
            try:
                result = await self._read(
                    "getSignatureStatuses",
                    [[signature], {"searchTransactionHistory": True}],
                )
                status = ((result or {}).get("value") or [None])[0]
            except LedgerReadError as e:
                logger.warning("status poll for %s failed: %s", signature, e)
                status = None

            if status:
                if status.get("err"):
                    raise LedgerWriteError(f"Transaction {signature} failed: {status['err']}")
                if status.get("confirmationStatus") in CONFIRMED:
                    return

            await asyncio.sleep(self._poll_secs)

        raise WriteOutcomeUnknownError(
            f"Transaction {signature} not confirmed within {self._write_timeout:.0f}s",
            signature=signature,
        )

    async def submit_create(self, kind: ResourceKind, params: CreateParams) -> CreateReceipt:
        if kind is ResourceKind.ACCOUNT:
            signature = await self._write(
                "requestAirdrop",
                [self.authority, self._airdrop_lamports, {"commitment": "confirmed"}],
            )
            logger.info("airdrop of %d lamports requested: %s", self._airdrop_lamports, signature)
            await self._confirm(signature)
            return CreateReceipt(signature=signature, address=self.authority)

        instruction = self._instruction(kind, params)
        blockhash = await self._latest_blockhash()
        message = Message.new_with_blockhash([instruction], self._keypair.pubkey(), blockhash)
        tx = Transaction([self._keypair], message, blockhash)
        encoded = base64.b64encode(bytes(tx)).decode("ascii")

        signature = await self._write(
            "sendTransaction",
            [encoded, {"encoding": "base64", "skipPreflight": False, "preflightCommitment": "processed"}],
        )
        logger.info("%s transaction sent: %s", kind.value, signature)
        await self._confirm(signature)
        return CreateReceipt(signature=signature, address=params.target)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()
