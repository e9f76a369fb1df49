"""
execution/submitter.py - Signing, submission and finality polling.

Wallet keys never enter this process. A bundle is handed as JSON on
stdin to an external signer command, which replies on stdout with

    {"tx_bytes": "<base64 BCS>", "signature": "<base64>"}

(or "signatures": [...]). The signed bytes are then submitted over RPC.
Resubmitting the same signed bytes is idempotent, so submission is
retried with backoff while signing is not.
"""

import asyncio
import json
import shlex
from dataclasses import dataclass

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from chains.providers import SuiRPCProvider
from core.constants import TxStatus
from core.exceptions import InfraError, SignerError
from core.logging import get_logger
from execution.transaction import TransactionBundle

logger = get_logger(__name__)


@dataclass(frozen=True)
class SignedTransaction:
    tx_bytes: str
    signatures: list[str]


class SignerBridge:
    """Runs an external signer command over a JSON stdin/stdout contract."""

    def __init__(self, command: str, timeout_seconds: float = 30):
        if not command:
            raise ValueError("Signer command is required")
        self.argv = shlex.split(command)
        self.timeout_seconds = timeout_seconds

    async def sign(self, bundle: TransactionBundle) -> SignedTransaction:
        """
        Sign a bundle.

        Raises:
            SignerError: command failed, timed out, or replied badly
        """
        payload = json.dumps(bundle.to_dict()).encode()
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise SignerError(
                f"Cannot start signer: {e}",
                details={"command": self.argv[0]},
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(payload), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise SignerError(f"Signer timed out after {self.timeout_seconds}s") from e

        if proc.returncode != 0:
            stderr_text = stderr.decode(errors="replace").strip()
            try:
                details = json.loads(stderr_text)
                message = details.get("error", stderr_text) if isinstance(details, dict) else stderr_text
            except json.JSONDecodeError:
                message = stderr_text or f"exit code {proc.returncode}"
            raise SignerError(
                f"Signer failed: {message}",
                details={"returncode": proc.returncode},
            )

        return parse_signer_output(stdout.decode())


def parse_signer_output(raw: str) -> SignedTransaction:
    """Parse the signer's JSON reply."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise SignerError(
            "Signer returned invalid JSON",
            details={"output": raw[:200]},
        ) from e

    tx_bytes = data.get("tx_bytes") if isinstance(data, dict) else None
    signatures = data.get("signatures") if isinstance(data, dict) else None
    if signatures is None and isinstance(data, dict) and data.get("signature"):
        signatures = [data["signature"]]
    if not tx_bytes or not signatures:
        raise SignerError(
            "Signer reply missing tx_bytes or signature",
            details={"keys": sorted(data) if isinstance(data, dict) else None},
        )
    return SignedTransaction(tx_bytes=tx_bytes, signatures=list(signatures))


class ChainSubmitter:
    """
    Submit bundles and poll for finality.

    wait_for_finality is bounded by max_wait_ms and returns PENDING on
    timeout, which callers report as submitted-but-unconfirmed.
    """

    def __init__(
        self,
        provider: SuiRPCProvider,
        signer: SignerBridge,
        poll_interval_ms: int = 500,
        max_wait_ms: int = 10_000,
        max_retries: int = 3,
        retry_delay_ms: int = 1000,
    ):
        self.provider = provider
        self.signer = signer
        self.poll_interval_ms = poll_interval_ms
        self.max_wait_ms = max_wait_ms
        self.max_retries = max_retries
        self.retry_delay_ms = retry_delay_ms

    async def submit(self, bundle: TransactionBundle) -> str:
        """Sign once, submit with retries. Returns the digest."""
        signed = await self.signer.sign(bundle)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_delay_ms / 1000, min=0, max=30),
            retry=retry_if_exception_type(InfraError),
            reraise=True,
        )
        digest = await retrying(self.provider.execute_transaction, signed.tx_bytes, signed.signatures)
        logger.info("Transaction submitted", extra={"context": {"digest": digest}})
        return digest

    async def wait_for_finality(self, digest: str) -> TxStatus:
        """Poll until success/failure or until max_wait_ms elapses."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.max_wait_ms / 1000

        while True:
            status = await self.provider.get_transaction_status(digest)
            if status is not TxStatus.PENDING:
                return status
            if loop.time() >= deadline:
                logger.warning(
                    "Finality not observed within limit",
                    extra={"context": {"digest": digest, "max_wait_ms": self.max_wait_ms}},
                )
                return TxStatus.PENDING
            await asyncio.sleep(self.poll_interval_ms / 1000)
