"""
snarkos command runner.

Issuer/admin transactions, tier proofs and record decryption are delegated
to the ``snarkos`` CLI. Arguments are passed as an argument vector, never
through a shell, so record plaintexts and keys cannot inject commands.
"""

from __future__ import annotations

import asyncio
import re
import shutil
from dataclasses import dataclass
from typing import Optional, Protocol

import structlog

from .config import Settings
from .errors import ProverError
from .literals import LiteralKind, ensure_field_suffix, format_literal
from .tiers import MAX_SCORE

logger = structlog.get_logger()


TX_ID_PATTERN = re.compile(r"at1[a-z0-9]+")


def parse_transaction_id(stdout: str) -> Optional[str]:
    """Return the first Aleo transaction id (``at1...``) printed by snarkos."""
    match = TX_ID_PATTERN.search(stdout)
    return match.group(0) if match else None


@dataclass(frozen=True)
class ProverResult:
    """Outcome of a successful snarkos invocation."""

    tx_id: Optional[str]
    stdout: str
    stderr: str = ""


class ExternalProver(Protocol):
    """Capabilities the API needs from a proving/broadcasting backend."""

    async def issue(self, recipient: str, score: int, expiry: int, nonce: str) -> ProverResult: ...

    async def revoke(self, commitment: str) -> ProverResult: ...

    async def add_issuer(self, issuer: str) -> ProverResult: ...

    async def remove_issuer(self, issuer: str) -> ProverResult: ...

    async def prove_tier(self, record: str, current_block: int) -> ProverResult: ...

    async def decrypt(self, ciphertext: str, view_key: str) -> str: ...


def validate_issue_params(score: int, expiry: int) -> None:
    """
    Check credential parameters before spending a snarkos run on them.

    Raises:
        ValueError: score outside [0, 1000] or expiry outside u32 (>= 1)
    """
    if score < 0 or score > MAX_SCORE:
        raise ValueError(f"Score must be between 0 and {MAX_SCORE}")
    if expiry < 1 or expiry > 2**32 - 1:
        raise ValueError(
            "Expiry must be a valid u32 (1 to 4294967295). "
            "Use a realistic Aleo block height like 500000."
        )


class SnarkosProver:
    """
    ExternalProver backed by ``snarkos developer execute/decrypt``.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        if shutil.which(settings.snarkos_bin) is None:
            logger.warning("snarkos binary not found on PATH", snarkos_bin=settings.snarkos_bin)

    def execute_command(self, function: str, *args: str) -> list[str]:
        """Build the argument vector for ``snarkos developer execute``."""
        if not self.settings.aleo_private_key:
            raise ProverError("Aleo private key not configured")
        return [
            self.settings.snarkos_bin,
            "developer",
            "execute",
            self.settings.aleo_program,
            function,
            *args,
            "--private-key",
            self.settings.aleo_private_key,
            "--query",
            self.settings.aleo_endpoint,
            "--broadcast",
            self.settings.broadcast_url,
            "--network",
            str(self.settings.aleo_network_id),
        ]

    def decrypt_command(self, ciphertext: str, view_key: str) -> list[str]:
        return [
            self.settings.snarkos_bin,
            "developer",
            "decrypt",
            "--ciphertext",
            ciphertext,
            "--view-key",
            view_key,
        ]

    async def run(self, argv: list[str], timeout: float) -> ProverResult:
        """
        Run snarkos and capture its output.

        Raises:
            ProverError: binary missing, non-zero exit or timeout
        """
        # never log keys or record plaintexts
        label = " ".join(argv[1:5] if argv[2:3] == ["execute"] else argv[1:3])
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise ProverError(f"snarkos binary {argv[0]!r} not found") from e

        try:
            stdout_b, stderr_b = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.error("snarkos timed out", command=label, timeout=timeout)
            raise ProverError(f"Command timed out after {timeout:g}s", timed_out=True)

        stdout = stdout_b.decode("utf-8", errors="replace")
        stderr = stderr_b.decode("utf-8", errors="replace")

        if proc.returncode != 0:
            logger.error("snarkos failed", command=label, returncode=proc.returncode, stderr=stderr[:300])
            message = stderr.strip() or stdout.strip() or f"exit status {proc.returncode}"
            raise ProverError(
                f"Command failed (exit {proc.returncode}): {message[:500]}",
                stderr=stderr,
            )

        tx_id = parse_transaction_id(stdout)
        logger.info("snarkos finished", command=label, tx_id=tx_id)
        return ProverResult(tx_id=tx_id, stdout=stdout, stderr=stderr)

    async def _execute(self, function: str, *args: str, timeout: Optional[float] = None) -> ProverResult:
        argv = self.execute_command(function, *args)
        return await self.run(argv, timeout or self.settings.write_timeout_seconds)

    async def issue(self, recipient: str, score: int, expiry: int, nonce: str) -> ProverResult:
        validate_issue_params(score, expiry)
        return await self._execute(
            "issue",
            recipient,
            format_literal(score, LiteralKind.U16),
            format_literal(expiry, LiteralKind.U32),
            ensure_field_suffix(nonce),
        )

    async def revoke(self, commitment: str) -> ProverResult:
        return await self._execute("revoke", commitment)

    async def add_issuer(self, issuer: str) -> ProverResult:
        return await self._execute("add_issuer", issuer)

    async def remove_issuer(self, issuer: str) -> ProverResult:
        return await self._execute("remove_issuer", issuer)

    async def prove_tier(self, record: str, current_block: int) -> ProverResult:
        return await self._execute(
            "prove_tier",
            record.strip(),
            format_literal(current_block, LiteralKind.U32),
            timeout=self.settings.prove_timeout_seconds,
        )

    async def decrypt(self, ciphertext: str, view_key: str) -> str:
        result = await self.run(
            self.decrypt_command(ciphertext, view_key),
            self.settings.decrypt_timeout_seconds,
        )
        return result.stdout.strip()
