"""
Cross-chain registration flow.

Verifies a prove_tier transaction on Aleo and mirrors the proven tier onto
the TrustLayerHook contract. Every step runs inside a single request and
nothing is persisted in between; the registerTrader/revokeTrader call is
the only state change and is never retried.
"""

from dataclasses import dataclass
from typing import Any, Optional

import structlog
from web3 import Web3

from .aleo import AleoClient, CredentialStatus
from .config import Settings
from .errors import BadRequestError, NotFoundError, ServiceUnavailableError, UpstreamError
from .evm import HookClient, commitment_to_bytes32
from .extractor import ProofOutputs, extract_proof_outputs
from .tiers import Tier, tier_name

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProofVerification:
    tx_id: str
    tier: int
    tier_name: str
    commitment: str
    current_block: Optional[int]
    status: CredentialStatus

    @property
    def message(self) -> str:
        if self.status.is_valid:
            return f"Valid {self.tier_name} credential"
        if self.status.lookup_failed:
            return "Could not confirm credential status on Aleo"
        return "Invalid credential (not issued or revoked)"


@dataclass(frozen=True)
class RegistrationResult:
    aleo_tx_id: str
    eth_tx_hash: str
    trader: str
    tier: int
    tier_name: str
    commitment: str
    expiry: int
    block_number: int

    @property
    def message(self) -> str:
        return f"Successfully registered {self.tier_name} trader"


@dataclass(frozen=True)
class RevocationResult:
    eth_tx_hash: str
    trader: str
    block_number: int


def _receipt_ok(receipt: Any) -> bool:
    return receipt.get("status", 1) == 1


class RegistrationService:
    """Ties the Aleo credential checks to the hook contract."""

    def __init__(self, settings: Settings, aleo: AleoClient, hook: Optional[HookClient]):
        self.settings = settings
        self.aleo = aleo
        self.hook = hook

    async def _load_proof(self, tx_id: str, not_found: str, incomplete: str) -> ProofOutputs:
        tx = await self.aleo.get_transaction(tx_id)
        if tx is None:
            raise NotFoundError(not_found)

        outputs = extract_proof_outputs(tx, program=self.settings.aleo_program)
        if not outputs.complete:
            raise BadRequestError(incomplete)
        return outputs

    async def verify_proof(self, tx_id: str) -> ProofVerification:
        """Check a prove_tier transaction and the credential behind it."""
        outputs = await self._load_proof(
            tx_id,
            not_found="Transaction not found",
            incomplete="Could not extract tier or commitment from transaction",
        )
        status = await self.aleo.check_credential(outputs.commitment)

        logger.info(
            "Proof verified",
            tx_id=tx_id,
            tier=outputs.tier,
            is_valid=status.is_valid,
        )
        return ProofVerification(
            tx_id=tx_id,
            tier=outputs.tier,
            tier_name=tier_name(outputs.tier),
            commitment=outputs.commitment,
            current_block=outputs.block_height,
            status=status,
        )

    def _require_hook(self) -> HookClient:
        if self.hook is None:
            raise ServiceUnavailableError("Ethereum not configured")
        return self.hook

    async def register_trader(
        self,
        aleo_tx_id: str,
        eth_address: str,
        expiry_blocks: Optional[int] = None,
    ) -> RegistrationResult:
        """
        Register ``eth_address`` on the hook with the tier proven in
        ``aleo_tx_id``.

        Raises:
            NotFoundError: Aleo transaction absent
            BadRequestError: missing outputs, tier 0, credential not valid
            UpstreamError: contract call failed or reverted
        """
        hook = self._require_hook()

        if not Web3.is_address(eth_address):
            raise BadRequestError(f"Invalid Ethereum address: {eth_address}")

        outputs = await self._load_proof(
            aleo_tx_id,
            not_found="Aleo transaction not found",
            incomplete="Could not extract tier/commitment from Aleo transaction",
        )

        if outputs.tier == Tier.INELIGIBLE:
            raise BadRequestError("Tier 0 (Ineligible) cannot be registered")

        status = await self.aleo.check_credential(outputs.commitment)
        if status.lookup_failed:
            raise BadRequestError(
                "Could not confirm credential status on Aleo",
                hint="The Aleo explorer did not answer; try again later.",
            )
        if not status.was_issued:
            raise BadRequestError("Credential was not issued on Aleo")
        if status.is_revoked:
            raise BadRequestError("Credential has been revoked on Aleo")

        commitment_bytes = commitment_to_bytes32(outputs.commitment)

        try:
            current_block = await hook.get_block_number()
            expiry = current_block + (expiry_blocks or self.settings.default_expiry_blocks)
            receipt = await hook.register_trader(
                trader=eth_address,
                tier=outputs.tier,
                commitment=commitment_bytes,
                expiry=expiry,
            )
        except Exception as e:
            logger.error("Registration failed", aleo_tx_id=aleo_tx_id, trader=eth_address, error=str(e))
            raise UpstreamError(str(e)) from e

        eth_tx_hash = Web3.to_hex(receipt["transactionHash"])
        if not _receipt_ok(receipt):
            raise UpstreamError(f"registerTrader reverted: {eth_tx_hash}")

        result = RegistrationResult(
            aleo_tx_id=aleo_tx_id,
            eth_tx_hash=eth_tx_hash,
            trader=eth_address,
            tier=outputs.tier,
            tier_name=tier_name(outputs.tier),
            commitment=Web3.to_hex(commitment_bytes),
            expiry=expiry,
            block_number=receipt["blockNumber"],
        )
        logger.info(
            "Trader registered",
            trader=eth_address,
            tier=result.tier,
            expiry=expiry,
            tx_hash=eth_tx_hash,
        )
        return result

    async def revoke_trader(
        self,
        eth_address: str,
        aleo_commitment: Optional[str] = None,
    ) -> RevocationResult:
        """
        Remove a trader from the hook.

        When ``aleo_commitment`` is given, the credential must already be
        revoked on Aleo so both ledgers agree.
        """
        hook = self._require_hook()

        if not Web3.is_address(eth_address):
            raise BadRequestError(f"Invalid Ethereum address: {eth_address}")

        if aleo_commitment and not await self.aleo.is_revoked(aleo_commitment):
            raise BadRequestError("Credential not revoked on Aleo. Revoke on Aleo first.")

        try:
            receipt = await hook.revoke_trader(eth_address)
        except Exception as e:
            logger.error("Revocation failed", trader=eth_address, error=str(e))
            raise UpstreamError(str(e)) from e

        eth_tx_hash = Web3.to_hex(receipt["transactionHash"])
        if not _receipt_ok(receipt):
            raise UpstreamError(f"revokeTrader reverted: {eth_tx_hash}")

        logger.info("Trader revoked", trader=eth_address, tx_hash=eth_tx_hash)
        return RevocationResult(
            eth_tx_hash=eth_tx_hash,
            trader=eth_address,
            block_number=receipt["blockNumber"],
        )
