"""
Pydantic models for API requests and responses.

JSON bodies use camelCase keys (``txId``, ``ethAddress``); Python code uses
the snake_case field names.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serializing field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Errors / Health
# ============================================================================


class ErrorResponse(CamelModel):
    """Body returned for every failed request."""

    error: str = Field(..., description="Error message")
    hint: Optional[str] = Field(None, description="Remediation hint")


class HealthResponse(CamelModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    program: str = Field(..., description="Aleo credentials program")
    eth_enabled: bool = Field(..., description="Whether the hook contract is configured")
    version: str = Field(..., description="API version")
    aleo_rpc: bool = Field(..., description="Aleo explorer connectivity")
    eth_rpc: Optional[bool] = Field(None, description="EVM RPC connectivity (null when not configured)")


# ============================================================================
# Aleo queries
# ============================================================================


class BlockHeightResponse(CamelModel):
    block_height: int = Field(..., description="Latest Aleo block height")


class IssuerStatusResponse(CamelModel):
    address: str = Field(..., description="Aleo address")
    is_approved: bool = Field(..., description="Present in approved_issuers")


class IssuedResponse(CamelModel):
    commitment: str
    was_issued: bool


class RevokedResponse(CamelModel):
    commitment: str
    is_revoked: bool


class CredentialStatusResponse(CamelModel):
    """Combined issued/revoked check for one commitment."""

    commitment: str
    was_issued: bool
    is_revoked: bool
    is_valid: bool = Field(..., description="Issued and not revoked")
    lookup_failed: bool = Field(False, description="A mapping lookup failed; validity unknown")


class TransactionResponse(CamelModel):
    tx_id: str
    tier: Optional[int] = None
    commitment: Optional[str] = None
    raw: dict[str, Any] = Field(..., description="Transaction as returned by the explorer")


class VerifyProofRequest(CamelModel):
    """Request to verify a prove_tier transaction."""

    tx_id: str = Field(..., min_length=1, description="Aleo transaction ID (at1...)")

    model_config = ConfigDict(
        json_schema_extra={"examples": [{"txId": "at1qyz...abc"}]},
    )


class ProofVerificationResponse(CamelModel):
    tx_id: str
    tier: int
    tier_name: str
    commitment: str
    current_block: Optional[int] = Field(None, description="Block height the proof was made at")
    was_issued: bool
    is_revoked: bool
    is_valid: bool
    message: str


# ============================================================================
# Ethereum hook
# ============================================================================


class HookInfoResponse(CamelModel):
    hook_address: str
    admin: str
    relayer: str
    relayer_configured: str = Field(..., description="Address of the configured relayer key")


class TraderInfoResponse(CamelModel):
    address: str
    tier: int
    tier_name: str
    registered_at: int
    expiry: int
    commitment: str = Field(..., description="bytes32 commitment (0x...)")
    is_registered: bool
    current_block: int = Field(..., description="EVM block the registration was checked at")
    is_active: bool = Field(..., description="Registered and current block < expiry")


class TierConfigResponse(CamelModel):
    tier: int
    fee_bps: int
    fee_percent: float
    max_trade_size: str = Field(..., description="Max trade size in wei")
    max_trade_size_formatted: str = Field(..., description="Max trade size in ether")
    enabled: bool


class CanSwapResponse(CamelModel):
    address: str
    amount: str
    amount_wei: str
    can_swap: bool
    reason: str


class RegisterTraderRequest(CamelModel):
    """Request to mirror an Aleo tier proof onto the hook."""

    aleo_tx_id: str = Field(..., min_length=1, description="prove_tier transaction ID")
    eth_address: str = Field(..., min_length=1, description="Trader EVM address (0x...)")
    expiry_blocks: Optional[int] = Field(
        None,
        ge=0,
        description="Blocks until the registration expires (omitted or 0 uses the default)",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "aleoTxId": "at1qyz...abc",
                    "ethAddress": "0x1234567890abcdef1234567890abcdef12345678",
                    "expiryBlocks": 100000,
                }
            ]
        },
    )


class RegisterTraderResponse(CamelModel):
    success: bool
    message: str
    aleo_tx_id: str
    eth_tx_hash: str
    trader: str
    tier: int
    tier_name: str
    commitment: str
    expiry: int
    block_number: int


class RevokeTraderRequest(CamelModel):
    eth_address: str = Field(..., min_length=1, description="Trader EVM address (0x...)")
    aleo_commitment: Optional[str] = Field(
        None, description="If given, must already be revoked on Aleo"
    )


class RevokeTraderResponse(CamelModel):
    success: bool
    message: str
    eth_tx_hash: str
    trader: str
    block_number: int


# ============================================================================
# Aleo issuer / admin
# ============================================================================


class IssueCredentialRequest(CamelModel):
    """Request to issue a credential record to ``recipient``."""

    recipient: str = Field(..., min_length=1, description="Aleo address of the credential owner")
    score: int = Field(..., description="Credit score (0-1000)")
    expiry: int = Field(..., description="Expiry Aleo block height (u32)")
    nonce: str = Field(..., min_length=1, description="Uniqueness nonce (field)")

    @field_validator("nonce", mode="before")
    @classmethod
    def _nonce_to_str(cls, v: Union[str, int]) -> str:
        return str(v)

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "recipient": "aleo1...",
                    "score": 750,
                    "expiry": 500000,
                    "nonce": "12345field",
                }
            ]
        },
    )


class AleoTxResponse(CamelModel):
    """Result of a snarkos-broadcast transaction."""

    success: bool = True
    message: str
    tx_id: Optional[str] = Field(None, description="Aleo transaction ID, if snarkos printed one")


class IssueCredentialResponse(AleoTxResponse):
    recipient: str
    score: int
    expiry: int
    nonce: str
    tier: int
    tier_name: str


class IssuerRequest(CamelModel):
    issuer_address: str = Field(..., min_length=1, description="Aleo address of the issuer")


class IssuerActionResponse(AleoTxResponse):
    issuer_address: str


class RevokeCredentialRequest(CamelModel):
    commitment: str = Field(..., min_length=1, description="Credential commitment (...field)")


class RevokeCredentialResponse(AleoTxResponse):
    commitment: str


class ProveTierRequest(CamelModel):
    record: str = Field(..., min_length=1, description="Decrypted credential record plaintext")


class ProveTierResponse(AleoTxResponse):
    block_height: int


class DecryptRecordRequest(CamelModel):
    ciphertext: str = Field(..., min_length=1, description="Record ciphertext (record1...)")
    view_key: Optional[str] = Field(None, description="View key; defaults to ALEO_VIEW_KEY")


class DecryptRecordResponse(CamelModel):
    success: bool = True
    plaintext: str


class FetchCredentialRequest(CamelModel):
    tx_id: str = Field(..., min_length=1, description="Transaction that created the record")
    view_key: Optional[str] = Field(None, description="View key; defaults to ALEO_VIEW_KEY")


class CredentialRecord(CamelModel):
    plaintext: str
    ciphertext: str
    transition_id: Optional[str] = None
    function: Optional[str] = None


class FetchCredentialResponse(CamelModel):
    success: bool = True
    records: list[CredentialRecord]
    tx_id: str


class CredentialsInfoResponse(CamelModel):
    message: str
    hint: str
