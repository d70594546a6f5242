"""
TrustLayer API - HTTP relayer between Aleo credentials and the EVM hook.

Provides REST endpoints for:
- Aleo credential queries (GET /api/issued, /api/revoked, /api/verify, ...)
- prove_tier verification (POST /api/verify-proof)
- Hook contract views and trader registration (/api/eth/*)
- snarkos-backed issuer/admin actions (/api/aleo/*)
- Health checks (GET /health)
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, AsyncGenerator, Optional

import structlog
import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from web3 import Web3

from . import __version__
from .aleo import AleoClient
from .auth import verify_api_token
from .config import Settings, get_settings
from .errors import ApiError, BadRequestError, NotFoundError, ProverError, UpstreamError
from .evm import HookClient
from .extractor import extract_proof_outputs, iter_record_outputs
from .models import (
    BlockHeightResponse,
    CanSwapResponse,
    CredentialRecord,
    CredentialStatusResponse,
    CredentialsInfoResponse,
    DecryptRecordRequest,
    DecryptRecordResponse,
    ErrorResponse,
    FetchCredentialRequest,
    FetchCredentialResponse,
    HealthResponse,
    HookInfoResponse,
    IssueCredentialRequest,
    IssueCredentialResponse,
    IssuedResponse,
    IssuerActionResponse,
    IssuerRequest,
    IssuerStatusResponse,
    ProofVerificationResponse,
    ProveTierRequest,
    ProveTierResponse,
    RegisterTraderRequest,
    RegisterTraderResponse,
    RevokeCredentialRequest,
    RevokeCredentialResponse,
    RevokedResponse,
    RevokeTraderRequest,
    RevokeTraderResponse,
    TierConfigResponse,
    TraderInfoResponse,
    TransactionResponse,
    VerifyProofRequest,
)
from .prover import ExternalProver, validate_issue_params
from .services import Services, get_services
from .tiers import evm_tier_name, tier_from_score, tier_name

# Configure logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger()

router = APIRouter()

UINT256_MAX = 2**256 - 1


# ============================================================================
# Application factory
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    services: Services = app.state.services
    settings = services.settings

    logger.info(
        "API started",
        version=__version__,
        host=settings.host,
        port=settings.port,
        aleo_endpoint=settings.aleo_endpoint,
        aleo_program=settings.aleo_program,
        eth_enabled=services.hook is not None,
        hook_address=settings.hook_address,
        relayer=services.hook.address if services.hook else None,
    )
    if services.hook is None:
        logger.warning(
            "Ethereum config missing - ETH endpoints disabled",
            eth_rpc="SET" if settings.eth_rpc else "MISSING",
            relayer_private_key="SET" if settings.relayer_private_key else "MISSING",
            hook_address="SET" if settings.hook_address else "MISSING",
        )

    yield

    await services.aleo.close()
    logger.info("API stopped")


def _validation_message(errors: list[dict[str, Any]]) -> str:
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "path", "query")]
    field = loc[-1] if loc else "body"
    if first.get("type") == "missing":
        return f"{field} is required"
    return f"{field}: {first.get('msg', 'invalid value')}"


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = list(exc.errors())
        return JSONResponse(
            status_code=400,
            content={"error": _validation_message(errors)},
        )


def create_app(
    settings: Optional[Settings] = None,
    aleo: Optional[AleoClient] = None,
    hook: Optional[HookClient] = None,
    prover: Optional[ExternalProver] = None,
) -> FastAPI:
    """Build the FastAPI app with its clients bound to ``settings``."""
    settings = settings or get_settings()

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(message)s",
    )

    app = FastAPI(
        title="TrustLayer Credentials API",
        description="Relayer between Aleo tier credentials and the TrustLayerHook contract",
        version=__version__,
        lifespan=lifespan,
        responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    )
    app.state.services = Services.build(settings, aleo=aleo, hook=hook, prover=prover)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)
    app.include_router(router)
    return app


# ============================================================================
# Health Check
# ============================================================================


@router.get("/health", response_model=HealthResponse)
async def health_check(services: Services = Depends(get_services)) -> HealthResponse:
    """
    Service status, configured program and upstream connectivity.

    ``ethRpc`` is null when the hook contract is not configured.
    """
    aleo_ok = await services.aleo.check_connectivity()
    eth_ok = await services.hook.check_connectivity() if services.hook else None

    return HealthResponse(
        status="ok",
        program=services.settings.aleo_program,
        eth_enabled=services.hook is not None,
        version=__version__,
        aleo_rpc=aleo_ok,
        eth_rpc=eth_ok,
    )


# ============================================================================
# Aleo Queries
# ============================================================================


@router.get("/api/block-height", response_model=BlockHeightResponse)
async def block_height(services: Services = Depends(get_services)) -> BlockHeightResponse:
    height = await services.aleo.get_block_height()
    if height is None:
        raise UpstreamError("Failed to get block height")
    return BlockHeightResponse(block_height=height)


@router.get("/api/issuer/{address}", response_model=IssuerStatusResponse)
async def issuer_status(address: str, services: Services = Depends(get_services)) -> IssuerStatusResponse:
    return IssuerStatusResponse(
        address=address,
        is_approved=await services.aleo.is_approved_issuer(address),
    )


@router.get("/api/issued/{commitment}", response_model=IssuedResponse)
async def issued(commitment: str, services: Services = Depends(get_services)) -> IssuedResponse:
    return IssuedResponse(commitment=commitment, was_issued=await services.aleo.was_issued(commitment))


@router.get("/api/revoked/{commitment}", response_model=RevokedResponse)
async def revoked(commitment: str, services: Services = Depends(get_services)) -> RevokedResponse:
    return RevokedResponse(commitment=commitment, is_revoked=await services.aleo.is_revoked(commitment))


@router.get("/api/verify/{commitment}", response_model=CredentialStatusResponse)
async def verify_commitment(
    commitment: str,
    services: Services = Depends(get_services),
) -> CredentialStatusResponse:
    """Check a credential is issued AND not revoked."""
    status = await services.aleo.check_credential(commitment)
    return CredentialStatusResponse(
        commitment=commitment,
        was_issued=status.was_issued,
        is_revoked=status.is_revoked,
        is_valid=status.is_valid,
        lookup_failed=status.lookup_failed,
    )


@router.get("/api/transaction/{tx_id}", response_model=TransactionResponse)
async def transaction(tx_id: str, services: Services = Depends(get_services)) -> TransactionResponse:
    tx = await services.aleo.get_transaction(tx_id)
    if tx is None:
        raise NotFoundError("Transaction not found")

    outputs = extract_proof_outputs(tx)
    return TransactionResponse(tx_id=tx_id, tier=outputs.tier, commitment=outputs.commitment, raw=tx)


@router.post("/api/verify-proof", response_model=ProofVerificationResponse)
async def verify_proof(
    request: VerifyProofRequest,
    services: Services = Depends(get_services),
) -> ProofVerificationResponse:
    """
    Verify a prove_tier transaction.

    Extracts the public tier and commitment and checks the credential
    against the issued/revoked mappings.
    """
    result = await services.registration.verify_proof(request.tx_id)
    return ProofVerificationResponse(
        tx_id=result.tx_id,
        tier=result.tier,
        tier_name=result.tier_name,
        commitment=result.commitment,
        current_block=result.current_block,
        was_issued=result.status.was_issued,
        is_revoked=result.status.is_revoked,
        is_valid=result.status.is_valid,
        message=result.message,
    )


# ============================================================================
# Ethereum Hook Views
# ============================================================================


def _checked_address(address: str) -> str:
    if not Web3.is_address(address):
        raise BadRequestError(f"Invalid Ethereum address: {address}")
    return Web3.to_checksum_address(address)


@router.get("/api/eth/hook-info", response_model=HookInfoResponse)
async def hook_info(services: Services = Depends(get_services)) -> HookInfoResponse:
    hook = services.require_hook()
    try:
        info = await hook.get_hook_info()
    except Exception as e:
        logger.error("Failed to read hook info", error=str(e))
        raise UpstreamError(str(e)) from e
    return HookInfoResponse(
        hook_address=info.hook_address,
        admin=info.admin,
        relayer=info.relayer,
        relayer_configured=info.relayer_configured,
    )


@router.get("/api/eth/trader/{address}", response_model=TraderInfoResponse)
async def trader_info(address: str, services: Services = Depends(get_services)) -> TraderInfoResponse:
    hook = services.require_hook()
    trader = _checked_address(address)
    try:
        info, current_block = await asyncio.gather(
            hook.get_trader_info(trader),
            hook.get_block_number(),
        )
    except Exception as e:
        logger.error("Failed to read trader info", trader=trader, error=str(e))
        raise UpstreamError(str(e)) from e
    return TraderInfoResponse(
        address=address,
        tier=info.tier,
        tier_name=evm_tier_name(info.tier),
        registered_at=info.registered_at,
        expiry=info.expiry,
        commitment=Web3.to_hex(info.commitment),
        is_registered=info.is_registered,
        current_block=current_block,
        is_active=info.is_active(current_block),
    )


@router.get("/api/eth/tier/{tier}", response_model=TierConfigResponse)
async def tier_config(tier: int, services: Services = Depends(get_services)) -> TierConfigResponse:
    hook = services.require_hook()
    if tier < 0 or tier > 255:
        raise BadRequestError("tier must be a u8")
    try:
        config = await hook.get_tier_config(tier)
    except Exception as e:
        logger.error("Failed to read tier config", tier=tier, error=str(e))
        raise UpstreamError(str(e)) from e
    return TierConfigResponse(
        tier=tier,
        fee_bps=config.fee_bps,
        fee_percent=config.fee_percent,
        max_trade_size=str(config.max_trade_size),
        max_trade_size_formatted=str(Web3.from_wei(config.max_trade_size, "ether")),
        enabled=config.enabled,
    )


def _amount_to_wei(amount: str) -> int:
    """Convert a positive ether amount to wei; fractions of a wei are rejected."""
    try:
        value = Decimal(amount)
    except InvalidOperation as e:
        raise BadRequestError(f"Invalid amount: {amount}") from e
    if not value.is_finite() or value <= 0:
        raise BadRequestError(f"Invalid amount: {amount}", hint="Amount must be greater than zero")
    if value > UINT256_MAX:
        raise BadRequestError(f"Invalid amount: {amount}", hint="Amount exceeds uint256")
    with localcontext() as ctx:
        ctx.prec = 999
        wei = value * 10**18
        if wei % 1 != 0:
            raise BadRequestError(f"Invalid amount: {amount}", hint="Amounts have at most 18 decimals")
        if wei > UINT256_MAX:
            raise BadRequestError(f"Invalid amount: {amount}", hint="Amount exceeds uint256")
        return int(wei)


@router.get("/api/eth/can-swap/{address}/{amount}", response_model=CanSwapResponse)
async def can_swap(address: str, amount: str, services: Services = Depends(get_services)) -> CanSwapResponse:
    hook = services.require_hook()
    trader = _checked_address(address)
    amount_wei = _amount_to_wei(amount)

    try:
        allowed, reason = await hook.can_swap(trader, amount_wei)
    except Exception as e:
        logger.error("canSwap failed", trader=trader, error=str(e))
        raise UpstreamError(str(e)) from e
    return CanSwapResponse(
        address=address,
        amount=amount,
        amount_wei=str(amount_wei),
        can_swap=allowed,
        reason=reason,
    )


# ============================================================================
# Ethereum Hook Writes
# ============================================================================


@router.post(
    "/api/eth/register-trader",
    response_model=RegisterTraderResponse,
    dependencies=[Depends(verify_api_token)],
)
async def register_trader(
    request: RegisterTraderRequest,
    services: Services = Depends(get_services),
) -> RegisterTraderResponse:
    """
    Register a trader on the hook after verifying their Aleo tier proof.

    Fetches the prove_tier transaction, checks the credential is issued and
    not revoked, then calls registerTrader as the relayer.
    """
    services.require_hook()
    result = await services.registration.register_trader(
        aleo_tx_id=request.aleo_tx_id,
        eth_address=request.eth_address,
        expiry_blocks=request.expiry_blocks,
    )
    return RegisterTraderResponse(
        success=True,
        message=result.message,
        aleo_tx_id=result.aleo_tx_id,
        eth_tx_hash=result.eth_tx_hash,
        trader=result.trader,
        tier=result.tier,
        tier_name=result.tier_name,
        commitment=result.commitment,
        expiry=result.expiry,
        block_number=result.block_number,
    )


@router.post(
    "/api/eth/revoke-trader",
    response_model=RevokeTraderResponse,
    dependencies=[Depends(verify_api_token)],
)
async def revoke_trader(
    request: RevokeTraderRequest,
    services: Services = Depends(get_services),
) -> RevokeTraderResponse:
    services.require_hook()
    result = await services.registration.revoke_trader(
        eth_address=request.eth_address,
        aleo_commitment=request.aleo_commitment,
    )
    return RevokeTraderResponse(
        success=True,
        message="Trader revoked successfully",
        eth_tx_hash=result.eth_tx_hash,
        trader=result.trader,
        block_number=result.block_number,
    )


# ============================================================================
# Aleo Issuer / Admin
# ============================================================================


def _prover_failure(action: str, e: ProverError, hint: Optional[str] = None) -> UpstreamError:
    logger.error(f"Failed to {action}", error=e.message, timed_out=e.timed_out)
    return UpstreamError(f"Failed to {action}: {e.message}", hint=hint)


@router.post(
    "/api/aleo/issue-credential",
    response_model=IssueCredentialResponse,
    dependencies=[Depends(verify_api_token)],
)
async def issue_credential(
    request: IssueCredentialRequest,
    services: Services = Depends(get_services),
) -> IssueCredentialResponse:
    """Issue a credential record to ``recipient`` (caller must be an approved issuer)."""
    try:
        validate_issue_params(request.score, request.expiry)
    except ValueError as e:
        raise BadRequestError(str(e)) from e
    services.require_private_key()

    logger.info("Issuing credential", recipient=request.recipient, score=request.score, expiry=request.expiry)
    try:
        result = await services.prover.issue(
            recipient=request.recipient,
            score=request.score,
            expiry=request.expiry,
            nonce=request.nonce,
        )
    except ProverError as e:
        raise _prover_failure(
            "issue credential",
            e,
            hint="Make sure snarkos is installed and ALEO_PRIVATE_KEY belongs to an approved issuer.",
        ) from e

    tier = tier_from_score(request.score)
    tier_label = tier_name(tier)
    return IssueCredentialResponse(
        message=f"Credential issued: {tier_label} (score: {request.score})",
        tx_id=result.tx_id,
        recipient=request.recipient,
        score=request.score,
        expiry=request.expiry,
        nonce=request.nonce,
        tier=int(tier),
        tier_name=tier_label,
    )


@router.post(
    "/api/aleo/add-issuer",
    response_model=IssuerActionResponse,
    dependencies=[Depends(verify_api_token)],
)
async def add_issuer(request: IssuerRequest, services: Services = Depends(get_services)) -> IssuerActionResponse:
    services.require_private_key()
    try:
        result = await services.prover.add_issuer(request.issuer_address)
    except ProverError as e:
        raise _prover_failure("add issuer", e, hint="Only the admin address can add issuers.") from e
    return IssuerActionResponse(
        message=f"Issuer {request.issuer_address[:12]}... approved",
        tx_id=result.tx_id,
        issuer_address=request.issuer_address,
    )


@router.post(
    "/api/aleo/remove-issuer",
    response_model=IssuerActionResponse,
    dependencies=[Depends(verify_api_token)],
)
async def remove_issuer(request: IssuerRequest, services: Services = Depends(get_services)) -> IssuerActionResponse:
    services.require_private_key()
    try:
        result = await services.prover.remove_issuer(request.issuer_address)
    except ProverError as e:
        raise _prover_failure("remove issuer", e, hint="Only the admin address can remove issuers.") from e
    return IssuerActionResponse(
        message=f"Issuer {request.issuer_address[:12]}... removed",
        tx_id=result.tx_id,
        issuer_address=request.issuer_address,
    )


@router.post(
    "/api/aleo/revoke-credential",
    response_model=RevokeCredentialResponse,
    dependencies=[Depends(verify_api_token)],
)
async def revoke_credential(
    request: RevokeCredentialRequest,
    services: Services = Depends(get_services),
) -> RevokeCredentialResponse:
    services.require_private_key()
    try:
        result = await services.prover.revoke(request.commitment)
    except ProverError as e:
        raise _prover_failure("revoke credential", e) from e
    return RevokeCredentialResponse(
        message="Credential revoked on Aleo",
        tx_id=result.tx_id,
        commitment=request.commitment,
    )


@router.get("/api/aleo/credentials", response_model=CredentialsInfoResponse)
async def list_credentials() -> CredentialsInfoResponse:
    return CredentialsInfoResponse(
        message=(
            "Aleo mappings do not support enumeration. "
            "Use /api/verify/{commitment} to check individual credentials."
        ),
        hint="Track commitments in a database when issuing via /api/aleo/issue-credential.",
    )


# ============================================================================
# Tier Proofs / Record Decryption
# ============================================================================


@router.post(
    "/api/aleo/prove-tier",
    response_model=ProveTierResponse,
    dependencies=[Depends(verify_api_token)],
)
async def prove_tier(request: ProveTierRequest, services: Services = Depends(get_services)) -> ProveTierResponse:
    """
    Run prove_tier for a credential record (demo mode: the admin key owns it).

    Proof generation can take minutes.
    """
    services.require_private_key()

    current_block = await services.aleo.get_block_height()
    if current_block is None:
        raise UpstreamError("Failed to get block height")

    logger.info("Executing prove_tier", current_block=current_block)
    try:
        result = await services.prover.prove_tier(request.record, current_block)
    except ProverError as e:
        raise _prover_failure(
            "execute prove_tier",
            e,
            hint=(
                "Make sure the credential record is valid and not already spent. "
                "The ALEO_PRIVATE_KEY must own this record."
            ),
        ) from e

    return ProveTierResponse(
        message="ZK tier proof generated and broadcast!",
        tx_id=result.tx_id,
        block_height=current_block,
    )


@router.post(
    "/api/aleo/decrypt-record",
    response_model=DecryptRecordResponse,
    dependencies=[Depends(verify_api_token)],
)
async def decrypt_record(
    request: DecryptRecordRequest,
    services: Services = Depends(get_services),
) -> DecryptRecordResponse:
    view_key = services.resolve_view_key(request.view_key)
    try:
        plaintext = await services.prover.decrypt(request.ciphertext, view_key)
    except ProverError as e:
        raise _prover_failure("decrypt", e) from e
    return DecryptRecordResponse(plaintext=plaintext)


@router.post(
    "/api/aleo/fetch-credential",
    response_model=FetchCredentialResponse,
    dependencies=[Depends(verify_api_token)],
)
async def fetch_credential(
    request: FetchCredentialRequest,
    services: Services = Depends(get_services),
) -> FetchCredentialResponse:
    """
    Fetch a transaction and decrypt its Credential records.

    Outputs the view key cannot decrypt are skipped.
    """
    view_key = services.resolve_view_key(request.view_key)

    tx = await services.aleo.get_transaction(request.tx_id)
    if tx is None:
        raise NotFoundError("Transaction not found")

    records: list[CredentialRecord] = []
    for transition, ciphertext in iter_record_outputs(tx, services.settings.aleo_program):
        try:
            plaintext = await services.prover.decrypt(ciphertext, view_key)
        except ProverError as e:
            logger.info("Could not decrypt output", transition_id=transition.get("id"), error=e.message[:80])
            continue

        if plaintext and "score" in plaintext:
            records.append(
                CredentialRecord(
                    plaintext=plaintext,
                    ciphertext=ciphertext,
                    transition_id=transition.get("id"),
                    function=transition.get("function"),
                )
            )

    if not records:
        raise NotFoundError(
            "No Credential records found in this transaction (or view key cannot decrypt them).",
            hint="Make sure ALEO_VIEW_KEY matches the credential owner.",
        )

    return FetchCredentialResponse(records=records, tx_id=request.tx_id)


# ============================================================================
# Entry Point
# ============================================================================


app = create_app()


def run() -> None:
    """Run the API server."""
    settings = get_settings()
    uvicorn.run(
        "trustlayer_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
