"""
EVM client for interacting with the TrustLayerHook contract.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

import structlog
from eth_account import Account
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.types import TxReceipt

from .config import Settings
from .literals import LiteralKind, parse_literal

logger = structlog.get_logger()


# TrustLayerHook ABI (minimal)
_TRADER_INFO_COMPONENTS = [
    {"name": "tier", "type": "uint8"},
    {"name": "registeredAt", "type": "uint256"},
    {"name": "expiry", "type": "uint256"},
    {"name": "commitment", "type": "bytes32"},
]

_TIER_CONFIG_COMPONENTS = [
    {"name": "feeBps", "type": "uint24"},
    {"name": "maxTradeSize", "type": "uint256"},
    {"name": "enabled", "type": "bool"},
]

HOOK_ABI = [
    {
        "inputs": [
            {"name": "trader", "type": "address"},
            {"name": "tier", "type": "uint8"},
            {"name": "commitment", "type": "bytes32"},
            {"name": "expiry", "type": "uint256"},
        ],
        "name": "registerTrader",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"name": "trader", "type": "address"}],
        "name": "revokeTrader",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"name": "trader", "type": "address"}],
        "name": "getTraderInfo",
        "outputs": [{"name": "", "type": "tuple", "components": _TRADER_INFO_COMPONENTS}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "tier", "type": "uint8"}],
        "name": "getTierConfig",
        "outputs": [{"name": "", "type": "tuple", "components": _TIER_CONFIG_COMPONENTS}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "trader", "type": "address"},
            {"name": "tradeSize", "type": "uint256"},
        ],
        "name": "canSwap",
        "outputs": [
            {"name": "", "type": "bool"},
            {"name": "", "type": "string"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "admin",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "relayer",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
]


def commitment_to_bytes32(commitment: str) -> bytes:
    """
    Convert an Aleo commitment (``1234field``) into the hook's bytes32 key.

    The field numeral is stored big-endian, left-padded to 32 bytes.
    """
    literal = parse_literal(commitment, LiteralKind.FIELD)
    if literal is None:
        raise ValueError(f"Not a field literal: {commitment!r}")
    return literal.value.to_bytes(32, "big")


@dataclass(frozen=True)
class TraderInfo:
    """Registration stored on the hook for one trader."""

    tier: int
    registered_at: int
    expiry: int
    commitment: bytes

    @property
    def is_registered(self) -> bool:
        return self.tier > 0

    def is_active(self, current_block: int) -> bool:
        return self.is_registered and current_block < self.expiry


@dataclass(frozen=True)
class TierConfig:
    """Swap parameters the hook applies to one tier."""

    tier: int
    fee_bps: int
    max_trade_size: int
    enabled: bool

    @property
    def fee_percent(self) -> float:
        return self.fee_bps / 10000


@dataclass(frozen=True)
class HookInfo:
    hook_address: str
    admin: str
    relayer: str
    relayer_configured: str


class HookClient:
    """
    Async client for the TrustLayerHook contract, signing as the relayer.
    """

    def __init__(self, settings: Settings, w3: Optional[AsyncWeb3] = None):
        self.settings = settings
        self.w3 = w3 or AsyncWeb3(AsyncHTTPProvider(settings.eth_rpc))
        self.account = (
            Account.from_key(settings.relayer_private_key) if settings.relayer_private_key else None
        )

    @property
    def address(self) -> str:
        """Get relayer address."""
        if not self.account:
            raise ValueError("No relayer private key configured")
        return self.account.address

    @property
    def hook_address(self) -> str:
        if not self.settings.hook_address:
            raise ValueError("HOOK_ADDRESS not configured")
        return Web3.to_checksum_address(self.settings.hook_address)

    def get_hook(self) -> Any:
        """Get TrustLayerHook contract instance."""
        return self.w3.eth.contract(address=self.hook_address, abi=HOOK_ABI)

    async def check_connectivity(self) -> bool:
        """Check if EVM RPC is reachable."""
        try:
            await self.w3.eth.block_number
            return True
        except Exception as e:
            logger.warning("EVM RPC unreachable", eth_rpc=self.settings.eth_rpc, error=str(e))
            return False

    async def get_block_number(self) -> int:
        return await self.w3.eth.block_number

    async def get_chain_id(self) -> int:
        if self.settings.chain_id is not None:
            return self.settings.chain_id
        return await self.w3.eth.chain_id

    async def send_transaction(
        self,
        to: str,
        data: bytes,
        gas_limit: int = 300000,
        value: int = 0,
    ) -> TxReceipt:
        """Send a transaction and wait for receipt."""
        if not self.account:
            raise ValueError("No relayer private key configured")

        nonce = await self.w3.eth.get_transaction_count(self.address)
        gas_price = await self.w3.eth.gas_price
        chain_id = await self.get_chain_id()

        tx = {
            "chainId": chain_id,
            "nonce": nonce,
            "to": to,
            "value": value,
            "gas": gas_limit,
            "gasPrice": gas_price,
            "data": data,
        }

        signed = self.account.sign_transaction(tx)
        tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        logger.info("Transaction sent", tx_hash=Web3.to_hex(tx_hash), to=to)
        return await self.w3.eth.wait_for_transaction_receipt(tx_hash)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    async def get_hook_info(self) -> HookInfo:
        hook = self.get_hook()
        admin, relayer = await asyncio.gather(
            hook.functions.admin().call(),
            hook.functions.relayer().call(),
        )
        return HookInfo(
            hook_address=self.hook_address,
            admin=admin,
            relayer=relayer,
            relayer_configured=self.address,
        )

    async def get_trader_info(self, trader: str) -> TraderInfo:
        hook = self.get_hook()
        tier, registered_at, expiry, commitment = await hook.functions.getTraderInfo(
            Web3.to_checksum_address(trader)
        ).call()
        return TraderInfo(
            tier=int(tier),
            registered_at=int(registered_at),
            expiry=int(expiry),
            commitment=bytes(commitment),
        )

    async def get_tier_config(self, tier: int) -> TierConfig:
        hook = self.get_hook()
        fee_bps, max_trade_size, enabled = await hook.functions.getTierConfig(tier).call()
        return TierConfig(
            tier=tier,
            fee_bps=int(fee_bps),
            max_trade_size=int(max_trade_size),
            enabled=bool(enabled),
        )

    async def can_swap(self, trader: str, amount_wei: int) -> tuple[bool, str]:
        hook = self.get_hook()
        allowed, reason = await hook.functions.canSwap(
            Web3.to_checksum_address(trader), amount_wei
        ).call()
        return bool(allowed), str(reason)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def register_trader(
        self,
        trader: str,
        tier: int,
        commitment: bytes,
        expiry: int,
    ) -> TxReceipt:
        """Call TrustLayerHook.registerTrader()."""
        hook = self.get_hook()
        data = hook.encode_abi(
            "registerTrader",
            args=[Web3.to_checksum_address(trader), tier, commitment, expiry],
        )
        return await self.send_transaction(self.hook_address, bytes.fromhex(data[2:]))

    async def revoke_trader(self, trader: str) -> TxReceipt:
        """Call TrustLayerHook.revokeTrader()."""
        hook = self.get_hook()
        data = hook.encode_abi(
            "revokeTrader",
            args=[Web3.to_checksum_address(trader)],
        )
        return await self.send_transaction(self.hook_address, bytes.fromhex(data[2:]))
