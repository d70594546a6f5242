"""
Configuration for TrustLayer API.
"""

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    API configuration settings.

    All settings can be overridden via environment variables. The instance is
    frozen: it is built once at startup and handed to every client.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    # API Server
    # WARNING: If using host="0.0.0.0" (externally accessible), set API_TOKEN
    # so the admin endpoints are not open to the world.
    host: str = Field(
        default="127.0.0.1",
        description="API host (127.0.0.1 for local only, 0.0.0.0 for external - REQUIRES API_TOKEN)",
        alias="HOST",
    )
    port: int = Field(default=3001, description="API port", validation_alias="PORT")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Authentication
    api_token: Optional[str] = Field(
        default=None,
        description="API token for write/admin endpoints (sent via X-API-Key)",
    )
    allowed_origins: list[str] = Field(
        default=["http://localhost:5173", "http://127.0.0.1:5173", "http://localhost:3000"],
        description="CORS allowed origins",
    )

    # Aleo
    aleo_endpoint: str = Field(
        default="https://api.explorer.provable.com/v1",
        description="Aleo explorer base URL",
    )
    aleo_network: str = Field(default="testnet", description="Aleo network name")
    aleo_program: str = Field(
        default="trustlayer_credentials_amm_v2.aleo",
        description="Credentials program identifier",
    )
    aleo_private_key: Optional[str] = Field(
        default=None,
        description="Admin/issuer private key used by snarkos",
    )
    aleo_view_key: Optional[str] = Field(
        default=None,
        description="Default view key for record decryption",
    )
    aleo_network_id: int = Field(default=1, description="snarkos --network id")
    snarkos_bin: str = Field(default="snarkos", description="Path or name of the snarkos binary")
    http_timeout_seconds: float = Field(default=30.0, description="Explorer request timeout")

    # EVM
    eth_rpc: str = Field(
        default="http://127.0.0.1:8545",
        description="EVM RPC URL (Arbitrum or local node)",
        validation_alias=AliasChoices("ARB_RPC", "ETH_RPC", "eth_rpc"),
    )
    relayer_private_key: Optional[str] = Field(
        default=None,
        description="Relayer key authorized on the hook contract",
        validation_alias=AliasChoices("PRIVATE_KEY", "RELAYER_PRIVATE_KEY", "relayer_private_key"),
    )
    hook_address: Optional[str] = Field(
        default=None,
        description="TrustLayerHook contract address",
    )
    chain_id: Optional[int] = Field(
        default=None,
        description="EVM chain ID (queried from the node when unset)",
    )

    # Flow parameters
    default_expiry_blocks: int = Field(
        default=100000,
        gt=0,
        description="EVM blocks a registration stays valid when the caller gives none",
    )
    write_timeout_seconds: float = Field(default=120.0, description="snarkos execute timeout")
    prove_timeout_seconds: float = Field(default=300.0, description="prove_tier timeout")
    decrypt_timeout_seconds: float = Field(default=30.0, description="snarkos decrypt timeout")

    @property
    def eth_enabled(self) -> bool:
        """Whether the companion chain is fully configured."""
        return bool(self.eth_rpc and self.relayer_private_key and self.hook_address)

    @property
    def aleo_network_url(self) -> str:
        return f"{self.aleo_endpoint.rstrip('/')}/{self.aleo_network}"

    @property
    def broadcast_url(self) -> str:
        return f"{self.aleo_network_url}/transaction/broadcast"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
