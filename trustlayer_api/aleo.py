"""
Aleo explorer client for the API.

Read-only queries against the explorer REST API: program mappings, latest
block height and transaction bodies. Every call is a single GET, no retries.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

import httpx
import structlog

from .config import Settings
from .errors import AleoQueryError

logger = structlog.get_logger()


MAPPING_ISSUED = "issued"
MAPPING_REVOKED = "revoked"
MAPPING_APPROVED_ISSUERS = "approved_issuers"


@dataclass(frozen=True)
class CredentialStatus:
    """Result of checking a commitment against the issued/revoked mappings."""

    commitment: str
    was_issued: bool
    is_revoked: bool
    is_valid: bool
    lookup_failed: bool = False


def parse_mapping_value(body: str) -> Optional[bool]:
    """
    Normalize a mapping response body.

    The explorer answers ``null`` (or nothing) for absent keys and a JSON
    literal such as ``true`` / ``"true"`` otherwise.
    """
    text = body.strip()
    if text in ("", "null"):
        return None
    return text.replace('"', "") == "true"


class AleoClient:
    """
    Async Aleo explorer client.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return self.settings.aleo_network_url

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.http_timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get(self, path: str) -> httpx.Response:
        url = f"{self.base_url}/{path}"
        client = await self._get_client()
        try:
            return await client.get(url)
        except httpx.HTTPError as e:
            raise AleoQueryError(url, str(e) or type(e).__name__) from e

    # ------------------------------------------------------------------
    # Mappings
    # ------------------------------------------------------------------

    def mapping_path(self, mapping: str, key: str) -> str:
        return f"program/{self.settings.aleo_program}/mapping/{mapping}/{key}"

    async def lookup_mapping(self, mapping: str, key: str) -> Optional[bool]:
        """
        Read a boolean mapping value.

        Returns None when the key is absent.

        Raises:
            AleoQueryError: transport failure or non-2xx response
        """
        response = await self._get(self.mapping_path(mapping, key))
        if not response.is_success:
            raise AleoQueryError(
                str(response.url),
                f"HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return parse_mapping_value(response.text)

    async def query_mapping(self, mapping: str, key: str) -> Optional[bool]:
        """Like lookup_mapping, but any failure collapses to None."""
        try:
            return await self.lookup_mapping(mapping, key)
        except AleoQueryError as e:
            logger.warning("Mapping query failed", mapping=mapping, key=key, error=str(e))
            return None

    async def is_approved_issuer(self, address: str) -> bool:
        return await self.query_mapping(MAPPING_APPROVED_ISSUERS, address) is True

    async def was_issued(self, commitment: str) -> bool:
        return await self.query_mapping(MAPPING_ISSUED, commitment) is True

    async def is_revoked(self, commitment: str) -> bool:
        return await self.query_mapping(MAPPING_REVOKED, commitment) is True

    async def check_credential(self, commitment: str) -> CredentialStatus:
        """
        Check that a commitment was issued and is not revoked.

        Both lookups run concurrently. If either lookup fails the credential
        is reported invalid with ``lookup_failed`` set; an absent key is not
        a failure.
        """
        issued, revoked = await asyncio.gather(
            self.lookup_mapping(MAPPING_ISSUED, commitment),
            self.lookup_mapping(MAPPING_REVOKED, commitment),
            return_exceptions=True,
        )

        failures = [r for r in (issued, revoked) if isinstance(r, BaseException)]
        for failure in failures:
            if not isinstance(failure, AleoQueryError):
                raise failure
            logger.warning("Credential lookup failed", commitment=commitment, error=str(failure))

        was_issued = issued is True
        is_revoked = revoked is True
        return CredentialStatus(
            commitment=commitment,
            was_issued=was_issued,
            is_revoked=is_revoked,
            is_valid=was_issued and not is_revoked and not failures,
            lookup_failed=bool(failures),
        )

    # ------------------------------------------------------------------
    # Blocks and transactions
    # ------------------------------------------------------------------

    async def get_block_height(self) -> Optional[int]:
        """Get latest block height, or None if unavailable."""
        try:
            response = await self._get("block/height/latest")
            response.raise_for_status()
            return int(response.text.strip())
        except (AleoQueryError, httpx.HTTPStatusError, ValueError) as e:
            logger.warning("Failed to get block height", error=str(e))
            return None

    async def get_transaction(self, tx_id: str) -> Optional[dict[str, Any]]:
        """Fetch a transaction document, or None if absent or unreadable."""
        try:
            response = await self._get(f"transaction/{tx_id}")
        except AleoQueryError as e:
            logger.warning("Failed to get transaction", tx_id=tx_id, error=str(e))
            return None

        if response.status_code == 404:
            logger.info("Transaction not found", tx_id=tx_id)
            return None
        if not response.is_success:
            logger.warning("Failed to get transaction", tx_id=tx_id, status=response.status_code)
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning("Transaction body is not JSON", tx_id=tx_id)
            return None
        return data if isinstance(data, dict) else None

    async def check_connectivity(self) -> bool:
        """Check if the explorer is reachable."""
        return await self.get_block_height() is not None
