"""
HTTP client for the TrustLayer API, used by the terminal panels.
"""

from typing import Any, Optional

import httpx


class ApiClientError(Exception):
    """The API answered with an error body."""

    def __init__(self, status_code: int, error: str, hint: Optional[str] = None):
        self.status_code = status_code
        self.error = error
        self.hint = hint
        super().__init__(f"{error} {hint}" if hint else error)


class TrustLayerClient:
    """Thin synchronous wrapper over the REST endpoints."""

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:3001",
        api_token: Optional[str] = None,
        timeout: float = 330.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {"X-API-Key": api_token} if api_token else {}
        # prove_tier may run for 5 minutes server-side
        self.client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "TrustLayerClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _handle(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            data = {"error": response.text or f"HTTP {response.status_code}"}

        if response.is_error or (isinstance(data, dict) and "error" in data):
            if not isinstance(data, dict):
                data = {}
            raise ApiClientError(
                response.status_code,
                str(data.get("error", f"HTTP {response.status_code}")),
                data.get("hint"),
            )
        return data

    def _get(self, path: str) -> dict[str, Any]:
        return self._handle(self.client.get(path))

    def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        return self._handle(self.client.post(path, json=body))

    # Aleo

    def health(self) -> dict[str, Any]:
        return self._get("/health")

    def get_block_height(self) -> dict[str, Any]:
        return self._get("/api/block-height")

    def verify_proof(self, tx_id: str) -> dict[str, Any]:
        return self._post("/api/verify-proof", {"txId": tx_id})

    def check_commitment(self, commitment: str) -> dict[str, Any]:
        return self._get(f"/api/verify/{commitment}")

    def check_issuer(self, address: str) -> dict[str, Any]:
        return self._get(f"/api/issuer/{address}")

    # Ethereum

    def get_hook_info(self) -> dict[str, Any]:
        return self._get("/api/eth/hook-info")

    def get_trader_info(self, address: str) -> dict[str, Any]:
        return self._get(f"/api/eth/trader/{address}")

    def get_tier_config(self, tier: int) -> dict[str, Any]:
        return self._get(f"/api/eth/tier/{tier}")

    def check_can_swap(self, address: str, amount: str) -> dict[str, Any]:
        return self._get(f"/api/eth/can-swap/{address}/{amount}")

    def register_trader(self, aleo_tx_id: str, eth_address: str, expiry_blocks: int = 100000) -> dict[str, Any]:
        return self._post(
            "/api/eth/register-trader",
            {"aleoTxId": aleo_tx_id, "ethAddress": eth_address, "expiryBlocks": expiry_blocks},
        )

    def revoke_trader(self, eth_address: str, aleo_commitment: Optional[str] = None) -> dict[str, Any]:
        return self._post(
            "/api/eth/revoke-trader",
            {"ethAddress": eth_address, "aleoCommitment": aleo_commitment},
        )

    # Admin

    def issue_credential(self, recipient: str, score: int, expiry: int, nonce: str) -> dict[str, Any]:
        return self._post(
            "/api/aleo/issue-credential",
            {"recipient": recipient, "score": score, "expiry": expiry, "nonce": nonce},
        )

    def add_issuer(self, issuer_address: str) -> dict[str, Any]:
        return self._post("/api/aleo/add-issuer", {"issuerAddress": issuer_address})

    def remove_issuer(self, issuer_address: str) -> dict[str, Any]:
        return self._post("/api/aleo/remove-issuer", {"issuerAddress": issuer_address})

    def revoke_credential(self, commitment: str) -> dict[str, Any]:
        return self._post("/api/aleo/revoke-credential", {"commitment": commitment})

    def prove_tier(self, record: str) -> dict[str, Any]:
        return self._post("/api/aleo/prove-tier", {"record": record})

    def fetch_credential(self, tx_id: str, view_key: Optional[str] = None) -> dict[str, Any]:
        return self._post("/api/aleo/fetch-credential", {"txId": tx_id, "viewKey": view_key})
