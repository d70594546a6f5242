"""
Shared fixtures: a fake Aleo explorer, fake hook and fake prover.
"""

from typing import Any, Callable, Optional
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from trustlayer_api.aleo import AleoClient
from trustlayer_api.config import Settings
from trustlayer_api.errors import ProverError
from trustlayer_api.prover import ProverResult

PROGRAM = "trustlayer_credentials_amm_v2.aleo"
TRADER = "0x1234567890123456789012345678901234567890"


class FakeExplorer:
    """In-memory stand-in for the explorer REST API."""

    def __init__(self) -> None:
        self.mappings: dict[tuple[str, str], str] = {}
        self.transactions: dict[str, dict[str, Any]] = {}
        self.block_height: Optional[str] = "123456"
        self.failing_mappings: set[str] = set()
        self.requests: list[str] = []

    def set_mapping(self, mapping: str, key: str, value: bool) -> None:
        self.mappings[(mapping, key)] = "true" if value else "false"

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append(path)
        rest = path.removeprefix("/v1/testnet/")

        if rest == "block/height/latest":
            if self.block_height is None:
                return httpx.Response(500, text="unavailable")
            return httpx.Response(200, text=self.block_height)

        if rest.startswith("transaction/"):
            tx = self.transactions.get(rest.split("/", 1)[1])
            if tx is None:
                return httpx.Response(404, text="Transaction not found")
            return httpx.Response(200, json=tx)

        if rest.startswith(f"program/{PROGRAM}/mapping/"):
            mapping, key = rest.split("/")[-2:]
            if mapping in self.failing_mappings:
                return httpx.Response(500, text="internal error")
            value = self.mappings.get((mapping, key))
            return httpx.Response(200, text="null" if value is None else value)

        return httpx.Response(404, text="unknown route")


class FakeProver:
    """Records calls; returns canned results or raises a configured error."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.tx_id = "at1fakeprovertx"
        self.error: Optional[ProverError] = None
        self.plaintexts: dict[str, str] = {}

    def _result(self, name: str, *args: Any) -> ProverResult:
        self.calls.append((name, args))
        if self.error:
            raise self.error
        return ProverResult(tx_id=self.tx_id, stdout=f"Transaction {self.tx_id} broadcast")

    async def issue(self, recipient: str, score: int, expiry: int, nonce: str) -> ProverResult:
        return self._result("issue", recipient, score, expiry, nonce)

    async def revoke(self, commitment: str) -> ProverResult:
        return self._result("revoke", commitment)

    async def add_issuer(self, issuer: str) -> ProverResult:
        return self._result("add_issuer", issuer)

    async def remove_issuer(self, issuer: str) -> ProverResult:
        return self._result("remove_issuer", issuer)

    async def prove_tier(self, record: str, current_block: int) -> ProverResult:
        return self._result("prove_tier", record, current_block)

    async def decrypt(self, ciphertext: str, view_key: str) -> str:
        self.calls.append(("decrypt", (ciphertext, view_key)))
        if ciphertext not in self.plaintexts:
            raise ProverError("Command failed (exit 1): failed to decrypt")
        return self.plaintexts[ciphertext]


def future_value(commitment: str, program: str = PROGRAM) -> str:
    return (
        "{\n"
        f"  program_id: {program},\n"
        "  function_name: prove_tier,\n"
        "  arguments: [\n"
        f"    {commitment}\n"
        "  ]\n"
        "}"
    )


def build_prove_tier_tx(
    tier: str = "2u8",
    commitment: str = "987field",
    program: str = PROGRAM,
    block_height: str = "123400u32",
) -> dict[str, Any]:
    return {
        "type": "execute",
        "id": "at1provetiertx",
        "execution": {
            "transitions": [
                {
                    "id": "au1transition",
                    "program": program,
                    "function": "prove_tier",
                    "inputs": [
                        {"type": "record", "id": "in1", "value": "record1qyqsp..."},
                        {"type": "public", "id": "in2", "value": block_height},
                    ],
                    "outputs": [
                        {"type": "public", "id": "out1", "value": tier},
                        {"type": "future", "id": "out2", "value": future_value(commitment, program)},
                    ],
                }
            ]
        },
    }


@pytest.fixture
def prove_tier_tx() -> Callable[..., dict[str, Any]]:
    """Factory for prove_tier transaction documents."""
    return build_prove_tier_tx


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        aleo_endpoint="https://explorer.test/v1",
        aleo_network="testnet",
        aleo_program=PROGRAM,
        aleo_private_key="APrivateKey1zkpTestKey",
        aleo_view_key="AViewKey1TestViewKey",
        eth_rpc="http://127.0.0.1:8545",
        relayer_private_key=None,
        hook_address=None,
        api_token=None,
    )


@pytest.fixture
def explorer() -> FakeExplorer:
    return FakeExplorer()


@pytest.fixture
def aleo(settings: Settings, explorer: FakeExplorer) -> AleoClient:
    return AleoClient(settings, transport=httpx.MockTransport(explorer.handler))


@pytest.fixture
def prover() -> FakeProver:
    return FakeProver()


@pytest.fixture
def hook() -> MagicMock:
    hook = MagicMock()
    hook.address = "0x00000000000000000000000000000000000000aa"
    hook.check_connectivity = AsyncMock(return_value=True)
    hook.get_block_number = AsyncMock(return_value=5000)
    hook.register_trader = AsyncMock(
        return_value={"transactionHash": b"\x11" * 32, "blockNumber": 5001, "status": 1}
    )
    hook.revoke_trader = AsyncMock(
        return_value={"transactionHash": b"\x22" * 32, "blockNumber": 5002, "status": 1}
    )
    return hook


@pytest.fixture
def make_client(
    settings: Settings,
    aleo: AleoClient,
    prover: FakeProver,
) -> Callable[..., TestClient]:
    """Build a TestClient for an app wired to the fakes."""
    from trustlayer_api.main import create_app

    def _make(hook: Any = None, **overrides: Any) -> TestClient:
        app_settings = settings.model_copy(update=overrides) if overrides else settings
        app = create_app(settings=app_settings, aleo=aleo, hook=hook, prover=prover)
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client: Callable[..., TestClient]) -> TestClient:
    """API client with the hook unconfigured."""
    return make_client()


@pytest.fixture
def eth_client(make_client: Callable[..., TestClient], hook: MagicMock) -> TestClient:
    """API client with a fake hook."""
    return make_client(hook=hook)
