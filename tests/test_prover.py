"""
Tests for the snarkos command runner.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from trustlayer_api.errors import ProverError
from trustlayer_api.prover import SnarkosProver, parse_transaction_id, validate_issue_params


def _proc(stdout=b"", stderr=b"", returncode=0):
    proc = AsyncMock()
    proc.communicate.return_value = (stdout, stderr)
    proc.returncode = returncode
    proc.kill = MagicMock()
    return proc


@pytest.fixture
def snarkos(settings):
    with patch("trustlayer_api.prover.shutil.which", return_value="/usr/bin/snarkos"):
        return SnarkosProver(settings)


class TestParseTransactionId:
    """Tests for transaction id extraction from snarkos output."""

    def test_finds_id(self):
        out = "Executing 'prove_tier'...\n✅ Successfully broadcast at1qyzabc0123 to network"
        assert parse_transaction_id(out) == "at1qyzabc0123"

    def test_missing(self):
        assert parse_transaction_id("done") is None


class TestValidateIssueParams:
    """Tests for credential parameter checks."""

    def test_accepts_bounds(self):
        validate_issue_params(0, 1)
        validate_issue_params(1000, 2**32 - 1)

    def test_rejects_score(self):
        with pytest.raises(ValueError, match="Score must be between 0 and 1000"):
            validate_issue_params(1001, 500000)

    def test_rejects_expiry(self):
        with pytest.raises(ValueError, match="Expiry must be a valid u32"):
            validate_issue_params(700, 0)
        with pytest.raises(ValueError, match="Expiry must be a valid u32"):
            validate_issue_params(700, 2**32)


class TestCommands:
    """Tests for argument vectors."""

    def test_execute_command(self, snarkos):
        argv = snarkos.execute_command("revoke", "5field")
        assert argv[:6] == [
            "snarkos",
            "developer",
            "execute",
            "trustlayer_credentials_amm_v2.aleo",
            "revoke",
            "5field",
        ]
        assert argv[argv.index("--private-key") + 1] == "APrivateKey1zkpTestKey"
        assert argv[argv.index("--query") + 1] == "https://explorer.test/v1"
        assert argv[argv.index("--broadcast") + 1] == "https://explorer.test/v1/testnet/transaction/broadcast"
        assert argv[argv.index("--network") + 1] == "1"

    def test_execute_requires_private_key(self, settings):
        settings = settings.model_copy(update={"aleo_private_key": None})
        with patch("trustlayer_api.prover.shutil.which", return_value=None):
            prover = SnarkosProver(settings)
        with pytest.raises(ProverError, match="private key"):
            prover.execute_command("revoke", "5field")

    def test_decrypt_command(self, snarkos):
        assert snarkos.decrypt_command("record1abc", "AViewKey1x") == [
            "snarkos",
            "developer",
            "decrypt",
            "--ciphertext",
            "record1abc",
            "--view-key",
            "AViewKey1x",
        ]


class TestRun:
    """Tests for subprocess execution."""

    @pytest.mark.asyncio
    async def test_issue(self, snarkos):
        """Issue passes typed literals and returns the broadcast id."""
        proc = _proc(stdout=b"broadcast at1issuetx ok")
        with patch("asyncio.create_subprocess_exec", return_value=proc) as mock_exec:
            result = await snarkos.issue("aleo1recipient", 750, 500000, "42")

        assert result.tx_id == "at1issuetx"
        argv = mock_exec.call_args.args
        assert argv[4:9] == ("issue", "aleo1recipient", "750u16", "500000u32", "42field")

    @pytest.mark.asyncio
    async def test_record_is_single_argument(self, snarkos):
        """Record plaintext is one argv element, never shell-interpreted."""
        record = "{\n  owner: aleo1x.private,\n  score: 750u16.private\n}; rm -rf /"
        proc = _proc(stdout=b"at1provetx")
        with patch("asyncio.create_subprocess_exec", return_value=proc) as mock_exec:
            await snarkos.prove_tier(record, 123456)

        argv = mock_exec.call_args.args
        assert record.strip() in argv
        assert "123456u32" in argv
        assert "shell" not in mock_exec.call_args.kwargs

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, snarkos):
        proc = _proc(stderr=b"Error: not an approved issuer", returncode=1)
        with patch("asyncio.create_subprocess_exec", return_value=proc):
            with pytest.raises(ProverError) as exc_info:
                await snarkos.revoke("5field")

        assert "exit 1" in exc_info.value.message
        assert "not an approved issuer" in exc_info.value.message
        assert not exc_info.value.timed_out

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, snarkos):
        async def hang():
            await asyncio.sleep(10)

        proc = _proc()
        proc.communicate = hang
        with patch("asyncio.create_subprocess_exec", return_value=proc):
            with pytest.raises(ProverError) as exc_info:
                await snarkos.run(["snarkos", "developer", "decrypt"], timeout=0.01)

        assert exc_info.value.timed_out
        proc.kill.assert_called_once()
        proc.wait.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_binary(self, snarkos):
        with patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError()):
            with pytest.raises(ProverError, match="not found"):
                await snarkos.add_issuer("aleo1issuer")

    @pytest.mark.asyncio
    async def test_decrypt_returns_plaintext(self, snarkos):
        proc = _proc(stdout=b"{\n  owner: aleo1x.private,\n  score: 750u16.private\n}\n")
        with patch("asyncio.create_subprocess_exec", return_value=proc):
            plaintext = await snarkos.decrypt("record1abc", "AViewKey1x")

        assert plaintext.startswith("{")
        assert plaintext.endswith("}")

    @pytest.mark.asyncio
    async def test_issue_validates_before_running(self, snarkos):
        with patch("asyncio.create_subprocess_exec") as mock_exec:
            with pytest.raises(ValueError):
                await snarkos.issue("aleo1recipient", 2000, 500000, "1")
        mock_exec.assert_not_called()
