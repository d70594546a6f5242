"""
Tests for Aleo literal parsing and the tier table.
"""

import pytest

from trustlayer_api.literals import (
    LiteralKind,
    TypedLiteral,
    ensure_field_suffix,
    find_literal,
    format_literal,
    parse_literal,
)
from trustlayer_api.tiers import Tier, evm_tier_name, tier_from_score, tier_name


class TestParseLiteral:
    """Tests for exact literal parsing."""

    def test_parse_u8(self):
        """Should parse a u8 literal."""
        assert parse_literal("2u8", LiteralKind.U8) == TypedLiteral(2, LiteralKind.U8)

    def test_parse_u32(self):
        assert parse_literal("512000u32", LiteralKind.U32).value == 512000

    def test_rejects_wrong_suffix(self):
        """A u32 literal is not a u8."""
        assert parse_literal("2u32", LiteralKind.U8) is None

    def test_rejects_out_of_range(self):
        assert parse_literal("256u8", LiteralKind.U8) is None
        assert parse_literal(f"{2**32}u32", LiteralKind.U32) is None

    def test_rejects_surrounding_text(self):
        assert parse_literal(" 2u8", LiteralKind.U8) is None
        assert parse_literal("2u8.private", LiteralKind.U8) is None

    def test_rejects_non_string(self):
        assert parse_literal(None, LiteralKind.U8) is None
        assert parse_literal(2, LiteralKind.U8) is None

    def test_str_renders_literal(self):
        assert str(TypedLiteral(1234, LiteralKind.FIELD)) == "1234field"


class TestFindLiteral:
    """Tests for literals embedded in larger strings."""

    def test_finds_field_in_future(self):
        """Should pull the commitment out of a future's argument list."""
        text = "{ program_id: p.aleo, function_name: prove_tier, arguments: [ ...1234field... ] }"
        assert str(find_literal(text, LiteralKind.FIELD)) == "1234field"

    def test_returns_first_match(self):
        assert find_literal("[11field, 22field]", LiteralKind.FIELD).value == 11

    def test_ignores_identifier_tails(self):
        """Digits glued to an identifier are not a literal."""
        assert find_literal("abc123field", LiteralKind.FIELD) is None
        assert find_literal("123fields", LiteralKind.FIELD) is None

    def test_no_match(self):
        assert find_literal("nothing here", LiteralKind.FIELD) is None
        assert find_literal({"value": "1field"}, LiteralKind.FIELD) is None


class TestFormatLiteral:
    """Tests for rendering ints as literals."""

    def test_format(self):
        assert format_literal(750, LiteralKind.U16) == "750u16"
        assert format_literal(500000, LiteralKind.U32) == "500000u32"

    def test_format_out_of_range(self):
        with pytest.raises(ValueError):
            format_literal(-1, LiteralKind.U32)
        with pytest.raises(ValueError):
            format_literal(70000, LiteralKind.U16)

    def test_field_suffix(self):
        assert ensure_field_suffix("42") == "42field"
        assert ensure_field_suffix("42field") == "42field"
        assert ensure_field_suffix(7) == "7field"


class TestTiers:
    """Tests for score thresholds and tier names."""

    @pytest.mark.parametrize(
        "score,expected",
        [
            (0, Tier.INELIGIBLE),
            (599, Tier.INELIGIBLE),
            (600, Tier.BASIC),
            (699, Tier.BASIC),
            (700, Tier.PRO),
            (799, Tier.PRO),
            (800, Tier.WHALE),
            (1000, Tier.WHALE),
        ],
    )
    def test_tier_from_score(self, score, expected):
        assert tier_from_score(score) == expected

    def test_tier_names(self):
        assert tier_name(0) == "Ineligible"
        assert tier_name(2) == "Tier B (Pro)"
        assert tier_name(3) == "Tier A (Whale)"
        assert tier_name(9) == "Unknown"
        assert tier_name(None) == "Unknown"

    def test_evm_tier_zero_is_unregistered(self):
        assert evm_tier_name(0) == "Unregistered"
        assert evm_tier_name(1) == "Tier C (Basic)"
