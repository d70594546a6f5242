"""
Extract prove_tier outputs from an Aleo transaction document.

A prove_tier execution publishes the tier as a public ``u8`` output, the
credential commitment inside its ``future`` output, and takes the current
block height as a public ``u32`` input.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Optional

from .literals import LiteralKind, find_literal, parse_literal

PROVE_TIER_FUNCTION = "prove_tier"


@dataclass
class ProofOutputs:
    """Public values revealed by a prove_tier transition."""

    tier: Optional[int] = None
    commitment: Optional[str] = None
    block_height: Optional[int] = None
    transition_id: Optional[str] = None

    @property
    def complete(self) -> bool:
        return self.tier is not None and self.commitment is not None


def _transitions(tx: Any) -> list[dict[str, Any]]:
    if not isinstance(tx, dict):
        return []
    execution = tx.get("execution")
    if not isinstance(execution, dict):
        return []
    transitions = execution.get("transitions")
    if not isinstance(transitions, list):
        return []
    return [t for t in transitions if isinstance(t, dict)]


def _entries(transition: dict[str, Any], key: str, visibility: str) -> Iterator[Any]:
    entries = transition.get(key)
    if not isinstance(entries, list):
        return
    for entry in entries:
        if isinstance(entry, dict) and entry.get("type") == visibility and entry.get("value"):
            yield entry["value"]


def _scan_transition(transition: dict[str, Any]) -> ProofOutputs:
    result = ProofOutputs(transition_id=transition.get("id"))

    for value in _entries(transition, "outputs", "public"):
        literal = parse_literal(value, LiteralKind.U8)
        if literal is not None:
            result.tier = literal.value
            break

    for value in _entries(transition, "outputs", "future"):
        literal = find_literal(value, LiteralKind.FIELD)
        if literal is not None:
            result.commitment = str(literal)
            break

    for value in _entries(transition, "inputs", "public"):
        literal = parse_literal(value, LiteralKind.U32)
        if literal is not None:
            result.block_height = literal.value
            break

    return result


def extract_proof_outputs(
    tx: Any,
    program: Optional[str] = None,
    function: str = PROVE_TIER_FUNCTION,
) -> ProofOutputs:
    """
    Scan ``tx`` for ``function`` transitions and pull out tier, commitment
    and block height.

    When ``program`` is given, transitions of other programs are ignored.
    The first transition that yields both tier and commitment wins;
    otherwise the first partial match is returned. Fields that cannot be
    found are left as None.
    """
    partial: Optional[ProofOutputs] = None
    for transition in _transitions(tx):
        if transition.get("function") != function:
            continue
        if program is not None and transition.get("program") != program:
            continue

        outputs = _scan_transition(transition)
        if outputs.complete:
            return outputs
        if partial is None:
            partial = outputs

    return partial or ProofOutputs()


def iter_record_outputs(tx: Any, program: str) -> Iterator[tuple[dict[str, Any], str]]:
    """Yield ``(transition, ciphertext)`` for each record output of ``program``."""
    for transition in _transitions(tx):
        if transition.get("program") != program:
            continue
        for ciphertext in _entries(transition, "outputs", "record"):
            if isinstance(ciphertext, str):
                yield transition, ciphertext
