"""
idempotency.py - Reproducibility contract for printed artifacts.

CRITICAL INVARIANTS:
- Tokens are sorted lexicographically before any rendering step
- tokens_hash = sha256("|".join(sorted_tokens)), hex
- The full render configuration travels with the hash into the audit trail,
  so a reprint can be checked without re-deriving inputs
- Preview, generation and PDF export all pass through prepare()
"""

import hashlib
from dataclasses import dataclass

from sealworks.core.jcs import canonicalize
from sealworks.errors import ValidationError


def compute_tokens_hash(tokens) -> str:
    return hashlib.sha256("|".join(sorted(tokens)).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class RenderContract:
    tokens: tuple
    tokens_hash: str
    config: dict
    fingerprint: str

    def audit_metadata(self) -> dict:
        return {
            "tokensHash": self.tokens_hash,
            "tokenCount": len(self.tokens),
            "config": self.config,
            "renderFingerprint": self.fingerprint,
        }


class IdempotencyGuard:
    def prepare(self, tokens, config: dict) -> RenderContract:
        """
        Sort and hash the token set and fingerprint it together with the config.

        Raises:
            ValidationError: empty or duplicated tokens.
        """
        values = list(tokens)
        if any(not isinstance(v, str) or not v for v in values):
            raise ValidationError("Tokens must be non-empty strings")
        if len(set(values)) != len(values):
            seen, duplicates = set(), set()
            for v in values:
                (duplicates if v in seen else seen).add(v)
            raise ValidationError("Duplicate tokens in request", {"duplicates": sorted(duplicates)[:20]})

        ordered = tuple(sorted(values))
        tokens_hash = compute_tokens_hash(ordered)
        fingerprint = hashlib.sha256(
            canonicalize({"tokensHash": tokens_hash, "config": config})
        ).hexdigest()
        return RenderContract(tokens=ordered, tokens_hash=tokens_hash, config=config, fingerprint=fingerprint)

    def check(self, contract: RenderContract, stored_hash: str) -> bool:
        """True when a stored sheet hash still matches the contract's token set."""
        return contract.tokens_hash == stored_hash
