"""
Commit fingerprints for prompt snapshots
"""
import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class PromptSnapshot:
    """Content of a prompt that a commit captures"""
    value: str
    config: Dict[str, Any] = field(default_factory=dict)
    language_model_id: Optional[Any] = None

    @classmethod
    def of(cls, record: Any) -> "PromptSnapshot":
        """Snapshot of a Prompt or PromptVersion row"""
        config = record.language_model_config
        return cls(
            value=record.value or "",
            config=config if isinstance(config, dict) else {},
            language_model_id=record.language_model_id,
        )


def canonical_json(payload: Any) -> str:
    """Stable JSON encoding: sorted keys, no whitespace, UUIDs and dates as strings"""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def compute_commit_hash(snapshot: PromptSnapshot, generation: int) -> str:
    """Deterministic SHA-256 fingerprint of a snapshot at a given generation.

    The generation (number of commits of the prompt) salts the digest so that
    identical content committed twice still gets distinct fingerprints.
    """
    if generation < 0:
        raise ValueError(f"generation must be non-negative, got {generation}")
    payload = {
        "value": snapshot.value,
        "config": snapshot.config,
        "language_model_id": snapshot.language_model_id,
        "generation": generation,
    }
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()
