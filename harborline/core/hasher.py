"""SHA-256 over canonical JSON.

Source tree digests and the step trace's input/output hashes all go
through ``canonical_json_bytes``, so a rebuild from the same tree with the
same step inputs yields the same hashes on any machine.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json_bytes(obj: Any) -> bytes:
    """JSON with sorted keys, no whitespace and ASCII escapes."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def content_address(obj: Any) -> str:
    """``sha256:<hex>`` of *obj*; the form tree digests are shown in."""
    return "sha256:" + sha256_hex(canonical_json_bytes(obj))


def _step_hash(step: str, side: str, values: dict[str, Any]) -> str:
    return sha256_hex(canonical_json_bytes({"step": step, side: values}))


def compute_input_hash(step: str, inputs: dict[str, Any]) -> str:
    """Hash of what a step was given.

    ``build-env`` over the same source digest, image and cache always
    lands on the same value, which is how the trace shows an environment
    being rebuilt rather than reused.
    """
    return _step_hash(step, "inputs", inputs)


def compute_output_hash(step: str, outputs: dict[str, Any]) -> str:
    return _step_hash(step, "outputs", outputs)
