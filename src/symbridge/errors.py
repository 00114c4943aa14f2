"""Batch-fatal error kinds for symbridge.

Soft failures (manual review, intent mismatch) are recorded on the batch
result instead of being raised.
"""

from __future__ import annotations


class BridgeError(ValueError):
    """Base class carrying a machine-readable reason code."""

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(f"{reason}: {message}")
        self.reason = reason


class ConfigError(BridgeError):
    """Invalid weights, thresholds or tolerances."""


class StructuralError(BridgeError):
    """Duplicate or out-of-order positions in the token stream."""
