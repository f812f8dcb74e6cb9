"""Utility modules for the workload kernel."""

from workload_kernel.utils.confirmation import ConfirmationIssuer
from workload_kernel.utils.hashing import canonical_json, sign_payload

__all__ = [
    "ConfirmationIssuer",
    "canonical_json",
    "sign_payload",
]
