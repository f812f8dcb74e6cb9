"""
Two-step confirmation tokens.

Responsibility:
    Irreversible, term-wide operations (semester reset, finance rate
    override) are split into a preview step that issues a token and a
    confirm step that must present it.  Tokens are stateless:
    ``"<issued_epoch>.<hmac>"`` where the HMAC covers the operation name,
    its scope and the issue time.

Invariants enforced:
    - A token only verifies for the exact operation and scope it was
      issued for.
    - A token older than ``ttl_seconds`` (per the injected Clock) is
      rejected.

Failure modes:
    - InvalidConfirmationTokenError on malformed token or digest mismatch.
    - ConfirmationExpiredError when the token is past its TTL.
"""

from __future__ import annotations

import hmac
from typing import Any

from workload_kernel.domain.clock import Clock, SystemClock
from workload_kernel.exceptions import (
    ConfirmationExpiredError,
    InvalidConfirmationTokenError,
)
from workload_kernel.logging_config import get_logger
from workload_kernel.utils.hashing import sign_payload

logger = get_logger("utils.confirmation")


class ConfirmationIssuer:
    """Issues and verifies scope-bound confirmation tokens."""

    def __init__(
        self,
        secret: str,
        ttl_seconds: int = 900,
        clock: Clock | None = None,
    ):
        if not secret:
            raise ValueError("Confirmation secret must be non-empty")
        self._secret = secret
        self._ttl_seconds = ttl_seconds
        self._clock = clock or SystemClock()

    def issue(self, operation: str, scope: dict[str, Any]) -> str:
        issued = self._clock.epoch_seconds()
        digest = self._digest(operation, scope, issued)
        logger.info(
            "confirmation_issued",
            extra={"operation": operation, "scope": scope},
        )
        return f"{issued}.{digest}"

    def verify(self, operation: str, scope: dict[str, Any], token: str) -> None:
        """Raise unless ``token`` was issued for this operation and scope."""
        issued_part, _, digest = (token or "").partition(".")
        if not issued_part.isdigit() or not digest:
            raise InvalidConfirmationTokenError(operation)

        issued = int(issued_part)
        expected = self._digest(operation, scope, issued)
        if not hmac.compare_digest(expected, digest):
            logger.warning(
                "confirmation_rejected",
                extra={"operation": operation, "scope": scope},
            )
            raise InvalidConfirmationTokenError(operation)

        age = self._clock.epoch_seconds() - issued
        if age > self._ttl_seconds or age < 0:
            raise ConfirmationExpiredError(operation, age, self._ttl_seconds)

    def _digest(self, operation: str, scope: dict[str, Any], issued: int) -> str:
        return sign_payload(
            {"operation": operation, "scope": scope, "issued": issued},
            self._secret,
        )
