"""
Settings schema (``workload_config.schema``).

``EngineSettings`` is the single frozen runtime configuration object.
Parsing is strict: unknown keys and malformed values raise ``ValueError``
with the offending key in the message.  The domain constants (full load
12, lab/tutorial factor 0.67) are deliberately absent.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

DEFAULT_CONFIRMATION_SECRET = "change-me"

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True)
class EngineSettings:
    database_url: str = "sqlite:///workload.db"
    log_level: str = "INFO"
    currency: str = "ETB"
    confirmation_secret: str = DEFAULT_CONFIRMATION_SECRET
    confirmation_ttl_seconds: int = 900
    rate_tolerance: Decimal = Decimal("0.01")
    notifications_enabled: bool = True

    @property
    def uses_default_secret(self) -> bool:
        return self.confirmation_secret == DEFAULT_CONFIRMATION_SECRET

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> EngineSettings:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown settings keys: {', '.join(unknown)}")

        values: dict[str, Any] = {}
        if "database_url" in data:
            values["database_url"] = _text(data["database_url"], "database_url")
        if "log_level" in data:
            level = _text(data["log_level"], "log_level").upper()
            if level not in _LOG_LEVELS:
                raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}, got {level!r}")
            values["log_level"] = level
        if "currency" in data:
            currency = _text(data["currency"], "currency").upper()
            if len(currency) != 3:
                raise ValueError(f"currency must be a 3-letter code, got {currency!r}")
            values["currency"] = currency
        if "confirmation_secret" in data:
            values["confirmation_secret"] = _text(
                data["confirmation_secret"], "confirmation_secret",
            )
        if "confirmation_ttl_seconds" in data:
            values["confirmation_ttl_seconds"] = _positive_int(
                data["confirmation_ttl_seconds"], "confirmation_ttl_seconds",
            )
        if "rate_tolerance" in data:
            values["rate_tolerance"] = _non_negative_decimal(
                data["rate_tolerance"], "rate_tolerance",
            )
        if "notifications_enabled" in data:
            values["notifications_enabled"] = _boolean(
                data["notifications_enabled"], "notifications_enabled",
            )
        return cls(**values)


def _text(value: Any, key: str) -> str:
    if value is None or not str(value).strip():
        raise ValueError(f"{key} must be a non-empty string")
    return str(value).strip()


def _positive_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    try:
        result = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be an integer, got {value!r}") from None
    if result <= 0:
        raise ValueError(f"{key} must be positive, got {result}")
    return result


def _non_negative_decimal(value: Any, key: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{key} must be a number, got {value!r}") from None
    if not result.is_finite() or result < 0:
        raise ValueError(f"{key} must be a finite non-negative number, got {value!r}")
    return result


def _boolean(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"{key} must be a boolean, got {value!r}")
