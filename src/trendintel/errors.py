"""Error taxonomy for the signal engine."""

from __future__ import annotations


class TrendIntelError(Exception):
    """Base class for engine errors."""


class ValidationInputError(TrendIntelError, ValueError):
    """Raised when a raw signal payload is malformed."""


class LifecycleError(TrendIntelError):
    """Raised when a lifecycle transition cannot be applied."""

    def __init__(self, symbol: str, message: str) -> None:
        super().__init__(message)
        self.symbol = symbol


class DuplicateSymbolError(LifecycleError):
    """A live pending or confirmed entity already exists for the symbol."""

    def __init__(self, symbol: str) -> None:
        super().__init__(symbol, f"Asset {symbol} already exists")


class RetentionRejectedError(LifecycleError):
    """An On Watch entity fails every retention criterion."""

    def __init__(self, symbol: str) -> None:
        super().__init__(symbol, f"Asset {symbol} rejected (On Watch with no retention criteria)")


class InvalidTransitionError(LifecycleError):
    """A pending record is not in a state that allows the transition."""

    def __init__(self, symbol: str, status: str, action: str) -> None:
        super().__init__(symbol, f"Cannot {action} {symbol}: status is {status}")
        self.status = status
        self.action = action


class AssetNotFoundError(TrendIntelError, LookupError):
    """No pending or confirmed entity with the given id."""

    def __init__(self, entity_id: str) -> None:
        super().__init__(f"No asset with id {entity_id}")
        self.entity_id = entity_id


class AdapterError(TrendIntelError, RuntimeError):
    """Raised when an adapter fails to produce signals."""


class AdapterTimeoutError(AdapterError):
    """Raised when an adapter misses its deadline."""

    def __init__(self, source_name: str, timeout_seconds: float) -> None:
        super().__init__(f"{source_name} timed out after {timeout_seconds:.1f}s")
        self.source_name = source_name
        self.timeout_seconds = timeout_seconds
