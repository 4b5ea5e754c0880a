"""Raw signal contract for source adapters."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from trendintel.errors import ValidationInputError


class AssetKind(Enum):
    EQUITY = "equity"
    CRYPTO = "crypto"


ASSET_KIND_ALIASES = {
    "equity": AssetKind.EQUITY,
    "stock": AssetKind.EQUITY,
    "crypto": AssetKind.CRYPTO,
    "coin": AssetKind.CRYPTO,
}


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def normalize_symbol(symbol: str) -> str:
    return symbol.strip().upper()


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass(frozen=True)
class RawSignal:
    """One source's opinion about one symbol at one instant.

    Confidence is clamped to 0-100 and sentiment to 0.0-1.0 on construction.
    """

    source_name: str
    symbol: str
    asset_kind: AssetKind
    confidence: float
    sentiment: float = 0.5
    observed_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.source_name or not self.source_name.strip():
            raise ValidationInputError("Raw signal is missing a source name")
        symbol = normalize_symbol(self.symbol or "")
        if not symbol:
            raise ValidationInputError(f"Raw signal from {self.source_name} is missing a symbol")
        if not isinstance(self.asset_kind, AssetKind):
            raise ValidationInputError(f"Unknown asset kind for {symbol}: {self.asset_kind!r}")
        for name in ("confidence", "sentiment"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int | float) or not math.isfinite(value):
                raise ValidationInputError(f"Raw signal {name} for {symbol} is not a finite number: {value!r}")

        object.__setattr__(self, "source_name", self.source_name.strip())
        object.__setattr__(self, "symbol", symbol)
        object.__setattr__(self, "confidence", clamp(float(self.confidence), 0.0, 100.0))
        object.__setattr__(self, "sentiment", clamp(float(self.sentiment), 0.0, 1.0))
        object.__setattr__(self, "observed_at", ensure_utc(self.observed_at))
        object.__setattr__(self, "metadata", dict(self.metadata or {}))

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], *, source_name: str | None = None) -> RawSignal:
        """Parse an untrusted payload at the ingestion boundary.

        Raises ValidationInputError for anything that cannot become a RawSignal.
        """
        if not isinstance(payload, Mapping):
            raise ValidationInputError(f"Raw signal payload must be a mapping, got {type(payload).__name__}")
        data = dict(payload)
        if source_name:
            data.pop("source", None)
            data["source_name"] = source_name
        try:
            parsed = RawSignalPayload.model_validate(data)
        except ValidationError as exc:
            error = exc.errors()[0]
            location = ".".join(str(part) for part in error["loc"])
            raise ValidationInputError(f"Malformed raw signal ({location}): {error['msg']}") from exc

        return cls(
            source_name=parsed.source_name,
            symbol=parsed.symbol,
            asset_kind=ASSET_KIND_ALIASES[parsed.asset_kind],
            confidence=parsed.confidence,
            sentiment=parsed.sentiment,
            observed_at=parsed.observed_at or datetime.now(UTC),
            metadata=parsed.metadata,
        )


class RawSignalPayload(BaseModel):
    """Wire shape accepted by RawSignal.from_payload."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    source_name: str = Field(..., min_length=1, validation_alias=AliasChoices("source_name", "source"))
    symbol: str = Field(..., min_length=1, validation_alias=AliasChoices("symbol", "ticker"))
    asset_kind: str = Field("equity", validation_alias=AliasChoices("asset_kind", "type"))
    confidence: float = Field(..., allow_inf_nan=False)
    sentiment: float = Field(0.5, allow_inf_nan=False)
    observed_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("source_name", mode="before")
    @classmethod
    def _strip_source(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("symbol", mode="before")
    @classmethod
    def _strip_symbol(cls, value: Any) -> Any:
        return normalize_symbol(value) if isinstance(value, str) else value

    @field_validator("asset_kind", mode="before")
    @classmethod
    def _known_kind(cls, value: Any) -> str:
        kind = str(value or "equity").strip().lower()
        if kind not in ASSET_KIND_ALIASES:
            raise ValueError(f"unknown asset kind {value!r}")
        return kind
