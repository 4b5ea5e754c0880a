"""Per-source profiles: weighting, decay and quality floors.

Profiles load from sources.yaml (validated with Pydantic) and fall back to the
built-in table below. The resulting SourceTable is immutable and is passed to
the quality filter and the validator at construction.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from pathlib import Path
from types import MappingProxyType

import structlog
import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field, model_validator

from trendintel.ingest.signals import AssetKind

logger = structlog.get_logger()


class SourceKind(Enum):
    SOCIAL = "social"
    FILINGS = "filings"
    MARKET_DATA = "market_data"
    VOLUME = "volume"
    POLITICAL = "political"
    EARNINGS = "earnings"
    TRENDS = "trends"
    CRYPTO_TRENDING = "crypto_trending"
    SENTIMENT_INDEX = "sentiment_index"
    TECHNICAL = "technical"
    OTHER = "other"


class SourceProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    kind: SourceKind = SourceKind.OTHER
    base_weight: float = Field(0.7, ge=0)
    reliability: float = Field(0.7, ge=0, le=1)
    time_decay: float = Field(0.8, ge=0)
    high_noise: bool = False
    min_mentions: dict[AssetKind, int] = Field(default_factory=dict)


class QualityThresholds(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_signal_types: int = 2
    meme_type_floor: int = 2
    political_type_floor: int = 1
    earnings_type_floor: int = 1
    high_confidence_exception: float = 85.0
    global_confidence_floor: float = 60.0
    default_min_mentions: dict[AssetKind, int] = Field(
        default_factory=lambda: {AssetKind.EQUITY: 10, AssetKind.CRYPTO: 5}
    )


class FeedConfig(BaseModel):
    """One configured adapter: an HTTP JSON feed (url) or a local YAML file (path)."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(..., min_length=1)
    url: str | None = None
    path: str | None = None

    @model_validator(mode="after")
    def _one_location(self) -> FeedConfig:
        if bool(self.url) == bool(self.path):
            raise ValueError(f"feed {self.source!r} needs exactly one of url or path")
        return self


class SourcesFile(BaseModel):
    sources: list[SourceProfile] = Field(default_factory=list)
    quality: QualityThresholds = Field(default_factory=QualityThresholds)
    unknown_source_weight: float = 0.5
    unknown_source_time_decay: float = 0.8
    feeds: list[FeedConfig] = Field(default_factory=list)


DEFAULT_PROFILES: tuple[SourceProfile, ...] = (
    SourceProfile(name="Reddit Enhanced", kind=SourceKind.SOCIAL, base_weight=0.8, reliability=0.7, time_decay=0.9,
                  high_noise=True),
    SourceProfile(name="Reddit", kind=SourceKind.SOCIAL, base_weight=0.8, reliability=0.7, time_decay=0.9,
                  high_noise=True),
    SourceProfile(name="StockTwits", kind=SourceKind.SOCIAL, base_weight=0.7, reliability=0.6, time_decay=0.9),
    SourceProfile(name="Twitter", kind=SourceKind.SOCIAL, base_weight=0.7, reliability=0.6, time_decay=0.95),
    SourceProfile(name="SEC EDGAR", kind=SourceKind.FILINGS, base_weight=1.0, reliability=0.95, time_decay=0.3),
    SourceProfile(name="CoinGecko", kind=SourceKind.CRYPTO_TRENDING, base_weight=0.9, reliability=0.85, time_decay=0.7),
    SourceProfile(name="Google Trends", kind=SourceKind.TRENDS, base_weight=0.7, reliability=0.75, time_decay=0.8),
    SourceProfile(name="Alpha Vantage", kind=SourceKind.MARKET_DATA, base_weight=0.85, reliability=0.8,
                  time_decay=0.6),
    SourceProfile(name="Fear & Greed Index", kind=SourceKind.SENTIMENT_INDEX, base_weight=0.6, reliability=0.7,
                  time_decay=0.5),
    SourceProfile(name="Finviz", kind=SourceKind.VOLUME, base_weight=0.85, reliability=0.8, time_decay=0.6),
    SourceProfile(name="QuiverQuant", kind=SourceKind.POLITICAL, base_weight=0.95, reliability=0.9, time_decay=0.3),
    SourceProfile(name="Canadian_MP", kind=SourceKind.POLITICAL, base_weight=0.9, reliability=0.85, time_decay=0.3),
    SourceProfile(name="FMP_Earnings", kind=SourceKind.EARNINGS, base_weight=0.85, reliability=0.85, time_decay=0.4),
)


class SourceTable:
    """Immutable lookup of source profiles keyed by source name."""

    def __init__(
        self,
        profiles: Iterable[SourceProfile] = DEFAULT_PROFILES,
        *,
        quality: QualityThresholds | None = None,
        unknown_source_weight: float = 0.5,
        unknown_source_time_decay: float = 0.8,
    ) -> None:
        self._profiles: Mapping[str, SourceProfile] = MappingProxyType({p.name: p for p in profiles})
        self.quality = quality or QualityThresholds()
        self.unknown_source_weight = unknown_source_weight
        self.unknown_source_time_decay = unknown_source_time_decay

    def __contains__(self, name: object) -> bool:
        return name in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)

    @property
    def profiles(self) -> Mapping[str, SourceProfile]:
        return self._profiles

    def get(self, name: str) -> SourceProfile | None:
        return self._profiles.get(name)

    def kind_of(self, name: str) -> SourceKind:
        profile = self._profiles.get(name)
        return profile.kind if profile else SourceKind.OTHER

    def source_weight(self, name: str, confidence: float) -> float:
        profile = self._profiles.get(name)
        if profile is None:
            return self.unknown_source_weight
        return profile.base_weight * profile.reliability * (confidence / 100)

    def time_decay(self, name: str) -> float:
        profile = self._profiles.get(name)
        return profile.time_decay if profile else self.unknown_source_time_decay

    def min_mentions(self, name: str, asset_kind: AssetKind) -> int | None:
        """Mention floor for high-noise sources, None for everything else."""
        profile = self._profiles.get(name)
        if profile is None or not profile.high_noise:
            return None
        if asset_kind in profile.min_mentions:
            return profile.min_mentions[asset_kind]
        return self.quality.default_min_mentions.get(asset_kind, 0)

    @classmethod
    def from_file(cls, data: SourcesFile) -> SourceTable:
        merged = {p.name: p for p in DEFAULT_PROFILES}
        merged.update({p.name: p for p in data.sources})
        return cls(
            merged.values(),
            quality=data.quality,
            unknown_source_weight=data.unknown_source_weight,
            unknown_source_time_decay=data.unknown_source_time_decay,
        )


def load_sources_file(path: str = "sources.yaml") -> SourcesFile:
    p = Path(path)
    if not p.exists():
        logger.info("Sources file not found, using built-in profiles", path=path)
        return SourcesFile()
    data = yaml.safe_load(p.read_text()) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a top-level mapping")
    return SourcesFile.model_validate(data)


def load_source_table(path: str = "sources.yaml") -> SourceTable:
    return SourceTable.from_file(load_sources_file(path))
