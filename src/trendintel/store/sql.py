"""SQLAlchemy-backed asset store."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session, sessionmaker

from trendintel.db import get_db
from trendintel.entities import Asset, Entity, PendingAsset, PendingStatus, Visibility
from trendintel.ingest.signals import AssetKind, ensure_utc, normalize_symbol
from trendintel.models import AssetRecord, PendingAssetRecord


def _utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back out.
    return ensure_utc(value) if value is not None else None


def _pending_from_record(row: PendingAssetRecord) -> PendingAsset:
    return PendingAsset(
        id=row.id,
        symbol=row.symbol,
        asset_kind=AssetKind(row.asset_kind),
        meme_score=row.meme_score,
        political_score=row.political_score,
        earnings_score=row.earnings_score,
        summary=row.summary or "",
        sources=set(row.sources or []),
        unusual_volume=bool(row.unusual_volume),
        is_political_trade=bool(row.is_political_trade),
        is_earnings_based=bool(row.is_earnings_based),
        visibility=Visibility(row.visibility or "visible"),
        confidence=row.confidence,
        discovered_at=ensure_utc(row.discovered_at),
        status=PendingStatus(row.status),
    )


def _asset_from_record(row: AssetRecord) -> Asset:
    return Asset(
        id=row.id,
        symbol=row.symbol,
        asset_kind=AssetKind(row.asset_kind),
        meme_score=row.meme_score,
        political_score=row.political_score,
        earnings_score=row.earnings_score,
        summary=row.summary or "",
        sources=set(row.sources or []),
        unusual_volume=bool(row.unusual_volume),
        is_political_trade=bool(row.is_political_trade),
        is_earnings_based=bool(row.is_earnings_based),
        visibility=Visibility(row.visibility or "visible"),
        alert_sent=bool(row.alert_sent),
        live_price=row.live_price,
        price_change_24h=row.price_change_24h,
        percent_change_24h=row.percent_change_24h,
        last_price_update=_utc(row.last_price_update),
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
    )


def _shared_columns(entity: Entity) -> dict[str, object]:
    return {
        "symbol": entity.symbol,
        "asset_kind": entity.asset_kind.value,
        "meme_score": entity.meme_score,
        "political_score": entity.political_score,
        "earnings_score": entity.earnings_score,
        "summary": entity.summary,
        "sources": sorted(entity.sources),
        "unusual_volume": entity.unusual_volume,
        "is_political_trade": entity.is_political_trade,
        "is_earnings_based": entity.is_earnings_based,
        "visibility": entity.visibility.value,
    }


class SqlAssetStore:
    """Store backed by the pending_assets and assets tables.

    Every call runs in its own transaction, so writes are atomic per entity.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory

    def get(self, symbol: str) -> Entity | None:
        wanted = normalize_symbol(symbol)
        with get_db(self._session_factory) as session:
            asset = session.query(AssetRecord).filter_by(symbol=wanted).first()
            if asset:
                return _asset_from_record(asset)
            pending = (
                session.query(PendingAssetRecord)
                .filter_by(symbol=wanted, status=PendingStatus.PENDING.value)
                .first()
            )
            return _pending_from_record(pending) if pending else None

    def get_by_id(self, entity_id: str) -> Entity | None:
        with get_db(self._session_factory) as session:
            asset = session.get(AssetRecord, entity_id)
            if asset:
                return _asset_from_record(asset)
            pending = session.get(PendingAssetRecord, entity_id)
            return _pending_from_record(pending) if pending else None

    def list_pending(self) -> list[PendingAsset]:
        with get_db(self._session_factory) as session:
            rows = session.query(PendingAssetRecord).order_by(PendingAssetRecord.discovered_at).all()
            return [_pending_from_record(row) for row in rows]

    def list_confirmed(self) -> list[Asset]:
        with get_db(self._session_factory) as session:
            rows = session.query(AssetRecord).order_by(AssetRecord.created_at).all()
            return [_asset_from_record(row) for row in rows]

    def put(self, entity: Entity) -> None:
        with get_db(self._session_factory) as session:
            if isinstance(entity, Asset):
                asset_row = session.get(AssetRecord, entity.id) or AssetRecord(id=entity.id)
                for key, value in _shared_columns(entity).items():
                    setattr(asset_row, key, value)
                asset_row.alert_sent = entity.alert_sent
                asset_row.live_price = entity.live_price
                asset_row.price_change_24h = entity.price_change_24h
                asset_row.percent_change_24h = entity.percent_change_24h
                asset_row.last_price_update = entity.last_price_update
                asset_row.created_at = entity.created_at
                asset_row.updated_at = entity.updated_at
                session.add(asset_row)
            else:
                pending_row = session.get(PendingAssetRecord, entity.id) or PendingAssetRecord(id=entity.id)
                for key, value in _shared_columns(entity).items():
                    setattr(pending_row, key, value)
                pending_row.confidence = entity.confidence
                pending_row.discovered_at = entity.discovered_at
                pending_row.status = entity.status.value
                session.add(pending_row)

    def delete(self, entity_id: str) -> bool:
        with get_db(self._session_factory) as session:
            row = session.get(AssetRecord, entity_id) or session.get(PendingAssetRecord, entity_id)
            if row is None:
                return False
            session.delete(row)
            return True
