"""In-memory asset store."""

from __future__ import annotations

import copy
import threading

from trendintel.entities import Asset, Entity, PendingAsset, PendingStatus
from trendintel.ingest.signals import normalize_symbol


class InMemoryAssetStore:
    def __init__(self) -> None:
        self._pending: dict[str, PendingAsset] = {}
        self._assets: dict[str, Asset] = {}
        self._lock = threading.Lock()

    def get(self, symbol: str) -> Entity | None:
        wanted = normalize_symbol(symbol)
        with self._lock:
            for asset in self._assets.values():
                if asset.symbol == wanted:
                    return copy.deepcopy(asset)
            for pending in self._pending.values():
                if pending.symbol == wanted and pending.status == PendingStatus.PENDING:
                    return copy.deepcopy(pending)
        return None

    def get_by_id(self, entity_id: str) -> Entity | None:
        with self._lock:
            entity: Entity | None = self._assets.get(entity_id) or self._pending.get(entity_id)
            return copy.deepcopy(entity)

    def list_pending(self) -> list[PendingAsset]:
        with self._lock:
            return [copy.deepcopy(p) for p in self._pending.values()]

    def list_confirmed(self) -> list[Asset]:
        with self._lock:
            return [copy.deepcopy(a) for a in self._assets.values()]

    def put(self, entity: Entity) -> None:
        stored = copy.deepcopy(entity)
        with self._lock:
            if isinstance(stored, Asset):
                self._assets[stored.id] = stored
            else:
                self._pending[stored.id] = stored

    def delete(self, entity_id: str) -> bool:
        with self._lock:
            if self._assets.pop(entity_id, None) is not None:
                return True
            return self._pending.pop(entity_id, None) is not None
