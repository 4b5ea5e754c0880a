"""Store contract for pending and confirmed assets."""

from __future__ import annotations

from typing import Protocol

from trendintel.entities import Asset, Entity, PendingAsset


class AssetStore(Protocol):
    """Key-value store of named entities with per-entity atomic writes.

    Implementations return detached copies; mutating a returned entity has no
    effect until it is passed back to put().
    """

    def get(self, symbol: str) -> Entity | None:
        """Return the live entity for a symbol: the confirmed asset, else a still-pending record."""
        ...

    def get_by_id(self, entity_id: str) -> Entity | None: ...

    def list_pending(self) -> list[PendingAsset]: ...

    def list_confirmed(self) -> list[Asset]: ...

    def put(self, entity: Entity) -> None: ...

    def delete(self, entity_id: str) -> bool: ...
