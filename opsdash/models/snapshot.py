"""
Immutable snapshot of a tenant's in-memory collections.

The subscription manager owns the live collections; engines only ever see a
``CollectionSnapshot`` taken at recompute time.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import FrozenSet, Iterable, Mapping, Tuple

from .records import EntityType, Record


@dataclass(frozen=True)
class CollectionSnapshot:
    """Read-only view of every collection for one tenant"""
    tenant_id: str
    collections: Mapping[EntityType, Tuple[Record, ...]] = field(default_factory=dict)
    failed: FrozenSet[EntityType] = frozenset()
    pending: FrozenSet[EntityType] = frozenset()

    @classmethod
    def of(
        cls,
        tenant_id: str,
        collections: Mapping[EntityType, Iterable[Record]],
        failed: Iterable[EntityType] = (),
        pending: Iterable[EntityType] = (),
    ) -> "CollectionSnapshot":
        frozen = {EntityType(k): tuple(v) for k, v in collections.items()}
        return cls(
            tenant_id=tenant_id,
            collections=MappingProxyType(frozen),
            failed=frozenset(failed),
            pending=frozenset(pending),
        )

    def get(self, entity_type: EntityType) -> Tuple[Record, ...]:
        return self.collections.get(entity_type, ())

    def scoped(self, entity_type: EntityType) -> Tuple[Tuple[Record, ...], int]:
        """Records owned by this snapshot's tenant, plus how many were not"""
        records = self.get(entity_type)
        owned = tuple(r for r in records if r.tenant_id == self.tenant_id)
        return owned, len(records) - len(owned)

    def failed_names(self) -> Tuple[str, ...]:
        return tuple(sorted(et.value for et in self.failed))

    def pending_names(self) -> Tuple[str, ...]:
        return tuple(sorted(et.value for et in self.pending))
