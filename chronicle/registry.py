from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

T = TypeVar("T")


def _entity_id(item: object) -> str | None:
    if isinstance(item, Mapping):
        raw = item.get("id")
    else:
        raw = getattr(item, "id", None)
    if raw is None:
        return None
    return str(raw)


@dataclass(slots=True)
class EntityRegistry:
    """Allow-list of entity ids the engine has actually registered, per entity type.

    Ids are only ever added. Filtering is fail-open while a type has no ids
    (early/low-content games) and fail-closed once at least one id exists.

    Owned by the session controller and passed explicitly to whatever needs it.
    """

    _known: dict[str, set[str]] = field(default_factory=dict)

    def register(self, entity_type: str, entity_id: str) -> None:
        self._known.setdefault(entity_type, set()).add(str(entity_id))

    def register_many(self, entity_type: str, entity_ids: Iterable[str]) -> None:
        for eid in entity_ids:
            self.register(entity_type, eid)

    def known(self, entity_type: str) -> frozenset[str]:
        return frozenset(self._known.get(entity_type, ()))

    def is_known(self, entity_type: str, entity_id: str) -> bool:
        return str(entity_id) in self._known.get(entity_type, ())

    def filter_entities(self, entity_type: str, items: Sequence[T]) -> list[T]:
        ids = self._known.get(entity_type)
        if not ids:
            return list(items)
        # Items without a usable id are dropped, not reported.
        return [item for item in items if _entity_id(item) in ids]
