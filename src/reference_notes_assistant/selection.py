from __future__ import annotations

import uuid
from typing import AbstractSet, FrozenSet, Iterable, List, Set

from .models import Note, WebImport


class ReferenceSelector:
    """Which notes and web imports are currently selected as query context."""

    def __init__(self) -> None:
        self._note_ids: Set[uuid.UUID] = set()
        self._web_import_ids: Set[uuid.UUID] = set()

    @property
    def note_ids(self) -> FrozenSet[uuid.UUID]:
        return frozenset(self._note_ids)

    @property
    def web_import_ids(self) -> FrozenSet[uuid.UUID]:
        return frozenset(self._web_import_ids)

    @property
    def is_empty(self) -> bool:
        return not self._note_ids and not self._web_import_ids

    @property
    def count(self) -> int:
        return len(self._note_ids) + len(self._web_import_ids)

    @staticmethod
    def _toggle(ids: Set[uuid.UUID], item_id: uuid.UUID) -> bool:
        if item_id in ids:
            ids.remove(item_id)
            return False
        ids.add(item_id)
        return True

    def toggle_note(self, note_id: uuid.UUID) -> bool:
        """Flip membership; returns True if the note is now selected."""
        return self._toggle(self._note_ids, note_id)

    def toggle_web_import(self, item_id: uuid.UUID) -> bool:
        return self._toggle(self._web_import_ids, item_id)

    def discard_note(self, note_id: uuid.UUID) -> None:
        self._note_ids.discard(note_id)

    def discard_web_import(self, item_id: uuid.UUID) -> None:
        self._web_import_ids.discard(item_id)

    def clear(self) -> None:
        self._note_ids.clear()
        self._web_import_ids.clear()

    def prune(
        self,
        existing_note_ids: AbstractSet[uuid.UUID],
        existing_web_import_ids: AbstractSet[uuid.UUID],
    ) -> None:
        """Drop selections whose records no longer exist."""
        self._note_ids &= set(existing_note_ids)
        self._web_import_ids &= set(existing_web_import_ids)

    def selected_notes(self, notes: Iterable[Note]) -> List[Note]:
        return [n for n in notes if n.id in self._note_ids]

    def selected_web_imports(self, items: Iterable[WebImport]) -> List[WebImport]:
        return [w for w in items if w.id in self._web_import_ids]


__all__ = ["ReferenceSelector"]
