"""
View state for a single user session.

The asyncio event loop that drives an `AssistantSession` is the only owner
of its state. Network calls run in worker threads via `asyncio.to_thread`
and their results are applied after the `await`, back on the loop. At most
one query and one import may be in flight at a time.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Callable, FrozenSet, List, Optional, Tuple

from .errors import AssistantError, FetchError, OperationInProgressError, QueryError, WebImportError
from .ingest import ImportState, StagedImport, WebImporter
from .models import HistoryRecord, Note, WebImport
from .prompt import build_prompt
from .query import QueryDispatcher, QueryOutcome
from .selection import ReferenceSelector
from .store import RecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewState:
    search_text: str = ""
    filter_result: str = ""
    history: Tuple[HistoryRecord, ...] = ()
    notes: Tuple[Note, ...] = ()
    web_imports: Tuple[WebImport, ...] = ()
    selected_note_ids: FrozenSet[uuid.UUID] = field(default_factory=frozenset)
    selected_web_import_ids: FrozenSet[uuid.UUID] = field(default_factory=frozenset)
    is_searching: bool = False
    is_importing: bool = False
    import_state: ImportState = ImportState.IDLE
    staged_import: Optional[StagedImport] = None
    import_error: Optional[str] = None
    last_error: Optional[AssistantError] = None


Listener = Callable[[ViewState], None]


class AssistantSession:
    def __init__(self, store: RecordStore, dispatcher: QueryDispatcher, importer: WebImporter):
        self.store = store
        self.dispatcher = dispatcher
        self.importer = importer
        self.selector = ReferenceSelector()
        self._listeners: List[Listener] = []
        self.state = ViewState()
        self.reload()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register `listener`; the returned callable unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _update(self, **changes: Any) -> None:
        self.state = replace(
            self.state,
            selected_note_ids=self.selector.note_ids,
            selected_web_import_ids=self.selector.web_import_ids,
            import_state=self.importer.state,
            **changes,
        )
        for listener in list(self._listeners):
            listener(self.state)

    def reload(self) -> None:
        notes = tuple(self.store.list_notes())
        web_imports = tuple(self.store.list_web_imports())
        self.selector.prune({n.id for n in notes}, {w.id for w in web_imports})
        self._update(
            history=tuple(self.store.list_history()),
            notes=notes,
            web_imports=web_imports,
        )

    def history_by_recency(self) -> List[HistoryRecord]:
        return sorted(self.state.history, key=lambda r: r.timestamp, reverse=True)

    def toggle_note(self, note_id: uuid.UUID) -> None:
        """Flip selection of a listed note. Unknown ids can only be deselected."""
        if note_id in self.selector.note_ids or any(n.id == note_id for n in self.state.notes):
            self.selector.toggle_note(note_id)
        else:
            logger.debug("Ignoring toggle of unknown note %s", note_id)
        self._update()

    def toggle_web_import(self, item_id: uuid.UUID) -> None:
        if item_id in self.selector.web_import_ids or any(w.id == item_id for w in self.state.web_imports):
            self.selector.toggle_web_import(item_id)
        else:
            logger.debug("Ignoring toggle of unknown web import %s", item_id)
        self._update()

    def clear_selections(self) -> None:
        self.selector.clear()
        self._update()

    def set_search_text(self, text: str) -> None:
        self._update(search_text=text)

    async def perform_filter(self) -> Optional[QueryOutcome]:
        query = self.state.search_text
        if not query:
            self._update(filter_result="")
            return None
        if self.state.is_searching:
            raise OperationInProgressError("A query is already running.")

        notes = self.selector.selected_notes(self.state.notes)
        web_imports = self.selector.selected_web_imports(self.state.web_imports)
        prompt = build_prompt(query, notes, web_imports)
        self._update(is_searching=True, last_error=None)

        try:
            response = await asyncio.to_thread(self.dispatcher.dispatch, prompt)
            outcome = self.dispatcher.record_success(self.store, query, prompt, response, notes, web_imports)
            self._update(
                is_searching=False,
                filter_result=response,
                history=tuple(self.store.list_history()),
                notes=tuple(self.store.list_notes()),
            )
            return outcome
        except QueryError as exc:
            logger.info("Query failed: %s", exc.message)
            self._update(is_searching=False, filter_result=f"Error: {exc.message}", last_error=exc)
            return None
        finally:
            if self.state.is_searching:
                self._update(is_searching=False)

    async def import_web_content(self, url: str, title: Optional[str] = None) -> Optional[StagedImport]:
        if self.state.is_importing:
            raise OperationInProgressError("A page is already being imported.")

        try:
            url = self.importer.begin(url)
        except WebImportError as exc:
            self._update(import_error=exc.message, last_error=exc)
            return None
        self._update(is_importing=True, staged_import=None, import_error=None, last_error=None)

        try:
            staged = await asyncio.to_thread(self.importer.retrieve, url, title)
            self.importer.stage(staged)
            self._update(is_importing=False, staged_import=staged)
            return staged
        except Exception as exc:
            error = exc if isinstance(exc, WebImportError) else FetchError(url, exc)
            self.importer.fail(error)
            self._update(is_importing=False, import_error=error.message, last_error=error)
            return None
        finally:
            if self.importer.state is ImportState.FETCHING:
                self.importer.reset()
            if self.state.is_importing:
                self._update(is_importing=False)

    def confirm_import_as_web_import(self) -> WebImport:
        item = self.importer.confirm_as_web_import()
        self._update(staged_import=None, web_imports=tuple(self.store.list_web_imports()))
        return item

    def confirm_import_as_note(self) -> Note:
        note = self.importer.confirm_as_note()
        self._update(staged_import=None, notes=tuple(self.store.list_notes()))
        return note

    def cancel_import(self) -> None:
        self.importer.cancel()
        self._update(staged_import=None, import_error=None)

    def convert_web_import_to_note(self, item: WebImport) -> Note:
        note = self.importer.convert_to_note(item)
        self._update(notes=tuple(self.store.list_notes()))
        return note

    def save_note(self, title: str, content: str) -> Note:
        note = Note(title=title, content=content)
        self.store.save_note(note)
        self._update(notes=tuple(self.store.list_notes()))
        return note

    def edit_note(self, note_id: uuid.UUID, title: str, content: str) -> Note:
        """Replace a note with a fresh one; the old id leaves any selection."""
        note = Note(title=title, content=content)
        self.store.save_note(note)
        self.store.delete_note(note_id)
        self.selector.discard_note(note_id)
        self._update(notes=tuple(self.store.list_notes()))
        return note

    def delete_history(self, record_id: uuid.UUID) -> None:
        self.store.delete_history(record_id)
        self._update(history=tuple(self.store.list_history()))

    def delete_note(self, note_id: uuid.UUID) -> None:
        self.store.delete_note(note_id)
        self.selector.discard_note(note_id)
        self._update(notes=tuple(self.store.list_notes()))

    def delete_web_import(self, item_id: uuid.UUID) -> None:
        self.store.delete_web_import(item_id)
        self.selector.discard_web_import(item_id)
        self._update(web_imports=tuple(self.store.list_web_imports()))

    def delete_all(self) -> None:
        self.store.delete_all()
        self.selector.clear()
        self.reload()

    def save_api_key(self, key: str) -> None:
        self.store.save_api_key(key)


__all__ = ["AssistantSession", "Listener", "ViewState"]
