from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx
import openai
from openai import OpenAI
from pydantic import BaseModel, Field, StrictStr, ValidationError
from rich.console import Console
from rich.panel import Panel

from .config import AppConfig
from .errors import MissingCredentialError, NetworkError, ParsingError, ServerError
from .models import HistoryRecord, Note, WebImport, utc_now
from .prompt import SYSTEM_INSTRUCTION, build_prompt, build_source_attribution, compose_derived_note_content
from .store import RecordStore

console = Console()
logger = logging.getLogger(__name__)

TEMPERATURE = 0.7


class _Message(BaseModel):
    content: StrictStr


class _Choice(BaseModel):
    message: _Message


class _CompletionBody(BaseModel):
    id: Optional[str] = None
    choices: List[_Choice] = Field(min_length=1)


@dataclass
class QueryOutcome:
    query: str
    prompt: str
    response: str
    history_record: HistoryRecord
    history_stored: bool
    derived_note: Optional[Note] = None


def resolve_api_key(store: RecordStore) -> Optional[str]:
    """Stored key first, then OPENAI_API_KEY from the environment."""
    return store.load_api_key() or os.getenv("OPENAI_API_KEY") or None


class QueryDispatcher:
    """Sends assembled prompts to the chat completions endpoint."""

    def __init__(
        self,
        cfg: AppConfig,
        api_key_provider: Callable[[], Optional[str]],
        http_client: Optional[httpx.Client] = None,
    ):
        self.cfg = cfg
        self.api_key_provider = api_key_provider
        self.http_client = http_client

    def _client(self, api_key: str) -> OpenAI:
        kwargs: Dict[str, Any] = {
            "api_key": api_key,
            "base_url": self.cfg.openai_base_url,
            "max_retries": 0,
        }
        if self.cfg.request_timeout is not None:
            kwargs["timeout"] = self.cfg.request_timeout
        if self.http_client is not None:
            kwargs["http_client"] = self.http_client
        return OpenAI(**kwargs)

    def dispatch(self, prompt: str) -> str:
        """
        Perform one completion request and return the message content.

        Raises MissingCredentialError before any network activity when no
        API key is configured; NetworkError, ServerError or ParsingError
        otherwise. Never retries.
        """
        api_key = self.api_key_provider()
        if not api_key:
            raise MissingCredentialError()

        client = self._client(api_key)
        logger.debug("Dispatching prompt (%d chars) to %s", len(prompt), self.cfg.openai_model)
        try:
            raw = client.chat.completions.with_raw_response.create(
                model=self.cfg.openai_model,
                messages=[
                    {"role": "system", "content": SYSTEM_INSTRUCTION},
                    {"role": "user", "content": prompt},
                ],
                temperature=TEMPERATURE,
            )
        except openai.APIConnectionError as exc:
            logger.warning("Model endpoint unreachable: %s", exc)
            raise NetworkError() from exc
        except openai.APIStatusError as exc:
            body = exc.response.text
            logger.warning("Model endpoint returned %s", exc.status_code)
            raise ServerError(exc.status_code, body) from exc

        try:
            parsed = _CompletionBody.model_validate(raw.http_response.json())
        except (ValueError, ValidationError) as exc:
            raise ParsingError() from exc
        return parsed.choices[0].message.content

    def run_query(
        self,
        store: RecordStore,
        query: str,
        notes: Sequence[Note] = (),
        web_imports: Sequence[WebImport] = (),
    ) -> QueryOutcome:
        """
        Assemble, dispatch and persist.

        On success a history record is appended (subject to the store's
        dedup and cap rules) and, when any reference was selected, a note
        holding the answer plus its sources. On failure nothing is stored.
        """
        prompt = build_prompt(query, notes, web_imports)
        response = self.dispatch(prompt)
        return self.record_success(store, query, prompt, response, notes, web_imports)

    @staticmethod
    def record_success(
        store: RecordStore,
        query: str,
        prompt: str,
        response: str,
        notes: Sequence[Note] = (),
        web_imports: Sequence[WebImport] = (),
    ) -> QueryOutcome:
        record = HistoryRecord(keyword=query, content=response, timestamp=utc_now())
        stored = store.append_history(record)

        derived: Optional[Note] = None
        if notes or web_imports:
            attribution = build_source_attribution(notes, web_imports)
            derived = Note(title=query, content=compose_derived_note_content(response, attribution))
            store.save_note(derived)

        return QueryOutcome(
            query=query,
            prompt=prompt,
            response=response,
            history_record=record,
            history_stored=stored,
            derived_note=derived,
        )


def answer_question(
    question: str,
    store: RecordStore,
    dispatcher: QueryDispatcher,
    notes: Sequence[Note] = (),
    web_imports: Sequence[WebImport] = (),
) -> QueryOutcome:
    console.print("[green]Calling the model...[/green]")
    outcome = dispatcher.run_query(store, question, notes, web_imports)

    console.rule("[bold green]Answer[/bold green]")
    console.print(outcome.response.strip())

    if outcome.derived_note is not None:
        console.rule("[bold blue]Saved as note[/bold blue]")
        console.print(
            Panel(
                build_source_attribution(notes, web_imports),
                title=outcome.derived_note.title,
                subtitle=str(outcome.derived_note.id),
                expand=False,
            )
        )
    return outcome


__all__ = ["QueryDispatcher", "QueryOutcome", "TEMPERATURE", "answer_question", "resolve_api_key"]
