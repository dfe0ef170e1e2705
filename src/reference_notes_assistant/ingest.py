from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

import httpx
from bs4 import BeautifulSoup

from .errors import DecodeError, EmptyURLError, FetchError, InvalidURLError, WebImportError
from .models import Note, WebImport
from .store import RecordStore

logger = logging.getLogger(__name__)

FETCHABLE_SCHEMES = ("http", "https")


def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def extract_text(html: str) -> str:
    """Plain text of a page: scripts and styles dropped, one line per text block."""
    soup = BeautifulSoup(html, "html.parser")
    for element in soup(["script", "style"]):
        element.decompose()

    lines = (_collapse(line) for line in soup.get_text(separator="\n").splitlines())
    return "\n".join(line for line in lines if line)


def extract_title(html: str) -> Optional[str]:
    soup = BeautifulSoup(html, "html.parser")
    if soup.title is None:
        return None
    return _collapse(soup.title.get_text()) or None


class TextExtractor(Protocol):
    def extract_text(self, html: str) -> str: ...

    def extract_title(self, html: str) -> Optional[str]: ...


class HtmlTextExtractor:
    """Default extractor, backed by BeautifulSoup's html.parser."""

    def extract_text(self, html: str) -> str:
        return extract_text(html)

    def extract_title(self, html: str) -> Optional[str]:
        return extract_title(html)


class ImportState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    FAILED = "failed"


@dataclass(frozen=True)
class StagedImport:
    url: str
    title: str
    content: str


def validate_url(url: str) -> str:
    """Trimmed `url` if it is an absolute http(s) URL with a host."""
    url = url.strip()
    if not url:
        raise EmptyURLError()
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise InvalidURLError(url) from exc
    if parsed.scheme not in FETCHABLE_SCHEMES or not parsed.host or " " in url:
        raise InvalidURLError(url)
    return url


class WebImporter:
    """
    Fetch a page, extract its text and hold it for confirmation.

    Nothing is persisted until one of the confirm methods is called.
    """

    def __init__(
        self,
        store: RecordStore,
        http_client: Optional[httpx.Client] = None,
        extractor: Optional[TextExtractor] = None,
    ):
        self.store = store
        self.http_client = http_client
        self.extractor = extractor or HtmlTextExtractor()
        self.state = ImportState.IDLE
        self.staged: Optional[StagedImport] = None
        self.error: Optional[WebImportError] = None

    def _get(self, url: str) -> httpx.Response:
        if self.http_client is not None:
            return self.http_client.get(url)
        with httpx.Client(follow_redirects=True) as client:
            return client.get(url)

    def fetch(self, url: str, title: Optional[str] = None) -> StagedImport:
        """
        GET `url` and stage its text for confirmation.

        Raises EmptyURLError or InvalidURLError without changing state, and
        FetchError or DecodeError after moving to FAILED.
        """
        url = self.begin(url)
        try:
            staged = self.retrieve(url, title)
        except WebImportError as exc:
            raise self.fail(exc)
        return self.stage(staged)

    def begin(self, url: str) -> str:
        url = validate_url(url)
        self.state = ImportState.FETCHING
        self.staged = None
        self.error = None
        return url

    def retrieve(self, url: str, title: Optional[str] = None) -> StagedImport:
        """Network and extraction only; touches no importer state."""
        try:
            response = self._get(url)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise FetchError(url, exc) from exc

        try:
            html = response.content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(url) from exc

        content = self.extractor.extract_text(html)
        final_title = (title or "").strip()
        if not final_title:
            final_title = self.extractor.extract_title(html) or url
        return StagedImport(url=url, title=final_title, content=content)

    def stage(self, staged: StagedImport) -> StagedImport:
        self.staged = staged
        self.error = None
        self.state = ImportState.AWAITING_CONFIRMATION
        logger.info("Staged %s (%d chars)", staged.url, len(staged.content))
        return staged

    def fail(self, error: WebImportError) -> WebImportError:
        logger.warning("%s", error.message)
        self.staged = None
        self.state = ImportState.FAILED
        self.error = error
        return error

    def _take_staged(self) -> StagedImport:
        if self.staged is None or self.state is not ImportState.AWAITING_CONFIRMATION:
            raise WebImportError("No fetched page is awaiting confirmation.")
        staged = self.staged
        self.reset()
        return staged

    def confirm_as_web_import(self) -> WebImport:
        staged = self._take_staged()
        item = WebImport(url=staged.url, title=staged.title, content=staged.content)
        self.store.save_web_import(item)
        return item

    def confirm_as_note(self) -> Note:
        staged = self._take_staged()
        note = Note(
            title=f"Web note: {staged.title}",
            content=f"Source: {staged.url}\n\n{staged.content}",
        )
        self.store.save_note(note)
        return note

    def cancel(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.staged = None
        self.error = None
        self.state = ImportState.IDLE

    def convert_to_note(self, item: WebImport) -> Note:
        note = Note(title=item.title, content=f"Source: {item.url}\n\n{item.content}")
        self.store.save_note(note)
        return note


__all__ = [
    "HtmlTextExtractor",
    "ImportState",
    "StagedImport",
    "TextExtractor",
    "WebImporter",
    "extract_text",
    "extract_title",
    "validate_url",
]
