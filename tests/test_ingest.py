"""Tests for web page import: text extraction, URL validation and the importer state machine."""

import httpx
import pytest

from reference_notes_assistant.errors import (
    DecodeError,
    EmptyURLError,
    FetchError,
    InvalidURLError,
    WebImportError,
)
from reference_notes_assistant.ingest import ImportState, WebImporter, extract_text, extract_title, validate_url
from reference_notes_assistant.models import WebImport

PAGE_URL = "https://example.com/article"
PAGE = b"""<html>
<head><title> Light &amp; Life </title>
<style>body { color: red; }</style>
<script type="text/javascript">var tracking = "<b>no</b>";</script>
</head>
<body>
<h1>Photosynthesis</h1>
<p>Plants&nbsp;turn   light into &lt;sugar&gt;.</p>
<p>&quot;Quoted&quot; and it&#39;s fine.</p>
</body>
</html>"""


class TestExtraction:
    def test_text_strips_markup_scripts_and_styles(self):
        text = extract_text(PAGE.decode("utf-8"))

        assert text == (
            "Light & Life\n"
            "Photosynthesis\n"
            "Plants turn light into <sugar>.\n"
            "\"Quoted\" and it's fine."
        )
        assert "tracking" not in text
        assert "color" not in text

    def test_line_breaks_and_body_scripts(self):
        html = "<body><div>First<br>Second</div><script>alert('x')</script><p>Third</p></body>"

        assert extract_text(html) == "First\nSecond\nThird"

    def test_title(self):
        assert extract_title(PAGE.decode("utf-8")) == "Light & Life"

    def test_missing_or_blank_title(self):
        assert extract_title("<html><body>x</body></html>") is None
        assert extract_title("<title>   </title>") is None


class TestValidateUrl:
    @pytest.mark.parametrize("url", ["", "   "])
    def test_empty(self, url):
        with pytest.raises(EmptyURLError):
            validate_url(url)

    @pytest.mark.parametrize(
        "url",
        [
            "not a url",
            "example.com/page",
            "https://",
            "/relative/path",
            "http://[::1",
            "http://example.com:abc/",
            "ftp://example.com/file.txt",
        ],
    )
    def test_invalid(self, url):
        with pytest.raises(InvalidURLError):
            validate_url(url)

    def test_valid_is_trimmed(self):
        assert validate_url("  https://example.com/a ") == "https://example.com/a"


class TestImporter:
    def test_invalid_url_does_not_start_fetch(self, importer, web):
        with pytest.raises(InvalidURLError):
            importer.fetch("not a url")

        assert importer.state is ImportState.IDLE
        assert importer.staged is None
        assert web.requests == []

    def test_fetch_stages_extracted_title_and_text(self, importer, web, store):
        web.add(PAGE_URL, PAGE)

        staged = importer.fetch(PAGE_URL)

        assert importer.state is ImportState.AWAITING_CONFIRMATION
        assert staged.title == "Light & Life"
        assert staged.url == PAGE_URL
        assert "Photosynthesis" in staged.content
        assert store.list_web_imports() == []
        assert store.list_notes() == []

    def test_user_title_wins(self, importer, web):
        web.add(PAGE_URL, PAGE)
        assert importer.fetch(PAGE_URL, title="My title").title == "My title"

    def test_title_falls_back_to_url(self, importer, web):
        web.add(PAGE_URL, b"<p>no title here</p>")
        assert importer.fetch(PAGE_URL).title == PAGE_URL

    def test_http_error_status_is_fetch_error(self, importer):
        with pytest.raises(FetchError) as excinfo:
            importer.fetch("https://example.com/missing")

        assert isinstance(excinfo.value.cause, httpx.HTTPStatusError)
        assert importer.state is ImportState.FAILED
        assert importer.error is excinfo.value

    def test_transport_failure_is_fetch_error(self, store):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        importer = WebImporter(store, http_client=httpx.Client(transport=httpx.MockTransport(refuse)))
        with pytest.raises(FetchError) as excinfo:
            importer.fetch(PAGE_URL)

        assert isinstance(excinfo.value.cause, httpx.ConnectError)

    def test_client_url_rejection_is_fetch_error(self, store):
        def reject(request):
            raise httpx.InvalidURL("Invalid port: 'abc'")

        importer = WebImporter(store, http_client=httpx.Client(transport=httpx.MockTransport(reject)))
        with pytest.raises(FetchError) as excinfo:
            importer.retrieve(PAGE_URL)

        assert isinstance(excinfo.value.cause, httpx.InvalidURL)

    def test_undecodable_body_is_decode_error(self, importer, web):
        web.add(PAGE_URL, b"\xff\xfe\xfa\x00bad")

        with pytest.raises(DecodeError):
            importer.fetch(PAGE_URL)

        assert importer.state is ImportState.FAILED

    def test_confirm_as_web_import(self, importer, web, store):
        web.add(PAGE_URL, PAGE)
        staged = importer.fetch(PAGE_URL)

        item = importer.confirm_as_web_import()

        assert (item.url, item.title, item.content) == (staged.url, staged.title, staged.content)
        assert store.list_web_imports() == [item]
        assert importer.state is ImportState.IDLE
        assert importer.staged is None

    def test_confirm_as_note(self, importer, web, store):
        web.add(PAGE_URL, PAGE)
        staged = importer.fetch(PAGE_URL)

        note = importer.confirm_as_note()

        assert note.content == f"Source: {PAGE_URL}\n\n{staged.content}"
        assert note.title == "Web note: Light & Life"
        assert store.list_notes() == [note]
        assert store.list_web_imports() == []
        assert importer.state is ImportState.IDLE

    def test_cancel_persists_nothing(self, importer, web, store):
        web.add(PAGE_URL, PAGE)
        importer.fetch(PAGE_URL)

        importer.cancel()

        assert importer.state is ImportState.IDLE
        assert importer.staged is None
        assert store.list_web_imports() == []
        assert store.list_notes() == []

    def test_confirm_without_staged_page(self, importer):
        with pytest.raises(WebImportError):
            importer.confirm_as_web_import()
        with pytest.raises(WebImportError):
            importer.confirm_as_note()

    def test_convert_persisted_import_to_note(self, importer, store):
        item = WebImport(url="https://x.test/p", title="Page", content="Body")
        note = importer.convert_to_note(item)

        assert note.title == "Page"
        assert note.content == "Source: https://x.test/p\n\nBody"
        assert store.get_note(note.id) == note
