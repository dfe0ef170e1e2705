"""
Error taxonomy for queries and web imports.

Every error carries a message suitable for showing to the user as-is.
Record store failures are not represented here: they are logged and
swallowed inside the store.
"""

from __future__ import annotations

from typing import Optional


class AssistantError(Exception):
    """Base class for user-displayable failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class OperationInProgressError(AssistantError):
    """A query or import was started while another is still running."""


# Query dispatch


class QueryError(AssistantError):
    pass


class MissingCredentialError(QueryError):
    def __init__(self, message: str = "No API key configured. Set one with 'set-key' or OPENAI_API_KEY."):
        super().__init__(message)


class NetworkError(QueryError):
    def __init__(self, message: str = "Network error while contacting the model endpoint."):
        super().__init__(message)


class ServerError(QueryError):
    def __init__(self, status: int, body: str):
        super().__init__(f"Status code: {status}, Response: {body}" if body else f"Status code: {status}")
        self.status = status
        self.body = body


class ParsingError(QueryError):
    def __init__(self, message: str = "Could not parse the model response."):
        super().__init__(message)


# Web import


class WebImportError(AssistantError):
    pass


class EmptyURLError(WebImportError):
    def __init__(self, message: str = "URL must not be empty."):
        super().__init__(message)


class InvalidURLError(WebImportError):
    def __init__(self, url: str):
        super().__init__(f"Invalid URL: {url}")
        self.url = url


class FetchError(WebImportError):
    def __init__(self, url: str, cause: Optional[BaseException] = None):
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Import failed for {url}{detail}")
        self.url = url
        self.cause = cause


class DecodeError(WebImportError):
    def __init__(self, url: str):
        super().__init__(f"Could not read page content from {url}")
        self.url = url


__all__ = [
    "AssistantError",
    "OperationInProgressError",
    "QueryError",
    "MissingCredentialError",
    "NetworkError",
    "ServerError",
    "ParsingError",
    "WebImportError",
    "EmptyURLError",
    "InvalidURLError",
    "FetchError",
    "DecodeError",
]
