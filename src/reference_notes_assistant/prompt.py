"""
Prompt assembly from a free-text question and selected reference material.

Everything here is pure: the same inputs always produce the same strings.
"""

from __future__ import annotations

from typing import Sequence

from .models import Note, WebImport

SYSTEM_INSTRUCTION = "You are a helpful assistant. Answer in the same language as the question."
ANSWER_INSTRUCTION = "Based on the content above, answer the following question:"


def _segment(title: str, content: str) -> str:
    return f"---\nTitle: {title}\nContent: {content}\n---\n"


def build_context(notes: Sequence[Note], web_imports: Sequence[WebImport]) -> str:
    context = ""
    if notes:
        context += "Reference notes:\n"
        context += "".join(_segment(n.title, n.content) for n in notes)
    if web_imports:
        context += "Reference web pages:\n"
        context += "".join(_segment(w.title, w.content) for w in web_imports)
    return context


def build_prompt(query: str, notes: Sequence[Note], web_imports: Sequence[WebImport]) -> str:
    """Return the query verbatim, or the query preceded by its reference context."""
    context = build_context(notes, web_imports)
    if not context:
        return query
    return f"{context}\n{ANSWER_INSTRUCTION}\n{query}"


def build_source_attribution(notes: Sequence[Note], web_imports: Sequence[WebImport]) -> str:
    sources = "Sources:"
    if notes:
        sources += "\nNotes:"
        for note in notes:
            sources += f"\n- {note.title}"
    if web_imports:
        sources += "\nWeb pages:"
        for item in web_imports:
            sources += f"\n- {item.title} ({item.url})"
    return sources


def compose_derived_note_content(response: str, attribution: str) -> str:
    return f"{response}\n\n{attribution}"


__all__ = [
    "ANSWER_INSTRUCTION",
    "SYSTEM_INSTRUCTION",
    "build_context",
    "build_prompt",
    "build_source_attribution",
    "compose_derived_note_content",
]
