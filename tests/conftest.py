#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Pytest fixtures for wikistatic tests.
Corpora are built in memory from {title: text} dicts; nothing touches the
network and only the dump/writer/CLI tests use the filesystem (tmp_path).
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import pytest

from wikistatic.core.config import Settings, get_settings
from wikistatic.schemas.nodes import Document
from wikistatic.schemas.pages import PageWarning, SourcePage
from wikistatic.services.corpus import CorpusIndex, build_page
from wikistatic.services.expander import expand_page
from wikistatic.services.links import resolve_links
from wikistatic.services.renderer import render_document
from wikistatic.services.titles import normalize_title


# -----------------------------------------------------------------------------

def make_settings(**overrides) -> Settings:
    values = {"workers": 1}
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch):
    """No WIKISTATIC_* variable from the developer's shell leaks into a test."""

    for key in list(os.environ):
        if key.upper().startswith("WIKISTATIC_"):
            monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


# -----------------------------------------------------------------------------
# Helper functions for tests
# -----------------------------------------------------------------------------

def sources(pages: dict[str, str]) -> list[SourcePage]:
    return [SourcePage(title=title, text=text) for title, text in pages.items()]


def make_index(pages: dict[str, str], settings: Optional[Settings] = None) -> CorpusIndex:
    settings = settings or make_settings()
    interwiki = tuple(settings.interwiki)
    built = [build_page(s, interwiki) for s in sources(pages)]
    return CorpusIndex(built, max_redirect_hops=settings.max_redirect_hops)


def expand(
    text: str,
    pages: Optional[dict[str, str]] = None,
    title: str = "Test page",
    settings: Optional[Settings] = None,
) -> tuple[Document, list[PageWarning], CorpusIndex]:
    """Expand *text* as page *title* of a corpus that also holds *pages*."""
    settings = settings or make_settings()
    corpus = dict(pages or {})
    corpus[title] = text
    index = make_index(corpus, settings)
    page = index.pages[normalize_title(title)]
    document, warnings = expand_page(page, index, settings)
    return document, warnings, index


def render(
    text: str,
    pages: Optional[dict[str, str]] = None,
    title: str = "Test page",
    settings: Optional[Settings] = None,
) -> str:
    """Body HTML of *text* after expansion, link resolution and rendering."""
    settings = settings or make_settings()
    document, _, index = expand(text, pages, title, settings)
    resolve_links(normalize_title(title), document, index, settings)
    return render_document(document, settings, normalize_title(title)).html


def render_warnings(
    text: str,
    pages: Optional[dict[str, str]] = None,
    title: str = "Test page",
    settings: Optional[Settings] = None,
) -> list[PageWarning]:
    settings = settings or make_settings()
    document, warnings, index = expand(text, pages, title, settings)
    resolved = resolve_links(normalize_title(title), document, index, settings)
    return warnings + resolved.warnings


def write_dump(root: Path, pages: dict[str, str], extension: str = ".wikitext") -> Path:
    """Lay *pages* out as a directory dump under *root*."""
    root.mkdir(parents=True, exist_ok=True)
    for title, text in pages.items():
        path = root / (title.replace(" ", "_") + extension)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return root


# -----------------------------------------------------------------------------
