#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Site chrome
===========
Wraps rendered page bodies in the Jinja2 page layout and generates the
corpus-level documents: category listings, the site index and the
category index.

Category pages and the index are a second pass over the corpus index's
reverse category mapping, run after every page has been resolved.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from itertools import groupby
from typing import Optional

from jinja2 import Environment, PackageLoader, StrictUndefined, select_autoescape
from markupsafe import Markup

from wikistatic.core.config import Settings
from wikistatic.schemas.pages import CategoryMembership, RenderedDocument
from wikistatic.services.corpus import CorpusIndex
from wikistatic.services.renderer import RenderedBody
from wikistatic.services.titles import href_for_path, href_for_title, output_path, page_name, split_namespace

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

INDEX_PATH = "index.html"
CATEGORIES_PATH = "Special/Categories.html"
STYLESHEET_PATH = "static/style.css"
PYGMENTS_CSS_PATH = "static/pygments.css"


_env: Optional[Environment] = None


def get_environment() -> Environment:
    global _env
    if _env is None:
        _env = Environment(
            loader=PackageLoader("wikistatic", "templates"),
            autoescape=select_autoescape(["html"]),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
    return _env


def _initial(text: str) -> str:
    return (text[:1] or "#").upper()


# -----------------------------------------------------------------------------

class SiteBuilder:

    def __init__(self, settings: Settings, index: CorpusIndex):
        self.settings = settings
        self.index = index
        self.base_url = settings.base_url

    def _context(self, title: str, **extra) -> dict:
        ctx = {
            "title": title,
            "site_name": self.settings.site_name,
            "version": self.settings.app_version,
            "base_url": self.base_url,
            "stylesheet": href_for_path(STYLESHEET_PATH, self.base_url),
            "pygments_css": href_for_path(PYGMENTS_CSS_PATH, self.base_url),
            "index_href": href_for_path(INDEX_PATH, self.base_url),
            "categories_href": href_for_path(CATEGORIES_PATH, self.base_url),
            "main_page": self.settings.main_page,
            "main_page_href": href_for_title(self.settings.main_page, self.base_url),
        }
        ctx.update(extra)
        return ctx

    def _render(self, template: str, title: str, **extra) -> str:
        return get_environment().get_template(template).render(self._context(title, **extra))

    def _category_links(self, memberships: list[CategoryMembership]) -> list[dict]:
        return [
            {"name": m.category, "href": href_for_title(f"Category:{m.category}", self.base_url)}
            for m in memberships
        ]

    # ── per-page documents ──────────────────────────────────────────────────

    def page(
        self,
        title: str,
        body: RenderedBody,
        categories: list[CategoryMembership],
    ) -> RenderedDocument:
        content = self._render(
            "page.html", title,
            body=Markup(body.html),
            categories=self._category_links(categories),
        )
        return RenderedDocument(path=output_path(title), content=content, title=title, kind="page")

    def redirect(self, source: str, target: str, href: str) -> RenderedDocument:
        content = self._render("redirect.html", source, target=target, target_href=href)
        return RenderedDocument(path=output_path(source), content=content, title=source, kind="redirect")

    # ── corpus documents ────────────────────────────────────────────────────

    def category(self, name: str, body: Optional[str] = None) -> RenderedDocument:
        """Listing page for ``Category:<name>``: subcategories, pages and files."""
        title = f"Category:{name}"
        members = self.index.category_members(name)
        sections = {"subcategories": [], "pages": [], "files": []}
        for m in members:
            namespace, text = split_namespace(m.title)
            key = {"Category": "subcategories", "File": "files"}.get(namespace, "pages")
            sections[key].append({
                "title": m.title,
                "text": text if namespace in ("Category", "File") else m.title,
                "href": href_for_title(m.title, self.base_url),
                "initial": _initial(m.sort_key or page_name(m.title)),
            })
        grouped = {
            key: [(initial, list(items)) for initial, items in groupby(entries, key=lambda e: e["initial"])]
            for key, entries in sections.items()
        }
        content = self._render(
            "category.html", title,
            name=name,
            body=Markup(body) if body is not None else None,
            count=len(members),
            sections=grouped,
        )
        return RenderedDocument(path=output_path(title), content=content, title=title, kind="category")

    def site_index(self) -> RenderedDocument:
        """``index.html``: every non-redirect page, grouped by namespace."""
        by_namespace: dict[str, list[dict]] = {}
        for title in sorted(self.index.pages):
            page = self.index.pages[title]
            if page.is_redirect:
                continue
            by_namespace.setdefault(page.namespace, []).append({
                "title": title,
                "href": href_for_title(title, self.base_url),
            })
        namespaces = [
            {"name": ns or "(Main)", "pages": by_namespace[ns]}
            for ns in sorted(by_namespace, key=lambda ns: (ns != "", ns))
        ]
        content = self._render("index.html", self.settings.site_name, namespaces=namespaces)
        return RenderedDocument(path=INDEX_PATH, content=content, title=self.settings.site_name, kind="index")

    def categories_index(self) -> RenderedDocument:
        entries = [
            {
                "name": name,
                "href": href_for_title(f"Category:{name}", self.base_url),
                "count": len(self.index.category_members(name)),
            }
            for name in self.index.category_names()
        ]
        content = self._render("categories.html", "Categories", categories=entries)
        return RenderedDocument(path=CATEGORIES_PATH, content=content, title="Categories", kind="index")


# -----------------------------------------------------------------------------
