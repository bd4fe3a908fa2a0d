#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Corpus index
============
Maps every normalized title to its parsed page and precomputes the redirect
table, so that template lookup and link resolution are dictionary lookups.

The index is built once, after every page has been parsed, and is read-only
from then on, with one exception: category memberships are merged into the
reverse mapping by a single writer (``merge_categories``) after all pages
have been resolved.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from wikistatic.schemas.nodes import Category, LinkStatus, Link, Redirect, iter_nodes
from wikistatic.schemas.pages import (
    CategoryMembership,
    Page,
    PageWarning,
    RedirectEntry,
    SourcePage,
)
from wikistatic.services.parser import parse, parse_with_problems, transclusion_text, view_text
from wikistatic.services.titles import normalize_title, page_name, parse_title, split_namespace

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Page construction
# -----------------------------------------------------------------------------

def build_page(source: SourcePage, interwiki: Iterable[str] = ()) -> Page:
    """Parse one source page into a ``Page`` (AST, redirect, outbound links, categories)."""
    title = normalize_title(source.title)
    namespace, _ = split_namespace(title)
    text = source.text.replace("\r\n", "\n").replace("\r", "\n")

    shown = view_text(text)
    ast, problems = parse_with_problems(shown)
    included = transclusion_text(text)
    transclusion_ast = parse(included) if included != shown else None

    page = Page(
        title=title,
        namespace=namespace,
        source=text,
        ast=ast,
        transclusion_ast=transclusion_ast,
        warnings=[PageWarning(page=title, kind="parse", message=p) for p in problems],
    )

    interwiki = tuple(interwiki)
    links: set[str] = set()
    categories: set[str] = set()
    for node in iter_nodes(ast.children):
        if isinstance(node, Redirect) and page.redirect is None:
            parts = parse_title(node.target, interwiki)
            if parts.is_valid and not parts.interwiki:
                page.redirect = parts.full
                page.redirect_fragment = parts.fragment
        elif isinstance(node, Link) and node.target_nodes is None:
            parts = parse_title(node.target, interwiki)
            if parts.text and not parts.interwiki:
                links.add(parts.full)
        elif isinstance(node, Category):
            categories.add(node.name)

    page.links = sorted(links)
    page.categories = sorted(categories)
    return page


# -----------------------------------------------------------------------------
# Index
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Resolution:
    status: LinkStatus
    title: str              # canonical page, or the page a broken chain stopped at
    fragment: str = ""


class CorpusIndex:
    """Title → page map plus redirect table and category reverse mapping."""

    def __init__(self, pages: Iterable[Page], max_redirect_hops: int = 10):
        self.pages: dict[str, Page] = {}
        self.warnings: list[PageWarning] = []
        for page in pages:
            if page.title in self.pages:
                log.warning("Duplicate title %r; keeping the first copy", page.title)
                self.warnings.append(PageWarning(
                    page=page.title, kind="parse", message="duplicate title in corpus; later copy ignored",
                ))
                continue
            self.pages[page.title] = page
        self.max_redirect_hops = max_redirect_hops
        self.redirects: dict[str, RedirectEntry] = self._build_redirects()
        self.categories: dict[str, dict[str, CategoryMembership]] = {}
        self.known_categories: set[str] = {
            split_namespace(t)[1] for t, p in self.pages.items() if p.namespace == "Category"
        }
        for page in self.pages.values():
            self.known_categories.update(page.categories)

    def __len__(self) -> int:
        return len(self.pages)

    def __contains__(self, title: str) -> bool:
        return title in self.pages

    # ── redirects ───────────────────────────────────────────────────────────

    def _build_redirects(self) -> dict[str, RedirectEntry]:
        table: dict[str, RedirectEntry] = {}
        for title in sorted(self.pages):
            page = self.pages[title]
            if page.is_redirect:
                entry = self._follow(page)
                table[title] = entry
                if entry.broken:
                    kind = "redirect-cycle" if entry.reason == "cycle" else "broken-redirect"
                    log.warning("Broken redirect %r (%s)", title, entry.reason)
                    self.warnings.append(PageWarning(
                        page=title, kind=kind,
                        message=f"redirect chain {entry.reason}; stopped at {entry.target!r}",
                    ))
        return table

    def _follow(self, start: Page) -> RedirectEntry:
        chain = [start.title]
        seen = {start.title}
        fragment = start.redirect_fragment
        current = start.redirect
        hops = 1
        while True:
            target = self.pages.get(current)
            if target is None:
                return RedirectEntry(source=start.title, target=chain[-1], broken=True, reason="missing")
            if current in seen:
                return RedirectEntry(source=start.title, target=chain[-1], broken=True, reason="cycle")
            if not target.is_redirect:
                return RedirectEntry(source=start.title, target=current, fragment=fragment)
            if hops >= self.max_redirect_hops:
                return RedirectEntry(source=start.title, target=current, broken=True, reason="too-long")
            seen.add(current)
            chain.append(current)
            fragment = fragment or target.redirect_fragment
            current = target.redirect
            hops += 1

    # ── lookup ──────────────────────────────────────────────────────────────

    def get(self, title: str) -> Optional[Page]:
        return self.pages.get(title)

    def lookup(self, title: str) -> Resolution:
        """Classify *title* (already normalized) following the redirect table."""
        entry = self.redirects.get(title)
        if entry is not None:
            if entry.broken:
                return Resolution(LinkStatus.BROKEN_REDIRECT, title)
            return Resolution(LinkStatus.INTERNAL, entry.target, entry.fragment)
        if title in self.pages:
            return Resolution(LinkStatus.INTERNAL, title)
        return Resolution(LinkStatus.MISSING, title)

    def resolve_page(self, title: str) -> Optional[Page]:
        """The non-redirect page *title* ends up at, or None if missing or broken."""
        resolution = self.lookup(title)
        if resolution.status != LinkStatus.INTERNAL:
            return None
        return self.pages.get(resolution.title)

    # ── categories ──────────────────────────────────────────────────────────

    def merge_categories(self, memberships: Iterable[CategoryMembership]) -> None:
        """Single-writer merge of category memberships, in sorted title order."""
        for m in sorted(memberships, key=lambda m: (m.title, m.category)):
            members = self.categories.setdefault(m.category, {})
            if m.title not in members:
                members[m.title] = m

    def category_names(self) -> list[str]:
        names = set(self.categories)
        names.update(split_namespace(t)[1] for t, p in self.pages.items()
                     if p.namespace == "Category" and not p.is_redirect)
        return sorted(names)

    def category_members(self, name: str) -> list[CategoryMembership]:
        members = self.categories.get(name, {})
        return sorted(members.values(), key=lambda m: ((m.sort_key or page_name(m.title)).lower(), m.title))


# -----------------------------------------------------------------------------
