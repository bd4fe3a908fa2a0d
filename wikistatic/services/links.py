#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Link resolution
===============
Walks an expanded page AST and fills in ``href`` / ``status`` on every link,
redirect and marker node, classifying each reference as

    internal         target page exists (redirects followed)
    missing          target page does not exist (red link, kept and flagged)
    broken-redirect  target is a redirect whose chain is cyclic, too long or dangling
    interwiki        known prefix, rewritten through the interwiki URL pattern
    external         URL with an allowed scheme
    invalid          anything else (rendered as plain text)

It also returns the page's category memberships; merging them into the
corpus index is left to the single writer in the pipeline.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from urllib.parse import quote, urlsplit

from wikistatic.core.config import Settings
from wikistatic.schemas.nodes import (
    Category,
    Document,
    ExtLink,
    Link,
    LinkStatus,
    Marker,
    Redirect,
    iter_nodes,
)
from wikistatic.schemas.pages import CategoryMembership, LinkRecord, PageWarning
from wikistatic.services.corpus import CorpusIndex
from wikistatic.services.titles import TitleParts, anchor_id, href_for_title, parse_title

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

ALLOWED_SCHEMES = frozenset({
    "http", "https", "ftp", "ftps", "mailto", "irc", "ircs", "news",
    "gopher", "svn", "git", "sftp", "ssh",
})

_URL_SAFE = "/:()!,*-._~"


@dataclass
class ResolvedLinks:
    links: list[LinkRecord] = field(default_factory=list)
    categories: list[CategoryMembership] = field(default_factory=list)
    warnings: list[PageWarning] = field(default_factory=list)


def media_href(name: str, base_url: str = "") -> str:
    return f"{base_url}/media/{quote(name.replace(' ', '_'), safe=_URL_SAFE)}"


def valid_url(url: str) -> bool:
    if url.startswith("//"):
        return len(url) > 2
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        return False
    return bool(parts.netloc or parts.path)


# -----------------------------------------------------------------------------

class LinkResolver:

    def __init__(self, index: CorpusIndex, settings: Settings):
        self.index = index
        self.base_url = settings.base_url
        self.interwiki = dict(settings.interwiki)

    def resolve(self, title: str, document: Document) -> ResolvedLinks:
        """Annotate every reference in *document* (in place) and collect link records."""
        records: dict[tuple[str, LinkStatus], LinkRecord] = {}
        categories: dict[str, CategoryMembership] = {}
        warnings: dict[tuple[str, str], PageWarning] = {}

        def warn(kind: str, message: str) -> None:
            if (kind, message) not in warnings:
                log.warning("%s: %s: %s", title, kind, message)
            warnings.setdefault((kind, message), PageWarning(page=title, kind=kind, message=message))

        def record(target: str, status: LinkStatus) -> None:
            records.setdefault((target, status), LinkRecord(source=title, target=target, status=status))

        for node in iter_nodes(document.children):
            if isinstance(node, Link):
                self._link(node, title, record, warn)
            elif isinstance(node, ExtLink):
                if valid_url(node.url):
                    node.status = LinkStatus.EXTERNAL
                    record(node.url, LinkStatus.EXTERNAL)
                else:
                    node.status = LinkStatus.INVALID
                    warn("invalid-url", f"rejected URL {node.url!r}")
            elif isinstance(node, Category):
                categories.setdefault(node.name, CategoryMembership(
                    category=node.name, title=title, sort_key=node.sort_key,
                ))
            elif isinstance(node, Redirect):
                self._redirect(node, record)
            elif isinstance(node, Marker):
                node.href = href_for_title(node.title, self.base_url)

        return ResolvedLinks(
            links=sorted(records.values(), key=lambda r: (r.target, r.status.value)),
            categories=[categories[name] for name in sorted(categories)],
            warnings=list(warnings.values()),
        )

    # ── node kinds ──────────────────────────────────────────────────────────

    def _interwiki_href(self, parts: TitleParts) -> str:
        pattern = self.interwiki[parts.interwiki]
        href = pattern.replace("$1", quote(parts.text.replace(" ", "_"), safe=_URL_SAFE))
        if parts.fragment:
            href += "#" + quote(parts.fragment.replace(" ", "_"), safe=_URL_SAFE)
        return href

    def _link(self, node: Link, source: str, record, warn) -> None:
        if node.target_nodes is not None:
            node.status = LinkStatus.INVALID
            return
        parts = parse_title(node.target, self.interwiki)

        if parts.interwiki:
            node.href = self._interwiki_href(parts)
            node.status = LinkStatus.INTERWIKI
            node.title = parts.full
            record(parts.full, LinkStatus.INTERWIKI)
            return

        if not parts.text:
            if parts.fragment:
                node.href = "#" + anchor_id(parts.fragment)
                node.status = LinkStatus.INTERNAL
                node.title = source
                node.fragment = parts.fragment
            else:
                node.status = LinkStatus.INVALID
            return

        full = parts.full
        if parts.namespace == "File" and not node.target.lstrip().startswith(":"):
            node.href = media_href(parts.text, self.base_url)
            node.status = LinkStatus.INTERNAL
            node.title = full
            record(full, LinkStatus.INTERNAL)
            return

        resolution = self.index.lookup(full)
        status = resolution.status
        if (status == LinkStatus.MISSING and parts.namespace == "Category"
                and parts.text in self.index.known_categories):
            status = LinkStatus.INTERNAL

        fragment = parts.fragment or resolution.fragment
        node.title = resolution.title
        node.fragment = fragment
        node.status = status
        node.href = href_for_title(resolution.title, self.base_url, fragment)
        record(resolution.title, status)
        if status == LinkStatus.MISSING:
            warn("missing-link", f"link target {full!r} does not exist")

    def _redirect(self, node: Redirect, record) -> None:
        parts = parse_title(node.target, self.interwiki)
        if parts.interwiki:
            node.href = self._interwiki_href(parts)
            node.status = LinkStatus.INTERWIKI
            return
        if not parts.text:
            node.status = LinkStatus.INVALID
            return
        resolution = self.index.lookup(parts.full)
        node.status = resolution.status
        node.href = href_for_title(resolution.title, self.base_url,
                                   parts.fragment or resolution.fragment)
        record(resolution.title, resolution.status)


# -----------------------------------------------------------------------------

def resolve_links(title: str, document: Document, index: CorpusIndex, settings: Settings) -> ResolvedLinks:
    return LinkResolver(index, settings).resolve(title, document)


# -----------------------------------------------------------------------------
