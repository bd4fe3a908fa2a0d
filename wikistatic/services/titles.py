#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Titles
======
MediaWiki title normalization and the title → output path mapping.

    "help:foo_bar#Baz"   → namespace "Help", text "Foo bar", fragment "Baz"
    "Template:Infobox"   → Template/Infobox.html
    "Lua/Functions"      → wiki/Lua/Functions.html
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Iterable
from urllib.parse import quote


# -----------------------------------------------------------------------------

MAIN_DIRECTORY = "wiki"

NAMESPACES: tuple[str, ...] = (
    "Talk",
    "User", "User talk",
    "Project", "Project talk",
    "File", "File talk",
    "MediaWiki", "MediaWiki talk",
    "Template", "Template talk",
    "Help", "Help talk",
    "Category", "Category talk",
    "Special",
)

_NAMESPACE_LOOKUP: dict[str, str] = {ns.lower(): ns for ns in NAMESPACES}
_NAMESPACE_LOOKUP.update({
    "image": "File",
    "image talk": "File talk",
})

_WS_RE = re.compile(r"[\s_]+")
_UNSAFE_SEGMENT_RE = re.compile(r'[\\?*"<>|\x00-\x1f]')


# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class TitleParts:
    namespace: str = ""
    text: str = ""
    fragment: str = ""
    interwiki: str = ""

    @property
    def full(self) -> str:
        if self.interwiki:
            return f"{self.interwiki}:{self.text}"
        return f"{self.namespace}:{self.text}" if self.namespace else self.text

    @property
    def is_valid(self) -> bool:
        return bool(self.text) or bool(self.interwiki)


# -----------------------------------------------------------------------------

def _clean(text: str) -> str:
    return _WS_RE.sub(" ", html.unescape(text)).strip()


def _ucfirst(text: str) -> str:
    return text[:1].upper() + text[1:]


def canonical_namespace(name: str) -> str | None:
    """Return the canonical spelling of namespace *name*, or None if unknown."""
    return _NAMESPACE_LOOKUP.get(_clean(name).lower())


def parse_title(
    raw: str,
    interwiki: Iterable[str] = (),
    default_namespace: str = "",
) -> TitleParts:
    """Split *raw* into namespace / text / fragment per MediaWiki title rules.

    A leading colon forces the main namespace (``[[:Category:Foo]]`` links to
    the category page rather than categorising).
    """
    text = raw.strip()
    if text.startswith(":"):
        text = text[1:]
        default_namespace = ""

    fragment = ""
    if "#" in text:
        text, fragment = text.split("#", 1)
        fragment = _clean(fragment)

    text = _clean(text)
    namespace = default_namespace

    if ":" in text:
        prefix, rest = text.split(":", 1)
        ns = canonical_namespace(prefix)
        if ns is not None:
            namespace, text = ns, _clean(rest)
        elif prefix.strip().lower() in {p.lower() for p in interwiki}:
            return TitleParts(
                text=rest.strip(), fragment=fragment, interwiki=prefix.strip().lower()
            )

    return TitleParts(namespace=namespace, text=_ucfirst(text), fragment=fragment)


def normalize_title(raw: str, default_namespace: str = "") -> str:
    """Return the canonical, namespace-qualified form of *raw* (fragment dropped)."""
    return parse_title(raw, default_namespace=default_namespace).full


def split_namespace(title: str) -> tuple[str, str]:
    """Split an already-normalized title into (namespace, text)."""
    if ":" in title:
        prefix, rest = title.split(":", 1)
        ns = _NAMESPACE_LOOKUP.get(prefix.lower())
        if ns is not None:
            return ns, rest
    return "", title


def page_name(title: str) -> str:
    return split_namespace(title)[1]


def sub_page_name(title: str) -> str:
    return page_name(title).rsplit("/", 1)[-1]


# -----------------------------------------------------------------------------
# Output paths
# -----------------------------------------------------------------------------

def _safe_segment(segment: str) -> str:
    segment = _UNSAFE_SEGMENT_RE.sub("_", segment)
    if segment in ("", ".", ".."):
        return segment.replace(".", "%2E") or "_"
    return segment


def output_path(title: str, suffix: str = ".html") -> str:
    """Deterministic posix path (relative to the output root) for *title*."""
    namespace, text = split_namespace(title)
    directory = MAIN_DIRECTORY if not namespace else namespace.replace(" ", "_")
    segments = [_safe_segment(s) for s in text.replace(" ", "_").split("/")]
    return "/".join([directory, *segments]) + suffix


def href_for_path(path: str, base_url: str = "", fragment: str = "") -> str:
    href = f"{base_url}/{quote(path, safe='/:()!,*-._~')}"
    if fragment:
        href += f"#{anchor_id(fragment)}"
    return href


def href_for_title(title: str, base_url: str = "", fragment: str = "") -> str:
    return href_for_path(output_path(title), base_url, fragment)


# -----------------------------------------------------------------------------
# Anchors (shared by headings and [[Page#Section]] links)
# -----------------------------------------------------------------------------

_STRIP_TAGS_RE = re.compile(r"<[^>]+>")


def anchor_id(text: str) -> str:
    """Convert heading text to a URL-safe anchor ID."""
    text = _STRIP_TAGS_RE.sub("", text)
    text = text.strip().lower()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[\s_]+", "-", text)
    text = re.sub(r"-+", "-", text)
    return text.strip("-") or "section"


# -----------------------------------------------------------------------------
