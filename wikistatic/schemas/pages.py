#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Pydantic v2 schemas for pages, link records, rendered output and the build report.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from collections import Counter
from typing import Literal, Optional

from pydantic import BaseModel, Field

from wikistatic.schemas.nodes import Document, LinkStatus


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Warnings
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

WarningKind = Literal[
    "parse",
    "missing-template",
    "template-loop",
    "depth-exceeded",
    "expansion-limit",
    "unsupported-function",
    "missing-link",
    "broken-redirect",
    "redirect-cycle",
    "invalid-url",
    "page-failure",
]


class PageWarning(BaseModel):
    page: str
    kind: WarningKind
    message: str


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Pages
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class SourcePage(BaseModel):
    """One (title, raw text) pair as supplied by a dump loader."""
    title: str
    text: str


# -----------------------------------------------------------------------------

class Page(BaseModel):
    title: str                                  # normalized, namespace-qualified
    namespace: str                              # canonical namespace name, "" = main
    source: str
    ast: Document
    transclusion_ast: Optional[Document] = None  # None → same as ast
    redirect: Optional[str] = None              # normalized target title
    redirect_fragment: str = ""
    links: list[str] = Field(default_factory=list)        # sorted outbound titles
    categories: list[str] = Field(default_factory=list)   # sorted category names
    warnings: list[PageWarning] = Field(default_factory=list)

    @property
    def is_redirect(self) -> bool:
        return self.redirect is not None

    def body_for_transclusion(self) -> Document:
        return self.transclusion_ast if self.transclusion_ast is not None else self.ast


# -----------------------------------------------------------------------------

class RedirectEntry(BaseModel):
    source: str
    target: Optional[str]          # canonical page, or last valid title before a break
    fragment: str = ""
    broken: bool = False
    reason: str = ""               # "cycle" | "too-long" | "missing"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Resolution / rendering
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class LinkRecord(BaseModel):
    source: str
    target: str                   # canonical title or external URL
    status: LinkStatus


class CategoryMembership(BaseModel):
    category: str                 # category name without the namespace prefix
    title: str
    sort_key: str = ""


class TocEntry(BaseModel):
    level: int
    number: str                   # "1", "1.2", ...
    anchor: str
    text: str


class RenderedDocument(BaseModel):
    path: str                     # posix path relative to the output root
    content: str
    title: str = ""
    kind: Literal["page", "redirect", "category", "index", "json"] = "page"


# -----------------------------------------------------------------------------

class PageResult(BaseModel):
    title: str
    documents: list[RenderedDocument] = Field(default_factory=list)
    links: list[LinkRecord] = Field(default_factory=list)
    categories: list[CategoryMembership] = Field(default_factory=list)
    warnings: list[PageWarning] = Field(default_factory=list)
    category_body: Optional[str] = None     # Category: page body, rendered into its listing
    failed: bool = False


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Build report
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class BuildReport(BaseModel):
    pages: int = 0
    redirects: int = 0
    categories: int = 0
    documents: int = 0
    failed: list[str] = Field(default_factory=list)
    warnings: list[PageWarning] = Field(default_factory=list)
    links: list[LinkRecord] = Field(default_factory=list)

    def warning_counts(self) -> dict[str, int]:
        return dict(sorted(Counter(w.kind for w in self.warnings).items()))

    def link_counts(self) -> dict[str, int]:
        return dict(sorted(Counter(r.status.value for r in self.links).items()))

    def summary(self) -> str:
        counts = ", ".join(f"{k}={v}" for k, v in self.warning_counts().items()) or "none"
        links = ", ".join(f"{k}={v}" for k, v in self.link_counts().items()) or "none"
        return (
            f"{self.pages} pages, {self.redirects} redirects, {self.categories} categories, "
            f"{self.documents} documents; {len(self.failed)} failed; warnings: {counts}"
            f"; links: {links}"
        )


# -----------------------------------------------------------------------------
