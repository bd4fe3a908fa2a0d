#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Build pipeline
==============
    sources ─► parse (pool) ─► CorpusIndex ─► expand/resolve/render (pool)
            ─► merge categories (single writer) ─► category + index pages

Parsing and per-page rendering are independent per page and run on a worker
pool; building the index is the barrier between the two.  The corpus index
is shared read-only with the render workers, and category memberships come
back with each page's result to be merged in one place, in sorted order.

A page that fails unexpectedly is logged, rendered as an error box and
counted in the report; the rest of the corpus is unaffected.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import os
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence, TypeVar

from wikistatic.core.config import Settings
from wikistatic.schemas.nodes import Document, Raw
from wikistatic.schemas.pages import (
    BuildReport,
    Page,
    PageResult,
    PageWarning,
    RenderedDocument,
    SourcePage,
)
from wikistatic.services.corpus import CorpusIndex, build_page
from wikistatic.services.dump import load_corpus
from wikistatic.services.expander import expand_page
from wikistatic.services.links import resolve_links
from wikistatic.services.renderer import RenderedBody, render_document
from wikistatic.services.site import SiteBuilder
from wikistatic.services.titles import href_for_title, normalize_title, output_path, split_namespace
from wikistatic.services.writer import copy_static, prepare_output, write_documents

log = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

FAILURE_HTML = '<div class="error page-failure">This page could not be rendered.</div>\n'


# -----------------------------------------------------------------------------
# Worker pool
# -----------------------------------------------------------------------------

def worker_count(settings: Settings) -> int:
    return settings.workers or os.cpu_count() or 1


def run_parallel(
    fn: Callable[[T], R],
    items: Sequence[T],
    settings: Settings,
    initializer: Optional[Callable] = None,
    initargs: tuple = (),
) -> list[R]:
    """Map *fn* over *items* on the configured pool; results keep input order."""
    workers = min(worker_count(settings), max(len(items), 1))
    if workers <= 1:
        if initializer is not None:
            initializer(*initargs)
        return [fn(item) for item in items]

    pool_cls = ThreadPoolExecutor if settings.worker_backend == "thread" else ProcessPoolExecutor
    chunksize = max(1, len(items) // (workers * 4))
    log.debug("Running %d tasks on %d %s workers", len(items), workers, settings.worker_backend)
    with pool_cls(max_workers=workers, initializer=initializer, initargs=initargs) as pool:
        return list(pool.map(fn, items, chunksize=chunksize))


# -----------------------------------------------------------------------------
# Stage 1: parse
# -----------------------------------------------------------------------------

def parse_source(source: SourcePage, interwiki: tuple[str, ...] = ()) -> Page:
    try:
        return build_page(source, interwiki)
    except Exception:
        log.exception("Failed to parse %r", source.title)
        title = normalize_title(source.title)
        return Page(
            title=title,
            namespace=split_namespace(title)[0],
            source=source.text,
            ast=Document(children=[Raw(text=source.text)]),
            warnings=[PageWarning(page=title, kind="page-failure", message="page could not be parsed")],
        )


# -----------------------------------------------------------------------------
# Stage 2: expand, resolve, render
# -----------------------------------------------------------------------------

def process_page(title: str, index: CorpusIndex, settings: Settings, site: SiteBuilder) -> PageResult:
    """Expand, resolve and render one page of the index."""
    page = index.pages[title]
    result = PageResult(title=title, warnings=list(page.warnings))
    is_category = page.namespace == "Category"
    try:
        entry = index.redirects.get(title)
        if entry is not None and not entry.broken:
            href = href_for_title(entry.target, settings.base_url, entry.fragment)
            result.documents.append(site.redirect(title, entry.target, href))
            return result

        document, warnings = expand_page(page, index, settings)
        resolved = resolve_links(title, document, index, settings)
        body = render_document(document, settings, title)

        result.warnings.extend(warnings)
        result.warnings.extend(resolved.warnings)
        result.links = resolved.links
        result.categories = resolved.categories
        if is_category:
            result.category_body = body.html
        else:
            result.documents.append(site.page(title, body, resolved.categories))
        if settings.write_ast_json:
            result.documents.append(RenderedDocument(
                path=output_path(title, ".json"),
                content=document.model_dump_json(indent=2),
                title=title,
                kind="json",
            ))
    except Exception as exc:
        log.exception("Failed to render %r", title)
        result.failed = True
        result.documents = []
        result.warnings.append(PageWarning(page=title, kind="page-failure", message=str(exc) or type(exc).__name__))
        if is_category:
            result.category_body = FAILURE_HTML
        else:
            result.documents.append(site.page(title, RenderedBody(html=FAILURE_HTML), []))
    return result


_worker: dict = {}


def _init_render_worker(index: CorpusIndex, settings: Settings) -> None:
    _worker["index"] = index
    _worker["settings"] = settings
    _worker["site"] = SiteBuilder(settings, index)


def _render_worker(title: str) -> PageResult:
    return process_page(title, _worker["index"], _worker["settings"], _worker["site"])


# -----------------------------------------------------------------------------
# Whole build
# -----------------------------------------------------------------------------

def _category_documents(
    index: CorpusIndex,
    results: Iterable[PageResult],
    site: SiteBuilder,
) -> list[RenderedDocument]:
    bodies = {r.title: r.category_body for r in results if r.category_body is not None}
    names = set(index.category_names())
    names.update(split_namespace(t)[1] for t in bodies)
    documents = []
    for name in sorted(names):
        title = f"Category:{name}"
        entry = index.redirects.get(title)
        if entry is not None and not entry.broken:
            continue
        documents.append(site.category(name, bodies.get(title)))
    return documents


def build_site(
    sources: Sequence[SourcePage],
    settings: Settings,
) -> tuple[list[RenderedDocument], BuildReport, CorpusIndex]:
    """Run the whole conversion in memory; nothing is written to disk."""
    interwiki = tuple(settings.interwiki)
    pages = run_parallel(partial(parse_source, interwiki=interwiki), list(sources), settings)
    log.info("Parsed %d pages", len(pages))

    index = CorpusIndex(pages, max_redirect_hops=settings.max_redirect_hops)
    titles = sorted(index.pages)
    results = run_parallel(
        _render_worker, titles, settings,
        initializer=_init_render_worker, initargs=(index, settings),
    )

    index.merge_categories(m for r in results for m in r.categories)

    site = SiteBuilder(settings, index)
    documents = [doc for r in results for doc in r.documents]
    category_docs = _category_documents(index, results, site)
    documents.extend(category_docs)
    documents.append(site.site_index())
    documents.append(site.categories_index())

    warnings = list(index.warnings)
    for r in results:
        warnings.extend(r.warnings)
    report = BuildReport(
        pages=sum(1 for r in results if not index.pages[r.title].is_redirect),
        redirects=len(index.redirects),
        categories=len(category_docs),
        documents=len(documents),
        failed=[r.title for r in results if r.failed],
        warnings=warnings,
        links=[link for r in results for link in r.links],
    )
    return documents, report, index


def run_build(settings: Settings, clean: bool = False, dump: Optional[Path] = None) -> BuildReport:
    """Load the dump, build every document and write the output tree."""
    sources = load_corpus(dump or settings.source_dir, settings.source_extension)
    documents, report, _ = build_site(sources, settings)

    prepare_output(settings.output_dir, clean=clean)
    write_documents(settings.output_dir, documents)
    copy_static(settings.output_dir, settings.static_dir)

    log.info("Wrote %d documents to %s", len(documents), settings.output_dir)
    log.info("Build finished: %s", report.summary())
    for title in report.failed:
        log.error("Page failed: %s", title)
    return report


# -----------------------------------------------------------------------------
