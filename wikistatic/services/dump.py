#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Dump loading
============
Supplies the pipeline with ``SourcePage(title, text)`` pairs from either

  - a directory tree of ``*.wikitext`` files: the title is the relative path
    without the extension, ``_`` read as a space.  A first directory named
    after a namespace (``Template/Infobox.wikitext``) or a colon in the file
    name (``Template:Infobox.wikitext``) selects that namespace; deeper
    directories are subpages (``Lua/Functions.wikitext`` → ``Lua/Functions``).
  - a MediaWiki XML export (latest revision of every page).

Failing to read the dump at all raises ``CorpusLoadError``.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterator
from urllib.parse import unquote

from wikistatic.core.errors import CorpusLoadError
from wikistatic.schemas.pages import SourcePage
from wikistatic.services.titles import canonical_namespace

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Directory dumps
# -----------------------------------------------------------------------------

def title_for_path(relative: Path) -> str:
    """Page title for a dump file at *relative* (path below the dump root)."""
    parts = [unquote(p) for p in relative.with_suffix("").parts]
    if len(parts) > 1:
        namespace = canonical_namespace(parts[0].replace("_", " "))
        if namespace is not None:
            parts = [f"{namespace}:{parts[1]}", *parts[2:]]
    return "/".join(parts).replace("_", " ")


def _read_text(path: Path) -> str:
    data = path.read_bytes()
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        log.warning("%s is not valid UTF-8; undecodable bytes replaced", path)
        return data.decode("utf-8", errors="replace")


def iter_directory(root: Path, extension: str = ".wikitext") -> Iterator[SourcePage]:
    files = sorted(p for p in root.rglob(f"*{extension}") if p.is_file())
    if not files:
        raise CorpusLoadError(f"no *{extension} files found under {root}")
    for path in files:
        try:
            text = _read_text(path)
        except OSError as exc:
            raise CorpusLoadError(f"cannot read {path}: {exc}") from exc
        yield SourcePage(title=title_for_path(path.relative_to(root)), text=text)


# -----------------------------------------------------------------------------
# MediaWiki XML exports
# -----------------------------------------------------------------------------

def _local(tag: str) -> str:
    """Element name without its XML namespace (export schema versions differ)."""
    return tag.rsplit("}", 1)[-1]


def _child(elem: ET.Element, name: str):
    for child in elem:
        if _local(child.tag) == name:
            return child
    return None


def iter_export(xml_path: Path) -> Iterator[SourcePage]:
    """Yield the latest revision of every page in a MediaWiki XML export."""
    count = 0
    try:
        # iterparse keeps memory flat on large exports
        for _event, elem in ET.iterparse(str(xml_path), events=("end",)):
            if _local(elem.tag) != "page":
                continue
            title_el = _child(elem, "title")
            revisions = [c for c in elem if _local(c.tag) == "revision"]
            if title_el is None or not title_el.text or not revisions:
                elem.clear()
                continue
            text_el = _child(revisions[-1], "text")
            text = (text_el.text or "") if text_el is not None else ""
            count += 1
            yield SourcePage(title=title_el.text.strip(), text=text)
            elem.clear()
    except ET.ParseError as exc:
        raise CorpusLoadError(f"malformed XML export {xml_path}: {exc}") from exc
    except OSError as exc:
        raise CorpusLoadError(f"cannot read {xml_path}: {exc}") from exc
    if count == 0:
        raise CorpusLoadError(f"no pages found in {xml_path}")


# -----------------------------------------------------------------------------

def load_corpus(source: Path, extension: str = ".wikitext") -> list[SourcePage]:
    """Load every page of the dump at *source* (a directory or an ``.xml`` export)."""
    source = Path(source)
    if source.is_dir():
        pages = list(iter_directory(source, extension))
    elif source.is_file() and source.suffix.lower() == ".xml":
        pages = list(iter_export(source))
    elif source.exists():
        raise CorpusLoadError(f"unsupported dump format: {source}")
    else:
        raise CorpusLoadError(f"dump not found: {source}")
    log.info("Loaded %d pages from %s", len(pages), source)
    return pages


# -----------------------------------------------------------------------------
