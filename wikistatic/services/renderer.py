#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
HTML renderer
=============
Walks a resolved, expanded page AST and emits the page body as HTML.

  - headings get unique anchor ids and feed the table of contents
  - links use the href and status filled in by the link resolver
  - <syntaxhighlight>/<source> bodies are highlighted with Pygments
  - HTML tag attributes are sanitised (no event handlers, no script URLs)

Rendering is a pure function of the AST and the settings: the same tree
always yields byte-identical output.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import re
from dataclasses import dataclass, field

from markupsafe import escape
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.util import ClassNotFound

from wikistatic.core.config import Settings
from wikistatic.schemas.nodes import (
    Bold,
    Category,
    CodeBlock,
    Document,
    ExtLink,
    Heading,
    HorizontalRule,
    HtmlTag,
    Italic,
    Link,
    LinkStatus,
    ListBlock,
    ListItem,
    MagicWord,
    Marker,
    Node,
    Paragraph,
    Parameter,
    Preformatted,
    Raw,
    Redirect,
    Table,
    Template,
    Text,
    iter_nodes,
)
from wikistatic.schemas.pages import TocEntry
from wikistatic.services.links import media_href, valid_url
from wikistatic.services.parser import is_blank
from wikistatic.services.titles import anchor_id, href_for_title, parse_title
from wikistatic.services.tokenizer import VOID_TAGS
from wikistatic.services.wikitext import marker_message, plain_text, to_wikitext


# -----------------------------------------------------------------------------

_EXTERNAL_ATTRS = ' target="_blank" rel="noopener noreferrer"'

_ATTR_RE = re.compile(
    r"""([A-Za-z_:][-\w:.]*)(?:\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+)))?"""
)
_UNSAFE_VALUE_RE = re.compile(r"javascript\s*:|vbscript\s*:|expression\s*\(", re.IGNORECASE)

# Groups: (1=W,2=H) | (3=Wonly+x) | (4=Honly) | (5=Wonly)
_SIZE_RE = re.compile(r"^(?:(\d+)x(\d+)|(\d+)x|x(\d+)|(\d+))px$", re.IGNORECASE)
_THUMB_OPTIONS = frozenset({"thumb", "thumbnail", "frame", "framed"})
_ALIGN_OPTIONS = ("left", "right", "center", "none")


def _esc(text: str) -> str:
    return str(escape(text))


# -----------------------------------------------------------------------------
# Pygments
# -----------------------------------------------------------------------------

def _highlight_code(code: str, lang: str) -> str:
    """Highlight *code* using Pygments.  Falls back to plain text on unknown language."""
    try:
        lexer = get_lexer_by_name(lang.strip(), stripall=True) if lang.strip() else TextLexer()
    except ClassNotFound:
        lexer = TextLexer()
    formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
    return highlight(code, lexer, formatter)


def pygments_css() -> str:
    return HtmlFormatter(style="friendly", cssclass="highlight").get_style_defs(".highlight")


# -----------------------------------------------------------------------------
# Attributes
# -----------------------------------------------------------------------------

def sanitize_attrs(raw: str) -> list[tuple[str, str]]:
    """Parse an attribute string, dropping event handlers and script-bearing values."""
    pairs: list[tuple[str, str]] = []
    seen: set[str] = set()
    for m in _ATTR_RE.finditer(raw or ""):
        name = m.group(1).lower()
        value = next((g for g in m.group(2, 3, 4) if g is not None), "")
        if name.startswith("on") or name in seen:
            continue
        if _UNSAFE_VALUE_RE.search(value):
            continue
        seen.add(name)
        pairs.append((name, value))
    return pairs


def format_attrs(pairs: list[tuple[str, str]]) -> str:
    return "".join(f' {name}="{_esc(value)}"' for name, value in pairs)


def _node_attrs(nodes: list[Node]) -> list[tuple[str, str]]:
    return sanitize_attrs(plain_text(nodes))


# -----------------------------------------------------------------------------
# Table of contents
# -----------------------------------------------------------------------------

def toc_html(entries: list[TocEntry]) -> str:
    """Nested ``<div class="toc">`` block; nesting follows the section numbers."""
    lines = ['<div class="toc" id="toc">',
             '<div class="toc-title">Contents</div>',
             '<ol class="toc-list">']
    prev = 0
    for entry in entries:
        depth = entry.number.count(".") + 1
        if prev:
            if depth > prev:
                lines.append("<ol>" * (depth - prev))
            else:
                lines.append("</li>" + "</ol></li>" * (prev - depth))
        lines.append(
            f'<li class="toclevel-{depth}"><a href="#{entry.anchor}">'
            f'<span class="tocnumber">{entry.number}</span> '
            f'<span class="toctext">{_esc(entry.text)}</span></a>'
        )
        prev = depth
    if prev:
        lines.append("</li>" + "</ol></li>" * (prev - 1))
    lines.append("</ol>")
    lines.append("</div>")
    return "\n".join(lines)


# -----------------------------------------------------------------------------

@dataclass
class RenderedBody:
    html: str
    toc: list[TocEntry] = field(default_factory=list)
    magic: set[str] = field(default_factory=set)


class HtmlRenderer:

    def __init__(self, settings: Settings, title: str = ""):
        self.settings = settings
        self.title = title
        self.base_url = settings.base_url
        self.anchors: dict[int, str] = {}
        self.toc: list[TocEntry] = []
        self.show_toc = False
        self.toc_emitted = False
        self.autonumber = 0

    # ── entry point ─────────────────────────────────────────────────────────

    def render(self, document: Document) -> RenderedBody:
        magic = {n.name for n in iter_nodes(document.children) if isinstance(n, MagicWord)}
        self._prepare_headings(document)
        self.show_toc = bool(self.toc) and "NOTOC" not in magic and (
            "TOC" in magic or "FORCETOC" in magic
            or len(self.toc) >= self.settings.toc_min_headings
        )
        body = []
        for node in document.children:
            if (isinstance(node, Heading) and self.show_toc and not self.toc_emitted
                    and "TOC" not in magic):
                body.append(self._toc())
            body.append(self.node(node))
        html = "".join(body)
        if self.show_toc and not self.toc_emitted:
            html = self._toc() + html
        return RenderedBody(html=html, toc=self.toc, magic=magic)

    def _prepare_headings(self, document: Document) -> None:
        used: dict[str, int] = {}
        levels: list[int] = []
        counters: list[int] = []
        for node in iter_nodes(document.children):
            if not isinstance(node, Heading):
                continue
            text = plain_text(node.children).strip()
            base = anchor_id(text)
            count = used.get(base, 0)
            used[base] = count + 1
            anchor = base if count == 0 else f"{base}-{count}"
            self.anchors[id(node)] = anchor

            last = None
            while levels and levels[-1] > node.level:
                levels.pop()
                last = counters.pop()
            if levels and levels[-1] == node.level:
                counters[-1] += 1
            else:
                levels.append(node.level)
                counters.append(last + 1 if last is not None else 1)
            number = ".".join(str(c) for c in counters)
            self.toc.append(TocEntry(level=node.level, number=number, anchor=anchor, text=text))

    def _toc(self) -> str:
        self.toc_emitted = True
        return toc_html(self.toc) + "\n"

    # ── dispatch ────────────────────────────────────────────────────────────

    def nodes(self, nodes: list[Node]) -> str:
        return "".join(self.node(n) for n in nodes)

    def node(self, node: Node) -> str:
        if isinstance(node, Text):
            return _esc(node.text)
        if isinstance(node, Raw):
            return _esc(node.text)
        if isinstance(node, Bold):
            return f"<b>{self.nodes(node.children)}</b>"
        if isinstance(node, Italic):
            return f"<i>{self.nodes(node.children)}</i>"
        if isinstance(node, Link):
            return self._link(node)
        if isinstance(node, ExtLink):
            return self._extlink(node)
        if isinstance(node, HtmlTag):
            return self._tag(node)
        if isinstance(node, Marker):
            return self._marker(node)
        if isinstance(node, MagicWord):
            if node.name == "TOC" and self.show_toc and not self.toc_emitted:
                return self._toc()
            return ""
        if isinstance(node, Category):
            return ""
        if isinstance(node, (Template, Parameter)):
            return _esc(to_wikitext([node]))
        if isinstance(node, CodeBlock):
            if node.tag == "pre":
                return f"<pre>{_esc(node.code)}</pre>\n"
            return _highlight_code(node.code, node.lang)
        if isinstance(node, Heading):
            anchor = self.anchors.get(id(node)) or anchor_id(plain_text(node.children))
            inner = self.nodes(node.children).strip()
            return f'<h{node.level} id="{anchor}">{inner}</h{node.level}>\n'
        if isinstance(node, Paragraph):
            if is_blank(node.children):
                return ""
            return f"<p>{self.nodes(node.children).strip()}</p>\n"
        if isinstance(node, Preformatted):
            return f"<pre>{self.nodes(node.children)}</pre>\n"
        if isinstance(node, HorizontalRule):
            return "<hr />\n"
        if isinstance(node, ListBlock):
            return self._list(node)
        if isinstance(node, ListItem):
            return f"<li>{self.nodes(node.children).strip()}</li>\n"
        if isinstance(node, Table):
            return self._table(node)
        if isinstance(node, Redirect):
            return self._redirect(node)
        return ""

    # ── links ───────────────────────────────────────────────────────────────

    def _link(self, node: Link) -> str:
        if node.target_nodes is None and not node.target.lstrip().startswith(":"):
            if node.options or parse_title(node.target).namespace == "File":
                return self._image(node)

        label = self.nodes(node.children) + _esc(node.trail)
        if not node.href or node.status in (None, LinkStatus.INVALID):
            return label

        title = _esc(node.title)
        href = _esc(node.href)
        if node.status == LinkStatus.INTERNAL:
            return f'<a href="{href}" class="wikilink" title="{title}">{label}</a>'
        if node.status == LinkStatus.MISSING:
            return f'<a href="{href}" class="new" title="{title} (page does not exist)">{label}</a>'
        if node.status == LinkStatus.BROKEN_REDIRECT:
            return f'<a href="{href}" class="new broken-redirect" title="{title} (broken redirect)">{label}</a>'
        return f'<a href="{href}" class="extiw" title="{title}"{_EXTERNAL_ATTRS}>{label}</a>'

    def _extlink(self, node: ExtLink) -> str:
        ok = node.status == LinkStatus.EXTERNAL or (node.status is None and valid_url(node.url))
        label = self.nodes(node.children)
        if not ok:
            if not node.bracketed:
                return _esc(node.url)
            return "[" + _esc(node.url) + (" " + label if label else "") + "]"
        href = _esc(node.url)
        if node.bracketed and label:
            cls = "external text"
        elif node.bracketed:
            self.autonumber += 1
            cls, label = "external autonumber", f"[{self.autonumber}]"
        else:
            cls, label = "external free", href
        return f'<a href="{href}" class="{cls}"{_EXTERNAL_ATTRS}>{label}</a>'

    def _image(self, node: Link) -> str:
        """[[File:name.png]], [[File:name.png|thumb|200px|Caption]]."""
        name = parse_title(node.target).text
        src = _esc(node.href or media_href(name, self.base_url))
        opts = {o.strip().lower() for o in node.options}

        width = height = ""
        alt = ""
        for option in node.options:
            sm = _SIZE_RE.match(option.strip())
            if sm and not (width or height):
                width = sm.group(1) or sm.group(3) or sm.group(5) or ""
                height = sm.group(2) or sm.group(4) or ""
            elif option.strip().lower().startswith("alt="):
                alt = option.split("=", 1)[1].strip()

        caption = self.nodes(node.children).strip()
        alt = _esc(alt or plain_text(node.children).strip() or name)
        thumb = bool(opts & _THUMB_OPTIONS)
        align = next((o for o in _ALIGN_OPTIONS if o in opts), "")
        if align == "none":
            align = ""
        align_class = f"img-{align}" if align else ("img-right" if thumb else "")
        size_attrs = (f' width="{width}"' if width else "") + (f' height="{height}"' if height else "")
        img_class = "wiki-thumb" if thumb else "wiki-img"

        if thumb:
            img_tag = f'<img src="{src}" alt="{alt}" class="{img_class}"{size_attrs} loading="lazy" />'
            cap_html = f"<figcaption>{caption}</figcaption>" if caption else ""
            return f'<figure class="wiki-figure {align_class}">{img_tag}{cap_html}</figure>'
        classes = f"{img_class} {align_class}".strip()
        title_attr = f' title="{_esc(plain_text(node.children).strip())}"' if caption else ""
        return f'<img src="{src}" alt="{alt}" class="{classes}"{size_attrs}{title_attr} loading="lazy" />'

    def _marker(self, node: Marker) -> str:
        href = _esc(node.href or href_for_title(node.title, self.base_url))
        title = _esc(node.title)
        if node.reason == "missing-template":
            return f'<a href="{href}" class="new template-missing" title="{title} (page does not exist)">{title}</a>'
        return (f'<span class="error {node.reason}">{_esc(marker_message(node))}: '
                f'<a href="{href}" class="wikilink">{title}</a></span>')

    def _redirect(self, node: Redirect) -> str:
        target = _esc(node.target)
        if node.status == LinkStatus.INTERNAL:
            link = f'<a href="{_esc(node.href)}" class="wikilink">{target}</a>'
        elif node.status == LinkStatus.INTERWIKI:
            link = f'<a href="{_esc(node.href)}" class="extiw"{_EXTERNAL_ATTRS}>{target}</a>'
        elif node.href:
            link = f'<a href="{_esc(node.href)}" class="new broken-redirect">{target}</a>'
        else:
            link = target
        if node.status in (LinkStatus.INTERNAL, LinkStatus.INTERWIKI):
            return f'<div class="redirect-msg">Redirect to: {link}</div>\n'
        return f'<div class="redirect-msg broken-redirect">Broken redirect to: {link}</div>\n'

    # ── structure ───────────────────────────────────────────────────────────

    def _tag(self, node: HtmlTag) -> str:
        attrs = format_attrs(_node_attrs(node.attrs))
        if node.self_closing or node.name in VOID_TAGS:
            return f"<{node.name}{attrs} />"
        return f"<{node.name}{attrs}>{self.nodes(node.children)}</{node.name}>"

    def _list(self, node: ListBlock) -> str:
        out = [f"<{node.style}>\n"]
        for item in node.items:
            if not isinstance(item, ListItem):
                out.append(self.node(item))
                continue
            tag = "li"
            if node.style == "dl":
                tag = "dt" if item.marker.endswith(";") else "dd"
            out.append(f"<{tag}>{self.nodes(item.children).strip()}</{tag}>\n")
        out.append(f"</{node.style}>\n")
        return "".join(out)

    def _table(self, node: Table) -> str:
        attrs = _node_attrs(node.attrs)
        if not any(name == "class" for name, _ in attrs):
            attrs.insert(0, ("class", "wikitable"))

        before: list[str] = []
        rows: list[str] = []
        for row in node.rows:
            cells: list[str] = []
            for cell in row.cells:
                content = self.nodes(cell.children).strip()
                if cell.bare:
                    if content:
                        before.append(content + "\n")
                    continue
                tag = "th" if cell.header else "td"
                cells.append(f"<{tag}{format_attrs(_node_attrs(cell.attrs))}>{content}</{tag}>")
            if cells:
                rows.append(f"<tr{format_attrs(_node_attrs(row.attrs))}>" + "".join(cells) + "</tr>\n")

        out = ["".join(before), f"<table{format_attrs(attrs)}>\n"]
        if node.caption is not None:
            out.append(f"<caption>{self.nodes(node.caption).strip()}</caption>\n")
        if rows:
            out.append("<tbody>\n" + "".join(rows) + "</tbody>\n")
        out.append("</table>\n")
        return "".join(out)


# -----------------------------------------------------------------------------

def render_document(document: Document, settings: Settings, title: str = "") -> RenderedBody:
    """Render a resolved page AST to its HTML body plus TOC side structure."""
    return HtmlRenderer(settings, title).render(document)


# -----------------------------------------------------------------------------
