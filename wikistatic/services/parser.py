#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Wikitext parser
===============
Builds the page AST (``wikistatic.schemas.nodes``) from the token stream.

Parsing happens in two passes over the materialised tokens:

  1. bracket matching: every opener (``[[``, ``{{``, ``{{{``, ``{|``, ``<tag>``,
     heading start) is paired with its closer.  Openers left without a closer
     degrade to literal text, and so never make the parse fail.
  2. recursive descent over index ranges: each construct is parsed strictly
     inside ``[opener + 1, closer)`` so a damaged construct can never swallow
     text beyond its own closer.

Block structure (paragraphs, lists, headings, tables, preformatted lines) is
line oriented; inline structure (quotes, links, templates, tags) is parsed
within a line or within a matched range.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import re
from typing import Optional

from wikistatic.schemas.nodes import (
    BLOCK_KINDS,
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
    ListBlock,
    ListItem,
    MagicWord,
    Node,
    Paragraph,
    Parameter,
    Preformatted,
    Raw,
    Redirect,
    Table,
    TableCell,
    TableRow,
    Template,
    TemplateArg,
    Text,
)
from wikistatic.services.titles import parse_title
from wikistatic.services.tokenizer import Token, TokenKind, tokenize

K = TokenKind


# -----------------------------------------------------------------------------
# Constants
# -----------------------------------------------------------------------------

_REDIRECT_RE = re.compile(
    r"^\s*#REDIRECT\s*:?\s*\[\[([^\[\]|\n]+)(?:\|[^\[\]\n]*)?\]\][ \t]*\n?",
    re.IGNORECASE,
)
_LINK_TRAIL_RE = re.compile(r"[a-z]+")
_INVALID_TARGET_RE = re.compile(r"[<>\[\]{}\n]")
_LANG_ATTR_RE = re.compile(r"""lang\s*=\s*["']?([\w+#.-]+)""", re.IGNORECASE)
_PIPE_TRICK_PAREN_RE = re.compile(r"\s*\([^()]*\)\s*$")
_FILE_SIZE_RE = re.compile(r"^(?:\d+x\d+|\d+x|x\d+|\d+)px$", re.IGNORECASE)

FILE_OPTIONS = frozenset({
    "thumb", "thumbnail", "frame", "framed", "frameless", "border",
    "left", "right", "center", "centre", "none",
    "baseline", "middle", "sub", "super", "text-top", "text-bottom", "top", "bottom",
    "upright",
})
_FILE_OPTION_PREFIXES = ("link=", "alt=", "upright=", "page=", "class=", "lang=")

BLOCK_TAGS = frozenset({"div", "blockquote", "center"})

# closer kind -> (opener kind, opener kinds a closer may skip over)
_CLOSERS: dict[TokenKind, tuple[TokenKind, frozenset]] = {
    K.TAG_CLOSE: (K.TAG_OPEN, frozenset({K.TAG_OPEN})),
    K.EXT_CLOSE: (K.EXT_OPEN, frozenset({K.TAG_OPEN})),
    K.LINK_CLOSE: (K.LINK_OPEN, frozenset({K.TAG_OPEN, K.EXT_OPEN})),
    K.TEMPLATE_CLOSE: (K.TEMPLATE_OPEN, frozenset({K.TAG_OPEN, K.LINK_OPEN, K.EXT_OPEN})),
    K.PARAM_CLOSE: (K.PARAM_OPEN, frozenset({K.TAG_OPEN, K.LINK_OPEN, K.EXT_OPEN})),
    K.TABLE_CLOSE: (K.TABLE_OPEN, frozenset({K.TAG_OPEN, K.LINK_OPEN, K.EXT_OPEN})),
    K.HEADING_END: (K.HEADING_START, frozenset({
        K.TAG_OPEN, K.LINK_OPEN, K.EXT_OPEN, K.TEMPLATE_OPEN, K.PARAM_OPEN,
    })),
}
_OPENERS = frozenset(opener for opener, _ in _CLOSERS.values())

_CELL_STOPS = frozenset({
    K.CELL_SEP, K.HEADER_SEP, K.TABLE_CELL, K.TABLE_HEADER,
    K.TABLE_ROW, K.TABLE_CAPTION, K.TABLE_CLOSE,
})
_LINE_END = frozenset({K.NEWLINE})
_LINE_STOPS = frozenset({K.NEWLINE, K.TABLE_OPEN})

_REPORTED_OPENERS = {
    K.LINK_OPEN: "[[",
    K.TEMPLATE_OPEN: "{{",
    K.PARAM_OPEN: "{{{",
    K.TABLE_OPEN: "{|",
}


# -----------------------------------------------------------------------------
# Transclusion views
# -----------------------------------------------------------------------------

_ONLYINCLUDE_RE = re.compile(r"<onlyinclude\s*>(.*?)(?:</onlyinclude\s*>|$)", re.IGNORECASE | re.DOTALL)
_NOINCLUDE_BLOCK_RE = re.compile(r"<noinclude\s*>.*?(?:</noinclude\s*>|$)", re.IGNORECASE | re.DOTALL)
_INCLUDEONLY_BLOCK_RE = re.compile(r"<includeonly\s*>.*?(?:</includeonly\s*>|$)", re.IGNORECASE | re.DOTALL)
_CONTROL_TAG_RE = re.compile(r"</?(?:noinclude|includeonly|onlyinclude)\s*/?>", re.IGNORECASE)


def view_text(text: str) -> str:
    """Source as rendered when the page itself is viewed."""
    return _CONTROL_TAG_RE.sub("", _INCLUDEONLY_BLOCK_RE.sub("", text))


def transclusion_text(text: str) -> str:
    """Source as seen by a page that transcludes this one."""
    if re.search(r"<onlyinclude\s*>", text, re.IGNORECASE):
        text = "".join(m.group(1) for m in _ONLYINCLUDE_RE.finditer(text))
    return _CONTROL_TAG_RE.sub("", _NOINCLUDE_BLOCK_RE.sub("", text))


# -----------------------------------------------------------------------------
# Bracket matching pre-pass
# -----------------------------------------------------------------------------

def match_brackets(tokens: list[Token]) -> dict[int, int]:
    """Pair opener indices with closer indices, innermost first."""
    matched: dict[int, int] = {}
    stack: list[int] = []
    for idx, tok in enumerate(tokens):
        kind = tok.kind
        if kind in _OPENERS:
            stack.append(idx)
        elif kind == K.NEWLINE:
            while stack and tokens[stack[-1]].kind in (K.LINK_OPEN, K.EXT_OPEN):
                stack.pop()
        elif kind in _CLOSERS:
            opener, skippable = _CLOSERS[kind]
            for depth in range(len(stack) - 1, -1, -1):
                candidate = tokens[stack[depth]]
                if candidate.kind == opener and (
                    kind != K.TAG_CLOSE or candidate.name == tok.name
                ):
                    matched[stack[depth]] = idx
                    del stack[depth:]
                    break
                if candidate.kind not in skippable:
                    break
    return matched


# -----------------------------------------------------------------------------
# Node-list helpers
# -----------------------------------------------------------------------------

def merge_text(nodes: list[Node]) -> list[Node]:
    """Coalesce adjacent Text nodes and drop empty ones."""
    out: list[Node] = []
    for node in nodes:
        if isinstance(node, Text):
            if not node.text:
                continue
            if out and isinstance(out[-1], Text):
                out[-1] = Text(text=out[-1].text + node.text)
                continue
        out.append(node)
    return out


def trim(nodes: list[Node]) -> list[Node]:
    """Strip surrounding whitespace from the first and last Text nodes."""
    nodes = merge_text(nodes)
    if nodes and isinstance(nodes[0], Text):
        nodes[0] = Text(text=nodes[0].text.lstrip())
    if nodes and isinstance(nodes[-1], Text):
        nodes[-1] = Text(text=nodes[-1].text.rstrip())
    return [n for n in nodes if not (isinstance(n, Text) and not n.text)]


def is_blank(nodes: list[Node]) -> bool:
    return all(isinstance(n, Text) and not n.text.strip() for n in nodes)


def _paragraph_blocks(inline: list[Node]) -> list[Node]:
    inline = trim(inline)
    if not inline:
        return []
    # a paragraph holding nothing visible is not a paragraph
    if all(isinstance(n, (Category, MagicWord)) or (isinstance(n, Text) and not n.text.strip())
           for n in inline):
        return [n for n in inline if not isinstance(n, Text)]
    return [Paragraph(children=inline)]


def is_block(node: Node) -> bool:
    return node.kind in BLOCK_KINDS or (isinstance(node, HtmlTag) and node.name in BLOCK_TAGS)


def paragraphs(inline: list[Node]) -> list[Node]:
    """Wrap an inline run into paragraphs, hoisting block nodes out of it."""
    out: list[Node] = []
    run: list[Node] = []
    for node in inline:
        if isinstance(node, Paragraph):
            out.extend(_paragraph_blocks(run))
            out.extend(paragraphs(node.children))
            run = []
        elif is_block(node):
            out.extend(_paragraph_blocks(run))
            out.append(node)
            run = []
        else:
            run.append(node)
    out.extend(_paragraph_blocks(run))
    return out


def reflow(blocks: list[Node]) -> list[Node]:
    """Re-establish block structure after nodes were spliced into a block list."""
    out: list[Node] = []
    run: list[Node] = []
    for node in blocks:
        if isinstance(node, Paragraph):
            out.extend(paragraphs(run))
            out.extend(paragraphs(node.children))
            run = []
        elif is_block(node) or isinstance(node, (Category, MagicWord, Redirect)):
            out.extend(paragraphs(run))
            out.append(node)
            run = []
        else:
            run.append(node)
    out.extend(paragraphs(run))
    return out


def _list_style(marker_char: str) -> str:
    return {"*": "ul", "#": "ol"}.get(marker_char, "dl")


def build_lists(items: list[ListItem], depth: int = 0) -> list[ListBlock]:
    """Nest flat list items (each carrying its full marker prefix) into list blocks."""
    blocks: list[ListBlock] = []
    k = 0
    while k < len(items):
        style = _list_style(items[k].marker[depth])
        block = ListBlock(style=style)
        while k < len(items) and _list_style(items[k].marker[depth]) == style:
            item = items[k]
            if len(item.marker) == depth + 1:
                block.items.append(item)
                k += 1
                continue
            j = k
            while (j < len(items) and len(items[j].marker) > depth + 1
                   and _list_style(items[j].marker[depth]) == style):
                j += 1
            nested = build_lists(items[k:j], depth + 1)
            last = block.items[-1] if block.items else None
            if isinstance(last, ListItem) and items[k].marker.startswith(last.marker):
                last.children.extend(nested)
            else:
                block.items.append(ListItem(marker=items[k].marker[:depth + 1], children=nested))
            k = j
        blocks.append(block)
    return blocks


def pipe_trick(target: str) -> str:
    """Display text for ``[[Target|]]``: namespace, parenthetical and comma part removed."""
    parts = parse_title(target)
    text = parts.text
    text = _PIPE_TRICK_PAREN_RE.sub("", text)
    if "," in text:
        text = text.split(",", 1)[0]
    return text.strip()


def is_file_option(option: str) -> bool:
    option = option.strip().lower()
    return (
        option in FILE_OPTIONS
        or bool(_FILE_SIZE_RE.match(option))
        or option.startswith(_FILE_OPTION_PREFIXES)
    )


class _Quote:
    """Placeholder for an apostrophe run until the line's quotes are balanced."""
    __slots__ = ("bold", "italic")

    def __init__(self, kind: TokenKind):
        self.bold = kind in (K.BOLD, K.BOLD_ITALIC)
        self.italic = kind in (K.ITALIC, K.BOLD_ITALIC)


def balance_quotes(items: list) -> list[Node]:
    """Turn a flat sequence of nodes and ``_Quote`` toggles into Bold/Italic nesting."""
    frames: list[tuple[str, list]] = [("root", [])]

    def _open(kind: str) -> None:
        frames.append((kind, []))

    def _close_top() -> str:
        kind, children = frames.pop()
        wrapper = Bold if kind == "b" else Italic
        frames[-1][1].append(wrapper(children=merge_text(children)))
        return kind

    def _is_open(kind: str) -> bool:
        return any(k == kind for k, _ in frames[1:])

    def _close(kind: str) -> None:
        reopen: list[str] = []
        while frames[-1][0] != kind:
            reopen.append(_close_top())
        _close_top()
        for k in reversed(reopen):
            _open(k)

    for item in items:
        if not isinstance(item, _Quote):
            frames[-1][1].append(item)
            continue
        if item.bold and item.italic:
            if _is_open("b") and _is_open("i"):
                _close(frames[-1][0])
                _close(frames[-1][0])
            elif _is_open("b"):
                _close("b")
                _open("i")
            elif _is_open("i"):
                _close("i")
                _open("b")
            else:
                _open("b")
                _open("i")
        else:
            kind = "b" if item.bold else "i"
            if _is_open(kind):
                _close(kind)
            else:
                _open(kind)

    while len(frames) > 1:
        _close_top()
    return merge_text(frames[0][1])


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------

class Parser:
    """One-shot parser over the tokens of a single text."""

    def __init__(self, text: str, inline: bool = False):
        self.toks: list[Token] = list(tokenize(text, inline=inline))
        self.match = match_brackets(self.toks)
        self.problems: list[str] = [
            f"unterminated '{_REPORTED_OPENERS[t.kind]}' at offset {t.pos}"
            for idx, t in enumerate(self.toks)
            if t.kind in _REPORTED_OPENERS and idx not in self.match
        ]

    # ── range helpers ───────────────────────────────────────────────────────

    def _closer(self, i: int, end: int) -> Optional[int]:
        close = self.match.get(i)
        return close if close is not None and close < end else None

    def _find(self, i: int, end: int, kinds: frozenset) -> int:
        """First index in [i, end) whose kind is in *kinds*, skipping nested constructs."""
        while i < end:
            if self.toks[i].kind in kinds:
                return i
            close = self._closer(i, end)
            i = close + 1 if close is not None else i + 1
        return end

    def _split(self, i: int, end: int, kinds: frozenset = frozenset({K.PIPE})) -> list[tuple[int, int]]:
        """Split [i, end) at top-level separators into (start, stop) ranges."""
        ranges = []
        while True:
            sep = self._find(i, end, kinds)
            ranges.append((i, sep))
            if sep >= end:
                return ranges
            i = sep + 1

    def source(self, i: int, end: int) -> str:
        return "".join(t.text for t in self.toks[i:end])

    # ── blocks ──────────────────────────────────────────────────────────────

    def parse_blocks(self, i: int, end: int, stops: frozenset = frozenset()) -> tuple[list[Node], int]:
        toks = self.toks
        blocks: list[Node] = []
        para: list[Node] = []

        def flush() -> None:
            blocks.extend(paragraphs(para))
            para.clear()

        while i < end:
            tok = toks[i]
            kind = tok.kind
            if kind in stops:
                break

            if kind == K.NEWLINE:
                j = i + 1
                if j < end and toks[j].kind == K.TEXT and not toks[j].text.strip():
                    j += 1
                if j >= end or toks[j].kind == K.NEWLINE:
                    flush()
                elif para:
                    para.append(Text(text="\n"))
                i += 1
                continue

            close = self._closer(i, end)
            if kind == K.HEADING_START and close is not None:
                flush()
                children, _ = self.parse_inline(i + 1, close)
                blocks.append(Heading(level=tok.level, children=trim(children)))
                i = close + 1
            elif kind == K.LIST:
                flush()
                lists, i = self.parse_list(i, end, stops)
                blocks.extend(lists)
            elif kind == K.HR:
                flush()
                blocks.append(HorizontalRule())
                i += 1
            elif kind == K.SPACE_PRE:
                flush()
                pre, i = self.parse_pre(i, end, stops)
                blocks.append(pre)
            elif kind == K.TABLE_OPEN:
                flush()
                table, i = self.parse_table(i, end)
                blocks.append(table)
            elif kind == K.CODE:
                flush()
                blocks.append(self._code(tok))
                i += 1
            elif kind == K.MAGIC:
                if tok.value == "TOC":
                    flush()
                blocks.append(MagicWord(name=tok.value))
                i += 1
            elif kind == K.TAG_OPEN and tok.name in BLOCK_TAGS and close is not None:
                flush()
                blocks.append(self._tag(i, close))
                i = close + 1
            else:
                nodes, j = self.parse_inline(i, end, stops | _LINE_STOPS)
                if j == i:
                    nodes, j = [Text(text=tok.text)], i + 1
                para.extend(nodes)
                i = j

        flush()
        return blocks, i

    def parse_list(self, i: int, end: int, stops: frozenset) -> tuple[list[Node], int]:
        toks = self.toks
        items: list[ListItem] = []
        while i < end and toks[i].kind == K.LIST:
            marker = toks[i].value
            if marker == ":" and items and i > 0 and toks[i - 1].kind != K.NEWLINE:
                # "; term : definition" on one line
                marker = items[-1].marker[:-1] + ":"
            children, i = self.parse_inline(i + 1, end, stops | _LINE_END | {K.LIST})
            items.append(ListItem(marker=marker, children=trim(children)))
            if i < end and toks[i].kind == K.LIST:
                continue
            if i + 1 < end and toks[i].kind == K.NEWLINE and toks[i + 1].kind == K.LIST:
                i += 1
                continue
            break
        return build_lists(items), i

    def parse_pre(self, i: int, end: int, stops: frozenset) -> tuple[Preformatted, int]:
        toks = self.toks
        children: list[Node] = []
        while i < end and toks[i].kind == K.SPACE_PRE:
            line, i = self.parse_inline(i + 1, end, stops | _LINE_END)
            if children:
                children.append(Text(text="\n"))
            children.extend(line)
            if i + 1 < end and toks[i].kind == K.NEWLINE and toks[i + 1].kind == K.SPACE_PRE:
                i += 1
                continue
            break
        return Preformatted(children=merge_text(children)), i

    # ── tables ──────────────────────────────────────────────────────────────

    def parse_table(self, i: int, end: int) -> tuple[Table, int]:
        toks = self.toks
        close = self._closer(i, end)
        stop = close if close is not None else end

        attrs, j = self.parse_inline(i + 1, stop, _LINE_END)
        table = Table(attrs=merge_text(attrs))
        row: Optional[TableRow] = None

        def current_row() -> TableRow:
            nonlocal row
            if row is None:
                row = TableRow()
                table.rows.append(row)
            return row

        while j < stop:
            tok = toks[j]
            kind = tok.kind
            if kind == K.NEWLINE or (kind == K.TEXT and not tok.text.strip()):
                j += 1
            elif kind == K.TABLE_ROW:
                row_attrs, j = self.parse_inline(j + 1, stop, _LINE_END)
                row = TableRow(attrs=merge_text(row_attrs))
                table.rows.append(row)
            elif kind == K.TABLE_CAPTION:
                line_end = self._find(j + 1, stop, _LINE_END)
                pipe = self._find(j + 1, line_end, frozenset({K.PIPE}))
                start = pipe + 1 if pipe < line_end else j + 1
                caption, _ = self.parse_inline(start, line_end)
                table.caption = trim(caption)
                j = line_end
            elif kind in (K.TABLE_CELL, K.TABLE_HEADER):
                header = kind == K.TABLE_HEADER
                j += 1
                while True:
                    cell, j = self._parse_cell(j, stop, header)
                    current_row().cells.append(cell)
                    if j < stop and toks[j].kind in (K.CELL_SEP, K.HEADER_SEP):
                        j += 1
                        continue
                    break
            else:
                nodes, k = self.parse_blocks(j, stop, _CELL_STOPS)
                if k == j:
                    nodes, k = [Text(text=tok.text)], j + 1
                if not is_blank(nodes):
                    current_row().cells.append(TableCell(bare=True, children=nodes))
                j = k

        return table, (close + 1 if close is not None else stop)

    def _parse_cell(self, j: int, stop: int, header: bool) -> tuple[TableCell, int]:
        line_end = self._find(j, stop, frozenset({K.NEWLINE, K.CELL_SEP, K.HEADER_SEP}))
        pipe = self._find(j, line_end, frozenset({K.PIPE}))
        attrs: list[Node] = []
        if pipe < line_end:
            attrs, _ = self.parse_inline(j, pipe)
            j = pipe + 1
        children, j = self.parse_blocks(j, stop, _CELL_STOPS)
        if len(children) == 1 and isinstance(children[0], Paragraph):
            children = children[0].children
        return TableCell(header=header, attrs=trim(attrs), children=children), j

    # ── inline ──────────────────────────────────────────────────────────────

    def parse_inline(self, i: int, end: int, stops: frozenset = frozenset()) -> tuple[list[Node], int]:
        toks = self.toks
        items: list = []
        while i < end:
            tok = toks[i]
            kind = tok.kind
            if kind in stops:
                break
            close = self._closer(i, end)

            if kind == K.TEXT:
                items.append(Text(text=tok.text))
            elif kind == K.LINK_OPEN and close is not None:
                nodes = self._link(i, close)
                i = close + 1
                link = nodes[-1] if len(nodes) == 1 else None
                if isinstance(link, Link) and not link.options and i < end and toks[i].kind == K.TEXT:
                    m = _LINK_TRAIL_RE.match(toks[i].text)
                    if m:
                        link.trail = m.group(0)
                        items.append(link)
                        items.append(Text(text=toks[i].text[m.end():]))
                        i += 1
                        continue
                items.extend(nodes)
                continue
            elif kind == K.EXT_OPEN and close is not None:
                items.append(self._extlink(i, close))
                i = close + 1
                continue
            elif kind == K.TEMPLATE_OPEN and close is not None:
                items.append(self._template(i, close))
                i = close + 1
                continue
            elif kind == K.PARAM_OPEN and close is not None:
                items.append(self._parameter(i, close))
                i = close + 1
                continue
            elif kind == K.TAG_OPEN:
                if close is not None:
                    items.append(self._tag(i, close))
                    i = close + 1
                    continue
                items.append(HtmlTag(name=tok.name, attrs=self._attrs(tok.attrs)))
            elif kind == K.TAG_SELF:
                items.append(HtmlTag(name=tok.name, attrs=self._attrs(tok.attrs), self_closing=True))
            elif kind == K.TAG_CLOSE:
                pass
            elif kind == K.NOWIKI:
                items.append(Raw(text=tok.value))
            elif kind == K.CODE:
                items.append(self._code(tok))
            elif kind == K.URL:
                items.append(ExtLink(url=tok.value, bracketed=False))
            elif kind == K.MAGIC:
                items.append(MagicWord(name=tok.value))
            elif kind in (K.BOLD, K.ITALIC, K.BOLD_ITALIC):
                items.append(_Quote(kind))
            else:
                items.append(Text(text=tok.text))
            i += 1
        return balance_quotes(items), i

    # ── constructs ──────────────────────────────────────────────────────────

    def _literal(self, i: int, close: int) -> list[Node]:
        inner, _ = self.parse_inline(i + 1, close)
        return merge_text([Text(text=self.toks[i].text), *inner, Text(text=self.toks[close].text)])

    def _link(self, i: int, close: int) -> list[Node]:
        toks = self.toks
        segments = self._split(i + 1, close)
        t_start, t_end = segments[0]
        target_toks = toks[t_start:t_end]

        if any(t.kind in (K.TEMPLATE_OPEN, K.PARAM_OPEN) for t in target_toks):
            target_nodes, _ = self.parse_inline(t_start, t_end)
            children: list[Node] = []
            if len(segments) > 1:
                children, _ = self.parse_inline(segments[1][0], close)
            return [Link(target="", target_nodes=target_nodes, children=children,
                         piped=len(segments) > 1)]

        if not target_toks or any(t.kind != K.TEXT for t in target_toks):
            return self._literal(i, close)
        target = "".join(t.text for t in target_toks)
        if _INVALID_TARGET_RE.search(target):
            return self._literal(i, close)
        parts = parse_title(target)
        if not parts.is_valid and not parts.fragment:
            return self._literal(i, close)

        colon = target.lstrip().startswith(":")
        if parts.namespace == "Category" and not colon:
            if len(segments) < 2:
                return [Category(name=parts.text)]
            k_start = segments[1][0]
            if any(t.kind in (K.TEMPLATE_OPEN, K.PARAM_OPEN) for t in toks[k_start:close]):
                key_nodes, _ = self.parse_inline(k_start, close)
                return [Category(name=parts.text, sort_key_nodes=key_nodes)]
            return [Category(name=parts.text, sort_key=self.source(k_start, close).strip())]

        if parts.namespace == "File" and not colon:
            options = [self.source(s, e).strip() for s, e in segments[1:]]
            caption: list[Node] = []
            if len(segments) > 1 and not is_file_option(options[-1]):
                caption, _ = self.parse_inline(segments[-1][0], close)
                options = options[:-1]
            return [Link(target=target.strip(), options=[o for o in options if o],
                         children=trim(caption), piped=bool(caption))]

        if len(segments) > 1:
            display, _ = self.parse_inline(segments[1][0], close)
            display = merge_text(display)
            if is_blank(display):
                display = [Text(text=pipe_trick(target))]
            return [Link(target=target.strip(), children=display, piped=True)]

        return [Link(target=target.strip(), children=[Text(text=target.strip().lstrip(":"))])]

    def _extlink(self, i: int, close: int) -> Node:
        toks = self.toks
        first = toks[i + 1] if i + 1 < close else None
        if first is None or first.kind != K.TEXT:
            return Text(text=self.source(i, close + 1))
        url, _, rest = first.text.partition(" ")
        if not url:
            return Text(text=self.source(i, close + 1))
        label, _ = self.parse_inline(i + 2, close)
        children = trim([Text(text=rest), *label])
        return ExtLink(url=url, children=children, bracketed=True)

    def _template(self, i: int, close: int) -> Template:
        segments = self._split(i + 1, close)
        name, _ = self.parse_inline(*segments[0])
        template = Template(name=merge_text(name))
        for start, stop in segments[1:]:
            eq = self._find(start, stop, frozenset({K.EQUALS}))
            if eq < stop and all(t.kind in (K.TEXT, K.NEWLINE) for t in self.toks[start:eq]):
                value, _ = self.parse_inline(eq + 1, stop)
                template.args.append(TemplateArg(name=self.source(start, eq).strip(), value=value))
            else:
                value, _ = self.parse_inline(start, stop)
                template.args.append(TemplateArg(value=value))
        return template

    def _parameter(self, i: int, close: int) -> Parameter:
        segments = self._split(i + 1, close)
        name, _ = self.parse_inline(*segments[0])
        default = None
        if len(segments) > 1:
            default, _ = self.parse_inline(*segments[1])
        return Parameter(name=merge_text(name), default=default)

    def _tag(self, i: int, close: int) -> HtmlTag:
        tok = self.toks[i]
        if tok.name in BLOCK_TAGS:
            children, _ = self.parse_blocks(i + 1, close)
        else:
            children, _ = self.parse_inline(i + 1, close)
        return HtmlTag(name=tok.name, attrs=self._attrs(tok.attrs), children=children)

    @staticmethod
    def _attrs(raw: str) -> list[Node]:
        if not raw or not raw.strip():
            return []
        sub = Parser(raw, inline=True)
        nodes, _ = sub.parse_inline(0, len(sub.toks))
        return nodes

    @staticmethod
    def _code(tok: Token) -> CodeBlock:
        m = _LANG_ATTR_RE.search(tok.attrs or "")
        return CodeBlock(code=tok.value, lang=m.group(1).lower() if m else "", tag=tok.name)

    # ── entry points ────────────────────────────────────────────────────────

    def document(self) -> Document:
        children, _ = self.parse_blocks(0, len(self.toks))
        return Document(children=children)


# -----------------------------------------------------------------------------
# Public API
# -----------------------------------------------------------------------------

def parse_redirect(text: str) -> tuple[Optional[str], str]:
    """Return ``(target, remaining_text)``; target is None for ordinary pages."""
    m = _REDIRECT_RE.match(text)
    if not m:
        return None, text
    return m.group(1).strip(), text[m.end():]


def parse_with_problems(text: str) -> tuple[Document, list[str]]:
    """Parse *text* into a Document and report recoverable syntax problems."""
    target, body = parse_redirect(text)
    parser = Parser(body)
    doc = parser.document()
    if target is not None:
        doc.children.insert(0, Redirect(target=target))
    return doc, parser.problems


def parse(text: str) -> Document:
    return parse_with_problems(text)[0]


def parse_inline(text: str) -> list[Node]:
    """Parse *text* as a single run of inline content (no block structure)."""
    parser = Parser(text, inline=True)
    nodes, _ = parser.parse_inline(0, len(parser.toks))
    return nodes


# -----------------------------------------------------------------------------
