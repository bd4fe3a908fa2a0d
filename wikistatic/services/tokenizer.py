#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Wikitext tokenizer
==================
Splits raw wikitext into a lazy stream of lexical units.

The tokenizer only finds boundaries; it never decides what a construct means.
It does keep a small stack of the brace / bracket / table contexts it has
opened, because the meaning of ``|``, ``=``, ``}}`` and the line-leading table
markers depends on which of those is innermost:

    {{name|a=b}}       ``|`` and ``=`` are argument separators
    [[Page|label]]     ``|`` separates target and label
    {| ... |}          line-leading ``|``, ``|-``, ``!`` and inline ``||`` are cells
    anywhere else      all of the above are plain text

Concatenating the ``text`` of every token reproduces the input, except for
HTML comments and transclusion control tags, which are dropped.  Unmatched
delimiters are emitted as ordinary tokens and left for the parser to degrade
to literal text.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional


# -----------------------------------------------------------------------------

class TokenKind(str, Enum):
    TEXT = "text"
    NEWLINE = "newline"
    LINK_OPEN = "[["
    LINK_CLOSE = "]]"
    EXT_OPEN = "["
    EXT_CLOSE = "]"
    TEMPLATE_OPEN = "{{"
    TEMPLATE_CLOSE = "}}"
    PARAM_OPEN = "{{{"
    PARAM_CLOSE = "}}}"
    PIPE = "|"
    EQUALS = "="
    BOLD = "'''"
    ITALIC = "''"
    BOLD_ITALIC = "'''''"
    HEADING_START = "heading-start"
    HEADING_END = "heading-end"
    LIST = "list"
    HR = "----"
    SPACE_PRE = "space-pre"
    TABLE_OPEN = "{|"
    TABLE_CLOSE = "|}"
    TABLE_ROW = "|-"
    TABLE_CAPTION = "|+"
    TABLE_CELL = "cell"
    TABLE_HEADER = "header"
    CELL_SEP = "||"
    HEADER_SEP = "!!"
    TAG_OPEN = "tag-open"
    TAG_CLOSE = "tag-close"
    TAG_SELF = "tag-self"
    CODE = "code"
    NOWIKI = "nowiki"
    URL = "url"
    MAGIC = "magic"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    pos: int
    value: str = ""       # list markers, nowiki/code body, magic word, url
    name: str = ""        # lower-cased tag name
    attrs: str = ""       # raw attribute text of HTML-ish tags
    level: int = 0        # heading level


# -----------------------------------------------------------------------------
# Lexical tables
# -----------------------------------------------------------------------------

HTML_TAGS = frozenset({
    "b", "i", "u", "s", "strike", "sup", "sub", "small", "big", "code", "tt",
    "span", "div", "blockquote", "center", "br", "del", "ins", "kbd", "var",
    "cite", "abbr", "q", "font", "p", "hr", "wbr", "dfn", "mark", "samp",
})
VOID_TAGS = frozenset({"br", "hr", "wbr"})

MAGIC_WORDS = ("NOTOC", "FORCETOC", "TOC", "NOEDITSECTION", "NOGALLERY", "INDEX", "NOINDEX")

_PLAIN_RE = re.compile(r"[^\[\]{}|=!'<_\n:hfmHFM]+")
_HEADING_LINE_RE = re.compile(r"(={1,6})(.+?)(={1,6})[ \t]*$")
_TABLE_LINE_RE = re.compile(r"[ \t]*(\{\||\|\}|\|-+|\|\+|\||!)")
_LIST_RE = re.compile(r"[*#:;]+")
_HR_RE = re.compile(r"-{4,}")
_TAG_RE = re.compile(r"<(/?)([a-zA-Z][a-zA-Z0-9]*)(\s[^<>]*?)?\s*(/?)>")
_NOWIKI_RE = re.compile(r"<nowiki\s*>(.*?)</nowiki\s*>", re.IGNORECASE | re.DOTALL)
_NOWIKI_EMPTY_RE = re.compile(r"<nowiki\s*/>", re.IGNORECASE)
_CODE_RE = re.compile(
    r"<(pre|syntaxhighlight|source)(\s[^>]*)?>(.*?)</\1\s*>",
    re.IGNORECASE | re.DOTALL,
)
_INCLUDE_TAG_RE = re.compile(r"</?(?:noinclude|includeonly|onlyinclude)\s*/?>", re.IGNORECASE)
_MAGIC_RE = re.compile(r"__(" + "|".join(MAGIC_WORDS) + r")__")
_URL_RE = re.compile(r"(?:https?|ftps?)://[^\s<>\[\]{}|\"]+|mailto:[^\s<>\[\]{}|\"]+", re.IGNORECASE)
_EXT_START_RE = re.compile(
    r"\[(?=(?:https?|ftps?|irc|ircs|gopher|news|svn|git|sftp|ssh)://|mailto:|news:|//\w)",
    re.IGNORECASE,
)

# Context markers on the tokenizer stack
_T, _P, _L, _X, _TB = "template", "param", "link", "extlink", "table"


def _brace_openers(n: int) -> list[str]:
    """Decompose a run of *n* ``{`` (n >= 2) into template/parameter openers, outermost first."""
    if n % 3 == 0:
        return [_P] * (n // 3)
    if n % 3 == 2:
        return [_T] + [_P] * ((n - 2) // 3)
    return [_T, _T] + [_P] * ((n - 4) // 3)


def _run_length(text: str, i: int, ch: str) -> int:
    j = i
    while j < len(text) and text[j] == ch:
        j += 1
    return j - i


# -----------------------------------------------------------------------------

class _Tokenizer:
    """Single-use scanner; ``tokenize()`` builds a fresh one per call."""

    def __init__(self, text: str, inline: bool = False):
        self.text = text.replace("\r\n", "\n").replace("\r", "\n")
        self.n = len(self.text)
        self.inline = inline
        self.i = 0
        self.stack: list[str] = []
        self.pending: deque[Token] = deque()
        self.buf: list[str] = []
        self.buf_pos = 0
        self.line_start = not inline
        self.line_mode = ""
        self.heading_end: Optional[int] = None
        self.heading_level = 0
        self.heading_suffix = ""
        self.heading_depth = 0

    # ── emission ────────────────────────────────────────────────────────────

    def _text(self, s: str, pos: int) -> None:
        if not self.buf:
            self.buf_pos = pos
        self.buf.append(s)

    def _flush_text(self) -> None:
        if self.buf:
            self.pending.append(Token(TokenKind.TEXT, "".join(self.buf), self.buf_pos))
            self.buf.clear()

    def _emit(self, kind: TokenKind, text: str, pos: int, **kw) -> None:
        self._flush_text()
        self.pending.append(Token(kind, text, pos, **kw))

    def _top(self) -> Optional[str]:
        return self.stack[-1] if self.stack else None

    # ── driver ──────────────────────────────────────────────────────────────

    def run(self) -> Iterator[Token]:
        while self.i < self.n:
            self._step()
            while self.pending:
                yield self.pending.popleft()
        if self.heading_end is not None:
            self._close_heading()
        self._flush_text()
        while self.pending:
            yield self.pending.popleft()

    def _step(self) -> None:
        if self.line_start:
            self.line_start = False
            if self._line_start():
                return
            if self.i >= self.n:
                return
        if self.heading_end is not None and self.i >= self.heading_end:
            self._close_heading()
            return
        self._inline()

    # ── line-leading constructs ─────────────────────────────────────────────

    def _line_start(self) -> bool:
        self.line_mode = ""
        top = self._top()
        if top not in (None, _TB):
            return False

        i, text = self.i, self.text
        line_end = text.find("\n", i)
        if line_end < 0:
            line_end = self.n
        line = text[i:line_end]

        m = _TABLE_LINE_RE.match(line)
        if m:
            marker, lead = m.group(1), line[:m.start(1)]
            start = i + m.start(1)
            kind = None
            if marker == "{|":
                kind = TokenKind.TABLE_OPEN
            elif top == _TB:
                if marker == "|}":
                    kind = TokenKind.TABLE_CLOSE
                elif marker.startswith("|-"):
                    kind = TokenKind.TABLE_ROW
                elif marker == "|+":
                    kind, self.line_mode = TokenKind.TABLE_CAPTION, "caption"
                elif marker == "|":
                    kind, self.line_mode = TokenKind.TABLE_CELL, "cell"
                else:
                    kind, self.line_mode = TokenKind.TABLE_HEADER, "header"
            if kind is not None:
                if lead:
                    self._text(lead, i)
                self._emit(kind, marker, start)
                if kind == TokenKind.TABLE_OPEN:
                    self.stack.append(_TB)
                elif kind == TokenKind.TABLE_CLOSE:
                    self.stack.pop()
                self.i = start + len(marker)
                return True

        m = _HEADING_LINE_RE.match(line)
        if m and m.group(2).strip():
            opening, closing = m.group(1), m.group(3)
            level = min(len(opening), len(closing))
            self._emit(TokenKind.HEADING_START, "=" * level, i, level=level)
            if len(opening) > level:
                self._text("=" * (len(opening) - level), i + level)
            self.i = i + len(opening)
            self.heading_end = i + m.end(2)
            self.heading_level = level
            self.heading_suffix = "=" * (len(closing) - level)
            self.heading_depth = len(self.stack)
            return True

        m = _LIST_RE.match(line)
        if m:
            markers = m.group(0)
            self._emit(TokenKind.LIST, markers, i, value=markers)
            if markers.endswith(";"):
                self.line_mode = "term"
            self.i = i + len(markers)
            return True

        m = _HR_RE.match(line)
        if m:
            self._emit(TokenKind.HR, m.group(0), i)
            self.i = i + len(m.group(0))
            return True

        if top is None and line.startswith(" ") and line.strip():
            self._emit(TokenKind.SPACE_PRE, " ", i)
            self.i = i + 1
            return True

        return False

    def _close_heading(self) -> None:
        level, pos = self.heading_level, self.heading_end
        self.heading_end = None
        if self.heading_suffix:
            self._text(self.heading_suffix, pos)
        self._emit(TokenKind.HEADING_END, "=" * level, pos, level=level)
        del self.stack[self.heading_depth:]
        if self.i > pos:
            # a multi-line construct already swallowed the closing run
            return
        self.i = pos + len(self.heading_suffix) + level
        line_end = self.text.find("\n", self.i)
        if line_end < 0:
            line_end = self.n
        if self.i < line_end:
            self._text(self.text[self.i:line_end], self.i)
            self.i = line_end

    # ── inline constructs ───────────────────────────────────────────────────

    def _inline(self) -> None:
        text, i = self.text, self.i
        ch = text[i]

        if ch == "\n":
            self._emit(TokenKind.NEWLINE, "\n", i)
            while self.stack and self.stack[-1] in (_L, _X):
                self.stack.pop()
            self.line_start = not self.inline
            self.line_mode = ""
            self.i = i + 1
            return

        if ch == "<":
            self._angle(i)
            return
        if ch == "{":
            self._open_braces(i)
            return
        if ch == "}":
            self._close_braces(i)
            return
        if ch == "[":
            self._open_bracket(i)
            return
        if ch == "]":
            self._close_bracket(i)
            return
        if ch == "|":
            self._pipe(i)
            return
        if ch == "'":
            self._quotes(i)
            return

        top = self._top()
        if ch == "!" and top == _TB and self.line_mode == "header" and text.startswith("!!", i):
            self._emit(TokenKind.HEADER_SEP, "!!", i)
            self.i = i + 2
            return
        if ch == "=" and top == _T:
            self._emit(TokenKind.EQUALS, "=", i)
            self.i = i + 1
            return
        if ch == ":" and self.line_mode == "term" and top in (None, _TB):
            self._emit(TokenKind.LIST, ":", i, value=":")
            self.line_mode = ""
            self.i = i + 1
            return
        if ch == "_":
            m = _MAGIC_RE.match(text, i)
            if m:
                self._emit(TokenKind.MAGIC, m.group(0), i, value=m.group(1))
                self.i = m.end()
                return
        if ch in "hHfFmM" and top != _X and (i == 0 or not text[i - 1].isalnum()):
            m = _URL_RE.match(text, i)
            if m:
                url = m.group(0).rstrip(".,;:!?'")
                if url.endswith(")") and "(" not in url:
                    url = url[:-1]
                self._emit(TokenKind.URL, url, i, value=url)
                self.i = i + len(url)
                return

        m = _PLAIN_RE.match(text, i)
        if m:
            end = m.end()
            if self.heading_end is not None and end > self.heading_end:
                end = max(self.heading_end, i + 1)
            self._text(text[i:end], i)
            self.i = end
        else:
            self._text(ch, i)
            self.i = i + 1

    def _angle(self, i: int) -> None:
        text = self.text
        if text.startswith("<!--", i):
            end = text.find("-->", i + 4)
            self.i = self.n if end < 0 else end + 3
            return
        m = _NOWIKI_RE.match(text, i)
        if m:
            self._emit(TokenKind.NOWIKI, m.group(0), i, value=m.group(1))
            self.i = m.end()
            return
        m = _CODE_RE.match(text, i)
        if m:
            self._emit(TokenKind.CODE, m.group(0), i, value=m.group(3),
                       name=m.group(1).lower(), attrs=m.group(2) or "")
            self.i = m.end()
            return
        for regex in (_NOWIKI_EMPTY_RE, _INCLUDE_TAG_RE):
            m = regex.match(text, i)
            if m:
                self.i = m.end()
                return
        m = _TAG_RE.match(text, i)
        if m and m.group(2).lower() in HTML_TAGS:
            name = m.group(2).lower()
            if m.group(1):
                kind = TokenKind.TAG_CLOSE
            elif m.group(4) or name in VOID_TAGS:
                kind = TokenKind.TAG_SELF
            else:
                kind = TokenKind.TAG_OPEN
            self._emit(kind, m.group(0), i, name=name, attrs=m.group(3) or "")
            self.i = m.end()
            return
        self._text("<", i)
        self.i = i + 1

    def _open_braces(self, i: int) -> None:
        run = _run_length(self.text, i, "{")
        if run < 2:
            self._text("{", i)
            self.i = i + 1
            return
        pos = i
        for ctx in _brace_openers(run):
            if ctx == _T:
                self._emit(TokenKind.TEMPLATE_OPEN, "{{", pos)
                pos += 2
            else:
                self._emit(TokenKind.PARAM_OPEN, "{{{", pos)
                pos += 3
            self.stack.append(ctx)
        self.i = pos

    def _close_braces(self, i: int) -> None:
        run = _run_length(self.text, i, "}")
        pos = i
        while run >= 2:
            k = len(self.stack) - 1
            while k >= 0 and self.stack[k] in (_L, _X):
                k -= 1
            if k < 0:
                break
            if self.stack[k] == _P and run >= 3:
                del self.stack[k:]
                self._emit(TokenKind.PARAM_CLOSE, "}}}", pos)
                pos, run = pos + 3, run - 3
            elif self.stack[k] == _T:
                del self.stack[k:]
                self._emit(TokenKind.TEMPLATE_CLOSE, "}}", pos)
                pos, run = pos + 2, run - 2
            else:
                break
        if run:
            self._text("}" * run, pos)
        self.i = pos + run

    def _open_bracket(self, i: int) -> None:
        text = self.text
        if text.startswith("[[", i):
            self._emit(TokenKind.LINK_OPEN, "[[", i)
            self.stack.append(_L)
            self.i = i + 2
        elif _EXT_START_RE.match(text, i):
            self._emit(TokenKind.EXT_OPEN, "[", i)
            self.stack.append(_X)
            self.i = i + 1
        else:
            self._text("[", i)
            self.i = i + 1

    def _close_bracket(self, i: int) -> None:
        top = self._top()
        if top == _L and self.text.startswith("]]", i):
            self.stack.pop()
            self._emit(TokenKind.LINK_CLOSE, "]]", i)
            self.i = i + 2
        elif top == _X:
            self.stack.pop()
            self._emit(TokenKind.EXT_CLOSE, "]", i)
            self.i = i + 1
        else:
            self._text("]", i)
            self.i = i + 1

    def _pipe(self, i: int) -> None:
        top = self._top()
        if top in (_T, _P, _L):
            self._emit(TokenKind.PIPE, "|", i)
            self.i = i + 1
        elif top == _TB and self.line_mode in ("cell", "header", "caption"):
            if self.text.startswith("||", i) and self.line_mode != "caption":
                self._emit(TokenKind.CELL_SEP, "||", i)
                self.i = i + 2
            else:
                self._emit(TokenKind.PIPE, "|", i)
                self.i = i + 1
        else:
            self._text("|", i)
            self.i = i + 1

    def _quotes(self, i: int) -> None:
        run = _run_length(self.text, i, "'")
        if run < 2:
            self._text("'", i)
            self.i = i + 1
            return
        if run == 4:
            self._text("'", i)
            i, run = i + 1, 3
        elif run > 5:
            self._text("'" * (run - 5), i)
            i, run = i + run - 5, 5
        kind = {2: TokenKind.ITALIC, 3: TokenKind.BOLD, 5: TokenKind.BOLD_ITALIC}[run]
        self._emit(kind, "'" * run, i)
        self.i = i + run


# -----------------------------------------------------------------------------

def tokenize(text: str, inline: bool = False) -> Iterator[Token]:
    """Lazily tokenize *text*.

    With ``inline=True`` line-leading constructs (headings, lists, tables,
    preformatted lines) are not recognised; used for attribute strings.
    """
    return _Tokenizer(text, inline).run()


# -----------------------------------------------------------------------------
