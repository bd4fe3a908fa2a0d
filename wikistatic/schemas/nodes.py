#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Page AST
========
Pydantic v2 models for the parsed form of a wikitext page.

Every node carries a ``kind`` literal so the ``Node`` union is a tagged
(discriminated) union; this is what lets a whole expanded page round-trip
through ``model_dump_json`` for the optional AST dump.

Nodes form a strict tree.  Cross-page references are *titles* (plain strings)
resolved through the corpus index, never object references, and a template body
is always deep-copied before it is spliced into another page.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from enum import Enum
from typing import Annotated, Iterator, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Shared
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class LinkStatus(str, Enum):
    INTERNAL = "internal"
    INTERWIKI = "interwiki"
    EXTERNAL = "external"
    BROKEN_REDIRECT = "broken-redirect"
    MISSING = "missing"
    INVALID = "invalid"


class _NodeBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    def child_lists(self) -> list[list["Node"]]:
        """Every list of child nodes directly owned by this node."""
        return []


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Leaves
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Text(_NodeBase):
    kind: Literal["text"] = "text"
    text: str


class Raw(_NodeBase):
    """Opaque literal text: nowiki content and constructs left unexpanded."""
    kind: Literal["raw"] = "raw"
    text: str


class HorizontalRule(_NodeBase):
    kind: Literal["hr"] = "hr"


class MagicWord(_NodeBase):
    """Behaviour switch such as ``__TOC__`` or ``__NOTOC__``."""
    kind: Literal["magic"] = "magic"
    name: str


class CodeBlock(_NodeBase):
    """``<pre>``, ``<syntaxhighlight>`` and ``<source>`` bodies, never parsed."""
    kind: Literal["code"] = "code"
    code: str
    lang: str = ""
    tag: str = "pre"


class Category(_NodeBase):
    kind: Literal["category"] = "category"
    name: str
    sort_key: str = ""
    sort_key_nodes: Optional[list[Node]] = None     # key still holding templates

    def child_lists(self):
        return [self.sort_key_nodes] if self.sort_key_nodes is not None else []


class Redirect(_NodeBase):
    kind: Literal["redirect"] = "redirect"
    target: str
    href: str = ""
    status: Optional[LinkStatus] = None


class Marker(_NodeBase):
    """Visible defect marker left where expansion could not complete."""
    kind: Literal["marker"] = "marker"
    reason: Literal["missing-template", "template-loop", "depth-exceeded", "expansion-limit"]
    title: str
    href: str = ""


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Inline containers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Bold(_NodeBase):
    kind: Literal["bold"] = "bold"
    children: list[Node] = Field(default_factory=list)

    def child_lists(self):
        return [self.children]


class Italic(_NodeBase):
    kind: Literal["italic"] = "italic"
    children: list[Node] = Field(default_factory=list)

    def child_lists(self):
        return [self.children]


class Link(_NodeBase):
    """Internal or interwiki link.

    ``target`` is the text exactly as written between ``[[`` and the first
    ``|`` (leading colon included).  The resolver fills ``title``, ``href`` and
    ``status`` on the expanded copy of the page.
    """
    kind: Literal["link"] = "link"
    target: str
    children: list[Node] = Field(default_factory=list)
    piped: bool = False
    trail: str = ""
    options: list[str] = Field(default_factory=list)   # File: link options
    target_nodes: Optional[list[Node]] = None          # target still holding templates
    title: str = ""
    fragment: str = ""
    href: str = ""
    status: Optional[LinkStatus] = None

    def child_lists(self):
        if self.target_nodes is not None:
            return [self.target_nodes, self.children]
        return [self.children]


class ExtLink(_NodeBase):
    kind: Literal["extlink"] = "extlink"
    url: str
    children: list[Node] = Field(default_factory=list)
    bracketed: bool = True
    status: Optional[LinkStatus] = None

    def child_lists(self):
        return [self.children]


class HtmlTag(_NodeBase):
    kind: Literal["tag"] = "tag"
    name: str
    attrs: list[Node] = Field(default_factory=list)
    children: list[Node] = Field(default_factory=list)
    self_closing: bool = False

    def child_lists(self):
        return [self.attrs, self.children]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Templates
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TemplateArg(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None      # None → positional
    value: list[Node] = Field(default_factory=list)


class Template(_NodeBase):
    """A ``{{name|...}}`` call; also parser functions and page variables."""
    kind: Literal["template"] = "template"
    name: list[Node] = Field(default_factory=list)
    args: list[TemplateArg] = Field(default_factory=list)

    def child_lists(self):
        return [self.name] + [a.value for a in self.args]

    @property
    def positional(self) -> list[TemplateArg]:
        return [a for a in self.args if a.name is None]

    @property
    def named(self) -> list[TemplateArg]:
        return [a for a in self.args if a.name is not None]


class Parameter(_NodeBase):
    """A ``{{{name|default}}}`` placeholder inside a template body."""
    kind: Literal["parameter"] = "parameter"
    name: list[Node] = Field(default_factory=list)
    default: Optional[list[Node]] = None

    def child_lists(self):
        return [self.name] if self.default is None else [self.name, self.default]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Blocks
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Heading(_NodeBase):
    kind: Literal["heading"] = "heading"
    level: int = Field(ge=1, le=6)
    children: list[Node] = Field(default_factory=list)

    def child_lists(self):
        return [self.children]


class Paragraph(_NodeBase):
    kind: Literal["paragraph"] = "paragraph"
    children: list[Node] = Field(default_factory=list)

    def child_lists(self):
        return [self.children]


class Preformatted(_NodeBase):
    """Leading-space block: inline markup still applies."""
    kind: Literal["preformatted"] = "preformatted"
    children: list[Node] = Field(default_factory=list)

    def child_lists(self):
        return [self.children]


class ListItem(_NodeBase):
    kind: Literal["list_item"] = "list_item"
    marker: str                       # full prefix, e.g. "*#"
    children: list[Node] = Field(default_factory=list)

    def child_lists(self):
        return [self.children]

    @property
    def depth(self) -> int:
        return len(self.marker)

    @property
    def ordered(self) -> bool:
        return self.marker.endswith("#")


class ListBlock(_NodeBase):
    kind: Literal["list"] = "list"
    style: Literal["ul", "ol", "dl"]
    items: list[Node] = Field(default_factory=list)

    def child_lists(self):
        return [self.items]


class TableCell(BaseModel):
    model_config = ConfigDict(extra="forbid")

    header: bool = False
    bare: bool = False           # table-level content outside any cell marker
    attrs: list[Node] = Field(default_factory=list)
    children: list[Node] = Field(default_factory=list)


class TableRow(BaseModel):
    model_config = ConfigDict(extra="forbid")

    attrs: list[Node] = Field(default_factory=list)
    cells: list[TableCell] = Field(default_factory=list)


class Table(_NodeBase):
    kind: Literal["table"] = "table"
    attrs: list[Node] = Field(default_factory=list)
    caption: Optional[list[Node]] = None
    rows: list[TableRow] = Field(default_factory=list)

    def child_lists(self):
        lists = [self.attrs]
        if self.caption is not None:
            lists.append(self.caption)
        for row in self.rows:
            lists.append(row.attrs)
            for cell in row.cells:
                lists.append(cell.attrs)
                lists.append(cell.children)
        return lists


# -----------------------------------------------------------------------------

Node = Annotated[
    Union[
        Text, Raw, HorizontalRule, MagicWord, CodeBlock, Category, Redirect, Marker,
        Bold, Italic, Link, ExtLink, HtmlTag, Template, Parameter,
        Heading, Paragraph, Preformatted, ListItem, ListBlock, Table,
    ],
    Field(discriminator="kind"),
]

BLOCK_KINDS = frozenset({
    "heading", "paragraph", "preformatted", "list", "table", "hr", "code",
})


class Document(BaseModel):
    """Root of a page AST; owned exclusively by one page."""
    model_config = ConfigDict(extra="forbid")

    children: list[Node] = Field(default_factory=list)

    def child_lists(self) -> list[list[Node]]:
        return [self.children]


for _model in (
    Category, Bold, Italic, Link, ExtLink, HtmlTag, TemplateArg, Template, Parameter,
    Heading, Paragraph, Preformatted, ListItem, ListBlock, TableCell, TableRow,
    Table, Document,
):
    _model.model_rebuild()


# -----------------------------------------------------------------------------
# Traversal
# -----------------------------------------------------------------------------

def iter_nodes(nodes: list[Node]) -> Iterator[Node]:
    """Depth-first, pre-order walk over *nodes* and all their descendants."""
    stack = list(reversed(nodes))
    while stack:
        node = stack.pop()
        yield node
        for children in reversed(node.child_lists()):
            stack.extend(reversed(children))


# -----------------------------------------------------------------------------
