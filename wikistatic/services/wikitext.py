#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
AST → wikitext / plain text
===========================
``to_wikitext`` serialises nodes back to markup that re-parses to an
equivalent tree.  Template expansion relies on it: argument values are
expanded, serialised, and handed to the callee as text, and a substituted
template body is serialised and parsed again so that markup assembled from
parameter values takes effect.

``plain_text`` flattens nodes to their visible text (TOC entries, attribute
values, ``#switch`` keys).
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Callable, Optional

from wikistatic.schemas.nodes import (
    BLOCK_KINDS,
    Bold,
    Category,
    CodeBlock,
    ExtLink,
    Heading,
    HorizontalRule,
    HtmlTag,
    Italic,
    Link,
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
)

Stash = Callable[[Node], str]

MARKER_MESSAGES = {
    "missing-template": "Missing template",
    "template-loop": "Template loop detected",
    "depth-exceeded": "Template depth limit exceeded",
    "expansion-limit": "Template expansion limit exceeded",
}


def marker_message(marker: Marker) -> str:
    return MARKER_MESSAGES.get(marker.reason, marker.reason)


# -----------------------------------------------------------------------------
# Serialisation
# -----------------------------------------------------------------------------

class _Writer:

    def __init__(self, stash: Optional[Stash]):
        self.out: list[str] = []
        self.stash = stash

    def put(self, s: str) -> None:
        if s:
            self.out.append(s)

    def newline(self) -> None:
        """Make sure the next write starts a fresh line."""
        if self.out and not self.out[-1].endswith("\n"):
            self.out.append("\n")

    def sub(self, nodes: list[Node]) -> str:
        w = _Writer(self.stash)
        w.nodes(nodes)
        return "".join(w.out)

    def nodes(self, nodes: list[Node]) -> None:
        for node in nodes:
            self.node(node)

    def node(self, node: Node) -> None:
        put = self.put

        if isinstance(node, Text):
            put(node.text)
        elif isinstance(node, Raw):
            put(f"<nowiki>{node.text}</nowiki>")
        elif isinstance(node, MagicWord):
            put(f"__{node.name}__")
        elif isinstance(node, Category):
            if node.sort_key_nodes is not None:
                sort = "|" + self.sub(node.sort_key_nodes)
            else:
                sort = f"|{node.sort_key}" if node.sort_key else ""
            put(f"[[Category:{node.name}{sort}]]")
        elif isinstance(node, Marker):
            if self.stash is not None:
                put(self.stash(node))
            elif node.reason == "missing-template":
                put(f"[[:{node.title}]]")
            else:
                put(f'<span class="error">{marker_message(node)}: [[:{node.title}]]</span>')
        elif isinstance(node, Bold):
            put("'''" + self.sub(node.children) + "'''")
        elif isinstance(node, Italic):
            put("''" + self.sub(node.children) + "''")
        elif isinstance(node, Link):
            self.link(node)
        elif isinstance(node, ExtLink):
            if node.bracketed:
                label = self.sub(node.children)
                put(f"[{node.url} {label}]" if label else f"[{node.url}]")
            else:
                put(node.url)
        elif isinstance(node, HtmlTag):
            attrs = self.sub(node.attrs)
            if attrs and not attrs[0].isspace():
                attrs = " " + attrs
            if node.self_closing:
                put(f"<{node.name}{attrs} />")
            else:
                put(f"<{node.name}{attrs}>" + self.sub(node.children) + f"</{node.name}>")
        elif isinstance(node, Template):
            parts = [self.sub(node.name)]
            for arg in node.args:
                value = self.sub(arg.value)
                parts.append(f"{arg.name}={value}" if arg.name is not None else value)
            put("{{" + "|".join(parts) + "}}")
        elif isinstance(node, Parameter):
            default = "" if node.default is None else "|" + self.sub(node.default)
            put("{{{" + self.sub(node.name) + default + "}}}")
        elif isinstance(node, CodeBlock):
            lang = f' lang="{node.lang}"' if node.lang else ""
            put(f"<{node.tag}{lang}>{node.code}</{node.tag}>")
        else:
            self.block(node)

    def link(self, node: Link) -> None:
        if node.target_nodes is not None:
            text = "[[" + self.sub(node.target_nodes)
        else:
            text = "[[" + node.target
        for option in node.options:
            text += "|" + option
        if node.piped:
            text += "|" + self.sub(node.children)
        self.put(text + "]]" + node.trail)

    def block(self, node: Node) -> None:
        put = self.put
        self.newline()
        if isinstance(node, Heading):
            bar = "=" * node.level
            put(f"{bar} {self.sub(node.children)} {bar}")
        elif isinstance(node, Paragraph):
            self.nodes(node.children)
            self.newline()
        elif isinstance(node, HorizontalRule):
            put("----")
        elif isinstance(node, Redirect):
            put(f"#REDIRECT [[{node.target}]]")
        elif isinstance(node, Preformatted):
            put("\n".join(" " + line for line in self.sub(node.children).split("\n")))
        elif isinstance(node, ListBlock):
            for item in node.items:
                self.list_item(item)
        elif isinstance(node, ListItem):
            self.list_item(node)
        elif isinstance(node, Table):
            self.table(node)
        put("\n")

    def list_item(self, item: Node) -> None:
        if not isinstance(item, ListItem):
            self.node(item)
            return
        inline = [c for c in item.children if not isinstance(c, ListBlock)]
        nested = [c for c in item.children if isinstance(c, ListBlock)]
        if inline or not nested:
            self.newline()
            self.put(f"{item.marker} {self.sub(inline)}".rstrip(" "))
            self.put("\n")
        for block in nested:
            for sub_item in block.items:
                self.list_item(sub_item)

    def table(self, node: Table) -> None:
        put = self.put
        put("{|" + self.sub(node.attrs) + "\n")
        if node.caption is not None:
            put("|+ " + self.sub(node.caption) + "\n")
        for r, row in enumerate(node.rows):
            attrs = self.sub(row.attrs)
            if r > 0 or attrs.strip():
                put("|-" + attrs + "\n")
            for cell in row.cells:
                content = self.sub(cell.children)
                if cell.children and cell.children[0].kind in BLOCK_KINDS:
                    content = "\n" + content
                if cell.bare:
                    put(content)
                    self.newline()
                    continue
                marker = "!" if cell.header else "|"
                cell_attrs = self.sub(cell.attrs).strip()
                if cell_attrs:
                    marker += f" {cell_attrs} |"
                put(f"{marker} {content}".rstrip(" "))
                self.newline()
        put("|}")


def to_wikitext(nodes: list[Node], stash: Optional[Stash] = None) -> str:
    """Serialise *nodes* to wikitext.

    *stash*, when given, is called for every Marker node and must return the
    text to emit in its place (the expander uses this to carry markers through
    a re-parse).
    """
    w = _Writer(stash)
    w.nodes(nodes)
    return "".join(w.out)


# -----------------------------------------------------------------------------
# Plain text
# -----------------------------------------------------------------------------

def plain_text(nodes: list[Node]) -> str:
    out: list[str] = []
    for node in nodes:
        if isinstance(node, (Text, Raw)):
            out.append(node.text)
        elif isinstance(node, CodeBlock):
            out.append(node.code)
        elif isinstance(node, Marker):
            out.append(node.title)
        elif isinstance(node, Link):
            if node.options:
                continue
            out.append(plain_text(node.children) + node.trail)
        elif isinstance(node, ExtLink):
            out.append(plain_text(node.children) if node.children else node.url)
        elif isinstance(node, (Template, Parameter, Category, MagicWord, Redirect, HorizontalRule)):
            continue
        elif isinstance(node, Table):
            cells = [plain_text(c.children) for row in node.rows for c in row.cells]
            out.append(" ".join(cells))
        elif isinstance(node, ListBlock):
            out.append("\n".join(plain_text([item]) for item in node.items))
        elif isinstance(node, HtmlTag):
            out.append(plain_text(node.children))
        else:
            for children in node.child_lists():
                out.append(plain_text(children))
    return "".join(out)


# -----------------------------------------------------------------------------
