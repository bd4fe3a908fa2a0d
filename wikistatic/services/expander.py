#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Template expansion
==================
Replaces every ``{{...}}`` call in a page's AST with the expansion of the
called page, recursively, bounded by the template call stack (loops), a depth
limit and a per-page node budget.

A call is expanded in four steps:

  1. the arguments are expanded in the *caller's* context and serialised to
     wikitext (call-by-value);
  2. the callee's transclusion AST is deep-copied and every ``{{{param}}}`` in
     the copy is replaced by its bound value, its default, or left literal;
  3. the copy is serialised and parsed again, so markup assembled from
     parameter values (``[[{{{1}}}]]``, ``{{{{{name}}}}}``) becomes real
     structure;
  4. calls in the result are expanded with the callee's bindings.

Failures never raise: a call that cannot be expanded is replaced by a
``Marker`` node and a ``PageWarning`` is recorded for the page.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from wikistatic.core.config import Settings
from wikistatic.schemas.nodes import (
    Category,
    Document,
    HtmlTag,
    Link,
    Marker,
    Node,
    Paragraph,
    Parameter,
    Raw,
    Table,
    Template,
    TemplateArg,
    Text,
    iter_nodes,
)
from wikistatic.schemas.pages import Page, PageWarning
from wikistatic.services.corpus import CorpusIndex
from wikistatic.services.parser import BLOCK_TAGS, Parser, is_block, parse_inline, reflow
from wikistatic.services.titles import (
    page_name,
    parse_title,
    split_namespace,
    sub_page_name,
    normalize_title,
)
from wikistatic.services.wikitext import plain_text, to_wikitext

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

_STRIP_MARKER = "\x7fUNIQ-{}-QINU\x7f"
_STRIP_RE = re.compile("\x7fUNIQ-(\\d+)-QINU\x7f")
_SUBST_RE = re.compile(r"^\s*(?:safesubst|subst|msgnw|msg)\s*:", re.IGNORECASE)
_INVALID_NAME_RE = re.compile(r"[<>\[\]{}|\n\x7f]")

VARIABLES = frozenset({
    "PAGENAME", "FULLPAGENAME", "BASEPAGENAME", "SUBPAGENAME", "NAMESPACE", "SITENAME",
})


@dataclass(frozen=True)
class ExpansionContext:
    """Where an expansion is happening: the page, the bindings and the call stack."""
    title: str
    bindings: Optional[dict[str, str]] = None    # None outside any template call
    stack: tuple[str, ...] = ()

    def enter(self, template: str, bindings: dict[str, str]) -> "ExpansionContext":
        return ExpansionContext(self.title, bindings, self.stack + (template,))


def _numeric_equal(a: str, b: str) -> bool:
    if a == b:
        return True
    try:
        return float(a) == float(b)
    except ValueError:
        return False


def _arg_nodes(arg: TemplateArg) -> list[Node]:
    """Argument exactly as written, ``name=`` included (parser-function branches)."""
    if arg.name is None:
        return arg.value
    return [Text(text=f"{arg.name}="), *arg.value]


# -----------------------------------------------------------------------------

class Expander:
    """Expands the templates of one page; holds that page's warnings and budget."""

    def __init__(self, index: CorpusIndex, settings: Settings, title: str):
        self.index = index
        self.settings = settings
        self.title = title
        self.budget = settings.max_expansion_nodes
        self.exhausted = False
        self.warnings: list[PageWarning] = []
        self._seen: set[tuple[str, str]] = set()
        self._stashed: list[Node] = []

    def warn(self, kind: str, message: str) -> None:
        if (kind, message) in self._seen:
            return
        self._seen.add((kind, message))
        log.warning("%s: %s: %s", self.title, kind, message)
        self.warnings.append(PageWarning(page=self.title, kind=kind, message=message))

    # ── entry point ─────────────────────────────────────────────────────────

    def expand_document(self, document: Document) -> Document:
        doc = document.model_copy(deep=True)
        children = self.expand_nodes(doc.children, ExpansionContext(title=self.title))
        return Document(children=self._settle_blocks(children))

    # ── walking ─────────────────────────────────────────────────────────────

    def expand_nodes(self, nodes: list[Node], ctx: ExpansionContext) -> list[Node]:
        out: list[Node] = []
        for node in nodes:
            if isinstance(node, Template):
                out.extend(self.expand_template(node, ctx))
                continue
            if isinstance(node, Parameter):
                out.extend(self.expand_parameter(node, ctx))
                continue
            # rows and cells a template supplies only exist once the table is re-read
            dynamic = isinstance(node, Table) and any(
                isinstance(n, (Template, Parameter)) for n in iter_nodes([node]))
            for children in node.child_lists():
                children[:] = self.expand_nodes(children, ctx)
            if isinstance(node, Link) and node.target_nodes is not None:
                out.extend(self._settle_link(node))
            elif isinstance(node, Table) and (
                    dynamic or any(c.bare for r in node.rows for c in r.cells)):
                out.extend(self._settle_table(node))
            elif isinstance(node, Category) and node.sort_key_nodes is not None:
                node.sort_key = plain_text(node.sort_key_nodes).strip()
                node.sort_key_nodes = None
                out.append(node)
            else:
                out.append(node)
        return out

    def expand_text(self, nodes: list[Node], ctx: ExpansionContext) -> str:
        """Expand a copy of *nodes* and serialise the result to wikitext."""
        copies = [n.model_copy(deep=True) for n in nodes]
        return to_wikitext(self.expand_nodes(copies, ctx), stash=self._stash)

    # ── parameters ──────────────────────────────────────────────────────────

    def expand_parameter(self, param: Parameter, ctx: ExpansionContext) -> list[Node]:
        if ctx.bindings is not None:
            name = self.expand_text(param.name, ctx).strip()
            if name in ctx.bindings:
                return [Text(text=ctx.bindings[name])]
        if param.default is not None:
            return self.expand_nodes(param.default, ctx)
        return [Raw(text=to_wikitext([param]))]

    def _substitute(self, nodes: list[Node], ctx: ExpansionContext) -> list[Node]:
        """Replace parameters in a template body copy by their bound values."""
        out: list[Node] = []
        for node in nodes:
            if isinstance(node, Parameter):
                name_nodes = self._substitute(node.name, ctx)
                name = self.expand_text(name_nodes, ctx).strip()
                if name in ctx.bindings:
                    out.append(Text(text=ctx.bindings[name]))
                elif node.default is not None:
                    out.extend(self._substitute(node.default, ctx))
                else:
                    out.append(Raw(text=to_wikitext([node])))
                continue
            for children in node.child_lists():
                children[:] = self._substitute(children, ctx)
            out.append(node)
        return out

    def _bind(self, args: list[TemplateArg], ctx: ExpansionContext) -> dict[str, str]:
        bindings: dict[str, str] = {}
        position = 0
        for arg in args:
            if arg.name is None:
                position += 1
                bindings[str(position)] = self.expand_text(arg.value, ctx)
            else:
                bindings[arg.name.strip()] = self.expand_text(arg.value, ctx).strip()
        return bindings

    # ── calls ───────────────────────────────────────────────────────────────

    def expand_template(self, call: Template, ctx: ExpansionContext) -> list[Node]:
        if self.exhausted:
            return [Marker(reason="expansion-limit", title=to_wikitext(call.name).strip())]

        raw_name = self.expand_text(call.name, ctx).strip()
        if not raw_name:
            return [Text(text=to_wikitext([call]))]

        if raw_name.startswith("#"):
            function, _, first = raw_name.partition(":")
            function = function.strip().lower()
            if function == "#if":
                return self._if(first, call.args, ctx)
            if function == "#switch":
                return self._switch(first, call.args, ctx)
            self.warn("unsupported-function", f"parser function {function} is not supported")
            return [Raw(text=to_wikitext([call]))]

        value = self._variable(raw_name, call)
        if value is not None:
            return [Text(text=value)]

        name = _SUBST_RE.sub("", raw_name)
        if _INVALID_NAME_RE.search(name):
            return [Text(text=to_wikitext([call]))]
        parts = parse_title(name, default_namespace="Template")
        if not parts.text or parts.interwiki:
            return [Text(text=to_wikitext([call]))]

        title = parts.full
        page = self.index.resolve_page(title)
        if page is None:
            self.warn("missing-template", f"template {title!r} does not exist")
            return [Marker(reason="missing-template", title=title)]
        if page.title in ctx.stack:
            chain = " -> ".join(ctx.stack + (page.title,))
            self.warn("template-loop", f"template loop: {chain}")
            return [Marker(reason="template-loop", title=page.title)]
        if len(ctx.stack) >= self.settings.max_template_depth:
            self.warn("depth-exceeded", f"template depth {len(ctx.stack)} exceeded at {page.title!r}")
            return [Marker(reason="depth-exceeded", title=page.title)]

        return self._transclude(page, call, ctx)

    def _transclude(self, page: Page, call: Template, ctx: ExpansionContext) -> list[Node]:
        callee = ctx.enter(page.title, self._bind(call.args, ctx))
        body = page.body_for_transclusion().model_copy(deep=True)
        text = to_wikitext(self._substitute(body.children, callee), stash=self._stash)
        return self._reparse(text, callee, page.title)

    def _reparse(self, text: str, ctx: ExpansionContext, title: str) -> list[Node]:
        if not text.strip():
            return []
        nodes = self._unstrip(Parser(text).document().children)
        self.budget -= sum(1 for _ in iter_nodes(nodes))
        if self.budget < 0:
            if not self.exhausted:
                self.exhausted = True
                self.warn("expansion-limit",
                          f"more than {self.settings.max_expansion_nodes} nodes produced by templates")
            return [Marker(reason="expansion-limit", title=title)]
        nodes = self.expand_nodes(nodes, ctx)
        if len(nodes) == 1 and isinstance(nodes[0], Paragraph):
            return nodes[0].children
        return nodes

    # ── parser functions ────────────────────────────────────────────────────

    def _if(self, condition: str, args: list[TemplateArg], ctx: ExpansionContext) -> list[Node]:
        index = 0 if condition.strip() else 1
        if index >= len(args):
            return []
        text = self.expand_text(_arg_nodes(args[index]), ctx).strip()
        return self._reparse(text, ctx, "#if")

    def _switch(self, value: str, args: list[TemplateArg], ctx: ExpansionContext) -> list[Node]:
        primary = value.strip()
        matched = False
        default: Optional[str] = None
        fallback: Optional[str] = None

        for arg in args:
            if arg.name is not None:
                key, result = arg.name.strip(), None
            else:
                text = self.expand_text(arg.value, ctx)
                if "=" not in text:
                    key = text.strip()
                    matched = matched or _numeric_equal(key, primary)
                    fallback = key
                    continue
                key, result = text.split("=", 1)
                key = key.strip()
            fallback = None
            if matched or _numeric_equal(key, primary):
                return self._case(arg, result, ctx)
            if key == "#default":
                default = result if result is not None else self.expand_text(arg.value, ctx)

        if fallback is not None:
            return self._reparse(fallback, ctx, "#switch")
        if default is not None:
            return self._reparse(default.strip(), ctx, "#switch")
        return []

    def _case(self, arg: TemplateArg, result: Optional[str], ctx: ExpansionContext) -> list[Node]:
        if result is None:
            result = self.expand_text(arg.value, ctx)
        return self._reparse(result.strip(), ctx, "#switch")

    # ── variables ───────────────────────────────────────────────────────────

    def _variable(self, raw_name: str, call: Template) -> Optional[str]:
        if raw_name == "!" and not call.args:
            return "|"
        if raw_name == "=" and not call.args:
            return "="
        name, colon, subject = raw_name.partition(":")
        name = name.strip()
        if name not in VARIABLES:
            return None
        title = normalize_title(subject) if colon and subject.strip() else self.title
        if name == "FULLPAGENAME":
            return title
        if name == "PAGENAME":
            return page_name(title)
        if name == "BASEPAGENAME":
            return page_name(title).rsplit("/", 1)[0]
        if name == "SUBPAGENAME":
            return sub_page_name(title)
        if name == "NAMESPACE":
            return split_namespace(title)[0]
        return self.settings.site_name

    # ── re-parse plumbing ───────────────────────────────────────────────────

    def _stash(self, node: Node) -> str:
        self._stashed.append(node)
        return _STRIP_MARKER.format(len(self._stashed) - 1)

    def _unstrip(self, nodes: list[Node]) -> list[Node]:
        """Put stashed nodes back where their strip markers ended up."""
        if not self._stashed:
            return nodes
        out: list[Node] = []
        for node in nodes:
            if isinstance(node, (Text, Raw)) and "\x7f" in node.text:
                pieces = _STRIP_RE.split(node.text)
                for i, piece in enumerate(pieces):
                    if i % 2:
                        out.append(self._stashed[int(piece)].model_copy(deep=True))
                    elif piece:
                        out.append(type(node)(text=piece))
                continue
            for children in node.child_lists():
                children[:] = self._unstrip(children)
            out.append(node)
        return out

    def _settle_link(self, link: Link) -> list[Node]:
        """Re-parse a link whose target was assembled by expansion."""
        return self._unstrip(parse_inline(to_wikitext([link], stash=self._stash)))

    def _settle_table(self, table: Table) -> list[Node]:
        """Re-parse a table whose rows came from table-level template output."""
        text = to_wikitext([table], stash=self._stash)
        return self._unstrip(Parser(text).document().children)

    def _settle_blocks(self, nodes: list[Node]) -> list[Node]:
        nodes = reflow(nodes)
        for node in iter_nodes(nodes):
            if isinstance(node, Table):
                for row in node.rows:
                    for cell in row.cells:
                        if any(is_block(c) for c in cell.children):
                            cell.children[:] = reflow(cell.children)
            elif isinstance(node, HtmlTag) and node.name in BLOCK_TAGS:
                node.children[:] = reflow(node.children)
        return nodes


# -----------------------------------------------------------------------------

def expand_page(page: Page, index: CorpusIndex, settings: Settings) -> tuple[Document, list[PageWarning]]:
    """Return the fully expanded copy of *page*'s AST and the warnings raised doing it."""
    expander = Expander(index, settings, page.title)
    document = expander.expand_document(page.ast)
    return document, expander.warnings


# -----------------------------------------------------------------------------
