from wikistatic.schemas.nodes import (
    LinkStatus,
    Node, Document, iter_nodes, BLOCK_KINDS,
    Text, Raw, HorizontalRule, MagicWord, CodeBlock, Category, Redirect, Marker,
    Bold, Italic, Link, ExtLink, HtmlTag,
    Template, TemplateArg, Parameter,
    Heading, Paragraph, Preformatted, ListItem, ListBlock,
    Table, TableRow, TableCell,
)
from wikistatic.schemas.pages import (
    WarningKind, PageWarning,
    SourcePage, Page, RedirectEntry,
    LinkRecord, CategoryMembership, TocEntry, RenderedDocument,
    PageResult, BuildReport,
)

__all__ = [
    "LinkStatus",
    "Node", "Document", "iter_nodes", "BLOCK_KINDS",
    "Text", "Raw", "HorizontalRule", "MagicWord", "CodeBlock", "Category", "Redirect", "Marker",
    "Bold", "Italic", "Link", "ExtLink", "HtmlTag",
    "Template", "TemplateArg", "Parameter",
    "Heading", "Paragraph", "Preformatted", "ListItem", "ListBlock",
    "Table", "TableRow", "TableCell",
    "WarningKind", "PageWarning",
    "SourcePage", "Page", "RedirectEntry",
    "LinkRecord", "CategoryMembership", "TocEntry", "RenderedDocument",
    "PageResult", "BuildReport",
]
