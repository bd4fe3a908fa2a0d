"""
Tests for the wikitext parser: AST shape for inline and block constructs,
graceful degradation of malformed markup, and the wikitext serializer.
"""
from __future__ import annotations

import pytest

from wikistatic.schemas.nodes import (
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
    Paragraph,
    Parameter,
    Preformatted,
    Raw,
    Redirect,
    Template,
    TemplateArg,
    Text,
)
from wikistatic.services.parser import (
    parse,
    parse_inline,
    parse_redirect,
    parse_with_problems,
    pipe_trick,
    transclusion_text,
    view_text,
)
from wikistatic.services.wikitext import plain_text, to_wikitext


# =============================================================================
# Paragraphs and inline formatting
# =============================================================================

def test_plain_paragraph():
    doc = parse("Hello ''world''")
    assert doc.children == [
        Paragraph(children=[Text(text="Hello "), Italic(children=[Text(text="world")])]),
    ]


def test_single_newline_stays_in_paragraph():
    doc = parse("Line one\nLine two")
    assert doc.children == [Paragraph(children=[Text(text="Line one\nLine two")])]


def test_blank_line_splits_paragraphs():
    doc = parse("Para one\n\nPara two")
    assert [type(n) for n in doc.children] == [Paragraph, Paragraph]


def test_bold_italic_nesting():
    assert parse_inline("'''''both'''''") == [Bold(children=[Italic(children=[Text(text="both")])])]


def test_unclosed_italic_closes_at_end():
    assert parse_inline("''open") == [Italic(children=[Text(text="open")])]


def test_nowiki_is_raw():
    assert parse_inline("<nowiki>''x'' [[y]]</nowiki>") == [Raw(text="''x'' [[y]]")]


# =============================================================================
# Block constructs
# =============================================================================

def test_heading():
    assert parse("== Alpha ==").children == [Heading(level=2, children=[Text(text="Alpha")])]


def test_heading_levels():
    doc = parse("= One =\n=== Three ===\n====== Six ======")
    assert [h.level for h in doc.children] == [1, 3, 6]


def test_unordered_list():
    doc = parse("* a\n* b")
    assert doc.children == [ListBlock(style="ul", items=[
        ListItem(marker="*", children=[Text(text="a")]),
        ListItem(marker="*", children=[Text(text="b")]),
    ])]


def test_nested_list_hangs_off_previous_item():
    doc = parse("* a\n** b")
    outer = doc.children[0]
    assert outer.style == "ul"
    first = outer.items[0]
    assert first.children[0] == Text(text="a")
    assert first.children[1] == ListBlock(style="ul", items=[
        ListItem(marker="**", children=[Text(text="b")]),
    ])


def test_ordered_and_definition_lists():
    doc = parse("# one\n\n; term : def")
    assert doc.children[0].style == "ol"
    dl = doc.children[1]
    assert dl.style == "dl"
    assert [i.marker for i in dl.items] == [";", ":"]


def test_horizontal_rule():
    assert parse("----").children == [HorizontalRule()]


def test_preformatted_lines():
    assert parse(" a\n b").children == [Preformatted(children=[Text(text="a\nb")])]


def test_magic_word_is_a_block():
    doc = parse("__NOTOC__\nText")
    assert doc.children[0] == MagicWord(name="NOTOC")
    assert isinstance(doc.children[1], Paragraph)


def test_block_tag():
    doc = parse('<div class="x">Hi</div>')
    tag = doc.children[0]
    assert isinstance(tag, HtmlTag)
    assert tag.name == "div"
    assert tag.children == [Paragraph(children=[Text(text="Hi")])]


def test_code_block():
    doc = parse('<syntaxhighlight lang="Python">x = 1</syntaxhighlight>')
    assert doc.children == [CodeBlock(code="x = 1", lang="python", tag="syntaxhighlight")]


# =============================================================================
# Links
# =============================================================================

def test_unpiped_link_label_is_target():
    assert parse_inline("[[Foo bar]]") == [Link(target="Foo bar", children=[Text(text="Foo bar")])]


def test_piped_link():
    assert parse_inline("[[Foo|the foo]]") == [
        Link(target="Foo", children=[Text(text="the foo")], piped=True),
    ]


def test_link_trail():
    nodes = parse_inline("[[dog]]s run")
    assert nodes[0].trail == "s"
    assert nodes[1] == Text(text=" run")


def test_pipe_trick():
    nodes = parse_inline("[[Help:Foo (bar)|]]")
    assert nodes[0].children == [Text(text="Foo")]
    assert pipe_trick("Paris, Texas") == "Paris"


def test_category_link():
    assert parse_inline("[[Category:Things|Key]]") == [Category(name="Things", sort_key="Key")]


def test_category_sort_key_with_template():
    text = "[[Category:Things|{{Key}}]]"
    node = parse_inline(text)[0]
    assert isinstance(node, Category)
    assert node.sort_key == ""
    assert isinstance(node.sort_key_nodes[0], Template)
    assert to_wikitext([node]) == text


def test_colon_category_is_an_ordinary_link():
    nodes = parse_inline("[[:Category:Things]]")
    assert isinstance(nodes[0], Link)
    assert nodes[0].children == [Text(text="Category:Things")]


def test_file_link_options_and_caption():
    link = parse_inline("[[File:A.png|thumb|200px|A caption]]")[0]
    assert link.options == ["thumb", "200px"]
    assert link.children == [Text(text="A caption")]
    assert link.piped


def test_file_link_without_caption():
    link = parse_inline("[[File:A.png|left]]")[0]
    assert link.options == ["left"]
    assert link.children == []


def test_external_link():
    assert parse_inline("[http://example.com Example site]") == [
        ExtLink(url="http://example.com", children=[Text(text="Example site")]),
    ]


def test_bare_url_is_unbracketed_extlink():
    nodes = parse_inline("see http://example.com now")
    assert nodes[1] == ExtLink(url="http://example.com", bracketed=False)


def test_link_target_with_template_is_kept_as_nodes():
    link = parse_inline("[[{{{1}}}|x]]")[0]
    assert link.target == ""
    assert isinstance(link.target_nodes[0], Parameter)


# =============================================================================
# Templates and parameters
# =============================================================================

def test_template_arguments():
    assert parse_inline("{{Foo|a|k=v}}") == [Template(
        name=[Text(text="Foo")],
        args=[
            TemplateArg(value=[Text(text="a")]),
            TemplateArg(name="k", value=[Text(text="v")]),
        ],
    )]


def test_equals_inside_nested_template_keeps_argument_positional():
    call = parse_inline("{{Foo|{{Bar|x=1}}}}")[0]
    assert call.args[0].name is None
    assert isinstance(call.args[0].value[0], Template)


def test_parameter_with_default():
    assert parse_inline("{{{1|def}}}") == [
        Parameter(name=[Text(text="1")], default=[Text(text="def")]),
    ]


def test_parameter_with_empty_default():
    param = parse_inline("{{{name|}}}")[0]
    assert param.default == []


# =============================================================================
# Malformed input never fails
# =============================================================================

@pytest.mark.parametrize("text", [
    "[[Foo", "{{Foo", "{{{x", "[[a{b]]", "{|\n| cell", "'''", "<div>unclosed",
    "}}]]|}", "== ==",
])
def test_malformed_input_parses(text):
    doc = parse(text)
    assert doc is not None


def test_unmatched_link_is_literal():
    assert parse_inline("[[Foo") == [Text(text="[[Foo")]


def test_invalid_link_target_is_literal():
    assert parse_inline("[[a{b]]") == [Text(text="[[a{b]]")]


def test_unterminated_template_is_reported():
    doc, problems = parse_with_problems("a {{unclosed")
    assert problems == ["unterminated '{{' at offset 2"]
    assert plain_text(doc.children[0].children) == "a {{unclosed"


def test_damage_is_contained_to_its_construct():
    doc = parse("[[Broken\n\n'''Fine'''")
    assert doc.children[1] == Paragraph(children=[Bold(children=[Text(text="Fine")])])


# =============================================================================
# Redirects and transclusion views
# =============================================================================

def test_parse_redirect():
    assert parse_redirect("#REDIRECT [[Target page]]\nrest") == ("Target page", "rest")
    assert parse_redirect("#redirect:[[X|label]]") == ("X", "")
    assert parse_redirect("Not a redirect") == (None, "Not a redirect")


def test_redirect_node_comes_first():
    doc = parse("#REDIRECT [[Target]]\n[[Category:Moved]]")
    assert doc.children[0] == Redirect(target="Target")
    assert doc.children[1] == Category(name="Moved")


def test_view_and_transclusion_text():
    src = "a<noinclude>b</noinclude><includeonly>c</includeonly>"
    assert view_text(src) == "ab"
    assert transclusion_text(src) == "ac"


def test_onlyinclude_limits_transclusion():
    assert transclusion_text("x<onlyinclude>y</onlyinclude>z") == "y"


# =============================================================================
# Serialization
# =============================================================================

@pytest.mark.parametrize("text", [
    "'''b''' [[A|x]]",
    "{{T|a|k=v}}",
    "{{{1|default}}}",
    "[http://example.com label]",
    "[[File:A.png|thumb|Cap]]",
    "[[dog]]s",
])
def test_inline_wikitext_round_trip(text):
    assert to_wikitext(parse_inline(text)) == text


def test_block_wikitext_reparses_to_same_tree():
    text = "== H ==\n* a\n** b\n\nPara ''x''\n{|\n! A\n|-\n| 1 || 2\n|}"
    doc = parse(text)
    assert parse(to_wikitext(doc.children)).children == doc.children


def test_plain_text():
    assert plain_text(parse_inline("'''Hello''' [[A|world]]")) == "Hello world"
