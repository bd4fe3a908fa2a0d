"""
Tests for the wikitext tokenizer.

The tokenizer only marks boundaries; these tests check which delimiters are
recognised in which context and that the token text reproduces the input.
"""
from __future__ import annotations

import pytest

from wikistatic.services.tokenizer import TokenKind as K, tokenize


def kinds(text: str) -> list[K]:
    return [t.kind for t in tokenize(text)]


def joined(text: str) -> str:
    return "".join(t.text for t in tokenize(text))


# ── Round trip ───────────────────────────────────────────────────────────────

@pytest.mark.parametrize("text", [
    "Plain text only.",
    "== Heading ==\nSome '''bold''' and ''italic''.",
    "{{Infobox|name=Foo|{{{1|x}}}}}",
    "[[Page|label]]s and [http://example.com site]",
    "{|\n! A !! B\n|-\n| 1 || 2\n|}",
    "* one\n** two\n# three\n; term : def",
    "Unbalanced [[ and {{ and }} stay text",
])
def test_token_text_reproduces_input(text):
    assert joined(text) == text


def test_comments_are_dropped():
    assert joined("a<!-- hidden -->b") == "ab"
    assert joined("a<!-- never closed") == "a"


def test_include_control_tags_are_dropped():
    assert joined("a<noinclude>b</noinclude>c") == "abc"


def test_tokenize_is_lazy_and_restartable():
    text = "[[A]] {{B}}"
    first = list(tokenize(text))
    assert list(tokenize(text)) == first


# ── Braces ───────────────────────────────────────────────────────────────────

def test_template_tokens():
    assert kinds("{{Foo|a=b}}") == [
        K.TEMPLATE_OPEN, K.TEXT, K.PIPE, K.TEXT, K.EQUALS, K.TEXT, K.TEMPLATE_CLOSE,
    ]


def test_parameter_tokens():
    assert kinds("{{{1|default}}}") == [K.PARAM_OPEN, K.TEXT, K.PIPE, K.TEXT, K.PARAM_CLOSE]


def test_five_braces_open_template_then_parameter():
    assert kinds("{{{{{x}}}}}") == [
        K.TEMPLATE_OPEN, K.PARAM_OPEN, K.TEXT, K.PARAM_CLOSE, K.TEMPLATE_CLOSE,
    ]


def test_nested_template_closers():
    assert kinds("{{A|{{B}}}}") == [
        K.TEMPLATE_OPEN, K.TEXT, K.PIPE, K.TEMPLATE_OPEN, K.TEXT,
        K.TEMPLATE_CLOSE, K.TEMPLATE_CLOSE,
    ]


def test_pipe_and_equals_outside_templates_are_text():
    assert kinds("a | b = c") == [K.TEXT]


def test_stray_closing_braces_are_text():
    assert kinds("}} x") == [K.TEXT]


# ── Links ────────────────────────────────────────────────────────────────────

def test_internal_link_tokens():
    assert kinds("[[Foo|bar]]") == [K.LINK_OPEN, K.TEXT, K.PIPE, K.TEXT, K.LINK_CLOSE]


def test_external_link_needs_a_scheme():
    assert kinds("[http://example.com x]") == [K.EXT_OPEN, K.TEXT, K.EXT_CLOSE]
    assert kinds("[not a link]") == [K.TEXT]


def test_bare_url():
    toks = list(tokenize("see https://example.com/a_b."))
    urls = [t for t in toks if t.kind == K.URL]
    assert len(urls) == 1
    assert urls[0].value == "https://example.com/a_b"
    assert toks[-1].text == "."


def test_url_inside_word_is_text():
    assert K.URL not in kinds("xhttp://example.com")


# ── Quotes ───────────────────────────────────────────────────────────────────

def test_quote_runs():
    assert kinds("''a''") == [K.ITALIC, K.TEXT, K.ITALIC]
    assert kinds("'''a'''") == [K.BOLD, K.TEXT, K.BOLD]
    assert kinds("'''''a'''''") == [K.BOLD_ITALIC, K.TEXT, K.BOLD_ITALIC]


def test_four_quotes_leave_one_apostrophe():
    toks = list(tokenize("''''a'''"))
    assert toks[0].kind == K.TEXT and toks[0].text == "'"
    assert toks[1].kind == K.BOLD


# ── Line-leading constructs ──────────────────────────────────────────────────

def test_heading_tokens():
    toks = list(tokenize("=== Title ==="))
    assert [t.kind for t in toks] == [K.HEADING_START, K.TEXT, K.HEADING_END]
    assert toks[0].level == 3
    assert toks[1].text == " Title "


def test_unbalanced_heading_uses_shorter_run():
    toks = list(tokenize("=== Title =="))
    assert toks[0].level == 2
    assert toks[1].text == "= Title "


def test_heading_only_at_line_start():
    assert K.HEADING_START not in kinds("text == not heading ==")


def test_list_markers():
    toks = list(tokenize("*# item"))
    assert toks[0].kind == K.LIST
    assert toks[0].value == "*#"


def test_definition_term_splits_on_colon():
    assert kinds("; term : def") == [K.LIST, K.TEXT, K.LIST, K.TEXT]


def test_horizontal_rule():
    assert kinds("----") == [K.HR]


def test_space_pre():
    assert kinds(" indented") == [K.SPACE_PRE, K.TEXT]


def test_magic_word():
    toks = [t for t in tokenize("__NOTOC__ text") if t.kind == K.MAGIC]
    assert toks[0].value == "NOTOC"


# ── Tables ───────────────────────────────────────────────────────────────────

def test_table_tokens():
    assert kinds("{|\n|-\n| a || b\n|}") == [
        K.TABLE_OPEN, K.NEWLINE,
        K.TABLE_ROW, K.NEWLINE,
        K.TABLE_CELL, K.TEXT, K.CELL_SEP, K.TEXT, K.NEWLINE,
        K.TABLE_CLOSE,
    ]


def test_header_separator_only_on_header_lines():
    assert K.HEADER_SEP in kinds("{|\n! A !! B\n|}")
    assert K.HEADER_SEP not in kinds("{|\n| A !! B\n|}")


def test_table_markers_outside_table_are_text():
    assert kinds("| not a cell") == [K.TEXT]


# ── Tags ─────────────────────────────────────────────────────────────────────

def test_html_tags():
    toks = list(tokenize('<span class="x">a</span><br>'))
    assert [t.kind for t in toks] == [K.TAG_OPEN, K.TEXT, K.TAG_CLOSE, K.TAG_SELF]
    assert toks[0].name == "span"
    assert toks[0].attrs.strip() == 'class="x"'


def test_unknown_tag_is_text():
    assert kinds("<script>x</script>") == [K.TEXT]


def test_nowiki_body_is_opaque():
    toks = list(tokenize("<nowiki>[[x]] {{y}}</nowiki>"))
    assert len(toks) == 1
    assert toks[0].kind == K.NOWIKI
    assert toks[0].value == "[[x]] {{y}}"


def test_code_tag():
    toks = list(tokenize('<syntaxhighlight lang="python">x = {{1}}</syntaxhighlight>'))
    assert len(toks) == 1
    assert toks[0].kind == K.CODE
    assert toks[0].name == "syntaxhighlight"
    assert toks[0].value == "x = {{1}}"
