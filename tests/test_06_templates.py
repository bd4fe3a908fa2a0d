"""
Tests for template expansion: parameters, call-by-value, nesting, defect
markers (missing, loop, depth, budget), transclusion views and variables.
"""
from __future__ import annotations

from wikistatic.schemas.nodes import Marker, Template, iter_nodes

from tests.conftest import expand, make_settings, render

GREET = {"Template:Greet": "{{{1}}} says {{{greeting|hello}}}"}


# =============================================================================
# Parameters
# =============================================================================

def test_positional_and_default():
    assert "<p>Bob says hello</p>" in render("{{Greet|Bob}}", GREET)


def test_named_argument_overrides_default():
    assert "<p>Bob says hi</p>" in render("{{Greet|Bob|greeting=hi}}", GREET)


def test_explicit_numbered_argument():
    assert "<p>Ann says hello</p>" in render("{{Greet|1=Ann}}", GREET)


def test_positional_keeps_whitespace_named_strips_it():
    pages = {"Template:Q": "<b>{{{1}}}</b>"}
    assert "<b> x </b>" in render("{{Q| x }}", pages)
    assert "<b>x</b>" in render("{{Q|1= x }}", pages)


def test_unbound_parameter_without_default_stays_literal():
    assert "{{{1}}} says hello" in render("{{Greet}}", GREET)


def test_empty_default_expands_to_nothing():
    pages = {"Template:Opt": "[{{{x|}}}]"}
    assert "<p>[]</p>" in render("{{Opt}}", pages)


def test_template_name_is_case_insensitive_on_first_letter():
    assert "Bob says hello" in render("{{greet|Bob}}", GREET)


def test_subst_prefix_is_ignored():
    assert "Bob says hello" in render("{{subst:Greet|Bob}}", GREET)


# =============================================================================
# Nesting and call-by-value
# =============================================================================

def test_template_as_argument():
    pages = dict(GREET, **{"Template:Name": "Bob"})
    assert "Bob says hello" in render("{{Greet|{{Name}}}}", pages)


def test_parameter_passed_through_to_inner_template():
    pages = {
        "Template:Outer": "({{Inner|{{{1}}}}})",
        "Template:Inner": "<b>{{{1}}}</b>",
    }
    assert "<p>(<b>hi</b>)</p>" in render("{{Outer|hi}}", pages)


def test_link_target_built_from_parameter():
    pages = {"Template:L": "[[{{{1}}}]]", "Target": "x"}
    html = render("{{L|Target}}", pages)
    assert '<a href="/wiki/Target.html" class="wikilink" title="Target">Target</a>' in html


def test_template_output_with_list_becomes_block():
    pages = {"Template:List": "* a\n* b"}
    html = render("Intro {{List}} outro", pages)
    assert "<p>Intro</p>" in html
    assert "<li>a</li>" in html
    assert "<p>outro</p>" in html


def test_main_namespace_transclusion():
    pages = {"Main article": "Transcluded text"}
    assert "Transcluded text" in render("{{:Main article}}", pages)


def test_template_redirect_is_followed():
    pages = {"Template:Alias": "#REDIRECT [[Template:Real]]", "Template:Real": "real body"}
    assert "real body" in render("{{Alias}}", pages)


def test_expansion_does_not_touch_stored_page():
    document, _, index = expand("{{Greet|Bob}}", GREET)
    stored = index.pages["Test page"].ast
    assert any(isinstance(n, Template) for n in iter_nodes(stored.children))
    assert not any(isinstance(n, Template) for n in iter_nodes(document.children))


def test_same_template_twice_is_not_a_loop():
    html = render("{{Greet|A}} / {{Greet|B}}", GREET)
    assert "A says hello / B says hello" in html
    assert "template-loop" not in html


# =============================================================================
# Defect markers
# =============================================================================

def test_missing_template_marker():
    document, warnings, _ = expand("Before {{Nope}} after")
    markers = [n for n in iter_nodes(document.children) if isinstance(n, Marker)]
    assert markers == [Marker(reason="missing-template", title="Template:Nope")]
    assert [(w.kind, w.message) for w in warnings] == [
        ("missing-template", "template 'Template:Nope' does not exist"),
    ]


def test_missing_template_renders_red_link():
    html = render("{{Nope}}")
    assert 'href="/Template/Nope.html"' in html
    assert 'class="new template-missing"' in html
    assert ">Template:Nope</a>" in html


def test_repeated_missing_template_warns_once():
    _, warnings, _ = expand("{{Nope}} {{Nope}}")
    assert len(warnings) == 1


def test_template_loop_is_cut():
    pages = {"Template:A": "a{{B}}", "Template:B": "b{{A}}"}
    document, warnings, _ = expand("{{A}}", pages)
    assert [w.kind for w in warnings] == ["template-loop"]
    assert warnings[0].message == "template loop: Template:A -> Template:B -> Template:A"
    html = render("{{A}}", pages)
    assert "ab<span" in html
    assert 'class="error template-loop"' in html


def test_self_transclusion_is_a_loop():
    html = render("{{Self}}", {"Template:Self": "x{{Self}}"})
    assert "template-loop" in html


def test_depth_limit():
    pages = {
        "Template:T1": "1{{T2}}",
        "Template:T2": "2{{T3}}",
        "Template:T3": "3{{T4}}",
        "Template:T4": "4",
    }
    settings = make_settings(max_template_depth=3)
    document, warnings, _ = expand("{{T1}}", pages, settings=settings)
    assert [w.kind for w in warnings] == ["depth-exceeded"]
    html = render("{{T1}}", pages, settings=settings)
    assert "123<span" in html
    assert "depth-exceeded" in html


def test_expansion_budget():
    pages = {"Template:Row": "x"}
    settings = make_settings(max_expansion_nodes=100)
    document, warnings, _ = expand("{{Row}}" * 60, pages, settings=settings)
    assert [w.kind for w in warnings] == ["expansion-limit"]
    markers = [n for n in iter_nodes(document.children) if isinstance(n, Marker)]
    assert markers
    assert all(m.reason == "expansion-limit" for m in markers)


def test_marker_survives_being_passed_as_argument():
    pages = {"Template:Wrap": "<b>{{{1}}}</b>"}
    html = render("{{Wrap|{{Nope}}}}", pages)
    assert '<b><a href="/Template/Nope.html" class="new template-missing"' in html


# =============================================================================
# Transclusion views
# =============================================================================

def test_noinclude_hidden_when_transcluded():
    pages = {"Template:Doc": "Shown<noinclude> Hidden docs</noinclude>"}
    html = render("{{Doc}}", pages)
    assert "Shown" in html
    assert "Hidden" not in html


def test_noinclude_shown_on_template_page():
    html = render("Shown<noinclude> docs</noinclude>", title="Template:Doc")
    assert "Shown docs" in html


def test_includeonly():
    pages = {"Template:Inc": "<includeonly>Included</includeonly><noinclude>Viewed</noinclude>"}
    assert "Included" in render("{{Inc}}", pages)
    assert "Viewed" not in render("{{Inc}}", pages)
    own = render(pages["Template:Inc"], title="Template:Inc")
    assert "Viewed" in own
    assert "Included" not in own


def test_onlyinclude():
    pages = {"Template:Part": "Intro <onlyinclude>Core</onlyinclude> outro"}
    html = render("{{Part}}", pages)
    assert "Core" in html
    assert "Intro" not in html


def test_template_page_shows_unbound_parameters():
    html = render("{{{1}}} says {{{greeting|hello}}}", title="Template:Greet")
    assert "{{{1}}} says hello" in html


# =============================================================================
# Variables
# =============================================================================

def test_page_name_variables():
    title = "Help:Lua/Functions"
    assert "<p>Lua/Functions</p>" in render("{{PAGENAME}}", title=title)
    assert "<p>Help:Lua/Functions</p>" in render("{{FULLPAGENAME}}", title=title)
    assert "<p>Lua</p>" in render("{{BASEPAGENAME}}", title=title)
    assert "<p>Functions</p>" in render("{{SUBPAGENAME}}", title=title)
    assert "<p>Help</p>" in render("{{NAMESPACE}}", title=title)


def test_variable_with_explicit_subject():
    assert "<p>Other page</p>" in render("{{PAGENAME:other page}}")


def test_sitename():
    html = render("{{SITENAME}}", settings=make_settings(site_name="Test Wiki"))
    assert "<p>Test Wiki</p>" in html


def test_variables_inside_template_refer_to_viewed_page():
    pages = {"Template:Me": "I am {{PAGENAME}}"}
    assert "I am Some page" in render("{{Me}}", pages, title="Some page")


def test_pipe_escape_variable():
    assert "<p>a | b</p>" in render("a {{!}} b")
