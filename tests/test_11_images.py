"""
Tests for [[File:...]] image embedding.
"""
from __future__ import annotations

from tests.conftest import make_settings, render


# ── Thumbnails ───────────────────────────────────────────────────────────────

def test_file_thumb_renders_figure():
    html = render("[[File:photo.png|thumb|My caption]]")
    assert '<figure class="wiki-figure img-right">' in html
    assert 'src="/media/Photo.png"' in html
    assert "<figcaption>My caption</figcaption>" in html


def test_file_thumb_no_caption():
    html = render("[[File:photo.png|thumb]]")
    assert "<figure" in html
    assert "<figcaption>" not in html


def test_file_align_left():
    html = render("[[File:photo.png|thumb|left|Caption]]")
    assert 'class="wiki-figure img-left"' in html


def test_frame_is_a_thumbnail():
    assert "<figure" in render("[[File:photo.png|frame|Caption]]")


def test_caption_may_hold_links():
    html = render("[[File:a.png|thumb|See [[Target]]]]", {"Target": "x"})
    assert '<figcaption>See <a href="/wiki/Target.html" class="wikilink"' in html
    assert 'alt="See Target"' in html


# ── Inline images ────────────────────────────────────────────────────────────

def test_file_inline_no_thumb():
    html = render("[[File:photo.png]]")
    assert '<img src="/media/Photo.png" alt="Photo.png" class="wiki-img" loading="lazy" />' in html
    assert "<figure" not in html


def test_inline_caption_becomes_title():
    html = render("[[File:a.png|left|Inline caption]]")
    assert 'class="wiki-img img-left"' in html
    assert 'title="Inline caption"' in html
    assert 'alt="Inline caption"' in html


def test_alt_option():
    html = render("[[File:a.png|alt=An apple|thumb|Cap]]")
    assert 'alt="An apple"' in html
    assert "<figcaption>Cap</figcaption>" in html


# ── Sizes ────────────────────────────────────────────────────────────────────

def test_width():
    html = render("[[File:a.png|200px]]")
    assert 'width="200"' in html
    assert "height=" not in html


def test_height_only():
    html = render("[[File:a.png|x150px]]")
    assert 'height="150"' in html
    assert "width=" not in html


def test_width_and_height():
    html = render("[[File:a.png|thumb|300x200px|Cap]]")
    assert 'width="300"' in html
    assert 'height="200"' in html


# ── Names and namespaces ─────────────────────────────────────────────────────

def test_file_namespace_case_insensitive():
    html = render("[[file:photo.png|thumb|Caption]]")
    assert 'src="/media/Photo.png"' in html


def test_image_namespace_alias():
    assert 'src="/media/Photo.png"' in render("[[Image:photo.png]]")


def test_file_name_with_spaces_is_quoted():
    assert 'src="/media/My_holiday_photo.jpg"' in render("[[File:My holiday photo.jpg]]")


def test_colon_file_link_is_a_page_link():
    html = render("[[:File:photo.png]]")
    assert "<img" not in html
    assert 'href="/File/Photo.png.html"' in html


def test_media_href_uses_base_url():
    html = render("[[File:a.png]]", settings=make_settings(base_url="/docs"))
    assert 'src="/docs/media/A.png"' in html
