"""
Tests for the build pipeline: per-page isolation, determinism across
worker backends, JSON output and the on-disk build.
"""
from __future__ import annotations

from pathlib import Path

from wikistatic.schemas.nodes import Document
from wikistatic.services import pipeline
from wikistatic.services.pipeline import FAILURE_HTML, build_site, run_build, run_parallel

from tests.conftest import make_settings, sources, write_dump


CORPUS = {
    "Main Page": "== Welcome ==\nSee [[Alpha]] and [[Gone]].\n{{Note|hi}}",
    "Alpha": "Alpha. [[Category:Letters]]",
    "Beta": "Beta {{Note|there}} [[Category:Letters]]",
    "Old": "#REDIRECT [[Alpha]]",
    "Template:Note": "<b>{{{1}}}</b>",
    "Category:Letters": "All the letters.",
}


def contents(documents) -> list[tuple[str, str]]:
    return [(d.path, d.content) for d in documents]


# =============================================================================
# In-memory builds
# =============================================================================

def test_build_is_idempotent():
    first = build_site(sources(CORPUS), make_settings())[0]
    second = build_site(sources(CORPUS), make_settings())[0]
    assert contents(first) == contents(second)


def test_report_counts():
    documents, report, _ = build_site(sources(CORPUS), make_settings())
    assert report.pages == 5
    assert report.redirects == 1
    assert report.categories == 1
    assert report.documents == len(documents)
    assert report.failed == []
    assert report.warning_counts() == {"missing-link": 1}
    assert report.link_counts() == {"internal": 1, "missing": 1}


def test_report_summary():
    _, report, _ = build_site(sources(CORPUS), make_settings())
    assert report.summary() == (
        "5 pages, 1 redirects, 1 categories, 8 documents; 0 failed; warnings: missing-link=1; "
        "links: internal=1, missing=1"
    )


def test_malformed_page_still_renders():
    pages = dict(CORPUS, Broken="Text with {{unclosed and '''bold")
    documents, report, _ = build_site(sources(pages), make_settings())
    docs = {d.path: d for d in documents}
    assert "{{unclosed" in docs["wiki/Broken.html"].content
    assert "<b>bold</b>" in docs["wiki/Broken.html"].content
    assert report.failed == []
    assert "<p>Alpha.</p>" in docs["wiki/Alpha.html"].content


def test_render_failure_is_isolated(monkeypatch):
    real = pipeline.render_document

    def flaky(document, settings, title=""):
        if title == "Beta":
            raise RuntimeError("renderer exploded")
        return real(document, settings, title)

    monkeypatch.setattr(pipeline, "render_document", flaky)
    documents, report, _ = build_site(sources(CORPUS), make_settings())
    docs = {d.path: d for d in documents}

    assert report.failed == ["Beta"]
    assert FAILURE_HTML in docs["wiki/Beta.html"].content
    assert "<p>Alpha.</p>" in docs["wiki/Alpha.html"].content
    failures = [w for w in report.warnings if w.kind == "page-failure"]
    assert [(w.page, w.message) for w in failures] == [("Beta", "renderer exploded")]


def test_failed_page_keeps_no_category_membership(monkeypatch):
    real = pipeline.render_document

    def flaky(document, settings, title=""):
        if title == "Beta":
            raise RuntimeError("boom")
        return real(document, settings, title)

    monkeypatch.setattr(pipeline, "render_document", flaky)
    documents, _, _ = build_site(sources(CORPUS), make_settings())
    category = next(d for d in documents if d.path == "Category/Letters.html")
    assert "/wiki/Alpha.html" in category.content
    assert "/wiki/Beta.html" not in category.content


def test_thread_pool_matches_serial():
    serial = build_site(sources(CORPUS), make_settings(workers=1))[0]
    threaded = build_site(sources(CORPUS), make_settings(workers=2, worker_backend="thread"))[0]
    assert contents(serial) == contents(threaded)


def test_run_parallel_keeps_order():
    items = list(range(50))
    settings = make_settings(workers=4, worker_backend="thread")
    assert run_parallel(str, items, settings) == [str(i) for i in items]


def test_ast_json_output():
    documents, _, _ = build_site(sources(CORPUS), make_settings(write_ast_json=True))
    docs = {d.path: d for d in documents}
    doc = docs["wiki/Beta.json"]
    assert doc.kind == "json"
    tree = Document.model_validate_json(doc.content)
    assert tree.children
    assert "wiki/Old.json" not in docs


def test_no_json_by_default():
    documents, _, _ = build_site(sources(CORPUS), make_settings())
    assert not [d for d in documents if d.path.endswith(".json")]


# =============================================================================
# On-disk builds
# =============================================================================

def test_run_build_writes_site(tmp_path: Path):
    dump = write_dump(tmp_path / "dump", CORPUS)
    out = tmp_path / "out"
    report = run_build(make_settings(output_dir=out), dump=dump)

    assert report.failed == []
    for relative in (
        "index.html",
        "Special/Categories.html",
        "wiki/Main_Page.html",
        "wiki/Old.html",
        "Template/Note.html",
        "Category/Letters.html",
        "static/style.css",
        "static/pygments.css",
    ):
        assert (out / relative).is_file(), relative
    assert ".highlight" in (out / "static" / "pygments.css").read_text(encoding="utf-8")


def test_run_build_twice_gives_identical_files(tmp_path: Path):
    dump = write_dump(tmp_path / "dump", CORPUS)

    def snapshot(root: Path) -> dict[str, bytes]:
        return {p.relative_to(root).as_posix(): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()}

    run_build(make_settings(output_dir=tmp_path / "a"), dump=dump)
    run_build(make_settings(output_dir=tmp_path / "b"), dump=dump)
    assert snapshot(tmp_path / "a") == snapshot(tmp_path / "b")


def test_clean_removes_stale_files(tmp_path: Path):
    dump = write_dump(tmp_path / "dump", CORPUS)
    out = tmp_path / "out"
    out.mkdir()
    (out / "stale.html").write_text("old", encoding="utf-8")

    run_build(make_settings(output_dir=out), dump=dump)
    assert (out / "stale.html").exists()

    run_build(make_settings(output_dir=out), clean=True, dump=dump)
    assert not (out / "stale.html").exists()
    assert (out / "index.html").exists()


def test_source_dir_setting_is_the_default_dump(tmp_path: Path):
    dump = write_dump(tmp_path / "dump", {"Only": "Just one page."})
    out = tmp_path / "out"
    run_build(make_settings(source_dir=dump, output_dir=out))
    assert "Just one page." in (out / "wiki" / "Only.html").read_text(encoding="utf-8")
