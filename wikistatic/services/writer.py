#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Output writer: rendered documents and static assets → the output directory.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import shutil
from importlib import resources
from pathlib import Path
from typing import Iterable, Optional

from wikistatic.core.errors import OutputWriteError
from wikistatic.schemas.pages import RenderedDocument
from wikistatic.services.renderer import pygments_css
from wikistatic.services.site import PYGMENTS_CSS_PATH, STYLESHEET_PATH

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

def _target(root: Path, relative: str) -> Path:
    path = (root / relative).resolve()
    if root.resolve() not in path.parents:
        raise OutputWriteError(f"refusing to write outside the output directory: {relative}")
    return path


def write_documents(output_dir: Path, documents: Iterable[RenderedDocument]) -> int:
    """Write every document under *output_dir*; returns the number written."""
    written = 0
    for doc in documents:
        path = _target(output_dir, doc.path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(doc.content, encoding="utf-8", newline="\n")
        except OSError as exc:
            raise OutputWriteError(f"cannot write {path}: {exc}") from exc
        written += 1
    return written


def copy_static(output_dir: Path, static_dir: Optional[Path] = None) -> None:
    """Copy the package stylesheet, the Pygments theme and any extra assets."""
    try:
        stylesheet = resources.files("wikistatic").joinpath("static", "style.css").read_text(encoding="utf-8")
        for relative, content in ((STYLESHEET_PATH, stylesheet), (PYGMENTS_CSS_PATH, pygments_css())):
            path = _target(output_dir, relative)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8", newline="\n")
        if static_dir is not None:
            if not static_dir.is_dir():
                raise OutputWriteError(f"static directory not found: {static_dir}")
            shutil.copytree(static_dir, output_dir / "static", dirs_exist_ok=True)
    except OSError as exc:
        raise OutputWriteError(f"cannot copy static assets: {exc}") from exc


def prepare_output(output_dir: Path, clean: bool = False) -> None:
    try:
        if clean and output_dir.exists():
            log.info("Removing existing output in %s", output_dir)
            shutil.rmtree(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise OutputWriteError(f"cannot prepare {output_dir}: {exc}") from exc


# -----------------------------------------------------------------------------
