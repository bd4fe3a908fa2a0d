#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Build a static site from a wikitext dump.

Usage:
    wikistatic [SOURCE] [options]

SOURCE is a directory of *.wikitext files or a MediaWiki XML export
(default: $WIKISTATIC_SOURCE_DIR, else ./wiki).

Examples:
    wikistatic
    wikistatic dump/ -o site/ --base-url /docs --clean
    wikistatic export.xml --workers 1 --json
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from wikistatic import __version__
from wikistatic.core.config import get_settings
from wikistatic.core.errors import WikistaticError
from wikistatic.services.pipeline import run_build

log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="wikistatic",
        description="Render an archived MediaWiki corpus as a static website.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    p.add_argument("source", nargs="?", type=Path, default=None,
                   help="Dump directory or MediaWiki XML export")
    p.add_argument("-o", "--output", dest="output_dir", type=Path, default=None, metavar="DIR",
                   help="Output directory (default: ./output)")
    p.add_argument("--base-url", default=None, metavar="URL",
                   help="Prefix for every generated link, e.g. /wiki-archive")
    p.add_argument("--site-name", default=None, metavar="NAME", help="Site name shown in the page chrome")
    p.add_argument("--main-page", default=None, metavar="TITLE", help="Title linked from the site index")
    p.add_argument("--extension", dest="source_extension", default=None, metavar=".EXT",
                   help="Page file extension in directory dumps (default: .wikitext)")
    p.add_argument("--static-dir", type=Path, default=None, metavar="DIR",
                   help="Extra assets copied into output/static")
    p.add_argument("--workers", type=int, default=None, metavar="N",
                   help="Worker count (0 = one per CPU, 1 = no pool)")
    p.add_argument("--backend", dest="worker_backend", choices=("process", "thread"), default=None,
                   help="Worker pool type (default: process)")
    p.add_argument("--json", dest="write_ast_json", action="store_true", default=None,
                   help="Also write each page's expanded AST as JSON")
    p.add_argument("--clean", action="store_true", help="Delete the output directory first")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    p.add_argument("-q", "--quiet", action="store_true", help="Only log errors")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings().with_overrides(
            output_dir=args.output_dir,
            base_url=args.base_url,
            site_name=args.site_name,
            main_page=args.main_page,
            source_extension=args.source_extension,
            static_dir=args.static_dir,
            workers=args.workers,
            worker_backend=args.worker_backend,
            write_ast_json=args.write_ast_json,
        )
    except (WikistaticError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    level = settings.log_level.upper()
    if args.verbose:
        level = "DEBUG"
    elif args.quiet:
        level = "ERROR"
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)

    try:
        report = run_build(settings, clean=args.clean, dump=args.source)
    except WikistaticError as exc:
        log.error("%s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(report.summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())
