#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Exception taxonomy.

Only run-level failures are exceptions.  Anything that goes wrong with a single
page is captured as a ``PageWarning`` on that page's result instead, so one bad
page never stops the rest of the build.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations


# -----------------------------------------------------------------------------

class WikistaticError(Exception):
    """Base class for fatal build errors (CLI exit code 1)."""


class ConfigurationError(WikistaticError):
    pass


class CorpusLoadError(WikistaticError):
    """The dump could not be read at all; nothing downstream is meaningful."""


class OutputWriteError(WikistaticError):
    """A rendered document or asset could not be written to the output tree."""


# -----------------------------------------------------------------------------
