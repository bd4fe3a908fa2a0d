#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Build configuration.

All values can be overridden via ``WIKISTATIC_*`` environment variables or a
.env file.  The CLI layers its own flags on top with ``Settings.with_overrides``.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from wikistatic._version import __version__ as _pkg_version
from wikistatic.core.errors import ConfigurationError


# -----------------------------------------------------------------------------

DEFAULT_INTERWIKI: dict[str, str] = {
    "wikipedia":  "https://en.wikipedia.org/wiki/$1",
    "wp":         "https://en.wikipedia.org/wiki/$1",
    "wiktionary": "https://en.wiktionary.org/wiki/$1",
    "commons":    "https://commons.wikimedia.org/wiki/$1",
    "mw":         "https://www.mediawiki.org/wiki/$1",
}


# -----------------------------------------------------------------------------

class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_prefix="WIKISTATIC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Site ───────────────────────────────────────────────────────────────

    site_name: str = "Wiki"
    app_version: str = _pkg_version
    base_url: str = ""
    main_page: str = "Main Page"

    # ── Input / output ─────────────────────────────────────────────────────

    source_dir: Path = Path("./wiki")
    source_extension: str = ".wikitext"
    output_dir: Path = Path("./output")
    static_dir: Optional[Path] = None
    write_ast_json: bool = False

    # ── Expansion limits ───────────────────────────────────────────────────

    max_template_depth: int = Field(default=40, ge=1)
    max_redirect_hops: int = Field(default=10, ge=1)
    max_expansion_nodes: int = Field(default=100_000, ge=100)

    # ── Rendering ──────────────────────────────────────────────────────────

    toc_min_headings: int = 4
    interwiki: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_INTERWIKI))

    # ── Execution ──────────────────────────────────────────────────────────

    workers: int = Field(default=0, ge=0)   # 0 = os.cpu_count()
    worker_backend: Literal["process", "thread"] = "process"
    log_level: str = "INFO"

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("interwiki")
    @classmethod
    def lowercase_prefixes(cls, v: dict[str, str]) -> dict[str, str]:
        return {k.strip().lower(): url for k, url in v.items()}

    def with_overrides(self, **overrides: Any) -> "Settings":
        """Return a copy with every non-None override applied (and re-validated)."""
        values = self.model_dump()
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return Settings(**values)
        except ValidationError as exc:
            raise ConfigurationError(f"invalid setting: {exc}") from exc


# -----------------------------------------------------------------------------

@lru_cache
def get_settings() -> Settings:
    return Settings()


# -----------------------------------------------------------------------------
