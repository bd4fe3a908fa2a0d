"""wikistatic: render an archived MediaWiki corpus as a static site."""
from wikistatic._version import __version__

__all__ = ["__version__"]
