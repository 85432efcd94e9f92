"""Site-specific source adapters."""

from __future__ import annotations

from .base import HttpxSourceBase
from .filmywap import FilmyWapSource
from .ninexmovie import NineXMovieSource
from .skybap import SkyBapSource

__all__ = [
    "FilmyWapSource",
    "HttpxSourceBase",
    "NineXMovieSource",
    "SkyBapSource",
]
