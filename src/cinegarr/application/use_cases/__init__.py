from __future__ import annotations

from .aggregate import AggregatorSettings, MovieAggregator

__all__ = ["AggregatorSettings", "MovieAggregator"]
