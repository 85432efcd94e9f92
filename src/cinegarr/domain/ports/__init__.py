from .source import CategorySource, SourceAdapter

__all__ = [
    "CategorySource",
    "SourceAdapter",
]
