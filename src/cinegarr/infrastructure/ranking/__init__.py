from .dedupe import base_title_key, dedupe_by_title

__all__ = [
    "base_title_key",
    "dedupe_by_title",
]
