"""Stale-request detection for callers that supersede their own requests."""

from __future__ import annotations

import itertools
from collections import OrderedDict
from dataclasses import dataclass


@dataclass(frozen=True)
class RequestToken:
    key: str
    value: int


class RequestTracker:
    """Remembers the newest token issued per request key.

    A request registered with :meth:`begin` stays current until another
    request with the same key begins.  At most *max_keys* keys are kept
    (least recently used evicted first); a token whose key was evicted
    counts as current, since no newer request has claimed the key.
    """

    def __init__(self, max_keys: int = 1024) -> None:
        if max_keys < 1:
            raise ValueError("max_keys must be >= 1")
        self._max_keys = max_keys
        self._latest: OrderedDict[str, int] = OrderedDict()
        self._counter = itertools.count(1)

    @property
    def max_keys(self) -> int:
        return self._max_keys

    def begin(self, key: str) -> RequestToken:
        token = RequestToken(key=key, value=next(self._counter))
        self._latest[key] = token.value
        self._latest.move_to_end(key)
        while len(self._latest) > self._max_keys:
            self._latest.popitem(last=False)
        return token

    def is_current(self, token: RequestToken) -> bool:
        latest = self._latest.get(token.key)
        return latest is None or latest == token.value

    def __len__(self) -> int:
        return len(self._latest)
