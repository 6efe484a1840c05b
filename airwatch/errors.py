from __future__ import annotations


class InvalidInput(ValueError):
    """Rejected before any computation: empty query text or a malformed payload."""


class UpstreamUnavailable(RuntimeError):
    """A store fetch failed.  Raised by ``ReadingStore`` implementations whose backend is unreachable."""
