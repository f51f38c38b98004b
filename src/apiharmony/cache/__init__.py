"""Disk-based caching of fetched specification documents.

This package provides :class:`DocumentCache`, which stores the body of
successful HTTP GETs of root specifications on disk using :mod:`diskcache`,
keyed by URL with a configurable TTL.

The cache is consumed by :func:`~apiharmony.ingest.fetcher.fetch_spec`,
managed with the ``apiharmony cache`` commands and controlled by the
``cache`` section of :class:`~apiharmony.models.GlobalConfig`.
"""

from apiharmony.cache.cache import CachedDocument, DocumentCache

__all__ = ["CachedDocument", "DocumentCache"]
