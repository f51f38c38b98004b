"""Views derived on demand from a validated document.

* :mod:`~apiharmony.analysis.refgraph` -- schema dependency graph
  (:func:`build_schema_usage`).
* :mod:`~apiharmony.analysis.extractor` -- info block, servers, endpoint list
  and operation details (:func:`summarize`, :func:`find_operation`).
"""

from apiharmony.analysis.extractor import find_operation, summarize
from apiharmony.analysis.refgraph import RefSite, build_schema_usage, iter_ref_sites

__all__ = [
    "RefSite",
    "build_schema_usage",
    "find_operation",
    "iter_ref_sites",
    "summarize",
]
