"""Specification ingestion -- fetch, detect, normalise, bundle and validate.

This sub-package turns a :class:`~apiharmony.models.RawSpecInput` into a
validated, self-contained document that the store can hold.

Typical usage::

    from apiharmony.ingest import fetch_spec, ingest

    raw = fetch_spec("https://petstore3.swagger.io/api/v3/openapi.yaml")
    validated = ingest(raw)

Sub-modules:

* :mod:`~apiharmony.ingest.fetcher` -- I/O layer (URL, file, text) plus
  translation of HTTP failures into readable messages.
* :mod:`~apiharmony.ingest.detector` -- YAML/JSON detection and parsing.
* :mod:`~apiharmony.ingest.normalizer` -- OpenAPI 3.0.x version override.
* :mod:`~apiharmony.ingest.bundler` -- ``$ref`` bundling and meta-schema
  validation.
* :mod:`~apiharmony.ingest.pipeline` -- runs the stages in order.
"""

from apiharmony.ingest.fetcher import fetch_spec, read_spec_file, spec_from_text
from apiharmony.ingest.pipeline import ingest

__all__ = ["fetch_spec", "read_spec_file", "spec_from_text", "ingest"]
