"""Run the ingestion stages in order: detect, normalise, bundle and validate."""

from __future__ import annotations

from typing import Union

from apiharmony.ingest.bundler import validate_and_bundle
from apiharmony.ingest.detector import parse_document
from apiharmony.ingest.normalizer import normalize_version
from apiharmony.models import OpenAPI3Document, RawSpecInput, Swagger2Document
from apiharmony.output import debug


def ingest(raw: RawSpecInput) -> Union[Swagger2Document, OpenAPI3Document]:
    """Turn raw specification text into a validated, bundled document.

    Args:
        raw: Text plus origin, as returned by the fetcher. Its ``base_uri``
            anchors relative external ``$ref`` pointers.

    Returns:
        The validated document.

    Raises:
        ParseError: The text is not a YAML or JSON OpenAPI/Swagger document.
        ValidationError: The document violates the meta-schema or declares
            an unsupported version.
        BundleError: A ``$ref`` could not be resolved.
    """
    source = raw.location or raw.origin.value
    debug(f"Parsing {source} ({raw.format_hint} first)")
    document = parse_document(raw.text, hint=raw.format_hint)
    normalized = normalize_version(document, source=raw.location or None)
    validated = validate_and_bundle(normalized, base_uri=raw.base_uri)
    debug(f"Validated {source} as {validated.kind} {validated.version}")
    return validated
