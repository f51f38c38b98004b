"""Detect YAML or JSON and parse specification text into a document tree.

The detector never trusts file extensions or content types: it tries one
parser, checks that the result is a mapping declaring a ``swagger`` (2.x) or
``openapi`` (3.x) version, and falls back to the other parser before giving
up. YAML is tried first unless the caller hints ``"json"`` (uploaded files
that are not ``.yaml``/``.yml``).

YAML reads unquoted response codes such as ``200`` as integers and an
unquoted ``swagger: 2.0`` as a float; the returned tree has string keys
throughout and string version values so the meta-schema validator sees what
a JSON document would have produced.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Optional

import yaml

from apiharmony.exceptions import ParseError

_VERSION_KEYS = ("swagger", "openapi")


def _load_yaml(text: str) -> Any:
    return yaml.safe_load(text)


def _load_json(text: str) -> Any:
    return json.loads(text)


_PARSERS: dict[str, Callable[[str], Any]] = {"yaml": _load_yaml, "json": _load_json}


def parse_document(text: str, hint: str = "yaml") -> dict[str, Any]:
    """Parse *text* into an OpenAPI/Swagger document tree.

    Args:
        text: Raw specification text.
        hint: ``"json"`` to try JSON first; anything else tries YAML first.
            Both parsers are always attempted before failing.

    Returns:
        A mapping with string keys containing a ``swagger`` value starting
        with ``"2."`` or an ``openapi`` value starting with ``"3."``.

    Raises:
        ParseError: If neither parser yields such a mapping. The error
            carries both parsers' messages.
    """
    order = ("json", "yaml") if hint == "json" else ("yaml", "json")
    problems: dict[str, Optional[str]] = {"yaml": None, "json": None}

    for fmt in order:
        try:
            result = _PARSERS[fmt](text)
        except (yaml.YAMLError, ValueError) as exc:
            problems[fmt] = str(exc)
            continue
        problem = _acceptance_problem(result)
        if problem is None:
            return _stringify_versions(stringify_keys(result))
        problems[fmt] = problem

    msg = "Content is not a valid OpenAPI/Swagger document in YAML or JSON"
    msg += f"\n  YAML error: {problems['yaml']}"
    msg += f"\n  JSON error: {problems['json']}"
    raise ParseError(msg, yaml_error=problems["yaml"], json_error=problems["json"])


def detect_version(document: dict[str, Any]) -> tuple[str, str]:
    """Return ``(kind, version)`` where kind is ``"swagger"`` or ``"openapi"``."""
    for key in _VERSION_KEYS:
        value = document.get(key)
        if value is not None:
            return key, str(value)
    raise ParseError("Document declares neither 'swagger' nor 'openapi'")


def _acceptance_problem(result: Any) -> Optional[str]:
    if result is None:
        return "empty document"
    if not isinstance(result, dict):
        return f"parsed to {type(result).__name__}, not a mapping"
    swagger = result.get("swagger")
    if swagger is not None and str(swagger).startswith("2."):
        return None
    openapi = result.get("openapi")
    if openapi is not None and str(openapi).startswith("3."):
        return None
    return "mapping has neither a 'swagger' (2.x) nor an 'openapi' (3.x) version key"


def stringify_keys(node: Any) -> Any:
    """Coerce mapping keys to strings; YAML reads unquoted response codes as ints."""
    if isinstance(node, dict):
        return {str(key): stringify_keys(value) for key, value in node.items()}
    if isinstance(node, list):
        return [stringify_keys(item) for item in node]
    return node


def _stringify_versions(document: dict[str, Any]) -> dict[str, Any]:
    for key in _VERSION_KEYS:
        if key in document and not isinstance(document[key], str):
            document[key] = str(document[key])
    return document
