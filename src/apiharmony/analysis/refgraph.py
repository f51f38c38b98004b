"""Schema dependency graph for a validated document.

A single visitor, :func:`iter_ref_sites`, walks the document and yields one
:class:`RefSite` for every ``$ref`` that points into the schema container
(``components.schemas`` for OpenAPI 3, ``definitions`` for Swagger 2). A
site either comes from the body of another named schema or from an
operation's request body or response. :func:`build_schema_usage` folds those
sites into one :class:`~apiharmony.models.SchemaUsage` per named schema.

Edges point from referencer to referenced: if ``Order`` contains
``$ref: '#/components/schemas/Pet'``, then ``Pet.referenced_by_schemas``
lists ``Order`` and ``Order`` records nothing about ``Pet``.

Only operations that declare ``responses`` are scanned. Request bodies,
responses and body parameters written as local ``$ref``s to reusable
components are followed one hop.
"""

from __future__ import annotations

from typing import Any, Iterator, NamedTuple, Optional, Union
from urllib.parse import unquote

from apiharmony.models import (
    HTTPMethod,
    OpenAPI3Document,
    OperationUsage,
    SchemaUsage,
    Swagger2Document,
    UsageRole,
)

_METHODS = tuple(m.value for m in HTTPMethod)


class RefSite(NamedTuple):
    """A reference to a named schema and where it was found.

    Exactly one of ``schema`` (the referencing schema's name) and
    ``operation`` is set.
    """

    target: str
    schema: Optional[str] = None
    operation: Optional[OperationUsage] = None


def iter_ref_sites(
    validated: Union[Swagger2Document, OpenAPI3Document],
) -> Iterator[RefSite]:
    """Yield every reference into the schema container, in document order."""
    names = validated.schema_container
    prefix = validated.ref_prefix

    for name, body in names.items():
        for target in _scan_refs(body, prefix, names):
            yield RefSite(target=target, schema=name)

    for path, method, operation in _iter_operations(validated):
        if isinstance(validated, Swagger2Document):
            bodies = _swagger2_request_schemas(validated.document, operation)
            responses = _swagger2_response_schemas(validated.document, operation)
        else:
            bodies = _openapi3_request_schemas(validated.document, operation)
            responses = _openapi3_response_schemas(validated.document, operation)

        for role, schemas in ((UsageRole.REQUEST_BODY, bodies), (UsageRole.RESPONSE, responses)):
            usage = OperationUsage(path=path, method=method, role=role)
            for schema in schemas:
                for target in _scan_refs(schema, prefix, names):
                    yield RefSite(target=target, operation=usage)


def build_schema_usage(
    validated: Union[Swagger2Document, OpenAPI3Document],
) -> dict[str, SchemaUsage]:
    """Build the usage record of every named schema, unused ones included.

    Args:
        validated: A document from :func:`~apiharmony.ingest.ingest`.

    Returns:
        Mapping of schema name to :class:`~apiharmony.models.SchemaUsage`,
        in the container's key order. Each list keeps discovery order with
        duplicates and self references removed.
    """
    usage = {name: SchemaUsage(name=name) for name in validated.schema_container}

    for site in iter_ref_sites(validated):
        record = usage[site.target]
        if site.schema is not None:
            if site.schema != site.target and site.schema not in record.referenced_by_schemas:
                record.referenced_by_schemas.append(site.schema)
        elif site.operation is not None and site.operation not in record.operations:
            record.operations.append(site.operation)

    return usage


def _scan_refs(node: Any, prefix: str, names: dict[str, Any]) -> Iterator[str]:
    """Yield schema names referenced anywhere under *node*."""
    if isinstance(node, dict):
        ref = node.get("$ref")
        if isinstance(ref, str) and ref.startswith(prefix):
            name = _decode_segment(ref[len(prefix):].split("/", 1)[0])
            if name in names:
                yield name
        for value in node.values():
            yield from _scan_refs(value, prefix, names)
    elif isinstance(node, list):
        for item in node:
            yield from _scan_refs(item, prefix, names)


def _decode_segment(segment: str) -> str:
    return unquote(segment).replace("~1", "/").replace("~0", "~")


def _iter_operations(
    validated: Union[Swagger2Document, OpenAPI3Document],
) -> Iterator[tuple[str, str, dict[str, Any]]]:
    for path, path_item in validated.paths.items():
        if not isinstance(path_item, dict):
            continue
        for method, operation in path_item.items():
            if method not in _METHODS or not isinstance(operation, dict):
                continue
            if "responses" not in operation:
                continue
            yield path, method, operation


def _follow_local(document: dict[str, Any], node: Any, container: tuple[str, ...]) -> Any:
    """Follow a ``$ref`` into a reusable-component container one hop."""
    if not isinstance(node, dict):
        return node
    ref = node.get("$ref")
    if not isinstance(ref, str):
        return node
    prefix = "#/" + "/".join(container) + "/"
    if not ref.startswith(prefix):
        return node
    current: Any = document
    for key in container:
        current = current.get(key) if isinstance(current, dict) else None
    if not isinstance(current, dict):
        return node
    return current.get(_decode_segment(ref[len(prefix):]), node)


def _content_schemas(holder: Any) -> list[Any]:
    if not isinstance(holder, dict):
        return []
    content = holder.get("content")
    if not isinstance(content, dict):
        return []
    return [
        media["schema"]
        for media in content.values()
        if isinstance(media, dict) and "schema" in media
    ]


def _openapi3_request_schemas(document: dict[str, Any], operation: dict[str, Any]) -> list[Any]:
    body = _follow_local(document, operation.get("requestBody"), ("components", "requestBodies"))
    return _content_schemas(body)


def _openapi3_response_schemas(document: dict[str, Any], operation: dict[str, Any]) -> list[Any]:
    responses = operation.get("responses")
    if not isinstance(responses, dict):
        return []
    schemas: list[Any] = []
    for response in responses.values():
        response = _follow_local(document, response, ("components", "responses"))
        schemas.extend(_content_schemas(response))
    return schemas


def _swagger2_request_schemas(document: dict[str, Any], operation: dict[str, Any]) -> list[Any]:
    parameters = operation.get("parameters")
    if not isinstance(parameters, list):
        return []
    schemas: list[Any] = []
    for param in parameters:
        param = _follow_local(document, param, ("parameters",))
        if isinstance(param, dict) and param.get("in") == "body" and "schema" in param:
            schemas.append(param["schema"])
    return schemas


def _swagger2_response_schemas(document: dict[str, Any], operation: dict[str, Any]) -> list[Any]:
    responses = operation.get("responses")
    if not isinstance(responses, dict):
        return []
    schemas: list[Any] = []
    for response in responses.values():
        response = _follow_local(document, response, ("responses",))
        if isinstance(response, dict) and "schema" in response:
            schemas.append(response["schema"])
    return schemas
