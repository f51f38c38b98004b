"""Derive the endpoint list, operation details and info block from a document.

This module walks a validated document with its internal ``$ref`` pointers
inlined and builds a :class:`~apiharmony.models.SpecSummary` for the
documentation and endpoint views.

The public entry points are :func:`summarize` and :func:`find_operation`.
Both OpenAPI 3 and Swagger 2 documents are accepted; Swagger 2 constructs
are mapped onto the same view models:

* servers are built from ``schemes``, ``host`` and ``basePath``;
* the ``in: body`` parameter becomes the request body, with ``consumes``
  as its content types;
* response ``schema`` entries use ``produces`` as their content types;
* ``securityDefinitions`` take the place of ``components.securitySchemes``.

Parameter merging follows the OpenAPI specification: path-level parameters
provide defaults, and operation-level parameters override them when they share
the same ``name`` and ``in`` values.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from apiharmony.ingest.bundler import dereference
from apiharmony.models import (
    APIInfo,
    APIOperation,
    APIParameter,
    HTTPMethod,
    OpenAPI3Document,
    RequestBodyInfo,
    ResponseInfo,
    SecurityScheme,
    ServerInfo,
    SpecSummary,
    Swagger2Document,
)

_HTTP_METHODS = tuple(m.value for m in HTTPMethod)


def summarize(validated: Union[Swagger2Document, OpenAPI3Document]) -> SpecSummary:
    """Build a :class:`~apiharmony.models.SpecSummary` from a validated document.

    Args:
        validated: A document produced by :func:`~apiharmony.ingest.ingest`.

    Returns:
        The info block, servers, every operation (in document order),
        security schemes and the names of all declared schemas.

    Example::

        summary = summarize(store.snapshot().document)
        for op in summary.operations:
            print(f"{op.method.value.upper()} {op.path}")
    """
    spec = dereference(validated.document)
    swagger2 = isinstance(validated, Swagger2Document)
    return SpecSummary(
        spec_version=validated.version,
        kind=validated.kind,
        info=_extract_info(spec),
        servers=_swagger2_servers(spec) if swagger2 else _extract_servers(spec),
        operations=_extract_operations(spec, swagger2),
        security_schemes=_extract_security_schemes(spec, swagger2),
        schema_names=list(validated.schema_container),
    )


def find_operation(
    validated: Union[Swagger2Document, OpenAPI3Document],
    path: str,
    method: str,
) -> Optional[APIOperation]:
    """Return the operation at *path* and *method*, or ``None``.

    *method* is matched case-insensitively.
    """
    method = method.lower()
    for operation in summarize(validated).operations:
        if operation.path == path and operation.method.value == method:
            return operation
    return None


def _extract_info(spec: dict[str, Any]) -> APIInfo:
    """Extract API metadata from the document's ``info`` object.

    Missing optional fields default to ``None``.
    """
    info = spec.get("info") or {}
    contact = info.get("contact") or {}
    license_info = info.get("license") or {}

    return APIInfo(
        title=info.get("title") or "Untitled API",
        version=str(info.get("version", "0.0.0")),
        description=info.get("description"),
        terms_of_service=info.get("termsOfService"),
        contact_name=contact.get("name"),
        contact_email=contact.get("email"),
        license_name=license_info.get("name"),
    )


def _extract_servers(spec: dict[str, Any]) -> list[ServerInfo]:
    servers = spec.get("servers") or []
    return [
        ServerInfo(url=server.get("url", "/"), description=server.get("description"))
        for server in servers
        if isinstance(server, dict)
    ]


def _swagger2_servers(spec: dict[str, Any]) -> list[ServerInfo]:
    """Build server URLs from ``schemes`` x ``host`` + ``basePath``.

    Without a ``host`` the base path alone is returned, which is relative to
    wherever the document was served from.
    """
    host = spec.get("host")
    base_path = spec.get("basePath") or ""
    if not host:
        return [ServerInfo(url=base_path)] if base_path else []
    schemes = spec.get("schemes") or ["https"]
    return [ServerInfo(url=f"{scheme}://{host}{base_path}") for scheme in schemes]


def _extract_operations(spec: dict[str, Any], swagger2: bool) -> list[APIOperation]:
    """Extract all operations from the ``paths`` object.

    Operations are returned in the order their paths and methods appear in
    the document.
    """
    paths = spec.get("paths") or {}
    consumes = spec.get("consumes") or []
    produces = spec.get("produces") or []
    operations: list[APIOperation] = []

    for path, path_item in paths.items():
        if not isinstance(path_item, dict):
            continue

        # Path-level parameters apply to all operations under this path
        path_params = path_item.get("parameters") or []

        for method_str, operation in path_item.items():
            if method_str not in _HTTP_METHODS or not isinstance(operation, dict):
                continue

            merged_params = _merge_parameters(path_params, operation.get("parameters") or [])
            if swagger2:
                request_body = _swagger2_request_body(
                    merged_params, operation.get("consumes") or consumes
                )
                responses = _swagger2_responses(
                    operation.get("responses") or {}, operation.get("produces") or produces
                )
                merged_params = [p for p in merged_params if p.get("in") != "body"]
            else:
                request_body = _extract_request_body(operation.get("requestBody"))
                responses = _extract_responses(operation.get("responses") or {})

            operations.append(
                APIOperation(
                    path=path,
                    method=HTTPMethod(method_str),
                    operation_id=operation.get("operationId"),
                    summary=operation.get("summary"),
                    description=operation.get("description"),
                    tags=operation.get("tags") or [],
                    parameters=_extract_parameters(merged_params),
                    request_body=request_body,
                    responses=responses,
                    deprecated=bool(operation.get("deprecated", False)),
                )
            )

    return operations


def _merge_parameters(
    path_params: list[dict[str, Any]],
    op_params: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Merge path-level and operation-level parameters.

    Operation-level parameters override path-level parameters with the same
    name and location (``in`` field).
    """
    op_keys = {
        (param.get("name", ""), param.get("in", ""))
        for param in op_params
        if isinstance(param, dict)
    }
    merged = [
        param
        for param in path_params
        if isinstance(param, dict) and (param.get("name", ""), param.get("in", "")) not in op_keys
    ]
    merged.extend(param for param in op_params if isinstance(param, dict))
    return merged


def _extract_parameters(params_list: list[dict[str, Any]]) -> list[APIParameter]:
    """Convert raw parameter dicts into :class:`~apiharmony.models.APIParameter` models.

    Swagger 2 parameters carry ``type``/``format``/``enum`` directly instead
    of under ``schema``; both shapes are read. Path parameters are always
    required.
    """
    parameters: list[APIParameter] = []

    for param in params_list:
        location = param.get("in", "query")
        schema = param.get("schema")
        if not isinstance(schema, dict):
            schema = param

        required = bool(param.get("required", False))
        if location == "path":
            required = True

        parameters.append(
            APIParameter(
                name=param.get("name", ""),
                location=location,
                required=required,
                description=param.get("description"),
                schema_type=_extract_schema_type(schema),
                schema_format=schema.get("format"),
                default=schema.get("default"),
                enum_values=schema.get("enum"),
            )
        )

    return parameters


def _extract_schema_type(schema: dict[str, Any]) -> str:
    """Return the schema's type, the first non-null one for 3.1 type arrays."""
    type_value = schema.get("type", "string")
    if isinstance(type_value, list):
        non_null = [t for t in type_value if t != "null"]
        return non_null[0] if non_null else "string"
    return str(type_value)


def _first_schema(content: dict[str, Any]) -> Optional[dict[str, Any]]:
    for media in content.values():
        if isinstance(media, dict) and "schema" in media:
            return media["schema"]
    return None


def _extract_request_body(body: Optional[dict[str, Any]]) -> Optional[RequestBodyInfo]:
    if not isinstance(body, dict):
        return None
    content = body.get("content") or {}
    return RequestBodyInfo(
        required=bool(body.get("required", False)),
        description=body.get("description"),
        content_types=list(content),
        schema=_first_schema(content),
    )


def _extract_responses(responses: dict[str, Any]) -> list[ResponseInfo]:
    result: list[ResponseInfo] = []
    for status_code, response in responses.items():
        if not isinstance(response, dict):
            continue
        content = response.get("content") or {}
        result.append(
            ResponseInfo(
                status_code=str(status_code),
                description=response.get("description"),
                content_types=list(content),
                schema=_first_schema(content),
            )
        )
    return result


def _swagger2_request_body(
    params: list[dict[str, Any]], consumes: list[str]
) -> Optional[RequestBodyInfo]:
    for param in params:
        if param.get("in") == "body":
            return RequestBodyInfo(
                required=bool(param.get("required", False)),
                description=param.get("description"),
                content_types=list(consumes),
                schema=param.get("schema"),
            )
    return None


def _swagger2_responses(responses: dict[str, Any], produces: list[str]) -> list[ResponseInfo]:
    result: list[ResponseInfo] = []
    for status_code, response in responses.items():
        if not isinstance(response, dict):
            continue
        schema = response.get("schema")
        result.append(
            ResponseInfo(
                status_code=str(status_code),
                description=response.get("description"),
                content_types=list(produces) if schema is not None else [],
                schema=schema,
            )
        )
    return result


def _extract_security_schemes(spec: dict[str, Any], swagger2: bool) -> dict[str, SecurityScheme]:
    """Extract ``components.securitySchemes`` or Swagger 2 ``securityDefinitions``."""
    if swagger2:
        schemes_raw = spec.get("securityDefinitions") or {}
    else:
        schemes_raw = (spec.get("components") or {}).get("securitySchemes") or {}

    schemes: dict[str, SecurityScheme] = {}
    for name, scheme_data in schemes_raw.items():
        if not isinstance(scheme_data, dict):
            continue
        flows = scheme_data.get("flows")
        if flows is None and scheme_data.get("flow"):
            flows = {
                key: scheme_data[key]
                for key in ("flow", "authorizationUrl", "tokenUrl", "scopes")
                if key in scheme_data
            }
        schemes[name] = SecurityScheme(
            name=name,
            type=scheme_data.get("type", ""),
            description=scheme_data.get("description"),
            param_name=scheme_data.get("name"),
            location=scheme_data.get("in"),
            scheme=scheme_data.get("scheme"),
            bearer_format=scheme_data.get("bearerFormat"),
            flows=flows,
        )
    return schemes
