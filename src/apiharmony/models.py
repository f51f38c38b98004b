"""Canonical Pydantic models shared across all apiharmony modules.

This is the single source of truth for data shapes in the project. The
models fall into four groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`FetchConfig`, :class:`CacheConfig`, :class:`OutputConfig` and
    :class:`GlobalConfig`.

**Ingestion models** -- produced stage by stage by :mod:`apiharmony.ingest`:
    :class:`RawSpecInput`, :class:`NormalizedDocument`, and the validated
    union :data:`ValidatedDocument` (:class:`Swagger2Document` or
    :class:`OpenAPI3Document`, discriminated on ``kind``).

**Store models** -- :class:`ActiveSpecification` and :class:`LoadResult`.

**View models** -- derived on demand by :mod:`apiharmony.analysis`:
    :class:`SchemaUsage`, :class:`OperationUsage`, :class:`APIOperation`,
    :class:`APIInfo`, :class:`SpecSummary` and friends.

A parsed document before validation is a plain ``dict[str, Any]``; its shape
is unverified, so it is not modelled.
"""

from __future__ import annotations

import enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

SUPPORTED_OAS30_CEILING = "3.0.3"
"""Highest OpenAPI 3.0.x patch release the validator fully supports."""


# --- Configuration ---


class FetchConfig(BaseModel):
    """Settings for fetching specification documents by URL."""

    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    user_agent: str = Field(
        default="APIHarmonyLite-Fetcher/1.0", description="User-Agent header value"
    )
    follow_redirects: bool = Field(default=True, description="Follow HTTP redirects")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class CacheConfig(BaseModel):
    """Disk cache settings for fetched specification documents."""

    enabled: bool = Field(default=True, description="Enable the fetch cache")
    ttl_seconds: int = Field(default=300, description="Cache TTL in seconds")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )
    pager: bool = Field(
        default=True, description="Use pager for long output in TTY mode"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/apiharmony/config.json``.

    Loaded and saved by :func:`~apiharmony.config.load_global_config` and
    :func:`~apiharmony.config.save_global_config`. Environment variables and
    CLI flags override these values; see
    :func:`~apiharmony.config.resolve_config` for the precedence chain.
    """

    fetch: FetchConfig = Field(default_factory=FetchConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Ingestion ---


class SpecOrigin(str, enum.Enum):
    """Where a candidate specification came from."""

    URL = "url"
    FILE = "file"
    TEXT = "text"


class RawSpecInput(BaseModel):
    """The unparsed text of a candidate specification plus its origin.

    ``location`` is the URL or file name the text came from. ``base_uri`` is
    used to resolve relative external ``$ref`` pointers; it is the URL itself
    for URL imports and the file's own ``file:`` URI for files read from disk.
    ``content_type`` is advisory only -- the body is always sniffed.
    """

    text: str
    origin: SpecOrigin
    location: str = ""
    content_type: Optional[str] = None
    base_uri: Optional[str] = None

    @property
    def format_hint(self) -> str:
        """Parser to try first: ``"yaml"`` for YAML files and all URLs, else ``"json"``."""
        if self.origin != SpecOrigin.FILE:
            return "yaml"
        if self.location.lower().endswith((".yaml", ".yml")):
            return "yaml"
        return "json"


class NormalizedDocument(BaseModel):
    """A parsed document after the version normaliser has run."""

    document: dict[str, Any]
    version_overridden: bool = False
    original_version: Optional[str] = None


class _ValidatedBase(BaseModel):
    """Fields shared by both validated document kinds."""

    document: dict[str, Any] = Field(description="Bundled, self-contained tree")
    version: str
    version_overridden: bool = False
    original_version: Optional[str] = None

    @property
    def paths(self) -> dict[str, Any]:
        paths = self.document.get("paths")
        return paths if isinstance(paths, dict) else {}

    @property
    def info(self) -> dict[str, Any]:
        info = self.document.get("info")
        return info if isinstance(info, dict) else {}


class Swagger2Document(_ValidatedBase):
    """A validated Swagger 2.0 document. Schemas live under ``definitions``."""

    kind: Literal["swagger2"] = "swagger2"

    @property
    def ref_prefix(self) -> str:
        return "#/definitions/"

    @property
    def schema_container(self) -> dict[str, Any]:
        container = self.document.get("definitions")
        return container if isinstance(container, dict) else {}


class OpenAPI3Document(_ValidatedBase):
    """A validated OpenAPI 3.x document. Schemas live under ``components.schemas``."""

    kind: Literal["openapi3"] = "openapi3"

    @property
    def ref_prefix(self) -> str:
        return "#/components/schemas/"

    @property
    def schema_container(self) -> dict[str, Any]:
        components = self.document.get("components")
        if not isinstance(components, dict):
            return {}
        container = components.get("schemas")
        return container if isinstance(container, dict) else {}


ValidatedDocument = Annotated[
    Union[Swagger2Document, OpenAPI3Document], Field(discriminator="kind")
]


# --- Store ---


class ActiveSpecification(BaseModel):
    """Snapshot of the store's state handed to view components.

    ``document`` is always a validated, bundled document when present;
    callers must still check ``error`` because a failed load leaves the
    previous document in place.
    """

    id: Optional[str] = None
    name: Optional[str] = None
    document: Optional[ValidatedDocument] = None
    raw_text: Optional[str] = None
    loading: bool = False
    error: Optional[str] = None
    version_overridden: bool = False
    original_version: Optional[str] = None


class LoadResult(BaseModel):
    """Outcome of a single :meth:`~apiharmony.store.SpecStore.load` call.

    ``superseded`` is set when a newer load (or a ``clear``) started while
    this one was in flight; its result was discarded.
    """

    success: bool
    superseded: bool = False
    error: Optional[str] = None
    exit_code: int = 0
    id: Optional[str] = None
    name: Optional[str] = None
    version_overridden: bool = False
    original_version: Optional[str] = None

    @property
    def warning(self) -> Optional[str]:
        """User-facing disclosure for a version override, or ``None``."""
        if not (self.success and self.version_overridden):
            return None
        return (
            f"OpenAPI version {self.original_version} was changed to "
            f"{SUPPORTED_OAS30_CEILING} for compatibility. Full parsing not guaranteed."
        )


# --- Reference graph ---


class UsageRole(str, enum.Enum):
    """How an operation uses a schema."""

    REQUEST_BODY = "requestBody"
    RESPONSE = "response"


class OperationUsage(BaseModel):
    """One operation that uses a schema as request body or response."""

    model_config = ConfigDict(frozen=True)

    path: str
    method: str
    role: UsageRole


class SchemaUsage(BaseModel):
    """Usage record for a single named schema."""

    name: str
    operations: list[OperationUsage] = Field(default_factory=list)
    referenced_by_schemas: list[str] = Field(default_factory=list)

    @property
    def is_unused(self) -> bool:
        return not self.operations and not self.referenced_by_schemas


# --- Derived views ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods recognised in path-item objects."""

    GET = "get"
    PUT = "put"
    POST = "post"
    DELETE = "delete"
    OPTIONS = "options"
    HEAD = "head"
    PATCH = "patch"
    TRACE = "trace"


class APIParameter(BaseModel):
    """A single parameter of an operation (OpenAPI *Parameter Object*)."""

    name: str
    location: str = Field(description="query, header, path, cookie, formData or body")
    required: bool = False
    description: Optional[str] = None
    schema_type: str = Field(default="string", description="JSON Schema type")
    schema_format: Optional[str] = None
    default: Any = None
    enum_values: Optional[list[Any]] = None


class RequestBodyInfo(BaseModel):
    """Request body metadata. For Swagger 2.0 it comes from the ``in: body`` parameter."""

    required: bool = False
    description: Optional[str] = None
    content_types: list[str] = Field(default_factory=list)
    schema_: Optional[dict[str, Any]] = Field(default=None, alias="schema")

    model_config = {"populate_by_name": True}


class ResponseInfo(BaseModel):
    """Response metadata for a single status code."""

    status_code: str
    description: Optional[str] = None
    content_types: list[str] = Field(default_factory=list)
    schema_: Optional[dict[str, Any]] = Field(default=None, alias="schema")

    model_config = {"populate_by_name": True}


class SecurityScheme(BaseModel):
    """A security scheme (``securitySchemes`` or ``securityDefinitions`` entry)."""

    name: str
    type: str
    description: Optional[str] = None
    param_name: Optional[str] = None
    location: Optional[str] = None
    scheme: Optional[str] = None
    bearer_format: Optional[str] = None
    flows: Optional[dict[str, Any]] = None


class APIOperation(BaseModel):
    """One path + HTTP method pair with its details."""

    path: str
    method: HTTPMethod
    operation_id: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    parameters: list[APIParameter] = Field(default_factory=list)
    request_body: Optional[RequestBodyInfo] = None
    responses: list[ResponseInfo] = Field(default_factory=list)
    deprecated: bool = False


class APIInfo(BaseModel):
    """The document's *Info Object*."""

    title: str
    version: str
    description: Optional[str] = None
    terms_of_service: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    license_name: Optional[str] = None


class ServerInfo(BaseModel):
    """A server URL; for Swagger 2.0 derived from ``schemes``/``host``/``basePath``."""

    url: str
    description: Optional[str] = None


class SpecSummary(BaseModel):
    """Everything the documentation and endpoint views render."""

    spec_version: str
    kind: str
    info: APIInfo
    servers: list[ServerInfo] = Field(default_factory=list)
    operations: list[APIOperation] = Field(default_factory=list)
    security_schemes: dict[str, SecurityScheme] = Field(default_factory=dict)
    schema_names: list[str] = Field(default_factory=list)
